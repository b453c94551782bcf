"""
Central logging configuration for event_recurrence.

Installs a colorized console handler once and sets module logger levels so the
per-event expansion statistics only show up when debugging.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV_VAR = "EVENT_RECURRENCE_DEBUG"
LOG_LEVEL_ENV_VAR = "EVENT_RECURRENCE_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

PACKAGE_LOGGERS = (
    "event_recurrence",
    "event_recurrence.expander",
    "event_recurrence.preview",
    "event_recurrence.storage",
    "event_recurrence.config_loader",
    "event_recurrence.datetime_utils",
)


def configure_logging(level_name: Optional[str] = None, debug_mode: bool = False) -> None:
    """Configure logging for event_recurrence.

    Args:
        level_name: Root level name (DEBUG, INFO, WARNING, ERROR); defaults to INFO
        debug_mode: Whether to enable debug logging for event_recurrence modules

    Environment Variables:
        EVENT_RECURRENCE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EVENT_RECURRENCE_LOG_LEVEL: Override root log level
    """
    if os.getenv(DEBUG_ENV_VAR, "").strip().lower() in ("1", "true", "yes", "on"):
        debug_mode = True

    env_level = os.getenv(LOG_LEVEL_ENV_VAR, "").upper()
    if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level_name = env_level

    root_level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    if debug_mode:
        root_level = logging.DEBUG

    root = logging.getLogger()
    root.setLevel(root_level)

    # Only add a handler if none exist to avoid duplicate output
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
        root.addHandler(handler)

    package_level = logging.DEBUG if debug_mode else max(root_level, logging.INFO)
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(package_level)

    logging.getLogger("dateutil").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s, package=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(package_level),
    )
