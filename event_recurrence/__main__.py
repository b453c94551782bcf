"""Command-line entry for event_recurrence.

Expands a batch of events read from a JSON or YAML file and prints the
occurrences as a JSON array in the output shape.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path

import yaml

from .config_loader import load_config, load_mapping
from .datetime_utils import now_utc, parse_range_bound
from .exceptions import ExpansionError
from .expander import RecurrenceExpander
from .models import ErrorPolicy
from .recurrence_logging import configure_logging

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the event_recurrence CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="event_recurrence",
        description="Expand recurring events into concrete occurrences",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m event_recurrence events.json --start 2024-01-01 --end 2024-02-01
  python -m event_recurrence events.yaml --skip-invalid     # window: now .. now + default_window_days
        """,
    )
    parser.add_argument("events_file", metavar="EVENTS_FILE", help="JSON or YAML list of events")
    parser.add_argument("--start", metavar="ISO", help="Window start (default: now)")
    parser.add_argument(
        "--end",
        metavar="ISO",
        help="Window end (default: start + default_window_days from config)",
    )
    parser.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Skip malformed events instead of aborting the whole expansion",
    )
    parser.add_argument("--config", metavar="PATH", help="Path to a YAML/JSON config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _load_events(path: Path) -> list:
    loaded = load_mapping(path)
    if isinstance(loaded, dict):
        loaded = loaded.get("events", [])
    if not isinstance(loaded, list):
        raise ValueError(f"{path} must contain a list of events or an 'events' key")
    return loaded


def main(argv: list[str] | None = None) -> int:
    """Run the event_recurrence CLI.

    Returns:
        Process exit code: 0 on success, 2 on an expansion or input error
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return 2
    configure_logging(config.log_level, debug_mode=args.debug)
    if args.skip_invalid:
        config.error_policy = ErrorPolicy.SKIP

    try:
        events = _load_events(Path(args.events_file))
        range_start = parse_range_bound(args.start) if args.start else now_utc()
        range_end = (
            parse_range_bound(args.end)
            if args.end
            else range_start + timedelta(days=config.default_window_days)
        )
        occurrences = RecurrenceExpander(config).expand(events, range_start, range_end)
    except (ExpansionError, OSError, ValueError, yaml.YAMLError) as exc:
        logger.debug("Expansion failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2

    json.dump([occurrence.to_output() for occurrence in occurrences], sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
