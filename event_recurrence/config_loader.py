"""event_recurrence.config_loader

Lightweight config loader for event_recurrence.

- Reads YAML (PyYAML) for .yaml/.yml files and JSON for .json files.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
- Environment variables (EVENT_RECURRENCE_*) override file values.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .models import ErrorPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "EVENT_RECURRENCE_"

# env var suffix -> config key
ENV_KEYS = {
    "ERROR_POLICY": "error_policy",
    "WINDOW_DAYS": "default_window_days",
    "PREVIEW_DAYS": "preview_horizon_days",
    "PREVIEW_LIMIT": "preview_limit",
    "MAX_OCCURRENCES": "max_occurrences_per_event",
    "LOG_LEVEL": "log_level",
}

MAX_WINDOW_DAYS = 366


@dataclass
class Config:
    """Typed configuration for event_recurrence.

    Fields:
        error_policy: what a batch expansion does with a malformed event (abort/skip)
        default_window_days: window length used when a caller gives no end (1..366)
        preview_horizon_days: how far ahead the detail-page preview looks
        preview_limit: how many upcoming dates the preview keeps (None = all)
        max_occurrences_per_event: optional safety cap per event (None = off)
        log_level: logging level name
    """

    error_policy: ErrorPolicy = ErrorPolicy.ABORT
    default_window_days: int = 365
    preview_horizon_days: int = 365
    preview_limit: int | None = 8
    max_occurrences_per_event: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int; window sizes are clamped to
        1..366 with a warning; an unknown error policy falls back to abort.
        """
        if data is None:
            data = {}

        raw_policy = data.get("error_policy", ErrorPolicy.ABORT.value)
        try:
            policy = ErrorPolicy(str(raw_policy).strip().lower())
        except ValueError:
            logger.warning("Config error_policy=%r is not abort/skip; using abort", raw_policy)
            policy = ErrorPolicy.ABORT

        def _coerce_int(key: str, default: int | None) -> int | None:
            raw = data.get(key, default)
            if raw is None or raw == "":
                return None
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %r", key, raw, default)
                return default

        def _clamp_days(key: str, default: int) -> int:
            value = _coerce_int(key, default)
            if value is None:
                return default
            if value < 1:
                logger.warning("%s %d below minimum; coercing to 1", key, value)
                return 1
            if value > MAX_WINDOW_DAYS:
                logger.warning("%s %d above maximum; coercing to %d", key, value, MAX_WINDOW_DAYS)
                return MAX_WINDOW_DAYS
            return value

        preview_limit = _coerce_int("preview_limit", 8)
        if preview_limit is not None and preview_limit < 0:
            logger.warning("preview_limit %d is negative; disabling the limit", preview_limit)
            preview_limit = None

        max_occurrences = _coerce_int("max_occurrences_per_event", None)
        if max_occurrences is not None and max_occurrences < 1:
            logger.warning("max_occurrences_per_event %d is not positive; disabling the cap", max_occurrences)
            max_occurrences = None

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            error_policy=policy,
            default_window_days=_clamp_days("default_window_days", 365),
            preview_horizon_days=_clamp_days("preview_horizon_days", 365),
            preview_limit=preview_limit,
            max_occurrences_per_event=max_occurrences,
            log_level=log_level,
        )


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect EVENT_RECURRENCE_* overrides from the environment.

    Args:
        environ: Mapping to read instead of os.environ

    Returns:
        Config keys mapped to their raw string values
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, str] = {}
    for suffix, key in ENV_KEYS.items():
        value = env.get(ENV_PREFIX + suffix)
        if value is not None and value.strip():
            overrides[key] = value.strip()
    return overrides


def load_mapping(path: Path) -> Any:
    """Load a YAML or JSON document, choosing the parser by file suffix."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    # safe_load returns None for empty files
    loaded = yaml.safe_load(text)
    return {} if loaded is None else loaded


def load_config(path: str | None = None, environ: Mapping[str, str] | None = None) -> Config:
    """Load configuration from a YAML/JSON file and the environment.

    Args:
        path: Optional path to the config file. If not provided the default is
              ./event_recurrence.yaml (relative to current working dir).
        environ: Optional environment mapping (defaults to os.environ)

    Returns:
        Config dataclass instance with values from file and environment (or defaults).

    Behavior:
    - If file is missing: defaults, still subject to environment overrides.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / "event_recurrence.yaml"
    logger.debug("Attempting to load config from %s", p)

    raw: dict[str, Any] = {}
    if p.exists():
        loaded = load_mapping(p)
        if not isinstance(loaded, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        raw.update(loaded)
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    overrides = env_overrides(environ)
    if overrides:
        logger.debug("Applying environment overrides for keys: %s", ", ".join(sorted(overrides)))
        raw.update(overrides)

    cfg = Config.from_dict(raw)
    logger.debug("Configuration values: %s", cfg)
    return cfg
