"""Date and datetime parsing helpers for recurrence expansion.

Callers hand the engine ISO strings, ``date`` or ``datetime`` objects. Everything
is normalized to timezone-aware datetimes here so the expansion loop never
compares naive and aware values.
"""

import logging
import os
from datetime import UTC, date, datetime, time
from typing import Any, Optional, Union

from dateutil import parser as date_parser

from .exceptions import InvalidRange

logger = logging.getLogger(__name__)

TEST_TIME_ENV_VAR = "EVENT_RECURRENCE_TEST_TIME"

DateLike = Union[str, date, datetime]


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Return ``dt`` unchanged when aware, otherwise interpret it as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_datetime(value: DateLike) -> datetime:
    """Parse an ISO datetime (or date) into an aware datetime.

    Date-only input maps to midnight UTC. Naive datetimes are taken as UTC.

    Raises:
        ValueError: If a string is not a valid ISO 8601 value
        TypeError: If ``value`` is not a string, date or datetime
    """
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if isinstance(value, str):
        return ensure_timezone_aware(date_parser.isoparse(value.strip()))
    raise TypeError(f"Expected ISO string, date or datetime, got {type(value).__name__}")


def parse_date_or_datetime(value: DateLike) -> Union[date, datetime]:
    """Parse a value that may be a calendar date or a full datetime.

    Keeps the distinction: ``"2024-01-10"`` yields a ``date``, while
    ``"2024-01-10T09:00"`` yields an aware ``datetime``.
    """
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            return ensure_timezone_aware(date_parser.isoparse(text))
    raise TypeError(f"Expected ISO string, date or datetime, got {type(value).__name__}")


def parse_range_bound(value: DateLike) -> datetime:
    """Parse a window bound.

    A date-only bound is the instant of midnight UTC on that day, for the start
    and the end bound alike.

    Raises:
        InvalidRange: If the bound cannot be parsed
    """
    try:
        return parse_datetime(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRange(f"Unparseable range bound: {value!r}") from exc


def parse_exception_date(value: Any) -> Optional[date]:
    """Parse one exception entry (ISO string, date or datetime) to its calendar date.

    Exception lists are advisory data, so a malformed entry of any type is
    logged and ignored instead of failing the expansion.
    """
    try:
        parsed = parse_date_or_datetime(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable exception date %r", value)
        return None
    if isinstance(parsed, datetime):
        return parsed.date()
    return parsed


def now_utc() -> datetime:
    """Return the current UTC time.

    Can be overridden for testing via the EVENT_RECURRENCE_TEST_TIME environment
    variable (ISO 8601, e.g. "2024-01-05T08:00:00+01:00").
    """
    test_time = os.environ.get(TEST_TIME_ENV_VAR)
    if test_time:
        try:
            return parse_datetime(test_time).astimezone(UTC)
        except ValueError as e:
            logger.warning("Invalid %s: %s, error: %s", TEST_TIME_ENV_VAR, test_time, e)
    return datetime.now(UTC)
