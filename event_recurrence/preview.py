"""Forward-looking occurrence preview for a single event's detail page."""

import logging
from datetime import timedelta
from typing import Any, Optional

from .datetime_utils import DateLike, now_utc, parse_range_bound
from .expander import Candidate, RecurrenceExpander
from .models import ExpandedOccurrence

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365


def upcoming_occurrences(
    event: Candidate,
    *,
    now: Optional[DateLike] = None,
    horizon_days: Optional[int] = None,
    limit: Optional[int] = None,
    settings: Any = None,
) -> list[ExpandedOccurrence]:
    """Return the next occurrences of one event, starting from ``now``.

    Args:
        event: The anchor event, as a model or a plain mapping
        now: Reference instant; defaults to the current UTC time
        horizon_days: How far ahead to look; falls back to
            ``settings.preview_horizon_days`` then to 365
        limit: Maximum number of occurrences returned; falls back to
            ``settings.preview_limit``. None means no truncation.
        settings: Optional configuration object (e.g. ``config_loader.Config``)

    Returns:
        Occurrences sorted by start date

    Raises:
        ValueError: If ``limit`` is negative
        ExpansionError: If the event or its rule is malformed
    """
    if horizon_days is None:
        horizon_days = getattr(settings, "preview_horizon_days", DEFAULT_HORIZON_DAYS)
    if limit is None:
        limit = getattr(settings, "preview_limit", None)
    if limit is not None and limit < 0:
        raise ValueError(f"limit must not be negative, got {limit}")

    window_start = now_utc() if now is None else parse_range_bound(now)
    window_end = window_start + timedelta(days=horizon_days)

    occurrences = RecurrenceExpander(settings).expand_event(event, window_start, window_end)
    if limit is not None and len(occurrences) > limit:
        logger.debug("Truncating preview from %d to %d occurrences", len(occurrences), limit)
        occurrences = occurrences[:limit]
    return occurrences
