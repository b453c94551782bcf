"""Recurrence expansion engine.

Turns a batch of anchor events into the concrete occurrences that fall inside a
query window. Pure and synchronous: nothing is cached, stored or looked up.
"""

import calendar
import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union

from dateutil.rrule import DAILY, MONTHLY, SU, WEEKLY, YEARLY, rrule

from .datetime_utils import DateLike, ensure_timezone_aware, parse_range_bound
from .exceptions import DegenerateAnchor, ExpansionError, InvalidRange
from .models import (
    ErrorPolicy,
    ExpandableEvent,
    ExpandedOccurrence,
    RecurrenceFrequency,
    RecurrenceRule,
)

logger = logging.getLogger(__name__)

Candidate = Union[ExpandableEvent, Mapping[str, Any]]

_RRULE_FREQUENCIES = {
    RecurrenceFrequency.DAILY: DAILY,
    RecurrenceFrequency.WEEKLY: WEEKLY,
    RecurrenceFrequency.MONTHLY: MONTHLY,
    RecurrenceFrequency.YEARLY: YEARLY,
}

# Saturday and Sunday in date.weekday() numbering
_WEEKEND = frozenset({5, 6})

# Longest length of each month over any year
_MAX_MONTH_DAYS = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


@dataclass
class RecurrenceExpanderConfig:
    """Configuration for recurrence expansion.

    Consolidates the expansion settings with explicit defaults.
    """

    error_policy: ErrorPolicy = ErrorPolicy.ABORT
    max_occurrences_per_event: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "RecurrenceExpanderConfig":
        """Extract expansion settings from any settings object.

        Args:
            settings: Object exposing ``error_policy`` and ``max_occurrences_per_event``
                attributes, or None for defaults

        Returns:
            RecurrenceExpanderConfig with values from settings or defaults
        """
        return cls(
            error_policy=ErrorPolicy(getattr(settings, "error_policy", ErrorPolicy.ABORT)),
            max_occurrences_per_event=getattr(settings, "max_occurrences_per_event", None),
        )


def to_rrule_weekday(day: int) -> int:
    """Convert a 0=Sunday weekday number to dateutil's 0=Monday numbering."""
    return (day + 6) % 7


def _reaches_leap_year(first_year: int, step: int) -> bool:
    # The Gregorian calendar repeats every 400 years
    return any(calendar.isleap(first_year + k * step) for k in range(400))


def can_recur(anchor_day: date, rule: RecurrenceRule) -> bool:
    """Whether stepping the rule can ever land on a date that exists.

    MONTHLY and YEARLY rules may ask only for days no reachable month has,
    such as February 30th, or the 31st when an interval of 12 always lands
    on April. dateutil scans every period up to year 9999 before giving up on
    those, so they are detected here instead.
    """
    frequency = rule.frequency
    if frequency is RecurrenceFrequency.MONTHLY:
        months = {(anchor_day.month - 1 + k * rule.interval) % 12 + 1 for k in range(12)}
        # Only an interval of whole years keeps landing on February alone
        year_step = rule.interval // 12 if rule.interval % 12 == 0 else 1
        days = rule.by_month_day or [anchor_day.day]
    elif frequency is RecurrenceFrequency.YEARLY:
        months = set(rule.by_month or [anchor_day.month])
        year_step = rule.interval
        days = rule.by_month_day or [anchor_day.day]
    else:
        return True

    for month in months:
        for day in days:
            if day <= 28 or (month != 2 and day <= _MAX_MONTH_DAYS[month - 1]):
                return True
            if month == 2 and day == 29 and _reaches_leap_year(anchor_day.year, year_step):
                return True
    return False


def build_rrule(anchor_day: date, rule: RecurrenceRule, until_day: Optional[date] = None) -> rrule:
    """Build the lazy date stepper for a rule, seeded at the anchor's date.

    Only the constraint field meaningful for the rule's frequency is consulted.
    When it is unset the anchor's own weekday, day of month or month/day is
    used, so MONTHLY and YEARLY rules skip months (or years) where that day does
    not exist instead of clamping. ``until_day`` is the last date stepped to.
    """
    kwargs: dict[str, Any] = {
        "dtstart": datetime(anchor_day.year, anchor_day.month, anchor_day.day),
        "interval": rule.interval,
        "cache": False,
    }
    if until_day is not None:
        kwargs["until"] = datetime(until_day.year, until_day.month, until_day.day)
    frequency = rule.frequency
    if frequency is RecurrenceFrequency.WEEKLY:
        kwargs["wkst"] = SU
        if rule.by_week_day:
            kwargs["byweekday"] = [to_rrule_weekday(day) for day in rule.by_week_day]
        else:
            kwargs["byweekday"] = [anchor_day.weekday()]
    elif frequency is RecurrenceFrequency.MONTHLY:
        kwargs["bymonthday"] = rule.by_month_day or [anchor_day.day]
    elif frequency is RecurrenceFrequency.YEARLY:
        kwargs["bymonth"] = rule.by_month or [anchor_day.month]
        kwargs["bymonthday"] = rule.by_month_day or [anchor_day.day]

    return rrule(_RRULE_FREQUENCIES[frequency], **kwargs)


def last_candidate_day(anchor: datetime, rule: RecurrenceRule, window_end: datetime) -> date:
    """Latest calendar date, in the anchor's frame, a candidate may fall on."""
    last_day = window_end.astimezone(anchor.tzinfo).date()
    until = rule.until
    if until is None:
        return last_day
    if isinstance(until, datetime):
        until = ensure_timezone_aware(until).astimezone(anchor.tzinfo).date()
    return min(last_day, until)


def iter_candidate_starts(
    anchor: datetime, rule: RecurrenceRule, until_day: Optional[date] = None
) -> Iterator[datetime]:
    """Yield candidate start datetimes in ascending order, anchor first.

    The anchor's time of day and tzinfo are carried unchanged onto each
    stepped date. Without ``until_day`` the sequence is unbounded; callers
    stop it.
    """
    yield anchor
    anchor_day = anchor.date()
    if not can_recur(anchor_day, rule):
        logger.debug("Rule %s never lands on an existing date after %s", rule.frequency.value, anchor_day)
        return
    for stepped in build_rrule(anchor_day, rule, until_day):
        day = stepped.date()
        if day == anchor_day:
            continue
        yield datetime.combine(day, anchor.timetz())


class RecurrenceExpander:
    """Expands recurring events into occurrences within a window."""

    def __init__(self, settings: Any = None):
        """Initialize expander with configuration settings.

        Args:
            settings: Configuration object (e.g. ``config_loader.Config``) or None
        """
        config = RecurrenceExpanderConfig.from_settings(settings)
        self.error_policy = config.error_policy
        self.max_occurrences = config.max_occurrences_per_event

        logger.debug(
            "RecurrenceExpander initialized: error_policy=%s, max_occurrences=%s",
            self.error_policy.value,
            self.max_occurrences,
        )

    def expand(
        self,
        candidates: Iterable[Candidate],
        range_start: DateLike,
        range_end: DateLike,
    ) -> list[ExpandedOccurrence]:
        """Expand a batch of events into occurrences inside the window.

        Args:
            candidates: Events as ``ExpandableEvent`` models or plain mappings
            range_start: Window start (ISO string, date or datetime)
            range_end: Window end, inclusive; a date-only value means midnight UTC

        Returns:
            Occurrences of every candidate, sorted by start then event id

        Raises:
            InvalidRange: If the window is inverted or unparseable
            InvalidRule, DegenerateAnchor, InvalidEvent: For a malformed candidate,
                unless the error policy is SKIP
        """
        window_start, window_end = self._resolve_window(range_start, range_end)

        occurrences: list[ExpandedOccurrence] = []
        skipped = 0
        for candidate in candidates:
            try:
                event = ExpandableEvent.from_input(candidate)
                occurrences.extend(self._expand_event(event, window_start, window_end))
            except ExpansionError as exc:
                if self.error_policy is not ErrorPolicy.SKIP:
                    raise
                skipped += 1
                logger.warning("Skipping malformed event %s: %s", exc.event_id, exc)

        # Stable sort keeps generation order for equal keys
        occurrences.sort(key=lambda occ: (occ.start_date, occ.id))

        logger.debug(
            "Expanded batch into %d occurrences (%d candidates skipped) for window %s..%s",
            len(occurrences),
            skipped,
            window_start.isoformat(),
            window_end.isoformat(),
        )
        return occurrences

    def expand_event(
        self,
        event: Candidate,
        range_start: DateLike,
        range_end: DateLike,
    ) -> list[ExpandedOccurrence]:
        """Expand a single event. Errors always propagate, whatever the policy."""
        window_start, window_end = self._resolve_window(range_start, range_end)
        return self._expand_event(ExpandableEvent.from_input(event), window_start, window_end)

    @staticmethod
    def _resolve_window(range_start: DateLike, range_end: DateLike) -> tuple[datetime, datetime]:
        window_start = parse_range_bound(range_start)
        window_end = parse_range_bound(range_end)
        if window_start > window_end:
            raise InvalidRange(
                f"range_start {window_start.isoformat()} is after range_end {window_end.isoformat()}"
            )
        return window_start, window_end

    def _expand_event(
        self,
        event: ExpandableEvent,
        window_start: datetime,
        window_end: datetime,
    ) -> list[ExpandedOccurrence]:
        if event.end_date < event.start_date:
            raise DegenerateAnchor(
                f"Event {event.id} ends ({event.end_date.isoformat()}) before it starts "
                f"({event.start_date.isoformat()})",
                event_id=event.id,
            )

        rule = event.recurrence_rule
        if not event.is_recurring or rule is None:
            if event.start_date <= window_end and event.end_date >= window_start:
                return [_single_occurrence(event)]
            return []

        return self._generate(event, rule, window_start, window_end)

    def _generate(
        self,
        event: ExpandableEvent,
        rule: RecurrenceRule,
        window_start: datetime,
        window_end: datetime,
    ) -> list[ExpandedOccurrence]:
        """Run the generation loop from the true anchor.

        Occurrences before the window are generated and discarded so that the
        ``count`` budget reflects the rule's whole history. Filtered dates do not
        consume the budget.
        """
        start_time = time.perf_counter()
        duration = event.duration
        excluded = rule.excluded_dates()

        results: list[ExpandedOccurrence] = []
        generated = 0
        emitted = 0
        until_day = last_candidate_day(event.start_date, rule, window_end)
        for step, start in enumerate(iter_candidate_starts(event.start_date, rule, until_day)):
            if start > window_end or rule.is_past_until(start):
                break
            generated += 1

            if start.date() in excluded:
                continue
            if rule.workdays_only and start.weekday() in _WEEKEND:
                continue

            emitted += 1
            if start >= window_start:
                results.append(_recurring_occurrence(event, rule, start, start + duration, step == 0))

            if rule.count is not None and emitted >= rule.count:
                break
            if self.max_occurrences is not None and emitted >= self.max_occurrences:
                logger.warning(
                    "Recurrence expansion for event %s stopped at safety cap of %d occurrences",
                    event.id,
                    self.max_occurrences,
                )
                break

        logger.debug(
            "Expanded event %s (%s, interval=%d): generated=%d, emitted=%d, returned=%d, elapsed=%.1fms",
            event.id,
            rule.frequency.value,
            rule.interval,
            generated,
            emitted,
            len(results),
            (time.perf_counter() - start_time) * 1000,
        )
        return results


def _recurring_occurrence(
    event: ExpandableEvent,
    rule: RecurrenceRule,
    start: datetime,
    end: datetime,
    is_anchor: bool,
) -> ExpandedOccurrence:
    return ExpandedOccurrence(
        **event.passthrough_fields(),
        id=event.id,
        start_date=start,
        end_date=end,
        occurrence_id=f"{event.id}-{start.isoformat()}",
        is_recurrence_occurrence=not is_anchor,
        original_event_id=event.id,
        recurrence_rule=rule,
    )


def _single_occurrence(event: ExpandableEvent) -> ExpandedOccurrence:
    return ExpandedOccurrence(
        **event.passthrough_fields(),
        id=event.id,
        start_date=event.start_date,
        end_date=event.end_date,
        is_recurrence_occurrence=False,
    )


def expand(
    candidates: Iterable[Candidate],
    range_start: DateLike,
    range_end: DateLike,
    *,
    policy: Union[ErrorPolicy, str] = ErrorPolicy.ABORT,
    max_occurrences_per_event: Optional[int] = None,
) -> list[ExpandedOccurrence]:
    """Expand events into sorted occurrences within ``[range_start, range_end]``.

    Convenience wrapper building a one-off ``RecurrenceExpander``.

    Args:
        candidates: Events as ``ExpandableEvent`` models or plain mappings
        range_start: Window start (ISO string, date or datetime)
        range_end: Window end (ISO string, date or datetime)
        policy: ``abort`` to fail the whole call on a malformed candidate,
            ``skip`` to drop only that candidate
        max_occurrences_per_event: Optional safety cap per event

    Returns:
        Occurrences sorted ascending by start date, ties broken by event id
    """
    expander = RecurrenceExpander(
        RecurrenceExpanderConfig(
            error_policy=ErrorPolicy(policy),
            max_occurrences_per_event=max_occurrences_per_event,
        )
    )
    return expander.expand(candidates, range_start, range_end)
