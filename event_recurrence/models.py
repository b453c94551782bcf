"""Data models for recurring events and their expanded occurrences."""

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .datetime_utils import (
    ensure_timezone_aware,
    parse_date_or_datetime,
    parse_datetime,
    parse_exception_date,
)
from .exceptions import InvalidEvent, InvalidRule


class RecurrenceFrequency(str, Enum):
    """Supported recurrence frequencies. Closed set."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ErrorPolicy(str, Enum):
    """What a batch expansion does with a malformed candidate."""

    ABORT = "abort"
    SKIP = "skip"


class RecurrenceRule(BaseModel):
    """Recurrence rule owned one-to-one by an event.

    Accepts the camelCase keys used by the storage layer (``byWeekDay``,
    ``workdaysOnly``...) as well as the snake_case attribute names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    frequency: RecurrenceFrequency
    interval: int = Field(default=1, description="Step multiplier, at least 1")
    count: Optional[int] = Field(default=None, description="Cap on emitted occurrences")
    until: Optional[Union[datetime, date]] = Field(
        default=None, description="Inclusive bound on occurrence starts"
    )
    by_week_day: Optional[list[int]] = Field(default=None, description="0=Sunday..6=Saturday")
    by_month_day: Optional[list[int]] = None
    by_month: Optional[list[int]] = None
    exceptions: list[Any] = Field(default_factory=list, description="ISO dates to suppress")
    workdays_only: bool = False

    @field_validator("frequency", mode="before")
    @classmethod
    def _normalize_frequency(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("interval", mode="before")
    @classmethod
    def _default_interval(cls, value: Any) -> Any:
        return 1 if value is None else value

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"interval must be at least 1, got {value}")
        return value

    @field_validator("count")
    @classmethod
    def _check_count(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError(f"count must be positive, got {value}")
        return value

    @field_validator("until", mode="before")
    @classmethod
    def _parse_until(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return parse_date_or_datetime(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("by_week_day")
    @classmethod
    def _normalize_week_days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if not value:
            return None
        for day in value:
            if not 0 <= day <= 7:
                raise ValueError(f"weekday must be within 0..6 (7 accepted for Sunday), got {day}")
        # 7 is the legacy Sunday number
        return sorted({day % 7 for day in value})

    @field_validator("by_month_day")
    @classmethod
    def _check_month_days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        return _check_bounded(value, 1, 31, "day of month")

    @field_validator("by_month")
    @classmethod
    def _check_months(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        return _check_bounded(value, 1, 12, "month")

    @field_validator("exceptions", mode="before")
    @classmethod
    def _normalize_exceptions(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            return value
        # Malformed entries are kept here and dropped with a warning by excluded_dates()
        return [item.isoformat() if isinstance(item, date) else item for item in value]

    @field_validator("workdays_only", mode="before")
    @classmethod
    def _default_workdays_only(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def from_input(cls, data: Mapping[str, Any]) -> "RecurrenceRule":
        """Validate a plain rule mapping.

        Raises:
            InvalidRule: If any field is missing or out of range
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidRule(f"Invalid recurrence rule: {_summarize(exc)}") from exc

    def excluded_dates(self) -> set[date]:
        """Calendar dates suppressed by ``exceptions``; malformed entries are skipped."""
        excluded = set()
        for raw in self.exceptions:
            parsed = parse_exception_date(raw)
            if parsed is not None:
                excluded.add(parsed)
        return excluded

    def is_past_until(self, start: datetime) -> bool:
        """Whether an occurrence starting at ``start`` falls after ``until``."""
        if self.until is None:
            return False
        if isinstance(self.until, datetime):
            return start > ensure_timezone_aware(self.until)
        return start.date() > self.until


class ExpandableEvent(BaseModel):
    """An anchor event handed to the engine, optionally recurring.

    Unknown keys (title, slug, place...) are kept and copied onto every
    occurrence.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    start_date: datetime
    end_date: datetime
    is_recurring: bool = False
    recurrence_rule: Optional[RecurrenceRule] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        if isinstance(value, (str, date)):
            return parse_datetime(value)
        return value

    @field_validator("is_recurring", mode="before")
    @classmethod
    def _default_is_recurring(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def from_input(cls, data: Union["ExpandableEvent", Mapping[str, Any]]) -> "ExpandableEvent":
        """Validate a candidate given either as a model or as a plain mapping.

        Raises:
            InvalidRule: If the nested recurrence rule is malformed
            InvalidEvent: If the event fields themselves are malformed
        """
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise InvalidEvent(f"Unsupported candidate type: {type(data).__name__}")

        event_id = data.get("id")
        event_id = str(event_id) if event_id is not None else None
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            if any(err["loc"] and err["loc"][0] in _RULE_KEYS for err in exc.errors()):
                raise InvalidRule(
                    f"Invalid recurrence rule for event {event_id}: {_summarize(exc)}",
                    event_id=event_id,
                ) from exc
            raise InvalidEvent(
                f"Invalid event {event_id}: {_summarize(exc)}", event_id=event_id
            ) from exc

    @property
    def duration(self) -> timedelta:
        return self.end_date - self.start_date

    def passthrough_fields(self) -> dict[str, Any]:
        """Extra input keys to copy onto occurrences, minus occurrence bookkeeping keys."""
        extras = self.model_extra or {}
        return {key: value for key, value in extras.items() if key not in _OCCURRENCE_KEYS}


class ExpandedOccurrence(BaseModel):
    """One concrete occurrence produced by the engine. Never stored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    start_date: datetime
    end_date: datetime
    occurrence_id: Optional[str] = None
    is_recurrence_occurrence: bool = False
    original_event_id: Optional[str] = None
    recurrence_rule: Optional[RecurrenceRule] = None

    def to_output(self) -> dict[str, Any]:
        """Serialize to the camelCase output shape, ISO strings, no null optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_RULE_KEYS = frozenset({"recurrenceRule", "recurrence_rule"})

_OCCURRENCE_KEYS = frozenset(
    name
    for field_name, field in ExpandedOccurrence.model_fields.items()
    for name in (field_name, field.alias)
    if name
)


def _check_bounded(
    value: Optional[list[int]], low: int, high: int, label: str
) -> Optional[list[int]]:
    if not value:
        return None
    for item in value:
        if not low <= item <= high:
            raise ValueError(f"{label} must be within {low}..{high}, got {item}")
    return sorted(set(value))


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)
