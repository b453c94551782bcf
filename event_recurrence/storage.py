"""Storage-boundary codec for recurrence rules.

The storage layer keeps the list fields of a rule (``byWeekDay``, ``byMonthDay``,
``byMonth``, ``exceptions``) as JSON text columns. Rows are decoded and
validated here, once, so the engine only ever sees a typed ``RecurrenceRule``.
"""

import json
import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

from .exceptions import InvalidRule
from .models import ExpandableEvent, RecurrenceRule

logger = logging.getLogger(__name__)

# (storage column, model attribute)
LIST_COLUMNS = (
    ("byWeekDay", "by_week_day"),
    ("byMonthDay", "by_month_day"),
    ("byMonth", "by_month"),
    ("exceptions", "exceptions"),
)

RULE_COLUMNS = ("frequency", "interval", "count", "until", "workdaysOnly")


def _decode_json_list(column: str, value: Any) -> Optional[list[Any]]:
    """Decode one JSON text column into a list (None for empty columns)."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as exc:
            raise InvalidRule(f"Column {column} holds invalid JSON: {value!r}") from exc
        if decoded is None:
            return None
        if not isinstance(decoded, list):
            raise InvalidRule(f"Column {column} must hold a JSON array, got {value!r}")
        return decoded
    raise InvalidRule(f"Column {column} has unsupported type {type(value).__name__}")


def decode_rule_record(record: Mapping[str, Any]) -> RecurrenceRule:
    """Decode a stored rule row into a validated ``RecurrenceRule``.

    Storage-only columns (id, eventId, timestamps...) are ignored. Null columns
    fall back to the rule defaults.

    Raises:
        InvalidRule: If a list column is undecodable or a value is out of range
    """
    data: dict[str, Any] = {}
    for column in RULE_COLUMNS:
        if record.get(column) is not None:
            data[column] = record[column]

    for column, attribute in LIST_COLUMNS:
        raw = record.get(column)
        if raw is None:
            raw = record.get(attribute)
        decoded = _decode_json_list(column, raw)
        if decoded is not None:
            data[column] = decoded

    return RecurrenceRule.from_input(data)


def decode_event_record(record: Mapping[str, Any]) -> ExpandableEvent:
    """Decode a stored event row, with its rule row nested under ``recurrenceRule``
    (or ``recurrence_rule``).

    Raises:
        InvalidRule: If the nested rule row is malformed
        InvalidEvent: If the event columns are malformed
    """
    data = dict(record)
    rule_record = data.pop("recurrenceRule", None)
    snake_record = data.pop("recurrence_rule", None)
    if rule_record is None:
        rule_record = snake_record
    if rule_record is not None:
        try:
            data["recurrenceRule"] = decode_rule_record(rule_record)
        except InvalidRule as exc:
            event_id = data.get("id")
            raise InvalidRule(str(exc), event_id=str(event_id) if event_id is not None else None) from exc
    return ExpandableEvent.from_input(data)


def encode_rule_record(rule: RecurrenceRule) -> dict[str, Any]:
    """Encode a rule into the storage row shape (JSON text for list columns)."""
    until = rule.until
    if isinstance(until, (datetime, date)):
        until = until.isoformat()

    record: dict[str, Any] = {
        "frequency": rule.frequency.value,
        "interval": rule.interval,
        "count": rule.count,
        "until": until,
        "workdaysOnly": rule.workdays_only,
    }
    for column, attribute in LIST_COLUMNS:
        value = getattr(rule, attribute)
        record[column] = json.dumps(value) if value else None
    return record
