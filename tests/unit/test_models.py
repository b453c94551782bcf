"""Unit tests for event_recurrence.models validation and serialization."""
from datetime import UTC, date, datetime, timedelta

import pytest

from event_recurrence import (
    ExpandableEvent,
    InvalidEvent,
    InvalidRule,
    RecurrenceFrequency,
    RecurrenceRule,
    expand,
)

pytestmark = pytest.mark.unit


def test_rule_defaults() -> None:
    rule = RecurrenceRule.from_input({"frequency": "DAILY"})

    assert rule.frequency is RecurrenceFrequency.DAILY
    assert rule.interval == 1
    assert rule.count is None
    assert rule.until is None
    assert rule.by_week_day is None
    assert rule.exceptions == []
    assert rule.workdays_only is False


def test_rule_accepts_camel_and_snake_keys() -> None:
    camel = RecurrenceRule.from_input({"frequency": "weekly", "byWeekDay": [3, 1], "workdaysOnly": True})
    snake = RecurrenceRule.from_input({"frequency": "WEEKLY", "by_week_day": [1, 3], "workdays_only": True})

    assert camel == snake
    assert camel.frequency is RecurrenceFrequency.WEEKLY


def test_rule_null_columns_fall_back_to_defaults() -> None:
    rule = RecurrenceRule.from_input(
        {"frequency": "MONTHLY", "interval": None, "exceptions": None, "workdaysOnly": None, "until": ""}
    )

    assert rule.interval == 1
    assert rule.exceptions == []
    assert rule.workdays_only is False
    assert rule.until is None


def test_week_days_normalized_with_sunday_alias() -> None:
    rule = RecurrenceRule.from_input({"frequency": "WEEKLY", "byWeekDay": [7, 3, 3, 1]})

    assert rule.by_week_day == [0, 1, 3]


def test_empty_by_lists_are_treated_as_unset() -> None:
    rule = RecurrenceRule.from_input({"frequency": "YEARLY", "byMonth": [], "byMonthDay": []})

    assert rule.by_month is None
    assert rule.by_month_day is None


def test_until_keeps_date_and_datetime_apart() -> None:
    as_date = RecurrenceRule.from_input({"frequency": "DAILY", "until": "2024-06-30"})
    as_datetime = RecurrenceRule.from_input({"frequency": "DAILY", "until": "2024-06-30T18:00:00"})

    assert as_date.until == date(2024, 6, 30)
    assert not isinstance(as_date.until, datetime)
    assert as_datetime.until == datetime(2024, 6, 30, 18, tzinfo=UTC)


def test_invalid_until_raises_invalid_rule() -> None:
    with pytest.raises(InvalidRule):
        RecurrenceRule.from_input({"frequency": "DAILY", "until": "someday"})


def test_is_past_until() -> None:
    rule = RecurrenceRule.from_input({"frequency": "DAILY", "until": "2024-01-03"})

    assert rule.is_past_until(datetime(2024, 1, 3, 23, 59, tzinfo=UTC)) is False
    assert rule.is_past_until(datetime(2024, 1, 4, 0, 0, tzinfo=UTC)) is True


def test_excluded_dates_skip_malformed_entries() -> None:
    rule = RecurrenceRule.from_input(
        {"frequency": "DAILY", "exceptions": ["2024-01-02", "2024-01-05T09:00:00Z", "oops"]}
    )

    assert rule.excluded_dates() == {date(2024, 1, 2), date(2024, 1, 5)}


def test_event_naive_dates_are_read_as_utc() -> None:
    event = ExpandableEvent.from_input(
        {"id": 17, "startDate": "2024-01-01T10:00:00", "endDate": "2024-01-01T12:00:00"}
    )

    assert event.id == "17"
    assert event.start_date == datetime(2024, 1, 1, 10, tzinfo=UTC)
    assert event.duration == timedelta(hours=2)
    assert event.is_recurring is False


def test_event_date_only_start_is_midnight() -> None:
    event = ExpandableEvent.from_input({"id": "a", "startDate": "2024-01-01", "endDate": "2024-01-02"})

    assert event.start_date == datetime(2024, 1, 1, tzinfo=UTC)
    assert event.duration == timedelta(days=1)


def test_from_input_returns_model_instances_unchanged() -> None:
    event = ExpandableEvent(
        id="x",
        start_date=datetime(2024, 1, 1, tzinfo=UTC),
        end_date=datetime(2024, 1, 1, 1, tzinfo=UTC),
    )

    assert ExpandableEvent.from_input(event) is event


def test_from_input_rejects_non_mappings() -> None:
    with pytest.raises(InvalidEvent, match="Unsupported candidate type"):
        ExpandableEvent.from_input(["not", "an", "event"])


def test_passthrough_excludes_occurrence_bookkeeping_keys() -> None:
    event = ExpandableEvent.from_input(
        {
            "id": "a",
            "startDate": "2024-01-01T10:00:00",
            "endDate": "2024-01-01T11:00:00",
            "title": "Repair café",
            "occurrenceId": "stale",
            "isRecurrenceOccurrence": True,
        }
    )

    assert event.passthrough_fields() == {"title": "Repair café"}


def test_occurrence_output_shape(make_event) -> None:
    event = make_event(
        "2024-01-01T10:00:00",
        "2024-01-01T11:00:00",
        rule={"frequency": "WEEKLY", "byWeekDay": [1, 3], "until": "2024-03-01"},
        slug="repair-cafe",
    )

    first = expand([event], "2024-01-01", "2024-01-07")[0].to_output()

    assert set(first) == {
        "id",
        "startDate",
        "endDate",
        "occurrenceId",
        "isRecurrenceOccurrence",
        "originalEventId",
        "recurrenceRule",
        "slug",
    }
    assert first["startDate"].startswith("2024-01-01T10:00:00")
    assert first["isRecurrenceOccurrence"] is False
    assert first["recurrenceRule"]["frequency"] == "WEEKLY"
    assert first["recurrenceRule"]["byWeekDay"] == [1, 3]
    assert first["recurrenceRule"]["until"] == "2024-03-01"
    assert "count" not in first["recurrenceRule"]


def test_non_recurring_output_omits_recurrence_keys(make_event) -> None:
    output = expand([make_event("2024-01-01T10:00:00", "2024-01-01T11:00:00")], "2024-01-01", "2024-01-02")[0].to_output()

    assert set(output) == {"id", "startDate", "endDate", "isRecurrenceOccurrence"}
