"""Tests for the event_recurrence command-line entry point."""
import json

import pytest

from event_recurrence.__main__ import main
from event_recurrence.datetime_utils import TEST_TIME_ENV_VAR

pytestmark = pytest.mark.unit

DAILY = {
    "id": "evt-1",
    "startDate": "2024-01-01T10:00:00Z",
    "endDate": "2024-01-01T11:00:00Z",
    "isRecurring": True,
    "recurrenceRule": {"frequency": "DAILY", "count": 3},
}

BROKEN = {
    "id": "evt-bad",
    "startDate": "2024-01-01T10:00:00Z",
    "endDate": "2024-01-01T11:00:00Z",
    "isRecurring": True,
    "recurrenceRule": {"frequency": "SOMETIMES"},
}


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run from an empty directory so no stray event_recurrence.yaml is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write_events(tmp_path, events, name="events.json"):
    path = tmp_path / name
    path.write_text(json.dumps(events), encoding="utf-8")
    return str(path)


def test_expands_events_to_json(tmp_path, capsys):
    events_file = _write_events(tmp_path, [DAILY])

    exit_code = main([events_file, "--start", "2024-01-01", "--end", "2024-01-31"])

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    assert [item["startDate"][:10] for item in output] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert output[0]["isRecurrenceOccurrence"] is False
    assert output[1]["occurrenceId"].startswith("evt-1-2024-01-02T10:00:00")


def test_reads_yaml_document_with_events_key(tmp_path, capsys):
    path = tmp_path / "events.yaml"
    path.write_text(
        "events:\n"
        "  - id: meetup\n"
        "    startDate: '2024-01-05T18:00:00'\n"
        "    endDate: '2024-01-05T20:00:00'\n"
        "    title: Meetup\n",
        encoding="utf-8",
    )

    assert main([str(path), "--start", "2024-01-01", "--end", "2024-01-31"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert len(output) == 1
    assert output[0]["title"] == "Meetup"


def test_default_window_comes_from_now_and_config(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv(TEST_TIME_ENV_VAR, "2024-01-01T12:00:00Z")
    monkeypatch.setenv("EVENT_RECURRENCE_WINDOW_DAYS", "1")
    events_file = _write_events(tmp_path, [DAILY])

    assert main([events_file]) == 0

    output = json.loads(capsys.readouterr().out)
    assert [item["startDate"][:10] for item in output] == ["2024-01-02"]


def test_inverted_range_exits_with_error(tmp_path, capsys):
    events_file = _write_events(tmp_path, [DAILY])

    exit_code = main([events_file, "--start", "2024-02-01", "--end", "2024-01-01"])

    assert exit_code == 2
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("error:")


def test_malformed_event_aborts_by_default(tmp_path, capsys):
    events_file = _write_events(tmp_path, [DAILY, BROKEN])

    assert main([events_file, "--start", "2024-01-01", "--end", "2024-01-31"]) == 2
    assert "evt-bad" in capsys.readouterr().err


def test_skip_invalid_keeps_good_events(tmp_path, capsys):
    events_file = _write_events(tmp_path, [BROKEN, DAILY])

    exit_code = main([events_file, "--start", "2024-01-01", "--end", "2024-01-31", "--skip-invalid"])

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    assert {item["id"] for item in output} == {"evt-1"}
    assert len(output) == 3


def test_skip_policy_from_config_file(tmp_path, capsys):
    events_file = _write_events(tmp_path, [BROKEN, DAILY])
    config = tmp_path / "custom.yaml"
    config.write_text("error_policy: skip\n", encoding="utf-8")

    assert main([events_file, "--start", "2024-01-01", "--end", "2024-01-31", "--config", str(config)]) == 0
    assert len(json.loads(capsys.readouterr().out)) == 3


def test_missing_events_file_exits_with_error(tmp_path, capsys):
    assert main([str(tmp_path / "nope.json"), "--start", "2024-01-01", "--end", "2024-01-31"]) == 2
    assert "error:" in capsys.readouterr().err


def test_events_file_must_hold_a_list(tmp_path, capsys):
    path = tmp_path / "events.json"
    path.write_text('"just a string"', encoding="utf-8")

    assert main([str(path), "--start", "2024-01-01", "--end", "2024-01-31"]) == 2
    assert "list of events" in capsys.readouterr().err


def test_invalid_config_exits_with_error(tmp_path, capsys):
    events_file = _write_events(tmp_path, [DAILY])
    config = tmp_path / "bad.yaml"
    config.write_text("- not\n- a mapping\n", encoding="utf-8")

    assert main([events_file, "--config", str(config)]) == 2
    assert "invalid configuration" in capsys.readouterr().err
