"""Shared fixtures for event_recurrence tests."""

import logging
from collections.abc import Callable, Generator
from typing import Any, Optional

import pytest

from event_recurrence.config_loader import ENV_KEYS, ENV_PREFIX
from event_recurrence.datetime_utils import TEST_TIME_ENV_VAR
from event_recurrence.recurrence_logging import DEBUG_ENV_VAR, PACKAGE_LOGGERS


@pytest.fixture
def make_event() -> Callable[..., dict[str, Any]]:
    """Factory for event mappings in the engine's camelCase input shape.

    Any extra keyword becomes a top-level key (title, slug...). Passing
    ``rule`` marks the event recurring unless ``is_recurring`` says otherwise.
    """

    def _make(
        start: str,
        end: str,
        *,
        event_id: str = "evt-1",
        rule: Optional[dict[str, Any]] = None,
        is_recurring: Optional[bool] = None,
        **extra: Any,
    ) -> dict[str, Any]:
        event: dict[str, Any] = {
            "id": event_id,
            "startDate": start,
            "endDate": end,
            "isRecurring": rule is not None if is_recurring is None else is_recurring,
        }
        if rule is not None:
            event["recurrenceRule"] = rule
        event.update(extra)
        return event

    return _make


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear EVENT_RECURRENCE_* variables so host settings never leak into tests."""
    for suffix in ENV_KEYS:
        monkeypatch.delenv(ENV_PREFIX + suffix, raising=False)
    monkeypatch.delenv(TEST_TIME_ENV_VAR, raising=False)
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)
    yield


@pytest.fixture(autouse=True)
def restore_logging_levels() -> Generator[None, Any, None]:
    """Undo level changes made by configure_logging() during a test."""
    root = logging.getLogger()
    saved = {name: logging.getLogger(name).level for name in PACKAGE_LOGGERS}
    root_level = root.level
    yield
    root.setLevel(root_level)
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")
