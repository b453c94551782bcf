"""Exception hierarchy for recurrence expansion errors.

These are structural errors: the caller handed the engine data that the
storage layer should already have validated. Occurrences dropped by an
exception date or by the working-days filter are normal outcomes and never
raise.
"""

from typing import Optional


class ExpansionError(Exception):
    """Base exception for all recurrence expansion errors.

    Attributes:
        event_id: Id of the offending candidate, when the error is tied to one.
    """

    def __init__(self, message: str, *, event_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.event_id = event_id


class InvalidRange(ExpansionError):
    """The query window is unusable.

    Raised when:
    - range_start is after range_end
    - a window bound cannot be parsed as an ISO date or datetime
    """


class InvalidRule(ExpansionError):
    """A recurrence rule is malformed.

    Raised when:
    - frequency is not one of DAILY, WEEKLY, MONTHLY, YEARLY
    - interval is lower than 1
    - a by-field carries an out-of-range value
    - a stored rule row holds undecodable JSON in a list column
    """


class DegenerateAnchor(ExpansionError):
    """The anchor event ends before it starts."""


class InvalidEvent(ExpansionError):
    """A candidate event is missing its id or has unparseable dates."""
