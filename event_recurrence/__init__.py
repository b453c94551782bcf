"""event_recurrence - recurrence-rule expansion for community directory events.

Expands recurring event definitions into the concrete occurrences that fall in a
query window. Pure functions only: no storage, no caching, no I/O.
"""

__version__ = "1.0.0"

from .exceptions import (
    DegenerateAnchor,
    ExpansionError,
    InvalidEvent,
    InvalidRange,
    InvalidRule,
)
from .expander import RecurrenceExpander, RecurrenceExpanderConfig, expand
from .models import (
    ErrorPolicy,
    ExpandableEvent,
    ExpandedOccurrence,
    RecurrenceFrequency,
    RecurrenceRule,
)
from .preview import upcoming_occurrences

__all__ = [
    "__version__",
    "DegenerateAnchor",
    "ErrorPolicy",
    "ExpandableEvent",
    "ExpandedOccurrence",
    "ExpansionError",
    "InvalidEvent",
    "InvalidRange",
    "InvalidRule",
    "RecurrenceExpander",
    "RecurrenceExpanderConfig",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "expand",
    "upcoming_occurrences",
]
