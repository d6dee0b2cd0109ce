"""Core functionality for timesheet tracking."""

from timesheet_ai.core.errors import (
    NotAuthenticated,
    PersistenceFailure,
    TimesheetError,
    ValidationFailure,
)
from timesheet_ai.core.models import EntryDraft, Identity, SessionEvent, TimesheetEntry

__all__ = [
    "TimesheetEntry",
    "EntryDraft",
    "Identity",
    "SessionEvent",
    "TimesheetError",
    "NotAuthenticated",
    "PersistenceFailure",
    "ValidationFailure",
]
