"""Exception taxonomy for timesheet operations."""

from typing import Optional


class TimesheetError(Exception):
    """Base class for all timesheet failures."""


class NotAuthenticated(TimesheetError):
    """Raised when an operation needs an identity and none is signed in."""

    def __init__(self, operation: str):
        super().__init__(f"User not authenticated. Cannot {operation}.")
        self.operation = operation


class AuthenticationFailure(TimesheetError):
    """Raised when sign-in credentials are rejected."""


class PersistenceFailure(TimesheetError):
    """Raised when the persistence backend reports an error.

    Network, permission and constraint errors are not distinguished.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationFailure(TimesheetError):
    """Raised by caller-side validation before reaching the store.

    Attributes:
        code: Machine-readable reason, e.g. ``blank_task``
        field: Name of the offending field, if any
    """

    def __init__(self, message: str, code: str, field: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.field = field


class SummarizerError(TimesheetError):
    """Raised when the summarization service cannot be reached or fails."""
