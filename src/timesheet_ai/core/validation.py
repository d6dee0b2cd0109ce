"""Caller-side validation for entry drafts."""

import re
from datetime import datetime

from timesheet_ai.core.errors import ValidationFailure
from timesheet_ai.core.models import EntryDraft

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_date(value: str, field: str = "date") -> datetime:
    """Parse an ISO ``YYYY-MM-DD`` date.

    Raises:
        ValidationFailure: If the value is not a valid calendar date
    """
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        raise ValidationFailure(
            f"Invalid date (expected YYYY-MM-DD): {value}", code="bad_date", field=field
        )


def check_time(value: str, field: str) -> str:
    """Check a 24-hour ``HH:mm`` time string and return it unchanged."""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationFailure(
            f"Invalid time (expected HH:mm): {value}", code="bad_time", field=field
        )
    return value


def validate_draft(draft: EntryDraft) -> EntryDraft:
    """Validate a draft before it is handed to the store.

    Args:
        draft: Candidate entry fields

    Returns:
        The same draft

    Raises:
        ValidationFailure: If the task is blank, the date or a time is
            malformed, or the end time is not after the start time
    """
    if not draft.task or not draft.task.strip():
        raise ValidationFailure(
            "Task description must not be empty", code="blank_task", field="task"
        )

    parse_date(draft.date)
    check_time(draft.start_time, "start_time")
    check_time(draft.end_time, "end_time")

    # Zero-padded HH:mm compares correctly as text
    if draft.end_time <= draft.start_time:
        raise ValidationFailure(
            "end_time must be after start_time", code="end_before_start", field="end_time"
        )

    return draft
