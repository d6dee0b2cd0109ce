"""Achievement report generation for a date range."""

import logging
from typing import Optional

from timesheet_ai.analysis.summarizer import Summarizer
from timesheet_ai.core.errors import ValidationFailure
from timesheet_ai.core.models import TimesheetEntry
from timesheet_ai.core.projector import filter_by_range
from timesheet_ai.core.validation import parse_date

logger = logging.getLogger(__name__)


async def generate_report(
    entries: list[TimesheetEntry],
    start_date: Optional[str],
    end_date: Optional[str],
    summarizer: Summarizer,
    instructions: Optional[str] = None,
) -> str:
    """Summarize the entries dated within an inclusive range.

    Args:
        entries: All loaded entries
        start_date: First day of the range (YYYY-MM-DD)
        end_date: Last day of the range (YYYY-MM-DD)
        summarizer: Service producing the summary text
        instructions: Optional instructions replacing the default prompt

    Returns:
        Generated summary text (Markdown)

    Raises:
        ValidationFailure: If a bound is missing or malformed, the start is
            after the end, or no entry falls in the range
        SummarizerError: If the summarizer fails
    """
    if not start_date or not end_date:
        raise ValidationFailure(
            "A start and end date are required", code="missing_range", field="range"
        )

    if parse_date(start_date, "start_date") > parse_date(end_date, "end_date"):
        raise ValidationFailure(
            "Start date must not be after end date", code="inverted_range", field="range"
        )

    selected = filter_by_range(entries, start_date, end_date)
    if not selected:
        raise ValidationFailure(
            "No entries in the selected range", code="empty_range", field="range"
        )

    logger.info(f"Summarizing {len(selected)} entries from {start_date} to {end_date}")
    return await summarizer.summarize(selected, instructions)
