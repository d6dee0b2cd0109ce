"""Pure view derivations over a list of timesheet entries.

Every function here is stateless: identical inputs always produce identical
outputs and nothing is mutated.
"""

from datetime import date, datetime
from typing import Iterable, Optional, Union

from timesheet_ai.core.models import TimesheetEntry

ALL_MONTHS = "all"
NOT_APPLICABLE = "N/A"

Month = Union[int, str]


def canonical_key(entry: TimesheetEntry) -> tuple[str, str]:
    """Sort key for canonical order (use with ``reverse=True``)."""
    return (entry.date, entry.start_time)


def sort_canonical(entries: Iterable[TimesheetEntry]) -> list[TimesheetEntry]:
    """Return entries ordered by date descending, then start time descending."""
    return sorted(entries, key=canonical_key, reverse=True)


def available_years(
    entries: list[TimesheetEntry], today: Optional[date] = None
) -> list[int]:
    """Get the distinct years present in the entries.

    Args:
        entries: Entries to inspect
        today: Reference date for the empty fallback. Defaults to today

    Returns:
        Years in strictly descending order. A single-element list with the
        current year when there are no entries, so a year selector is never
        empty.
    """
    if not entries:
        return [(today or date.today()).year]
    return sorted({entry.year for entry in entries}, reverse=True)


def filter_by_period(
    entries: list[TimesheetEntry], year: int, month: Month = ALL_MONTHS
) -> list[TimesheetEntry]:
    """Select the entries of one year, optionally narrowed to one month.

    Args:
        entries: Entries in any order
        year: Calendar year to keep
        month: 1-12, or ``ALL_MONTHS`` for the whole year

    Returns:
        Matching entries in their input order (possibly empty)
    """
    if month == ALL_MONTHS:
        return [e for e in entries if e.year == year]
    return [e for e in entries if e.year == year and e.month == int(month)]


def filter_by_range(
    entries: list[TimesheetEntry], start_date: str, end_date: str
) -> list[TimesheetEntry]:
    """Select entries whose date lies within ``[start_date, end_date]``.

    Both bounds are ISO ``YYYY-MM-DD`` strings and are inclusive.
    """
    return [e for e in entries if start_date <= e.date <= end_date]


def earliest_date(entries: list[TimesheetEntry]) -> Optional[str]:
    """Get the oldest entry date, or None when there are no entries."""
    if not entries:
        return None
    return min(e.date for e in entries)


def elapsed_seconds(start_time: str, end_time: str) -> Optional[int]:
    """Seconds between two times of day on a shared nominal date.

    Returns:
        Elapsed seconds (negative when end is before start), or None when a
        value cannot be parsed
    """
    try:
        start = _time_of_day(start_time)
        end = _time_of_day(end_time)
    except ValueError:
        return None
    return int((end - start).total_seconds())


def duration(start_time: str, end_time: str) -> str:
    """Render the elapsed time between two ``HH:mm`` values.

    Examples:
        >>> duration("08:30", "17:00")
        '8 jam 30 menit'
        >>> duration("09:00", "09:00")
        '0 menit'
        >>> duration("10:00", "09:00")
        'N/A'
    """
    seconds = elapsed_seconds(start_time, end_time)
    if seconds is None or seconds < 0:
        return NOT_APPLICABLE
    return format_minutes(seconds // 60)


def format_minutes(total_minutes: int) -> str:
    """Render a minute count as ``"<H> jam <M> menit"``, dropping zero parts."""
    hours, minutes = divmod(total_minutes, 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours} jam")
    if minutes > 0:
        parts.append(f"{minutes} menit")

    return " ".join(parts) if parts else "0 menit"


def total_minutes(entries: list[TimesheetEntry]) -> int:
    """Sum the elapsed whole minutes of entries, skipping malformed spans."""
    total = 0
    for entry in entries:
        seconds = elapsed_seconds(entry.start_time, entry.end_time)
        if seconds is not None and seconds > 0:
            total += seconds // 60
    return total


def task_lines(task: str) -> list[str]:
    """Split a task description into its non-blank, stripped lines."""
    return [line.strip() for line in task.split("\n") if line.strip()]


def _time_of_day(value: str) -> datetime:
    fmt = "%H:%M:%S" if value.count(":") == 2 else "%H:%M"
    return datetime.strptime(f"1970-01-01 {value}", f"%Y-%m-%d {fmt}")
