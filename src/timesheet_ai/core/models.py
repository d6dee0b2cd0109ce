"""Core data models for timesheet tracking."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class EntryDraft:
    """Timesheet fields without an identifier.

    Used both as the input of a create and as the replacement values of an
    update.

    Attributes:
        date: Calendar date as ``YYYY-MM-DD`` (plain local date)
        task: Achievement description, one bullet per line
        start_time: Wall-clock start as ``HH:mm``
        end_time: Wall-clock end as ``HH:mm``
    """

    date: str
    task: str
    start_time: str
    end_time: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to the backing table's column layout."""
        return {
            "date": self.date,
            "task": self.task,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


@dataclass(frozen=True)
class TimesheetEntry:
    """One recorded day of work.

    Attributes:
        id: Identifier assigned by the persistence backend
        date: Calendar date as ``YYYY-MM-DD``
        task: Achievement description, one bullet per line
        start_time: Wall-clock start as ``HH:mm``
        end_time: Wall-clock end as ``HH:mm``
    """

    id: str
    date: str
    task: str
    start_time: str
    end_time: str

    @property
    def year(self) -> int:
        """Calendar year of the entry date."""
        return int(self.date[:4])

    @property
    def month(self) -> int:
        """Calendar month (1-12) of the entry date."""
        return int(self.date[5:7])

    def draft(self) -> EntryDraft:
        """Return the entry's fields without its id."""
        return EntryDraft(
            date=self.date,
            task=self.task,
            start_time=self.start_time,
            end_time=self.end_time,
        )

    def merged(self, patch: EntryDraft) -> "TimesheetEntry":
        """Return a copy carrying every field of ``patch`` and the same id."""
        return TimesheetEntry(
            id=self.id,
            date=patch.date,
            task=patch.task,
            start_time=patch.start_time,
            end_time=patch.end_time,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CSV/JSON serialization."""
        return {"id": self.id, **self.draft().to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimesheetEntry":
        """Create entry from a backend row.

        Accepts both the table's camelCase time columns and snake_case keys.
        """
        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            task=data["task"],
            start_time=_hhmm(data.get("startTime", data.get("start_time"))),
            end_time=_hhmm(data.get("endTime", data.get("end_time"))),
        )


def _hhmm(value: Any) -> str:
    # Postgres `time` columns come back as HH:MM:SS
    text = str(value)
    return text[:5] if len(text) > 5 else text


@dataclass(frozen=True)
class Identity:
    """Authenticated user reference.

    Attributes:
        user_id: Backend user identifier used to scope every entry
        email: Email address, if known
    """

    user_id: str
    email: Optional[str] = None


class SessionEvent(str, Enum):
    """Session changes reported by an auth provider."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    INITIAL_SESSION = "INITIAL_SESSION"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
