"""Local CSV persistence backend with atomic, locked writes."""

import csv
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from timesheet_ai.backends.base import PersistenceBackend
from timesheet_ai.core.errors import PersistenceFailure
from timesheet_ai.core.models import EntryDraft, TimesheetEntry
from timesheet_ai.core.projector import sort_canonical

logger = logging.getLogger(__name__)

FIELDNAMES = ["id", "user_id", "date", "task", "startTime", "endTime"]


def _lock_file(file_obj: Any, exclusive: bool = True) -> None:
    """Lock a file in a cross-platform way.

    Args:
        file_obj: File object to lock
        exclusive: If True, acquire exclusive lock; if False, acquire shared lock
    """
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        mode = msvcrt.LK_NBLCK if exclusive else msvcrt.LK_NBRLCK
        msvcrt.locking(file_obj.fileno(), mode, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(file_obj.fileno(), mode)


def _unlock_file(file_obj: Any) -> None:
    """Unlock a file in a cross-platform way."""
    if sys.platform == "win32":
        import msvcrt  # type: ignore[import-not-found]

        msvcrt.locking(file_obj.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl  # type: ignore[import-not-found]

        fcntl.flock(file_obj.fileno(), fcntl.LOCK_UN)


class CsvEntryBackend(PersistenceBackend):
    """Stores every user's entries in one CSV file, one row per entry."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize CSV backend.

        Args:
            data_dir: Custom data directory. Defaults to ~/.timesheet-ai/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".timesheet-ai" / "data"

        self.data_dir = data_dir
        self.entries_file = self.data_dir / "entries.csv"
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if not self.entries_file.exists():
            self._write_rows([])

    def _write_rows(self, rows: list[dict[str, Any]]) -> None:
        """Write the entries file atomically using a temporary file and rename."""
        temp_file = self.entries_file.with_suffix(".tmp")

        try:
            with open(temp_file, "w", newline="", encoding="utf-8") as f:
                _lock_file(f, exclusive=True)

                writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
                writer.writeheader()
                writer.writerows(rows)

                f.flush()
                os.fsync(f.fileno())

                _unlock_file(f)

            temp_file.replace(self.entries_file)

        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise PersistenceFailure(f"Cannot write {self.entries_file}: {e}") from e

    def _read_rows(self) -> list[dict[str, Any]]:
        """Read all rows of the entries file with a shared lock."""
        if not self.entries_file.exists():
            return []

        try:
            with open(self.entries_file, encoding="utf-8", newline="") as f:
                _lock_file(f, exclusive=False)
                try:
                    reader = csv.DictReader(f)
                    rows = list(reader)
                    columns = reader.fieldnames or []
                finally:
                    _unlock_file(f)
        except (OSError, csv.Error) as e:
            raise PersistenceFailure(f"Cannot read {self.entries_file}: {e}") from e

        missing = [name for name in FIELDNAMES if name not in columns]
        if missing:
            raise PersistenceFailure(
                f"{self.entries_file} is missing columns: {', '.join(missing)}"
            )
        return rows

    async def list(self, user_id: str) -> list[TimesheetEntry]:
        rows = self._read_rows()
        try:
            entries = [
                TimesheetEntry.from_dict(row) for row in rows if row["user_id"] == user_id
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Malformed row in {self.entries_file}: {e}") from e
        return sort_canonical(entries)

    async def insert(self, user_id: str, draft: EntryDraft) -> TimesheetEntry:
        rows = self._read_rows()
        entry_id = str(uuid4())
        rows.append({"id": entry_id, "user_id": user_id, **draft.to_dict()})
        self._write_rows(rows)
        logger.debug(f"Inserted entry {entry_id} for {user_id}")
        return TimesheetEntry(
            id=entry_id,
            date=draft.date,
            task=draft.task,
            start_time=draft.start_time,
            end_time=draft.end_time,
        )

    async def update(self, entry_id: str, user_id: str, patch: EntryDraft) -> None:
        rows = self._read_rows()
        changed = False
        for row in rows:
            if row["id"] == entry_id and row["user_id"] == user_id:
                row.update(patch.to_dict())
                changed = True

        if changed:
            self._write_rows(rows)

    async def delete(self, entry_id: str, user_id: str) -> None:
        rows = self._read_rows()
        kept = [r for r in rows if not (r["id"] == entry_id and r["user_id"] == user_id)]

        if len(kept) != len(rows):
            self._write_rows(kept)
