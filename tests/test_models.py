"""Tests for data models and draft validation."""

import pytest

from timesheet_ai.core.errors import ValidationFailure
from timesheet_ai.core.models import EntryDraft, TimesheetEntry
from timesheet_ai.core.validation import validate_draft


class TestTimesheetEntry:
    """Test TimesheetEntry model."""

    def test_from_dict_table_columns(self) -> None:
        entry = TimesheetEntry.from_dict(
            {
                "id": 42,
                "date": "2025-11-17",
                "task": "Deploy",
                "startTime": "08:30:00",
                "endTime": "17:00:00",
            }
        )

        assert entry.id == "42"
        assert entry.start_time == "08:30"
        assert entry.end_time == "17:00"
        assert entry.year == 2025
        assert entry.month == 11

    def test_from_dict_snake_case(self) -> None:
        entry = TimesheetEntry.from_dict(
            {"id": "a", "date": "2025-01-02", "task": "T", "start_time": "09:00", "end_time": "10:00"}
        )
        assert entry.start_time == "09:00"

    def test_to_dict_uses_table_columns(self) -> None:
        entry = TimesheetEntry("a", "2025-01-02", "T", "09:00", "10:00")
        assert entry.to_dict() == {
            "id": "a",
            "date": "2025-01-02",
            "task": "T",
            "startTime": "09:00",
            "endTime": "10:00",
        }

    def test_merged_keeps_id(self) -> None:
        entry = TimesheetEntry("a", "2025-01-02", "T", "09:00", "10:00")
        patch = EntryDraft("2025-02-03", "U", "11:00", "12:00")

        merged = entry.merged(patch)

        assert merged.id == "a"
        assert merged.draft() == patch


class TestValidateDraft:
    """Test caller-side validation."""

    def test_valid_draft(self) -> None:
        draft = EntryDraft("2025-11-17", "Line 1\nLine 2", "08:30", "17:00")
        assert validate_draft(draft) is draft

    @pytest.mark.parametrize("task", ["", "   ", "\n\n"])
    def test_blank_task(self, task: str) -> None:
        with pytest.raises(ValidationFailure) as exc:
            validate_draft(EntryDraft("2025-11-17", task, "08:30", "17:00"))
        assert exc.value.code == "blank_task"
        assert exc.value.field == "task"

    @pytest.mark.parametrize("start,end", [("09:00", "09:00"), ("10:00", "09:59")])
    def test_end_not_after_start(self, start: str, end: str) -> None:
        with pytest.raises(ValidationFailure) as exc:
            validate_draft(EntryDraft("2025-11-17", "Work", start, end))
        assert exc.value.code == "end_before_start"

    @pytest.mark.parametrize("day", ["2025-13-01", "17/11/2025", ""])
    def test_bad_date(self, day: str) -> None:
        with pytest.raises(ValidationFailure) as exc:
            validate_draft(EntryDraft(day, "Work", "08:00", "09:00"))
        assert exc.value.code == "bad_date"

    @pytest.mark.parametrize("value", ["8:00", "24:00", "08:60", "0800"])
    def test_bad_time(self, value: str) -> None:
        with pytest.raises(ValidationFailure) as exc:
            validate_draft(EntryDraft("2025-11-17", "Work", value, "23:00"))
        assert exc.value.code == "bad_time"
        assert exc.value.field == "start_time"
