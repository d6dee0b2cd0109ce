"""Tests for the CSV backend and local auth provider."""

import asyncio
from pathlib import Path

import pytest

from timesheet_ai.backends.csv_backend import CsvEntryBackend
from timesheet_ai.backends.local_auth import LocalAuthProvider
from timesheet_ai.core.errors import AuthenticationFailure, PersistenceFailure
from timesheet_ai.core.models import EntryDraft, Identity, SessionEvent
from timesheet_ai.core.store import EntryStore


@pytest.fixture
def backend(temp_dir: Path) -> CsvEntryBackend:
    return CsvEntryBackend(temp_dir / "data")


class TestCsvEntryBackend:
    """Test CsvEntryBackend."""

    def test_initialization_creates_file(self, backend: CsvEntryBackend) -> None:
        assert backend.entries_file.exists()
        assert backend.entries_file.read_text().startswith("id,user_id,date,task")

    def test_insert_assigns_id(self, backend: CsvEntryBackend) -> None:
        entry = asyncio.run(backend.insert("u1", EntryDraft("2025-11-17", "Task", "08:00", "09:00")))

        assert entry.id
        assert entry.task == "Task"
        assert asyncio.run(backend.list("u1")) == [entry]

    def test_list_is_scoped_and_ordered(self, backend: CsvEntryBackend) -> None:
        async def scenario() -> list[str]:
            await backend.insert("u1", EntryDraft("2025-11-16", "Old", "08:00", "09:00"))
            await backend.insert("u1", EntryDraft("2025-11-17", "Early", "08:00", "09:00"))
            await backend.insert("u1", EntryDraft("2025-11-17", "Late", "13:00", "14:00"))
            await backend.insert("u2", EntryDraft("2025-12-01", "Other", "08:00", "09:00"))
            return [e.task for e in await backend.list("u1")]

        assert asyncio.run(scenario()) == ["Late", "Early", "Old"]

    def test_multiline_task_round_trips(self, backend: CsvEntryBackend) -> None:
        task = "Line one\nLine two, with comma"
        asyncio.run(backend.insert("u1", EntryDraft("2025-11-17", task, "08:00", "09:00")))
        assert asyncio.run(backend.list("u1"))[0].task == task

    def test_update_scoped_to_owner(self, backend: CsvEntryBackend) -> None:
        async def scenario() -> tuple[str, str]:
            entry = await backend.insert("u1", EntryDraft("2025-11-17", "Mine", "08:00", "09:00"))
            patch = EntryDraft("2025-11-18", "Changed", "10:00", "11:00")
            await backend.update(entry.id, "u2", patch)
            unchanged = (await backend.list("u1"))[0].task
            await backend.update(entry.id, "u1", patch)
            changed = (await backend.list("u1"))[0].task
            return unchanged, changed

        assert asyncio.run(scenario()) == ("Mine", "Changed")

    def test_delete_scoped_to_owner(self, backend: CsvEntryBackend) -> None:
        async def scenario() -> tuple[int, int]:
            entry = await backend.insert("u1", EntryDraft("2025-11-17", "Mine", "08:00", "09:00"))
            await backend.delete(entry.id, "u2")
            after_other = len(await backend.list("u1"))
            await backend.delete(entry.id, "u1")
            after_owner = len(await backend.list("u1"))
            return after_other, after_owner

        assert asyncio.run(scenario()) == (1, 0)

    def test_delete_missing_is_noop(self, backend: CsvEntryBackend) -> None:
        asyncio.run(backend.delete("missing", "u1"))

    def test_missing_columns_raise_persistence_failure(self, backend: CsvEntryBackend) -> None:
        """Test that a file without the user_id column is reported as a backend failure."""
        backend.entries_file.write_text(
            "id,date,task,startTime,endTime\n1,2025-11-17,Task,08:00,09:00\n"
        )

        with pytest.raises(PersistenceFailure, match="user_id"):
            asyncio.run(backend.list("u1"))
        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.delete("1", "u1"))

    def test_unparseable_file_raises_persistence_failure(self, backend: CsvEntryBackend) -> None:
        """Test that a CSV parse error is reported as a backend failure."""
        oversized = "x" * 200_000
        backend.entries_file.write_text(
            "id,user_id,date,task,startTime,endTime\n"
            f"1,u1,2025-11-17,\"{oversized}\",08:00,09:00\n"
        )

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.list("u1"))

    def test_reload_survives_malformed_file(
        self, backend: CsvEntryBackend, temp_dir: Path
    ) -> None:
        """Test that a signed-in reload over a malformed file empties entries without raising."""
        auth = LocalAuthProvider(temp_dir / "state", "local-user")
        asyncio.run(auth.sign_in("me@example.com", "x"))
        backend.entries_file.write_text("id,date,task\n1,2025-11-17,Task\n")
        store = EntryStore(auth, backend)

        asyncio.run(store.reload())

        assert store.entries == []
        assert store.loading is False


class TestLocalAuthProvider:
    """Test LocalAuthProvider."""

    def test_signed_out_by_default(self, temp_dir: Path) -> None:
        auth = LocalAuthProvider(temp_dir, "local-user")
        assert asyncio.run(auth.current_identity()) is None

    def test_sign_in_persists_and_notifies(self, temp_dir: Path) -> None:
        events = []

        async def listener(event: SessionEvent, identity) -> None:  # type: ignore[no-untyped-def]
            events.append((event, identity))

        auth = LocalAuthProvider(temp_dir, "local-user")
        auth.on_session_changed(listener)
        identity = asyncio.run(auth.sign_in("me@example.com", "ignored"))

        assert identity == Identity("local-user", "me@example.com")
        assert events == [(SessionEvent.SIGNED_IN, identity)]

        # A fresh provider sees the stored session
        again = LocalAuthProvider(temp_dir, "local-user")
        assert asyncio.run(again.current_identity()) == identity

    def test_sign_out(self, temp_dir: Path) -> None:
        auth = LocalAuthProvider(temp_dir, "local-user")
        asyncio.run(auth.sign_in("me@example.com", "x"))
        asyncio.run(auth.sign_out())
        assert asyncio.run(auth.current_identity()) is None

    def test_configured_email_is_enforced(self, temp_dir: Path) -> None:
        auth = LocalAuthProvider(temp_dir, "local-user", email="me@example.com")
        with pytest.raises(AuthenticationFailure):
            asyncio.run(auth.sign_in("you@example.com", "x"))

    def test_start_emits_initial_session(self, temp_dir: Path) -> None:
        events = []

        async def listener(event: SessionEvent, identity) -> None:  # type: ignore[no-untyped-def]
            events.append(event)

        auth = LocalAuthProvider(temp_dir, "local-user")
        subscription = auth.on_session_changed(listener)
        asyncio.run(auth.start())
        subscription.unsubscribe()
        subscription.unsubscribe()
        asyncio.run(auth.start())

        assert events == [SessionEvent.INITIAL_SESSION]
