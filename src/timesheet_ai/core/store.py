"""Entry store: the current user's entries and every mutation of them."""

import logging
from typing import Optional

from timesheet_ai.backends.base import AuthProvider, PersistenceBackend, Subscription
from timesheet_ai.core.errors import NotAuthenticated, PersistenceFailure
from timesheet_ai.core.models import EntryDraft, Identity, SessionEvent, TimesheetEntry
from timesheet_ai.core.projector import sort_canonical

logger = logging.getLogger(__name__)

RELOAD_EVENTS = frozenset(
    {SessionEvent.SIGNED_IN, SessionEvent.SIGNED_OUT, SessionEvent.INITIAL_SESSION}
)


class EntryStore:
    """Owns the in-memory entries of the signed-in user.

    Create and update change local state only after the backend confirms.
    Remove is optimistic and rolls back to the pre-removal snapshot when the
    backend fails.

    Every ``reload`` bumps ``generation``. A mutation whose backend call
    completes after a newer reload leaves local state alone, since the list it
    would have touched has already been replaced.

    Attributes:
        entries: Entries in canonical order (date, then start time, descending)
        loading: True while a reload is in flight
        generation: Number of reloads started so far
    """

    def __init__(self, auth: AuthProvider, backend: PersistenceBackend):
        """Initialize entry store.

        Args:
            auth: Provider of the current identity and session events
            backend: Persistence backend for entries
        """
        self.auth = auth
        self.backend = backend
        self.entries: list[TimesheetEntry] = []
        self.loading = True
        self.generation = 0
        self._subscription: Optional[Subscription] = None

    # Session wiring

    def attach(self) -> None:
        """Reload automatically on sign-in, sign-out and initial session."""
        if self._subscription is None:
            self._subscription = self.auth.on_session_changed(self._on_session_changed)

    def detach(self) -> None:
        """Stop reacting to session changes."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> "EntryStore":
        self.attach()
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.detach()

    async def _on_session_changed(
        self, event: SessionEvent, identity: Optional[Identity]
    ) -> None:
        if event in RELOAD_EVENTS:
            await self.reload()

    # Operations

    async def reload(self) -> None:
        """Replace all entries with the signed-in user's stored entries.

        Signed out: entries become empty. Backend failure: entries become empty
        and the error is logged. Neither case raises.
        """
        self.generation += 1
        generation = self.generation
        self.loading = True

        identity = await self.auth.current_identity()
        if generation != self.generation:
            logger.debug("Discarding reload superseded while resolving identity")
            return
        if identity is None:
            logger.warning("User not authenticated. Cannot fetch entries.")
            self.entries = []
            self.loading = False
            return

        try:
            entries = await self.backend.list(identity.user_id)
        except PersistenceFailure as e:
            logger.error(f"Failed to load entries: {e}")
            entries = []

        if generation != self.generation:
            logger.debug("Discarding reload result superseded by a newer reload")
            return

        self.entries = list(entries)
        self.loading = False

    async def create(self, draft: EntryDraft) -> TimesheetEntry:
        """Store a new entry and insert it at its canonical position.

        The draft is not validated here; callers run ``validate_draft`` first.

        Args:
            draft: Entry fields without id

        Returns:
            Stored entry carrying the backend-assigned id

        Raises:
            NotAuthenticated: If no user is signed in
            PersistenceFailure: If the backend rejects the insert
        """
        generation = self.generation
        identity = await self._require_identity("add entry")

        try:
            entry = await self.backend.insert(identity.user_id, draft)
        except PersistenceFailure as e:
            logger.error(f"Failed to save entry: {e}")
            raise

        if self._is_stale(generation):
            return entry

        self.entries = sort_canonical([entry, *self.entries])
        return entry

    async def update(self, entry_id: str, patch: EntryDraft) -> None:
        """Replace the fields of one entry.

        Args:
            entry_id: Id of the entry to change
            patch: New field values

        Raises:
            NotAuthenticated: If no user is signed in
            PersistenceFailure: If the backend rejects the update
        """
        generation = self.generation
        identity = await self._require_identity("update entry")

        try:
            await self.backend.update(entry_id, identity.user_id, patch)
        except PersistenceFailure as e:
            logger.error(f"Failed to update entry {entry_id}: {e}")
            raise

        if self._is_stale(generation):
            return

        self.entries = sort_canonical(
            entry.merged(patch) if entry.id == entry_id else entry for entry in self.entries
        )

    async def remove(self, entry_id: str) -> None:
        """Delete one entry, dropping it locally before the backend confirms.

        Args:
            entry_id: Id of the entry to delete

        Raises:
            NotAuthenticated: If no user is signed in. The local removal is
                kept in this case.
            PersistenceFailure: If the backend rejects the delete. Entries are
                restored to the snapshot taken before the removal.
        """
        generation = self.generation
        snapshot = list(self.entries)
        self.entries = [entry for entry in self.entries if entry.id != entry_id]

        identity = await self._require_identity("delete entry")

        try:
            await self.backend.delete(entry_id, identity.user_id)
        except PersistenceFailure as e:
            logger.error(f"Failed to delete entry {entry_id}: {e}")
            if not self._is_stale(generation):
                self.entries = snapshot
            raise

    def get(self, entry_id: str) -> Optional[TimesheetEntry]:
        """Get a loaded entry by id."""
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    # Helpers

    async def _require_identity(self, operation: str) -> Identity:
        identity = await self.auth.current_identity()
        if identity is None:
            raise NotAuthenticated(operation)
        return identity

    def _is_stale(self, generation: int) -> bool:
        if generation != self.generation:
            logger.debug("Discarding mutation result: entries were reloaded meanwhile")
            return True
        return False
