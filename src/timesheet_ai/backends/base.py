"""Base classes for authentication and persistence backends."""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from timesheet_ai.core.models import EntryDraft, Identity, SessionEvent, TimesheetEntry

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent, Optional[Identity]], Awaitable[None]]


class Subscription:
    """Handle returned by ``AuthProvider.on_session_changed``."""

    def __init__(self, provider: "AuthProvider", listener: SessionListener):
        self._provider = provider
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving session notifications. Safe to call twice."""
        if self.active:
            self._provider._listeners.remove(self._listener)
            self.active = False


class AuthProvider(ABC):
    """Base class for all auth providers.

    Subclasses resolve the current identity and implement sign-in/out; the
    listener bookkeeping for session-changed notifications lives here.
    """

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []

    @abstractmethod
    async def current_identity(self) -> Optional[Identity]:
        """Get the signed-in identity, or None when signed out."""
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """Sign in with email and password.

        Raises:
            AuthenticationFailure: If the credentials are rejected
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""
        pass

    async def start(self) -> Optional[Identity]:
        """Resolve the stored session and emit ``INITIAL_SESSION``.

        Returns:
            The identity of the stored session, if any
        """
        identity = await self.current_identity()
        await self._emit(SessionEvent.INITIAL_SESSION, identity)
        return identity

    def on_session_changed(self, listener: SessionListener) -> Subscription:
        """Register a coroutine called on every session change.

        Args:
            listener: ``async def listener(event, identity)``

        Returns:
            Subscription whose ``unsubscribe()`` deregisters the listener
        """
        self._listeners.append(listener)
        return Subscription(self, listener)

    async def _emit(self, event: SessionEvent, identity: Optional[Identity]) -> None:
        logger.debug(f"Session event {event.value} ({len(self._listeners)} listeners)")
        for listener in list(self._listeners):
            await listener(event, identity)


class PersistenceBackend(ABC):
    """Base class for entry persistence backends.

    Every operation is scoped to one user. Failures are raised as
    ``PersistenceFailure``.
    """

    @abstractmethod
    async def list(self, user_id: str) -> list[TimesheetEntry]:
        """Get all entries of a user, date then start time descending."""
        pass

    @abstractmethod
    async def insert(self, user_id: str, draft: EntryDraft) -> TimesheetEntry:
        """Store a new entry and return it with its assigned id."""
        pass

    @abstractmethod
    async def update(self, entry_id: str, user_id: str, patch: EntryDraft) -> None:
        """Replace the fields of an entry. No matching row is not an error."""
        pass

    @abstractmethod
    async def delete(self, entry_id: str, user_id: str) -> None:
        """Delete an entry. No matching row is not an error."""
        pass

    async def close(self) -> None:
        """Release any resources held by the backend."""
        pass
