"""Offline auth provider for use with the CSV backend."""

import json
import logging
from pathlib import Path
from typing import Optional

from timesheet_ai.backends.base import AuthProvider
from timesheet_ai.core.errors import AuthenticationFailure
from timesheet_ai.core.models import Identity, SessionEvent

logger = logging.getLogger(__name__)


class LocalAuthProvider(AuthProvider):
    """Single configured user; the session is a marker file in the state dir.

    No password is checked. Signing in with an email other than the
    configured one is rejected when an email is configured.
    """

    def __init__(self, state_dir: Path, user_id: str, email: Optional[str] = None):
        super().__init__()
        self.state_dir = state_dir
        self.session_file = state_dir / "local_session.json"
        self.user_id = user_id
        self.email = email

    async def current_identity(self) -> Optional[Identity]:
        if not self.session_file.exists():
            return None
        try:
            data = json.loads(self.session_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file: {e}")
            return None
        return Identity(user_id=data["user_id"], email=data.get("email"))

    async def sign_in(self, email: str, password: str) -> Identity:
        if self.email and email.lower() != self.email.lower():
            raise AuthenticationFailure(f"Unknown local user: {email}")

        identity = Identity(user_id=self.user_id, email=email)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.session_file.write_text(
            json.dumps({"user_id": identity.user_id, "email": identity.email}),
            encoding="utf-8",
        )
        logger.info(f"Signed in locally as {email}")
        await self._emit(SessionEvent.SIGNED_IN, identity)
        return identity

    async def sign_out(self) -> None:
        if self.session_file.exists():
            self.session_file.unlink()
        logger.info("Signed out")
        await self._emit(SessionEvent.SIGNED_OUT, None)
