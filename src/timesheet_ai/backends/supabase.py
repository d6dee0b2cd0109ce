"""Supabase auth and persistence over its REST APIs.

Sign-in uses the GoTrue password grant; entries live in a PostgREST table
(``timesheet_entries`` by default) with columns
``id, user_id, date, task, startTime, endTime``. Row-level security on the
project is expected to restrict rows to their owner; every request also
filters on ``user_id`` explicitly.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from timesheet_ai.backends.base import AuthProvider, PersistenceBackend
from timesheet_ai.core.errors import AuthenticationFailure, PersistenceFailure
from timesheet_ai.core.models import EntryDraft, Identity, SessionEvent, TimesheetEntry

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = "id,date,task,startTime,endTime"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("message", "error_description", "msg", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}"


class SupabaseAuthProvider(AuthProvider):
    """Password auth against a Supabase project.

    The session (tokens plus user reference) is kept in a JSON file so that
    separate CLI invocations share it.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        state_dir: Path,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """Initialize auth provider.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            anon_key: Project anon (public) API key
            state_dir: Directory holding the session file
            http: HTTP client to use. Creates one if None
            timeout: Request timeout in seconds for a created client
        """
        super().__init__()
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.session_file = state_dir / "supabase_session.json"
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    # Session file

    def _load_session(self) -> Optional[dict[str, Any]]:
        if not self.session_file.exists():
            return None
        try:
            session: dict[str, Any] = json.loads(self.session_file.read_text(encoding="utf-8"))
            return session
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file: {e}")
            return None

    def _save_session(self, session: dict[str, Any]) -> None:
        self.session_file.parent.mkdir(parents=True, exist_ok=True)
        self.session_file.write_text(json.dumps(session), encoding="utf-8")

    def _clear_session(self) -> None:
        if self.session_file.exists():
            self.session_file.unlink()

    def access_token(self) -> Optional[str]:
        """Get the stored access token, if any."""
        session = self._load_session()
        return session.get("access_token") if session else None

    def _headers(self, token: Optional[str] = None) -> dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }

    # AuthProvider

    async def current_identity(self) -> Optional[Identity]:
        session = self._load_session()
        if not session:
            return None

        try:
            response = await self._http.get(
                f"{self.url}/auth/v1/user", headers=self._headers(session["access_token"])
            )
        except httpx.TransportError as e:
            logger.warning(f"Cannot reach auth server: {e}")
            return None

        if response.status_code == 401 and session.get("refresh_token"):
            session = await self._refresh(session["refresh_token"])
            if session is None:
                return None
            return Identity(user_id=session["user_id"], email=session.get("email"))

        if response.status_code >= 400:
            logger.warning(f"Session rejected: {_error_message(response)}")
            return None

        user = response.json()
        return Identity(user_id=user["id"], email=user.get("email"))

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            response = await self._http.post(
                f"{self.url}/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except httpx.TransportError as e:
            raise AuthenticationFailure(f"Cannot reach auth server: {e}") from e

        if response.status_code >= 400:
            raise AuthenticationFailure(_error_message(response))

        session = self._session_from_token_response(response.json())
        self._save_session(session)
        identity = Identity(user_id=session["user_id"], email=session.get("email"))
        logger.info(f"Signed in as {identity.email}")
        await self._emit(SessionEvent.SIGNED_IN, identity)
        return identity

    async def sign_out(self) -> None:
        token = self.access_token()
        if token:
            try:
                await self._http.post(f"{self.url}/auth/v1/logout", headers=self._headers(token))
            except httpx.TransportError as e:
                # The local session is dropped regardless
                logger.warning(f"Logout request failed: {e}")
        self._clear_session()
        logger.info("Signed out")
        await self._emit(SessionEvent.SIGNED_OUT, None)

    async def _refresh(self, refresh_token: str) -> Optional[dict[str, Any]]:
        try:
            response = await self._http.post(
                f"{self.url}/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": refresh_token},
                headers=self._headers(),
            )
        except httpx.TransportError as e:
            logger.warning(f"Cannot refresh session: {e}")
            return None

        if response.status_code >= 400:
            logger.info(f"Session expired: {_error_message(response)}")
            self._clear_session()
            return None

        session = self._session_from_token_response(response.json())
        self._save_session(session)
        await self._emit(
            SessionEvent.TOKEN_REFRESHED,
            Identity(user_id=session["user_id"], email=session.get("email")),
        )
        return session

    @staticmethod
    def _session_from_token_response(data: dict[str, Any]) -> dict[str, Any]:
        user = data.get("user") or {}
        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "user_id": user["id"],
            "email": user.get("email"),
        }


class SupabaseEntryBackend(PersistenceBackend):
    """Entries stored in a Supabase (PostgREST) table."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        auth: Optional[SupabaseAuthProvider] = None,
        table: str = "timesheet_entries",
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """Initialize entry backend.

        Args:
            url: Project URL
            anon_key: Project anon (public) API key
            auth: Provider whose access token authorizes requests
            table: Table name
            http: HTTP client to use. Creates one if None
            timeout: Request timeout in seconds for a created client
        """
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.anon_key = anon_key
        self.auth = auth
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()

    def _headers(self, **extra: str) -> dict[str, str]:
        token = self.auth.access_token() if self.auth else None
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        params: dict[str, str],
        json_body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                self.endpoint,
                params=params,
                json=json_body,
                headers=headers or self._headers(),
            )
        except httpx.TransportError as e:
            raise PersistenceFailure(f"{method} {self.endpoint} failed: {e}") from e

        if response.status_code >= 400:
            raise PersistenceFailure(_error_message(response), status_code=response.status_code)
        return response

    def _entries(self, response: httpx.Response) -> list[TimesheetEntry]:
        try:
            return [TimesheetEntry.from_dict(row) for row in response.json()]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Unexpected response from {self.endpoint}: {e}") from e

    async def list(self, user_id: str) -> list[TimesheetEntry]:
        response = await self._request(
            "GET",
            {
                "select": ENTRY_COLUMNS,
                "user_id": f"eq.{user_id}",
                "order": "date.desc,startTime.desc",
            },
        )
        return self._entries(response)

    async def insert(self, user_id: str, draft: EntryDraft) -> TimesheetEntry:
        response = await self._request(
            "POST",
            {"select": ENTRY_COLUMNS},
            json_body=[{**draft.to_dict(), "user_id": user_id}],
            headers=self._headers(Prefer="return=representation"),
        )
        entries = self._entries(response)
        if not entries:
            raise PersistenceFailure("Insert returned no row")
        return entries[0]

    async def update(self, entry_id: str, user_id: str, patch: EntryDraft) -> None:
        await self._request(
            "PATCH",
            {"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"},
            json_body=patch.to_dict(),
        )

    async def delete(self, entry_id: str, user_id: str) -> None:
        await self._request("DELETE", {"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"})
