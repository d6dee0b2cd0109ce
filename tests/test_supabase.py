"""Tests for the Supabase backends against a mocked HTTP transport."""

import asyncio
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from timesheet_ai.backends.supabase import SupabaseAuthProvider, SupabaseEntryBackend
from timesheet_ai.core.errors import AuthenticationFailure, PersistenceFailure
from timesheet_ai.core.models import EntryDraft, Identity, SessionEvent

URL = "https://project.supabase.co"
KEY = "anon-key"
USER = {"id": "user-1", "email": "me@example.com"}


class FakeSupabase:
    """Minimal GoTrue + PostgREST stand-in recording every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.valid_tokens = {"token-1"}
        self.rows = [
            {"id": 7, "date": "2025-11-17", "task": "Deploy", "startTime": "08:30:00", "endTime": "17:00:00"}
        ]
        self.rest_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        bearer = request.headers.get("Authorization", "").removeprefix("Bearer ")

        if path == "/auth/v1/token":
            body = json.loads(request.content)
            if request.url.params["grant_type"] == "password":
                if body["password"] != "secret":
                    return httpx.Response(400, json={"error_description": "Invalid login credentials"})
                return httpx.Response(
                    200, json={"access_token": "token-1", "refresh_token": "refresh-1", "user": USER}
                )
            if body["refresh_token"] == "refresh-1":
                self.valid_tokens.add("token-2")
                return httpx.Response(
                    200, json={"access_token": "token-2", "refresh_token": "refresh-2", "user": USER}
                )
            return httpx.Response(400, json={"error_description": "Invalid refresh token"})

        if path == "/auth/v1/user":
            if bearer in self.valid_tokens:
                return httpx.Response(200, json=USER)
            return httpx.Response(401, json={"msg": "JWT expired"})

        if path == "/auth/v1/logout":
            return httpx.Response(204)

        if path == "/rest/v1/timesheet_entries":
            if self.rest_status >= 400:
                return httpx.Response(self.rest_status, json={"message": "permission denied"})
            if request.method == "GET":
                return httpx.Response(200, json=self.rows)
            if request.method == "POST":
                row = json.loads(request.content)[0]
                return httpx.Response(201, json=[{"id": 8, **row}])
            return httpx.Response(204)

        return httpx.Response(404)


@pytest.fixture
def server() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def state_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def auth(server: FakeSupabase, state_dir: Path) -> SupabaseAuthProvider:
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return SupabaseAuthProvider(URL, KEY, state_dir, http=http)


@pytest.fixture
def backend(server: FakeSupabase, auth: SupabaseAuthProvider) -> SupabaseEntryBackend:
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return SupabaseEntryBackend(URL, KEY, auth=auth, http=http)


class TestSupabaseAuthProvider:
    """Test password auth and session persistence."""

    def test_sign_in_stores_session(self, auth: SupabaseAuthProvider) -> None:
        events = []

        async def listener(event, identity) -> None:  # type: ignore[no-untyped-def]
            events.append(event)

        auth.on_session_changed(listener)
        identity = asyncio.run(auth.sign_in("me@example.com", "secret"))

        assert identity == Identity("user-1", "me@example.com")
        assert auth.access_token() == "token-1"
        assert events == [SessionEvent.SIGNED_IN]
        assert asyncio.run(auth.current_identity()) == identity

    def test_sign_in_rejected(self, auth: SupabaseAuthProvider) -> None:
        with pytest.raises(AuthenticationFailure, match="Invalid login credentials"):
            asyncio.run(auth.sign_in("me@example.com", "wrong"))
        assert auth.access_token() is None

    def test_no_session_means_no_identity(
        self, auth: SupabaseAuthProvider, server: FakeSupabase
    ) -> None:
        assert asyncio.run(auth.current_identity()) is None
        assert server.requests == []

    def test_expired_token_is_refreshed(
        self, auth: SupabaseAuthProvider, server: FakeSupabase
    ) -> None:
        asyncio.run(auth.sign_in("me@example.com", "secret"))
        server.valid_tokens.clear()

        identity = asyncio.run(auth.current_identity())

        assert identity == Identity("user-1", "me@example.com")
        assert auth.access_token() == "token-2"

    def test_sign_out_clears_session(
        self, auth: SupabaseAuthProvider, server: FakeSupabase
    ) -> None:
        asyncio.run(auth.sign_in("me@example.com", "secret"))
        asyncio.run(auth.sign_out())

        assert auth.access_token() is None
        assert server.requests[-1].url.path == "/auth/v1/logout"


class TestSupabaseEntryBackend:
    """Test PostgREST calls."""

    def test_list_filters_and_orders(
        self, backend: SupabaseEntryBackend, server: FakeSupabase
    ) -> None:
        entries = asyncio.run(backend.list("user-1"))

        assert [e.id for e in entries] == ["7"]
        assert entries[0].start_time == "08:30"
        params = server.requests[-1].url.params
        assert params["user_id"] == "eq.user-1"
        assert params["order"] == "date.desc,startTime.desc"
        assert params["select"] == "id,date,task,startTime,endTime"

    def test_requests_use_session_token(
        self, backend: SupabaseEntryBackend, auth: SupabaseAuthProvider, server: FakeSupabase
    ) -> None:
        asyncio.run(auth.sign_in("me@example.com", "secret"))
        asyncio.run(backend.list("user-1"))

        request = server.requests[-1]
        assert request.headers["apikey"] == KEY
        assert request.headers["Authorization"] == "Bearer token-1"

    def test_insert_returns_stored_row(
        self, backend: SupabaseEntryBackend, server: FakeSupabase
    ) -> None:
        entry = asyncio.run(
            backend.insert("user-1", EntryDraft("2025-11-18", "Review", "09:00", "10:00"))
        )

        assert entry.id == "8"
        assert entry.task == "Review"
        request = server.requests[-1]
        assert request.headers["Prefer"] == "return=representation"
        assert json.loads(request.content)[0]["user_id"] == "user-1"

    def test_update_and_delete_are_scoped(
        self, backend: SupabaseEntryBackend, server: FakeSupabase
    ) -> None:
        asyncio.run(backend.update("7", "user-1", EntryDraft("2025-11-18", "X", "09:00", "10:00")))
        asyncio.run(backend.delete("7", "user-1"))

        patch_request, delete_request = server.requests[-2:]
        assert patch_request.method == "PATCH"
        assert json.loads(patch_request.content)["startTime"] == "09:00"
        for request in (patch_request, delete_request):
            assert request.url.params["id"] == "eq.7"
            assert request.url.params["user_id"] == "eq.user-1"
        assert delete_request.method == "DELETE"

    def test_http_error_raises_persistence_failure(
        self, backend: SupabaseEntryBackend, server: FakeSupabase
    ) -> None:
        server.rest_status = 403

        with pytest.raises(PersistenceFailure, match="permission denied") as exc:
            asyncio.run(backend.list("user-1"))
        assert exc.value.status_code == 403

    def test_transport_error_raises_persistence_failure(self, auth: SupabaseAuthProvider) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        backend = SupabaseEntryBackend(URL, KEY, auth=auth, http=http)

        with pytest.raises(PersistenceFailure):
            asyncio.run(backend.delete("7", "user-1"))

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json=[{"date": "2025-11-17", "task": "No id"}]),
            httpx.Response(200, json={"message": "not a list"}),
        ],
    )
    def test_malformed_body_raises_persistence_failure(
        self, auth: SupabaseAuthProvider, response: httpx.Response
    ) -> None:
        """Test that an unexpected response body is reported as a backend failure."""
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
        backend = SupabaseEntryBackend(URL, KEY, auth=auth, http=http)

        with pytest.raises(PersistenceFailure, match="Unexpected response"):
            asyncio.run(backend.list("user-1"))
