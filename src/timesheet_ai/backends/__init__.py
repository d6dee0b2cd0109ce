"""Authentication and persistence backends.

Two backends are available, selected by ``backend.type`` in the config:

- ``csv``: entries in a local CSV file, single configured user
- ``supabase``: Supabase password auth and a PostgREST table
"""

from typing import Optional

import httpx

from timesheet_ai.backends.base import AuthProvider, PersistenceBackend, Subscription
from timesheet_ai.backends.csv_backend import CsvEntryBackend
from timesheet_ai.backends.local_auth import LocalAuthProvider
from timesheet_ai.backends.supabase import SupabaseAuthProvider, SupabaseEntryBackend
from timesheet_ai.core.config import ConfigManager

__all__ = [
    "AuthProvider",
    "PersistenceBackend",
    "Subscription",
    "CsvEntryBackend",
    "LocalAuthProvider",
    "SupabaseAuthProvider",
    "SupabaseEntryBackend",
    "create_backends",
]


def create_backends(
    config: ConfigManager, http: Optional[httpx.AsyncClient] = None
) -> tuple[AuthProvider, PersistenceBackend]:
    """Build the auth provider and persistence backend named by the config.

    Args:
        config: Configuration manager
        http: HTTP client shared by the Supabase backends (created if None)

    Returns:
        Tuple of (auth provider, persistence backend)

    Raises:
        ValueError: If the Supabase backend is selected without URL or key
    """
    state_dir = config.path("general.state_dir")

    if config.get("backend.type") == "supabase":
        url = config.resolve("backend.supabase.url")
        anon_key = config.resolve("backend.supabase.anon_key")
        if not url or not anon_key:
            raise ValueError(
                "Supabase URL and anon key are not set "
                "(backend.supabase.url / SUPABASE_URL, "
                "backend.supabase.anon_key / SUPABASE_ANON_KEY)"
            )
        timeout = float(config.get("backend.supabase.timeout", 30))
        client = http or httpx.AsyncClient(timeout=timeout)
        auth = SupabaseAuthProvider(url, anon_key, state_dir, http=client)
        backend = SupabaseEntryBackend(
            url,
            anon_key,
            auth=auth,
            table=config.get("backend.supabase.table", "timesheet_entries"),
            http=client,
        )
        return auth, backend

    local_auth = LocalAuthProvider(
        state_dir,
        user_id=config.get("backend.local.user_id", "local-user"),
        email=config.get("backend.local.email"),
    )
    return local_auth, CsvEntryBackend(config.path("general.data_dir"))
