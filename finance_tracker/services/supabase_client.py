"""
Shared Supabase client.

One async client serves both the identity provider adapter and the
table storage, so the session obtained at sign-in authorizes the table
queries (row level security keys on it).
"""

from typing import Optional

from supabase import AsyncClient, acreate_client

from finance_tracker.config import SupabaseSettings, get_settings


class SupabaseClient:
    """
    Lazily connected wrapper around the supabase AsyncClient.
    """

    def __init__(self, settings: Optional[SupabaseSettings] = None):
        self._settings = settings or get_settings().supabase
        self._client: Optional[AsyncClient] = None

    async def connect(self) -> AsyncClient:
        """Create the client on first use and reuse it afterwards."""
        if self._client is None:
            self._client = await acreate_client(
                self._settings.url,
                self._settings.anon_key,
            )
        return self._client
