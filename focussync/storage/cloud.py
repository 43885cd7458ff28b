"""Supabase remote store for focussync.

Wraps a supabase-py ``Client`` behind the RemoteStore protocol. The client
is synchronous, so each PostgREST request runs in a worker thread; this lets
the engine overlap independent reads with ``asyncio.gather``.

Failures are mapped onto the focussync taxonomy:
- ``postgrest.exceptions.APIError`` -> RemoteRejectedError (keeps ``code``)
- ``httpx.HTTPError`` (connect, timeout, protocol) -> RemoteUnavailableError
- PostgREST's "no rows" sentinel is not an error where "no rows" is a valid
  answer (delete of nothing, single-row lookup of nothing)
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from focussync.config import Settings, get_settings
from focussync.errors import (
    ConfigurationError,
    MalformedRecordError,
    RemoteRejectedError,
    RemoteUnavailableError,
)
from focussync.types import Collection

logger = logging.getLogger(__name__)

# PostgREST: "JSON object requested, multiple (or no) rows returned"
NO_ROWS_CODES = frozenset({"PGRST116", "204"})


def create_supabase_client(settings: Optional[Settings] = None) -> Client:
    """Build a Supabase client from configuration.

    Unlike a cached module-level client, the returned object is owned by the
    caller and handed to SupabaseRemoteStore explicitly.

    Raises:
        ConfigurationError: If the URL or API key is missing.
    """
    if settings is None:
        settings = get_settings()
    # Prefer new publishable key, fall back to legacy anon key
    api_key = settings.supabase_publishable_key or settings.supabase_anon_key
    if not settings.supabase_url or not api_key:
        raise ConfigurationError(
            "SUPABASE_URL and either SUPABASE_PUBLISHABLE_KEY or SUPABASE_ANON_KEY must be set"
        )
    return create_client(settings.supabase_url, api_key)


class SupabaseRemoteStore:
    """RemoteStore backed by Supabase tables.

    Args:
        client: A supabase-py client, already authenticated as the user.
    """

    def __init__(self, client: Client):
        self._client = client

    async def _execute(self, collection: Collection, query, *, allow_no_rows: bool = False):
        try:
            return await asyncio.to_thread(query.execute)
        except APIError as e:
            if allow_no_rows and e.code in NO_ROWS_CODES:
                return None
            logger.debug(f"{collection.table} rejected request: {e.code} {e.message}")
            raise RemoteRejectedError(
                e.message or str(e), collection=collection.value, code=e.code
            ) from e
        except httpx.HTTPError as e:
            logger.debug(f"{collection.table} unreachable: {e}")
            raise RemoteUnavailableError(
                f"{type(e).__name__}: {e}", collection=collection.value
            ) from e

    async def upsert(
        self, collection: Collection, row: Dict[str, Any], on_conflict: str = "user_id"
    ) -> None:
        query = self._client.table(collection.table).upsert(row, on_conflict=on_conflict)
        await self._execute(collection, query)

    async def delete(self, collection: Collection, user_id: str) -> None:
        query = self._client.table(collection.table).delete().eq("user_id", user_id)
        await self._execute(collection, query, allow_no_rows=True)

    async def insert(self, collection: Collection, rows: Sequence[Dict[str, Any]]) -> None:
        if not rows:
            return
        query = self._client.table(collection.table).insert(list(rows))
        await self._execute(collection, query)

    async def select(
        self,
        collection: Collection,
        user_id: str,
        columns: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._client.table(collection.table).select(columns).eq("user_id", user_id)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        res = await self._execute(collection, query)
        data = res.data if res is not None else None
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedRecordError(
                f"expected a list of rows from {collection.table}, got {type(data).__name__}",
                collection=collection.value,
            )
        return data

    async def select_one(
        self, collection: Collection, user_id: str, columns: str
    ) -> Optional[Dict[str, Any]]:
        query = (
            self._client.table(collection.table)
            .select(columns)
            .eq("user_id", user_id)
            .maybe_single()
        )
        # Newer postgrest returns None for no rows, older raises the sentinel
        res = await self._execute(collection, query, allow_no_rows=True)
        data = res.data if res is not None else None
        if isinstance(data, list):
            data = data[0] if data else None
        if data is not None and not isinstance(data, dict):
            raise MalformedRecordError(
                f"expected a row from {collection.table}, got {type(data).__name__}",
                collection=collection.value,
            )
        return data

    async def count(self, collection: Collection, user_id: str) -> int:
        query = (
            self._client.table(collection.table)
            .select("user_id", count="exact", head=True)
            .eq("user_id", user_id)
        )
        res = await self._execute(collection, query)
        return (res.count or 0) if res is not None else 0
