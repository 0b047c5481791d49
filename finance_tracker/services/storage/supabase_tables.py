"""
Supabase Table Storage Implementation

DESIGN DECISION: The hosted Postgres tables are reached through
PostgREST, via the supabase client. Every operation is a single
request, so there are no transactions; consistency rules that span two
writes (expense insert + budget total) live in the budget ledger and
rely on the unique and compare-and-swap safeguards below instead.

Error mapping:
- PGRST116 (no row for a single-row request)  -> NotFoundError
- 23505 (unique_violation)                     -> DuplicateError
- transport failures                           -> ConnectionError

Only reads are retried. A write that failed in transit may still have
been applied, and replaying it would break at-most-once writes.
"""

from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    Row,
    StorageError,
    TableStorageInterface,
)
from finance_tracker.services.supabase_client import SupabaseClient


NO_ROWS_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"

_retry_on_connection = retry(
    retry=retry_if_exception_type(ConnectionError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _translate_api_error(error: APIError, table: str) -> StorageError:
    """Map a PostgREST error onto the storage exception hierarchy."""
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)
    if code == NO_ROWS_CODE:
        return NotFoundError(f"No row in {table}: {message}")
    if code == UNIQUE_VIOLATION_CODE:
        return DuplicateError(f"Duplicate row in {table}: {message}")
    return StorageError(f"{table}: {message}")


class SupabaseTableStorage(TableStorageInterface):
    """
    Supabase (PostgREST) implementation of table storage.
    """

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    async def _execute(self, table: str, build) -> list[Row]:
        """Run a query built by `build(table_query)` and unwrap its rows."""
        client = await self._client.connect()
        try:
            response = await build(client.table(table)).execute()
        except APIError as e:
            raise _translate_api_error(e, table) from e
        except httpx.TransportError as e:
            raise ConnectionError(f"Failed to reach Supabase ({table}): {e}") from e
        data = response.data if response is not None else None
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    @staticmethod
    def _apply_filters(query, filters: Optional[dict[str, Any]]):
        for column, value in (filters or {}).items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, value)
        return query

    @_retry_on_connection
    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        *,
        in_filters: Optional[dict[str, list[Any]]] = None,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        def build(query):
            query = self._apply_filters(query.select(columns), filters)
            for column, values in (in_filters or {}).items():
                query = query.in_(column, list(values))
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            return query

        return await self._execute(table, build)

    async def select_one(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> Row:
        rows = await self.select(table, filters, limit=1)
        if not rows:
            raise NotFoundError(f"No row in {table} matching {sorted(filters)}")
        return rows[0]

    async def insert(
        self,
        table: str,
        rows: list[Row],
    ) -> list[Row]:
        return await self._execute(table, lambda query: query.insert(rows))

    async def update(
        self,
        table: str,
        values: Row,
        filters: dict[str, Any],
    ) -> list[Row]:
        return await self._execute(
            table,
            lambda query: self._apply_filters(query.update(values), filters),
        )

    async def delete(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> list[Row]:
        return await self._execute(
            table,
            lambda query: self._apply_filters(query.delete(), filters),
        )
