"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for table operations.
This allows us to:
1. Keep the ledger and profile logic decoupled from Supabase
2. Use in-memory storage for testing
3. Add caching layers transparently

The interface is intentionally simple - we're not building an ORM.
Rows go in and come out as plain dicts keyed by column name; the
models in finance_tracker.models own the mapping to typed records.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


Row = dict[str, Any]


class TableStorageInterface(ABC):
    """
    Abstract interface for table storage operations.

    Filters are equality filters combined with AND. Any storage
    implementation (Supabase, SQLite, in-memory...) must implement
    these methods.
    """

    @abstractmethod
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
        """
        Select rows matching all filters.

        Args:
            table: Table name
            filters: column -> value equality filters
            in_filters: column -> allowed values
            columns: Column selection (may embed related tables)
            order_by: Column to sort by
            descending: Sort direction
            limit: Maximum number of rows

        Returns:
            Matching rows, possibly empty

        Raises:
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def select_one(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> Row:
        """
        Select exactly one row.

        Raises:
            NotFoundError: If no row matches
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def insert(
        self,
        table: str,
        rows: list[Row],
    ) -> list[Row]:
        """
        Insert rows and return them as stored (with generated columns).

        Raises:
            DuplicateError: If a unique constraint is violated
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        table: str,
        values: Row,
        filters: dict[str, Any],
    ) -> list[Row]:
        """
        Update every row matching the filters.

        Returns:
            The updated rows. An empty list means nothing matched, which
            callers use for compare-and-swap updates.
        """
        pass

    @abstractmethod
    async def delete(
        self,
        table: str,
        filters: dict[str, Any],
    ) -> list[Row]:
        """
        Delete every row matching the filters.

        Returns:
            The deleted rows
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
