"""
Expense categories, seeded with a default set on first use.
"""

from typing import Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.auth.errors import translate_storage_error
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import DEFAULT_CATEGORIES, Category
from finance_tracker.models.results import Result
from finance_tracker.services.storage import StorageError, TableStorageInterface


logger = structlog.get_logger(__name__)

CATEGORIES_TABLE = "categories"


class CategoryService:

    def __init__(
        self,
        storage: TableStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def list_categories(self, user_id: str) -> Result[list[Category]]:
        """The user's categories sorted by name."""
        try:
            rows = await self._storage.select(CATEGORIES_TABLE, {"user_id": user_id}, order_by="nom")
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Category"))
        return Result.success([Category.from_row(row) for row in rows])

    async def ensure_default_categories(self, user_id: str) -> Result[list[Category]]:
        """
        Return the user's categories, seeding the defaults when there are none.
        """
        existing = await self.list_categories(user_id)
        if not existing.ok or existing.data:
            return existing

        seeds = [Category(user_id=user_id, **seed) for seed in DEFAULT_CATEGORIES]
        try:
            rows = await self._storage.insert(CATEGORIES_TABLE, [c.to_row() for c in seeds])
        except StorageError as e:
            logger.warning("category_seed_failed", user_id=user_id, error=str(e))
            return Result.failure(translate_storage_error(e, "Category"))

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.categories_seeded(user_id, len(rows)))
        categories = [Category.from_row(row) for row in rows] if rows else seeds
        return Result.success(sorted(categories, key=lambda c: c.name))
