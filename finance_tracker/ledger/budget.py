"""
Budget Ledger

Keeps each monthly budget's derived totals in step with the expenses
recorded against it.

FLOW (record):
1. Budget month = month of the expense date
2. Find or create the (user, month) budget
3. Insert the expense
4. Add the amount to total_spent (compare-and-swap)
5. If step 4 fails: recompute total_spent from the expense rows
6. If that fails too: return the expense with an error, log the drift

Deleting runs the same steps in reverse, flooring the total at zero.
"""

from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.auth.errors import translate_storage_error
from finance_tracker.ledger.counters import ContentionError, add_to_column
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import Budget, Category, Expense, ExpenseDraft, month_key
from finance_tracker.models.results import AppError, Result
from finance_tracker.services.storage import (
    DuplicateError,
    NotFoundError,
    StorageError,
    TableStorageInterface,
)


logger = structlog.get_logger(__name__)

BUDGETS_TABLE = "budgets"
EXPENSES_TABLE = "depenses"
CATEGORIES_TABLE = "categories"

# Budget attributes that apply_delta may move, with their stored column.
DELTA_COLUMNS = {
    "total_spent": "total_depense",
    "total_saved": "total_epargne",
    "income": "revenu",
}

OUT_OF_SYNC_MESSAGE = (
    "The expense was saved, but the monthly total could not be updated. "
    "It will be corrected the next time the budget is reconciled."
)


class BudgetLedger:
    """
    Expense recording and monthly budget bookkeeping.
    """

    def __init__(
        self,
        storage: TableStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_delta_attempts: int = 5,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._max_delta_attempts = max_delta_attempts

    # =========================================================================
    # Budgets
    # =========================================================================

    async def _find_budget(self, user_id: str, month: str) -> Budget:
        row = await self._storage.select_one(BUDGETS_TABLE, {"user_id": user_id, "mois": month})
        return Budget.from_row(row)

    async def get_or_create_budget(self, user_id: str, month: str) -> Result[Budget]:
        """
        Return the user's budget for `month` (YYYY-MM), creating it empty.

        The (user_id, mois) unique constraint makes concurrent creation
        safe: the losing insert gets a duplicate-key error and reads
        the winner's row.
        """
        try:
            return Result.success(await self._find_budget(user_id, month))
        except NotFoundError:
            pass
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Budget"))

        budget = Budget(user_id=user_id, month=month)
        try:
            rows = await self._storage.insert(BUDGETS_TABLE, [budget.to_row()])
        except DuplicateError:
            logger.info("budget_created_concurrently", user_id=user_id, month=month)
            try:
                return Result.success(await self._find_budget(user_id, month))
            except StorageError as e:
                return Result.failure(translate_storage_error(e, "Budget"))
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Budget"))

        budget = Budget.from_row(rows[0]) if rows else budget
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.budget_created(budget.id, user_id, month))
        return Result.success(budget)

    async def apply_delta(self, budget_id: str, column: str, delta: int) -> Result[Budget]:
        """
        Atomically add `delta` to a budget total, never going below zero.

        Args:
            budget_id: Budget to adjust
            column: "total_spent", "total_saved" or "income"
            delta: Signed amount
        """
        if column not in DELTA_COLUMNS:
            return Result.failure(AppError.invalid(f"Unknown budget column: {column}"))

        try:
            row = await add_to_column(
                self._storage,
                BUDGETS_TABLE,
                budget_id,
                DELTA_COLUMNS[column],
                delta,
                max_attempts=self._max_delta_attempts,
            )
        except ContentionError as e:
            return Result.failure(AppError.transient(str(e)))
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Budget"))
        return Result.success(Budget.from_row(row))

    async def reconcile_budget(self, budget_id: str) -> Result[Budget]:
        """
        Recompute total_spent from the expense rows and store it.

        This is the repair path for a total that drifted after a failed
        increment, and is safe to run at any time.
        """
        try:
            budget = Budget.from_row(await self._storage.select_one(BUDGETS_TABLE, {"id": budget_id}))
            rows = await self._storage.select(EXPENSES_TABLE, {"budget_id": budget_id}, columns="montant")
            recomputed = sum(row.get("montant") or 0 for row in rows)
            updated = await self._storage.update(
                BUDGETS_TABLE,
                {DELTA_COLUMNS["total_spent"]: recomputed},
                {"id": budget_id},
            )
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Budget"))
        if not updated:
            return Result.failure(AppError.not_found("Budget"))

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.budget_reconciled(
                budget_id, budget.total_spent, recomputed,
            ))
        return Result.success(Budget.from_row(updated[0]))

    async def set_income(self, budget_id: str, income: int) -> Result[Budget]:
        """Set the month's income (an explicit user edit, not a delta)."""
        if income < 0:
            return Result.failure(AppError.invalid("Income cannot be negative."))
        try:
            rows = await self._storage.update(
                BUDGETS_TABLE,
                {DELTA_COLUMNS["income"]: income},
                {"id": budget_id},
            )
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Budget"))
        if not rows:
            return Result.failure(AppError.not_found("Budget"))
        return Result.success(Budget.from_row(rows[0]))

    async def record_saving(self, budget_id: str, amount: int) -> Result[Budget]:
        """Move `amount` into the month's savings total."""
        if amount <= 0:
            return Result.failure(AppError.invalid("A saving must be greater than zero."))
        return await self.apply_delta(budget_id, "total_saved", amount)

    # =========================================================================
    # Expenses
    # =========================================================================

    async def _sync_total(
        self,
        budget_id: str,
        delta: int,
        correlation_id: UUID,
    ) -> Optional[AppError]:
        """Move total_spent by `delta`, falling back to a reconcile."""
        result = await self.apply_delta(budget_id, "total_spent", delta)
        if result.ok:
            return None

        logger.warning(
            "budget_delta_failed",
            budget_id=budget_id,
            delta=delta,
            error=result.error.raw_message,
        )
        repaired = await self.reconcile_budget(budget_id)
        if repaired.ok:
            return None

        if self._audit_logger:
            await self._audit_logger.log_budget_out_of_sync(
                budget_id=budget_id,
                column="total_spent",
                delta=delta,
                error_message=repaired.error.raw_message or repaired.error.message,
                correlation_id=correlation_id,
            )
        return AppError.transient(
            result.error.raw_message or result.error.message,
            message=OUT_OF_SYNC_MESSAGE,
        )

    async def record_expense(self, user_id: str, draft: ExpenseDraft) -> Result[Expense]:
        """
        Record an expense against the budget of its own month.

        On a total that could not be adjusted, the stored expense is
        still returned as data alongside the error.
        """
        correlation_id = create_correlation_id()

        budget_result = await self.get_or_create_budget(user_id, month_key(draft.date))
        if not budget_result.ok:
            return Result.failure(budget_result.error)
        budget = budget_result.data

        expense = Expense(
            user_id=user_id,
            budget_id=budget.id,
            category_id=draft.category_id,
            amount=draft.amount,
            description=draft.description,
            date=draft.date,
        )
        try:
            rows = await self._storage.insert(EXPENSES_TABLE, [expense.to_row()])
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Expense"))
        expense = Expense.from_row(rows[0]) if rows else expense

        error = await self._sync_total(budget.id, expense.amount, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.expense_recorded(
                expense.id, budget.id, user_id, expense.amount, correlation_id,
            ))
        if error:
            return Result.failure(error, data=expense)
        return Result.success(expense)

    async def delete_expense(self, expense: Expense) -> Result[Expense]:
        """
        Delete an expense and take its amount off its budget.

        An expense that is already gone is reported as NotFound and the
        total is left alone, so a double delete never subtracts twice.
        """
        if expense.id is None:
            return Result.failure(AppError.not_found("Expense"))
        correlation_id = create_correlation_id()

        try:
            deleted = await self._storage.delete(EXPENSES_TABLE, {"id": expense.id})
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Expense"))
        if not deleted:
            return Result.failure(AppError.not_found("Expense"))

        error = None
        if expense.budget_id:
            error = await self._sync_total(expense.budget_id, -expense.amount, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.expense_deleted(
                expense.id, expense.budget_id, expense.user_id, expense.amount, correlation_id,
            ))
        if error:
            return Result.failure(error, data=expense)
        return Result.success(expense)

    async def list_expenses(
        self,
        user_id: str,
        category_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Result[list[Expense]]:
        """
        The user's expenses, newest first.

        `search` matches the description or the category name,
        case-insensitively.
        """
        filters = {"user_id": user_id}
        if category_id:
            filters["categorie_id"] = category_id
        try:
            rows = await self._storage.select(
                EXPENSES_TABLE, filters, order_by="date_depense", descending=True,
            )
            category_rows = await self._storage.select(CATEGORIES_TABLE, {"user_id": user_id}) if search else []
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Expense"))

        expenses = [Expense.from_row(row) for row in rows]
        if search and search.strip():
            term = search.strip().lower()
            names = {c.id: c.name.lower() for c in map(Category.from_row, category_rows)}
            expenses = [
                e for e in expenses
                if term in (e.description or "").lower()
                or term in names.get(e.category_id, "")
            ]
        return Result.success(expenses)
