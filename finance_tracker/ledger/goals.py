"""
Savings goals.

A goal's current amount only moves through explicit contributions.
Progress is reported unclamped (a goal can be over-funded); only the
progress bar width is capped at 100.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.auth.errors import translate_storage_error, translate_validation_error
from finance_tracker.ledger.counters import ContentionError, add_to_column
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import Goal, GoalStatus
from finance_tracker.models.results import AppError, Result
from finance_tracker.services.storage import StorageError, TableStorageInterface


GOALS_TABLE = "objectifs"

URGENT_DAYS = 30


class GoalBadge(str, Enum):
    ACHIEVED = "achieved"
    EXPIRED = "expired"
    URGENT = "urgent"
    IN_PROGRESS = "in_progress"


class GoalProgress(BaseModel):
    """How far a goal is, as shown on its card."""

    percentage: float = Field(..., description="current / target * 100, not clamped")
    bar_width: float = Field(..., ge=0, le=100)
    badge: GoalBadge
    days_left: Optional[int] = None


def goal_progress(goal: Goal, today: Optional[date] = None) -> GoalProgress:
    """
    Progress and badge of a goal.

    Badge precedence: achieved (>= 100%), then expired (deadline
    passed), then urgent (30 days or fewer left), then in progress.
    """
    today = today or date.today()
    percentage = goal.progress_percentage
    days_left = (goal.deadline - today).days if goal.deadline else None

    if percentage >= 100:
        badge = GoalBadge.ACHIEVED
    elif days_left is not None and days_left < 0:
        badge = GoalBadge.EXPIRED
    elif days_left is not None and days_left <= URGENT_DAYS:
        badge = GoalBadge.URGENT
    else:
        badge = GoalBadge.IN_PROGRESS

    return GoalProgress(
        percentage=percentage,
        bar_width=goal.progress_bar_width,
        badge=badge,
        days_left=days_left,
    )


class GoalService:

    def __init__(
        self,
        storage: TableStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_delta_attempts: int = 5,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._max_delta_attempts = max_delta_attempts

    goal_progress = staticmethod(goal_progress)

    async def create_goal(
        self,
        user_id: str,
        title: str,
        target_amount: int,
        deadline: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Result[Goal]:
        try:
            goal = Goal(
                user_id=user_id,
                title=title,
                target_amount=target_amount,
                deadline=deadline,
                description=description or None,
            )
        except ValidationError as e:
            return Result.failure(translate_validation_error(e, "Goal", Goal))
        try:
            rows = await self._storage.insert(GOALS_TABLE, [goal.to_row()])
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Goal"))
        return Result.success(Goal.from_row(rows[0]) if rows else goal)

    async def list_goals(self, user_id: str, status: Optional[GoalStatus] = None) -> Result[list[Goal]]:
        """The user's goals, newest first, optionally of one status."""
        filters = {"user_id": user_id}
        if status is not None:
            filters["statut"] = status.value
        try:
            rows = await self._storage.select(GOALS_TABLE, filters, order_by="created_at", descending=True)
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Goal"))
        return Result.success([Goal.from_row(row) for row in rows])

    async def contribute(self, goal: Goal, amount: int) -> Result[Goal]:
        """
        Add `amount` to the goal's current amount.

        The stored status is left as is; reaching the target only
        changes the badge.
        """
        if amount <= 0:
            return Result.failure(AppError.invalid("A contribution must be greater than zero."))
        if goal.id is None:
            return Result.failure(AppError.not_found("Goal"))

        try:
            row = await add_to_column(
                self._storage,
                GOALS_TABLE,
                goal.id,
                "montant_actuel",
                amount,
                max_attempts=self._max_delta_attempts,
            )
        except ContentionError as e:
            return Result.failure(AppError.transient(str(e)))
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Goal"))

        updated = Goal.from_row(row)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.goal_contribution(
                goal.id, goal.user_id, amount, updated.current_amount,
            ))
        return Result.success(updated)

    async def set_status(self, goal_id: str, status: GoalStatus) -> Result[Goal]:
        try:
            rows = await self._storage.update(GOALS_TABLE, {"statut": status.value}, {"id": goal_id})
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Goal"))
        if not rows:
            return Result.failure(AppError.not_found("Goal"))
        return Result.success(Goal.from_row(rows[0]))

    async def delete_goal(self, goal_id: str) -> Result[None]:
        try:
            rows = await self._storage.delete(GOALS_TABLE, {"id": goal_id})
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Goal"))
        if not rows:
            return Result.failure(AppError.not_found("Goal"))
        return Result.success()
