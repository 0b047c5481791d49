"""
Dashboard figures and financial insights.

Everything here is read-only and derived from the stored budgets,
expenses and goals. No figure is written back.
"""

import math
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from finance_tracker.auth.errors import translate_storage_error
from finance_tracker.ledger.budget import BUDGETS_TABLE, CATEGORIES_TABLE, EXPENSES_TABLE, BudgetLedger
from finance_tracker.ledger.goals import GOALS_TABLE
from finance_tracker.models.finance import (
    Budget,
    Category,
    Expense,
    Goal,
    GoalStatus,
    month_key,
)
from finance_tracker.models.results import Result
from finance_tracker.services.storage import StorageError, TableStorageInterface


UNCATEGORIZED = "Non catégorisé"
DISTRIBUTION_SIZE = 6
RECENT_EXPENSES = 5
DASHBOARD_GOALS = 3


class BudgetHealth(str, Enum):
    """Savings-rate bands: <10 critical, <20 warning, <30 good."""
    CRITICAL = "critical"
    WARNING = "warning"
    GOOD = "good"
    EXCELLENT = "excellent"


class CategoryShare(BaseModel):
    category: str
    amount: int
    percentage: float
    color: str = "gray"


class GoalForecast(BaseModel):
    """When the main in-progress goal is reached at the average saving pace."""
    goal_title: str
    months_needed: Optional[int] = Field(
        default=None,
        description="None when nothing is being saved",
    )
    target_month: Optional[str] = None


class Predictions(BaseModel):
    next_month_expenses: int
    year_end_savings: int
    main_goal: Optional[GoalForecast] = None


class FinancialMetrics(BaseModel):
    monthly_trend: float
    savings_rate: float
    expense_distribution: list[CategoryShare]
    budget_health: BudgetHealth
    predictions: Predictions


class DashboardSummary(BaseModel):
    budget: Budget
    remaining: int
    recent_expenses: list[Expense]
    goals: list[Goal]


def shift_month(day: date, months: int) -> str:
    """YYYY-MM key `months` months away from `day` (negative = earlier)."""
    index = day.year * 12 + (day.month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def budget_health(savings_rate: float) -> BudgetHealth:
    if savings_rate < 10:
        return BudgetHealth.CRITICAL
    if savings_rate < 20:
        return BudgetHealth.WARNING
    if savings_rate < 30:
        return BudgetHealth.GOOD
    return BudgetHealth.EXCELLENT


def monthly_trend(budgets: list[Budget], today: date) -> float:
    """
    Spending change of this month against last month, in percent.

    0 unless both this month and last month have a budget and last
    month had spending.
    """
    by_month = {b.month: b for b in budgets}
    current = by_month.get(month_key(today))
    previous = by_month.get(shift_month(today, -1))
    if current is None or previous is None or previous.total_spent == 0:
        return 0.0
    return (current.total_spent - previous.total_spent) / previous.total_spent * 100


def expense_distribution(
    expenses: list[Expense],
    categories: dict[str, Category],
) -> list[CategoryShare]:
    """Spending per category, largest first, top six."""
    totals: dict[str, CategoryShare] = {}
    for expense in expenses:
        category = categories.get(expense.category_id) if expense.category_id else None
        name = category.name if category else UNCATEGORIZED
        share = totals.setdefault(name, CategoryShare(
            category=name,
            amount=0,
            percentage=0.0,
            color=category.color if category else "gray",
        ))
        share.amount += expense.amount

    grand_total = sum(share.amount for share in totals.values())
    for share in totals.values():
        share.percentage = share.amount / grand_total * 100 if grand_total > 0 else 0.0

    return sorted(totals.values(), key=lambda s: s.amount, reverse=True)[:DISTRIBUTION_SIZE]


def forecast_goal(goal: Goal, monthly_savings: float, today: date) -> GoalForecast:
    if monthly_savings <= 0:
        return GoalForecast(goal_title=goal.title)
    remaining = max(0, goal.target_amount - goal.current_amount)
    months = math.ceil(remaining / monthly_savings)
    return GoalForecast(
        goal_title=goal.title,
        months_needed=months,
        target_month=shift_month(today, months),
    )


class FinancialInsights:
    """
    Read-only analytics over the last three months.
    """

    def __init__(self, storage: TableStorageInterface, ledger: BudgetLedger):
        self._storage = storage
        self._ledger = ledger

    async def _categories(self, user_id: str) -> dict[str, Category]:
        rows = await self._storage.select(CATEGORIES_TABLE, {"user_id": user_id})
        return {c.id: c for c in map(Category.from_row, rows)}

    async def compute(self, user_id: str, today: Optional[date] = None) -> Result[FinancialMetrics]:
        today = today or date.today()
        current = month_key(today)
        months = [current, shift_month(today, -1), shift_month(today, -2)]

        try:
            budget_rows = await self._storage.select(
                BUDGETS_TABLE,
                {"user_id": user_id},
                in_filters={"mois": months},
                order_by="mois",
                descending=True,
            )
            budgets = [Budget.from_row(row) for row in budget_rows]
            current_budget = next((b for b in budgets if b.month == current), None)

            # An expense is always filed under the budget of its own month.
            expense_rows = []
            if current_budget is not None:
                expense_rows = await self._storage.select(
                    EXPENSES_TABLE,
                    {"user_id": user_id, "budget_id": current_budget.id},
                )
            categories = await self._categories(user_id)
            goal_rows = await self._storage.select(
                GOALS_TABLE,
                {"user_id": user_id, "statut": GoalStatus.IN_PROGRESS.value},
                order_by="created_at",
            )
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Budget"))

        expenses = [Expense.from_row(row) for row in expense_rows]
        goals = [Goal.from_row(row) for row in goal_rows]

        trend = monthly_trend(budgets, today)
        latest = budgets[0] if budgets else None
        savings_rate = (
            latest.total_saved / latest.income * 100
            if latest is not None and latest.income > 0 else 0.0
        )

        average_spent = sum(b.total_spent for b in budgets) / len(budgets) if budgets else 0.0
        average_saved = sum(b.total_saved for b in budgets) / len(budgets) if budgets else 0.0

        return Result.success(FinancialMetrics(
            monthly_trend=trend,
            savings_rate=savings_rate,
            expense_distribution=expense_distribution(expenses, categories),
            budget_health=budget_health(savings_rate),
            predictions=Predictions(
                next_month_expenses=_round_half_up(average_spent * (1 + trend / 100)),
                year_end_savings=_round_half_up(average_saved * 12),
                main_goal=forecast_goal(goals[0], average_saved, today) if goals else None,
            ),
        ))

    async def dashboard_summary(self, user_id: str, today: Optional[date] = None) -> Result[DashboardSummary]:
        """
        Current month budget (created if missing), latest expenses and
        in-progress goals.
        """
        today = today or date.today()
        budget_result = await self._ledger.get_or_create_budget(user_id, month_key(today))
        if not budget_result.ok:
            return Result.failure(budget_result.error)
        budget = budget_result.data

        try:
            expense_rows = await self._storage.select(
                EXPENSES_TABLE,
                {"user_id": user_id},
                order_by="created_at",
                descending=True,
                limit=RECENT_EXPENSES,
            )
            goal_rows = await self._storage.select(
                GOALS_TABLE,
                {"user_id": user_id, "statut": GoalStatus.IN_PROGRESS.value},
                order_by="created_at",
                descending=True,
                limit=DASHBOARD_GOALS,
            )
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Expense"))

        return Result.success(DashboardSummary(
            budget=budget,
            remaining=budget.remaining,
            recent_expenses=[Expense.from_row(row) for row in expense_rows],
            goals=[Goal.from_row(row) for row in goal_rows],
        ))
