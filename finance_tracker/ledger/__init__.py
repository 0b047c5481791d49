"""Budgets, expenses, goals, tontines and the insights derived from them."""

from finance_tracker.ledger.budget import BudgetLedger
from finance_tracker.ledger.categories import CategoryService
from finance_tracker.ledger.counters import ContentionError, add_to_column
from finance_tracker.ledger.goals import GoalBadge, GoalProgress, GoalService, goal_progress
from finance_tracker.ledger.insights import (
    BudgetHealth,
    CategoryShare,
    DashboardSummary,
    FinancialInsights,
    FinancialMetrics,
    Predictions,
)
from finance_tracker.ledger.tontines import TontineService

__all__ = [
    "BudgetHealth",
    "BudgetLedger",
    "CategoryService",
    "CategoryShare",
    "ContentionError",
    "DashboardSummary",
    "FinancialInsights",
    "FinancialMetrics",
    "GoalBadge",
    "GoalProgress",
    "GoalService",
    "Predictions",
    "TontineService",
    "add_to_column",
    "goal_progress",
]
