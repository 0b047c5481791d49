"""
Tests for dashboard figures and financial insights.
"""

from datetime import date

import pytest

from finance_tracker.ledger import BudgetHealth, BudgetLedger, FinancialInsights, GoalService
from finance_tracker.ledger.insights import (
    UNCATEGORIZED,
    budget_health,
    expense_distribution,
    forecast_goal,
    monthly_trend,
    shift_month,
)
from finance_tracker.models.finance import Budget, Category, Expense, ExpenseDraft, Goal, GoalStatus
from finance_tracker.models.results import ErrorKind
from finance_tracker.services.storage import ConnectionError


TODAY = date(2024, 3, 15)


@pytest.fixture
def ledger(storage) -> BudgetLedger:
    return BudgetLedger(storage)


@pytest.fixture
def insights(storage, ledger) -> FinancialInsights:
    return FinancialInsights(storage, ledger)


def budget(month: str, spent: int = 0, saved: int = 0, income: int = 0) -> Budget:
    return Budget(user_id="u", month=month, total_spent=spent, total_saved=saved, income=income)


def expense(amount: int, category_id=None) -> Expense:
    return Expense(user_id="u", amount=amount, date=TODAY, category_id=category_id)


class TestHelpers:

    def test_shift_month(self):
        assert shift_month(date(2024, 1, 31), -1) == "2023-12"
        assert shift_month(date(2024, 11, 1), 2) == "2025-01"
        assert shift_month(TODAY, 0) == "2024-03"

    @pytest.mark.parametrize("rate,health", [
        (0, BudgetHealth.CRITICAL),
        (9.99, BudgetHealth.CRITICAL),
        (10, BudgetHealth.WARNING),
        (19.5, BudgetHealth.WARNING),
        (20, BudgetHealth.GOOD),
        (30, BudgetHealth.EXCELLENT),
    ])
    def test_budget_health_bands(self, rate, health):
        assert budget_health(rate) == health

    def test_monthly_trend(self):
        assert monthly_trend([budget("2024-03", spent=60000), budget("2024-02", spent=50000)], TODAY) == 20.0
        assert monthly_trend([budget("2024-03", spent=25000), budget("2024-02", spent=50000)], TODAY) == -50.0

    def test_monthly_trend_without_history(self):
        assert monthly_trend([], TODAY) == 0.0
        assert monthly_trend([budget("2024-03", spent=60000)], TODAY) == 0.0
        assert monthly_trend([budget("2024-03", spent=60000), budget("2024-02")], TODAY) == 0.0

    def test_monthly_trend_needs_this_month(self):
        budgets = [budget("2024-02", spent=60000), budget("2024-01", spent=50000)]

        assert monthly_trend(budgets, TODAY) == 0.0

    def test_monthly_trend_needs_last_month(self):
        budgets = [budget("2024-03", spent=60000), budget("2024-01", spent=50000)]

        assert monthly_trend(budgets, TODAY) == 0.0

    def test_distribution_shares_and_uncategorized(self):
        categories = {
            "c1": Category(id="c1", user_id="u", name="Alimentation", color="green"),
            "c2": Category(id="c2", user_id="u", name="Transport", color="blue"),
        }
        shares = expense_distribution(
            [expense(3000, "c1"), expense(2000, "c1"), expense(3000, "c2"), expense(2000)],
            categories,
        )

        assert [(s.category, s.amount, s.percentage) for s in shares] == [
            ("Alimentation", 5000, 50.0),
            ("Transport", 3000, 30.0),
            (UNCATEGORIZED, 2000, 20.0),
        ]
        assert shares[0].color == "green"
        assert shares[2].color == "gray"

    def test_distribution_keeps_top_six(self):
        categories = {
            f"c{i}": Category(id=f"c{i}", user_id="u", name=f"Cat {i}") for i in range(1, 9)
        }
        shares = expense_distribution([expense(i * 1000, f"c{i}") for i in range(1, 9)], categories)

        assert [s.category for s in shares] == [f"Cat {i}" for i in range(8, 2, -1)]

    def test_distribution_of_nothing(self):
        assert expense_distribution([], {}) == []

    def test_forecast(self):
        goal = Goal(user_id="u", title="Moto", target_amount=500000, current_amount=200000)

        forecast = forecast_goal(goal, 30000, TODAY)

        assert forecast.months_needed == 10
        assert forecast.target_month == "2025-01"

    def test_forecast_without_savings(self):
        goal = Goal(user_id="u", title="Moto", target_amount=500000)

        forecast = forecast_goal(goal, 0, TODAY)

        assert forecast.months_needed is None
        assert forecast.target_month is None


class TestCompute:

    @pytest.mark.asyncio
    async def test_end_to_end(self, insights, storage):
        storage.seed(
            "budgets",
            {"id": "b-03", "user_id": "u", "mois": "2024-03", "revenu": 200000, "total_depense": 60000, "total_epargne": 40000},
            {"id": "b-02", "user_id": "u", "mois": "2024-02", "revenu": 200000, "total_depense": 50000, "total_epargne": 20000},
            {"user_id": "u", "mois": "2024-01", "revenu": 200000, "total_depense": 40000, "total_epargne": 30000},
            {"user_id": "u", "mois": "2023-12", "revenu": 200000, "total_depense": 999999, "total_epargne": 0},
        )
        storage.seed("categories", {"id": "c1", "user_id": "u", "nom": "Transport", "couleur": "blue"})
        storage.seed(
            "depenses",
            {"user_id": "u", "budget_id": "b-03", "montant": 6000, "date_depense": "2024-03-02", "categorie_id": "c1"},
            {"user_id": "u", "budget_id": "b-03", "montant": 4000, "date_depense": "2024-03-09"},
            {"user_id": "u", "budget_id": "b-02", "montant": 7777, "date_depense": "2024-02-20", "categorie_id": "c1"},
        )
        storage.seed(
            "objectifs",
            {"user_id": "u", "titre": "Moto", "montant_cible": 500000, "montant_actuel": 200000, "statut": "en_cours"},
            {"user_id": "u", "titre": "Laptop", "montant_cible": 300000, "statut": "en_cours"},
            {"user_id": "u", "titre": "Done", "montant_cible": 100, "statut": "atteint"},
        )

        result = await insights.compute("u", today=TODAY)

        metrics = result.data
        assert metrics.monthly_trend == 20.0
        assert metrics.savings_rate == 20.0
        assert metrics.budget_health == BudgetHealth.GOOD
        assert [(s.category, s.amount) for s in metrics.expense_distribution] == [
            ("Transport", 6000),
            (UNCATEGORIZED, 4000),
        ]
        assert metrics.predictions.next_month_expenses == 60000
        assert metrics.predictions.year_end_savings == 360000
        assert metrics.predictions.main_goal.goal_title == "Moto"
        assert metrics.predictions.main_goal.months_needed == 10

    @pytest.mark.asyncio
    async def test_new_user(self, insights):
        result = await insights.compute("u", today=TODAY)

        metrics = result.data
        assert metrics.monthly_trend == 0.0
        assert metrics.savings_rate == 0.0
        assert metrics.budget_health == BudgetHealth.CRITICAL
        assert metrics.expense_distribution == []
        assert metrics.predictions.next_month_expenses == 0
        assert metrics.predictions.main_goal is None

    @pytest.mark.asyncio
    async def test_month_without_budget_yet(self, insights, storage):
        storage.seed(
            "budgets",
            {"id": "b-02", "user_id": "u", "mois": "2024-02", "revenu": 100000, "total_depense": 60000},
            {"id": "b-01", "user_id": "u", "mois": "2024-01", "revenu": 100000, "total_depense": 30000},
        )
        storage.seed("depenses", {"user_id": "u", "budget_id": "b-02", "montant": 60000, "date_depense": "2024-02-10"})

        result = await insights.compute("u", today=TODAY)

        assert result.data.monthly_trend == 0.0
        assert result.data.expense_distribution == []
        assert storage.count("select", "depenses") == 0

    @pytest.mark.asyncio
    async def test_distribution_reads_only_this_months_expenses(self, insights, ledger, storage):
        await ledger.record_expense("u", ExpenseDraft(amount=7000, date=date(2024, 2, 28)))
        await ledger.record_expense("u", ExpenseDraft(amount=3000, date=date(2024, 3, 1)))
        await ledger.record_expense("u", ExpenseDraft(amount=2000, date=date(2024, 3, 14)))

        result = await insights.compute("u", today=TODAY)

        assert [(s.category, s.amount) for s in result.data.expense_distribution] == [(UNCATEGORIZED, 5000)]

    @pytest.mark.asyncio
    async def test_storage_failure(self, insights, storage):
        storage.fail("select", "budgets", ConnectionError("timeout"))

        result = await insights.compute("u", today=TODAY)

        assert result.error.kind == ErrorKind.TRANSIENT_FAILURE


class TestDashboardSummary:

    @pytest.mark.asyncio
    async def test_summary(self, insights, ledger, storage):
        goals = GoalService(storage)
        for amount in (1000, 2000, 3000, 4000, 5000, 6000):
            await ledger.record_expense("u", ExpenseDraft(amount=amount, date=TODAY))
        await ledger.set_income((await ledger.get_or_create_budget("u", "2024-03")).data.id, 50000)
        for title in ("A", "B", "C", "D"):
            await goals.create_goal("u", title, 1000)
        abandoned = (await goals.create_goal("u", "E", 1000)).data
        await goals.set_status(abandoned.id, GoalStatus.ABANDONED)

        result = await insights.dashboard_summary("u", today=TODAY)

        summary = result.data
        assert summary.budget.total_spent == 21000
        assert summary.remaining == 29000
        assert [e.amount for e in summary.recent_expenses] == [6000, 5000, 4000, 3000, 2000]
        assert [g.title for g in summary.goals] == ["D", "C", "B"]

    @pytest.mark.asyncio
    async def test_creates_current_budget(self, insights, storage):
        result = await insights.dashboard_summary("u", today=TODAY)

        assert result.data.budget.month == "2024-03"
        assert result.data.remaining == 0
        assert len(storage.tables["budgets"]) == 1
