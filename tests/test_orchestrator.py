"""
End-to-end flows through the wired components, against the fakes.
"""

from datetime import date

import pytest

from finance_tracker.models.auth import AuthState
from finance_tracker.orchestrator import AppComponents, create_app_components

from tests.conftest import make_session


TODAY = date(2024, 6, 15)


@pytest.fixture
def components(app_settings, storage, provider) -> AppComponents:
    return create_app_components(app_settings=app_settings, storage=storage, identity_provider=provider)


class TestStartup:

    @pytest.mark.asyncio
    async def test_start_restores_and_follows_the_provider(self, components, provider):
        provider.session = make_session()

        await components.start()

        assert components.session.is_authenticated
        assert components.session.profile.display_name == "Alice"
        assert provider.listener_count == 1

        components.stop()
        assert provider.listener_count == 0

    def test_components_share_settings(self, components, app_settings):
        assert components.settings is app_settings
        assert components.gateway.state == AuthState.ANONYMOUS


class TestAuthFlow:

    @pytest.mark.asyncio
    async def test_invalid_form_never_reaches_the_provider(self, components, provider):
        report, result = await components.auth_flow.sign_up("alice", "123", "")

        assert not report.is_valid
        assert result is None
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_sign_up_then_verify(self, components, provider, storage):
        await components.start()

        report, result = await components.auth_flow.sign_up("Alice@Test.com", "secret1", "Alice", "secret1")
        assert report.is_valid
        assert result.needs_verification

        report, result = await components.auth_flow.verify("alice@test.com", "12a")
        assert result is None
        assert "verify_otp" not in provider.calls

        report, result = await components.auth_flow.verify("alice@test.com", provider.CODE)
        assert result.ok
        assert components.session.profile.display_name == "Alice"
        assert storage.tables["profiles"][0]["nom"] == "Alice"

    @pytest.mark.asyncio
    async def test_sign_in_validates_first(self, components, provider):
        report, result = await components.auth_flow.sign_in("", "secret1")

        assert result is None
        assert provider.calls == []


class TestExpenseFlow:

    @pytest.mark.asyncio
    async def test_submit_records_expense(self, components, storage):
        report, result = await components.expense_flow.submit(
            "user-1", "15 000", TODAY, description="  Marché  ", today=TODAY,
        )

        assert report.is_valid
        assert result.ok
        assert result.data.amount == 15000
        assert result.data.description == "Marché"
        assert storage.tables["budgets"][0]["total_depense"] == 15000

    @pytest.mark.asyncio
    async def test_invalid_amount_is_not_recorded(self, components, storage):
        report, result = await components.expense_flow.submit("user-1", "abc", TODAY, today=TODAY)

        assert not report.is_valid
        assert result is None
        assert storage.tables["depenses"] == []

    @pytest.mark.asyncio
    async def test_warnings_do_not_block(self, components, storage):
        report, result = await components.expense_flow.submit("user-1", 500, date(2024, 7, 2), today=TODAY)

        assert report.warnings
        assert result.ok
        assert storage.tables["budgets"][0]["mois"] == "2024-07"
