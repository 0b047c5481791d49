"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Authentication (form → validate → gateway → session store)
2. Expense entry (form → validate → ledger)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the provider or the tables before its form validates
- The presentation layer only ever talks to this module's components
- Every step is audited

This is the "glue" the Streamlit app is built on.
"""

from datetime import date
from typing import Optional, Union

import structlog

from finance_tracker.audit import AuditLogger, configure_logging
from finance_tracker.auth import AuthGateway, ProfileProvisioner, SessionStore
from finance_tracker.config import AppSettings, SupabaseSettings, get_settings
from finance_tracker.ledger import (
    BudgetLedger,
    CategoryService,
    FinancialInsights,
    GoalService,
    TontineService,
)
from finance_tracker.models.auth import OtpPurpose
from finance_tracker.models.finance import Expense, ExpenseDraft
from finance_tracker.models.results import AuthResult, Result
from finance_tracker.models.validation import ValidationReport
from finance_tracker.services.identity import IdentityProviderInterface, SupabaseIdentityProvider
from finance_tracker.services.storage import SupabaseTableStorage, TableStorageInterface
from finance_tracker.services.supabase_client import SupabaseClient
from finance_tracker.validation import FormValidator, parse_amount


logger = structlog.get_logger(__name__)


class AuthFlow:
    """
    Orchestrates sign-up, sign-in and code verification.

    Flow:
    1. Validate the form (nothing is sent if it has errors)
    2. Call the auth gateway
    3. The provider's auth event reaches the session store

    Each method returns (report, result); result is None when the form
    did not validate.
    """

    def __init__(
        self,
        gateway: AuthGateway,
        validator: Optional[FormValidator] = None,
    ):
        self._gateway = gateway
        self._validator = validator or FormValidator()

    @property
    def gateway(self) -> AuthGateway:
        return self._gateway

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        confirm_password: Optional[str] = None,
    ) -> tuple[ValidationReport, Optional[AuthResult]]:
        report = self._validator.validate_sign_up(email, password, display_name, confirm_password)
        if not report.is_valid:
            return report, None
        return report, await self._gateway.sign_up(email, password, display_name)

    async def sign_in(self, email: str, password: str) -> tuple[ValidationReport, Optional[AuthResult]]:
        report = self._validator.validate_sign_in(email, password)
        if not report.is_valid:
            return report, None
        return report, await self._gateway.sign_in(email, password)

    async def verify(
        self,
        email: str,
        code: str,
        purpose: OtpPurpose = OtpPurpose.SIGNUP,
    ) -> tuple[ValidationReport, Optional[AuthResult]]:
        report = self._validator.validate_otp(code)
        if not report.is_valid:
            return report, None
        return report, await self._gateway.verify_otp(email, code, purpose)


class ExpenseFlow:
    """
    Orchestrates the expense entry form.

    Flow:
    1. Validate (errors block, warnings are returned for display)
    2. Build the draft from the validated input
    3. Record through the budget ledger
    """

    def __init__(
        self,
        ledger: BudgetLedger,
        validator: Optional[FormValidator] = None,
    ):
        self._ledger = ledger
        self._validator = validator or FormValidator()

    async def submit(
        self,
        user_id: str,
        amount: Union[int, str],
        expense_date: Optional[date],
        category_id: Optional[str] = None,
        description: Optional[str] = None,
        today: Optional[date] = None,
    ) -> tuple[ValidationReport, Optional[Result[Expense]]]:
        report = self._validator.validate_expense(amount, expense_date, today=today)
        if not report.is_valid:
            logger.info("expense_form_rejected", user_id=user_id, errors=report.errors)
            return report, None

        draft = ExpenseDraft(
            amount=parse_amount(amount),
            date=expense_date,
            category_id=category_id or None,
            description=description,
        )
        return report, await self._ledger.record_expense(user_id, draft)


class AppComponents:
    """
    Everything the presentation layer needs, wired once per process.
    """

    def __init__(
        self,
        settings: AppSettings,
        storage: TableStorageInterface,
        identity_provider: IdentityProviderInterface,
        audit_logger: AuditLogger,
    ):
        self.settings = settings
        self.storage = storage
        self.identity_provider = identity_provider
        self.audit_logger = audit_logger
        self.validator = FormValidator(settings)

        self.gateway = AuthGateway(
            identity_provider,
            audit_logger=audit_logger,
            resend_cooldown_seconds=settings.resend_cooldown_seconds,
        )
        self.profiles = ProfileProvisioner(
            storage,
            identity_provider,
            settings=settings,
            audit_logger=audit_logger,
        )
        self.session = SessionStore(identity_provider, self.profiles, audit_logger=audit_logger)

        self.ledger = BudgetLedger(
            storage,
            audit_logger=audit_logger,
            max_delta_attempts=settings.max_delta_attempts,
        )
        self.categories = CategoryService(storage, audit_logger=audit_logger)
        self.goals = GoalService(
            storage,
            audit_logger=audit_logger,
            max_delta_attempts=settings.max_delta_attempts,
        )
        self.tontines = TontineService(storage, audit_logger=audit_logger)
        self.insights = FinancialInsights(storage, self.ledger)

        self.auth_flow = AuthFlow(self.gateway, self.validator)
        self.expense_flow = ExpenseFlow(self.ledger, self.validator)

    async def start(self) -> None:
        """Restore any persisted session and follow auth changes from now on."""
        await self.session.restore()
        await self.session.attach()

    def stop(self) -> None:
        self.session.detach()


def create_app_components(
    app_settings: Optional[AppSettings] = None,
    supabase_settings: Optional[SupabaseSettings] = None,
    storage: Optional[TableStorageInterface] = None,
    identity_provider: Optional[IdentityProviderInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        app_settings: Application settings (loaded from the environment if omitted)
        supabase_settings: Supabase settings (loaded from the environment if omitted)
        storage: Table storage to use instead of Supabase (tests)
        identity_provider: Identity provider to use instead of Supabase (tests)

    Returns:
        The wired AppComponents
    """
    app_settings = app_settings or get_settings().app
    configure_logging(app_settings.log_level)

    if storage is None or identity_provider is None:
        # One client for both so table queries run as the signed-in user.
        client = SupabaseClient(supabase_settings)
        storage = storage or SupabaseTableStorage(client)
        identity_provider = identity_provider or SupabaseIdentityProvider(client)

    return AppComponents(
        settings=app_settings,
        storage=storage,
        identity_provider=identity_provider,
        audit_logger=AuditLogger(),
    )
