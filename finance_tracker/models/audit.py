"""
Audit Models for Finance Tracker

Every significant auth and ledger action is logged for audit purposes.
This provides:
1. Traceability of sign-ups, sign-ins and code verifications
2. Debugging information when a budget total drifts from its expenses
3. Ability to reconstruct what happened to a user's money

DESIGN DECISION: Audit details never contain passwords or codes, and
email addresses are masked.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mask_email(email: Optional[str]) -> str:
    """alice@example.com -> a***@example.com"""
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Authentication
    SIGN_UP_SUCCEEDED = "sign_up_succeeded"
    SIGN_UP_FAILED = "sign_up_failed"
    SIGN_IN_SUCCEEDED = "sign_in_succeeded"
    SIGN_IN_FAILED = "sign_in_failed"
    OTP_VERIFIED = "otp_verified"
    OTP_FAILED = "otp_failed"
    OTP_RESENT = "otp_resent"
    OTP_RESEND_BLOCKED = "otp_resend_blocked"
    SIGNED_OUT = "signed_out"

    # Session
    SESSION_CHANGED = "session_changed"
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"

    # Ledger
    BUDGET_CREATED = "budget_created"
    EXPENSE_RECORDED = "expense_recorded"
    EXPENSE_DELETED = "expense_deleted"
    BUDGET_OUT_OF_SYNC = "budget_out_of_sync"
    BUDGET_RECONCILED = "budget_reconciled"
    CATEGORIES_SEEDED = "categories_seeded"
    GOAL_CONTRIBUTION = "goal_contribution"
    TONTINE_TRANSACTION_RECORDED = "tontine_transaction_recorded"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'budget', 'expense', 'identity')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Identity the event happened for, when known"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one record-expense action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sign_in_failed(email, "InvalidCredentials", message)
        event = AuditEventBuilder.expense_recorded(expense_id, budget_id, user_id, amount)
    """

    @staticmethod
    def sign_up_succeeded(
        user_id: Optional[str],
        email: str,
        needs_verification: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_UP_SUCCEEDED,
            entity_type="identity",
            entity_id=user_id,
            user_id=user_id,
            description="Account created" + (", awaiting email verification" if needs_verification else ""),
            details={
                "email": mask_email(email),
                "needs_verification": needs_verification,
            },
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(
        event_type: AuditEventType,
        email: str,
        error_kind: str,
        error_message: Optional[str],
    ) -> AuditEvent:
        """Any failed auth attempt: sign-up, sign-in, code check or resend."""
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type="identity",
            description=f"{event_type.value.replace('_', ' ').capitalize()}: {error_kind}",
            details={"email": mask_email(email)},
            error_code=error_kind,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def sign_in_succeeded(user_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_IN_SUCCEEDED,
            entity_type="identity",
            entity_id=user_id,
            user_id=user_id,
            description="User signed in",
            details={"email": mask_email(email)},
            is_user_action=True,
        )

    @staticmethod
    def otp_verified(user_id: Optional[str], email: str, purpose: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_VERIFIED,
            entity_type="identity",
            entity_id=user_id,
            user_id=user_id,
            description=f"Verification code accepted ({purpose})",
            details={"email": mask_email(email), "purpose": purpose},
            is_user_action=True,
        )

    @staticmethod
    def otp_resent(email: str, purpose: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_RESENT,
            entity_type="identity",
            description=f"Verification code re-sent ({purpose})",
            details={"email": mask_email(email), "purpose": purpose},
            is_user_action=True,
        )

    @staticmethod
    def signed_out(error_message: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            severity=AuditSeverity.WARNING if error_message else AuditSeverity.INFO,
            entity_type="identity",
            description="User signed out",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def session_changed(event: str, user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CHANGED,
            entity_type="session",
            user_id=user_id,
            description=f"Auth state changed: {event}",
            details={"event": event, "authenticated": user_id is not None},
        )

    @staticmethod
    def profile_created(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CREATED,
            entity_type="profile",
            entity_id=user_id,
            user_id=user_id,
            description="Default profile provisioned",
        )

    @staticmethod
    def profile_updated(user_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="profile",
            entity_id=user_id,
            user_id=user_id,
            description="Profile updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def budget_created(budget_id: Optional[str], user_id: str, month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_type="budget",
            entity_id=budget_id,
            user_id=user_id,
            description=f"Budget created for {month}",
            details={"month": month},
        )

    @staticmethod
    def expense_recorded(
        expense_id: Optional[str],
        budget_id: Optional[str],
        user_id: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Expense recorded: {amount}",
            details={"budget_id": budget_id, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: Optional[str],
        budget_id: Optional[str],
        user_id: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Expense deleted: {amount}",
            details={"budget_id": budget_id, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budget_out_of_sync(
        budget_id: str,
        column: str,
        delta: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_OUT_OF_SYNC,
            severity=AuditSeverity.ERROR,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget total {column} could not be adjusted by {delta}",
            details={"column": column, "delta": delta},
            error_message=error_message,
        )

    @staticmethod
    def budget_reconciled(budget_id: str, previous: int, recomputed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_RECONCILED,
            severity=AuditSeverity.WARNING if previous != recomputed else AuditSeverity.INFO,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget spent total reconciled: {previous} -> {recomputed}",
            details={"previous": previous, "recomputed": recomputed},
        )

    @staticmethod
    def categories_seeded(user_id: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            user_id=user_id,
            description=f"{count} default categories created",
            details={"count": count},
        )

    @staticmethod
    def goal_contribution(goal_id: str, user_id: str, amount: int, new_total: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CONTRIBUTION,
            entity_type="goal",
            entity_id=goal_id,
            user_id=user_id,
            description=f"Goal contribution: {amount}",
            details={"amount": amount, "current_amount": new_total},
            is_user_action=True,
        )

    @staticmethod
    def tontine_transaction(
        tontine_id: str,
        user_id: str,
        transaction_type: str,
        amount: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TONTINE_TRANSACTION_RECORDED,
            entity_type="tontine",
            entity_id=tontine_id,
            user_id=user_id,
            description=f"Tontine {transaction_type}: {amount}",
            details={"type": transaction_type, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
