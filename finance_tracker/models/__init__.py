"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.auth import (
    AuthEventType,
    AuthPayload,
    AuthSession,
    AuthState,
    Identity,
    OtpPurpose,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    mask_email,
)
from finance_tracker.models.finance import (
    DEFAULT_CATEGORIES,
    Budget,
    Category,
    Expense,
    ExpenseDraft,
    Goal,
    GoalStatus,
    Profile,
    ProfileUpdate,
    RowModel,
    Tontine,
    TontineFrequency,
    TontineStatus,
    TontineTransaction,
    TontineTransactionStatus,
    TontineTransactionType,
    month_key,
)
from finance_tracker.models.results import (
    AppError,
    AuthResult,
    ErrorKind,
    Result,
)
from finance_tracker.models.validation import ValidationIssue, ValidationReport

__all__ = [
    # Auth models
    "AuthEventType",
    "AuthPayload",
    "AuthSession",
    "AuthState",
    "Identity",
    "OtpPurpose",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    "mask_email",
    # Finance models
    "DEFAULT_CATEGORIES",
    "Budget",
    "Category",
    "Expense",
    "ExpenseDraft",
    "Goal",
    "GoalStatus",
    "Profile",
    "ProfileUpdate",
    "RowModel",
    "Tontine",
    "TontineFrequency",
    "TontineStatus",
    "TontineTransaction",
    "TontineTransactionStatus",
    "TontineTransactionType",
    "month_key",
    # Results
    "AppError",
    "AuthResult",
    "ErrorKind",
    "Result",
    # Validation
    "ValidationIssue",
    "ValidationReport",
]
