"""
Two-Stage Form Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Format validation (email, code digits, whole amounts)

STAGE 2 - SEMANTIC VALIDATION:
- Future or very old expense dates
- Absurd amounts
- Deadlines already past

Stage 2 only runs once stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the services receive exactly what the user typed
(minus surrounding whitespace).
"""

import re
from datetime import date, timedelta
from typing import Optional, Union

from finance_tracker.config import AppSettings
from finance_tracker.models.validation import ValidationIssue, ValidationReport


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Amount = Union[int, str, None]


def parse_amount(value: Amount) -> Optional[int]:
    """
    Whole FCFA amount from user input, or None when it is not one.

    Accepts thousands separators written as spaces ("15 000").
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).replace(" ", "").replace("\xa0", "").replace("\u202f", "").strip()
    if not text or not re.fullmatch(r"-?\d+", text):
        return None
    return int(text)


def _report(form: str, schema_issues: list[ValidationIssue], semantic_issues: list[ValidationIssue]) -> ValidationReport:
    schema_valid = not any(i.severity == "error" for i in schema_issues)
    semantic_valid = schema_valid and not any(i.severity == "error" for i in semantic_issues)
    return ValidationReport(
        form=form,
        schema_valid=schema_valid,
        semantic_valid=semantic_valid,
        issues=schema_issues + semantic_issues,
    )


class FormValidator:
    """
    Validates the user-facing forms.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or AppSettings()

    # -------------------------------------------------------------------------
    # Auth forms
    # -------------------------------------------------------------------------

    def _check_email(self, email: Optional[str]) -> list[ValidationIssue]:
        if not email or not email.strip():
            return [ValidationIssue(
                field="email",
                issue_type="missing",
                message="Email is required",
                severity="error",
            )]
        if not EMAIL_PATTERN.match(email.strip()):
            return [ValidationIssue(
                field="email",
                issue_type="invalid_format",
                message=f"'{email.strip()}' is not a valid email address",
                severity="error",
                suggested_fix="Use the form name@example.com",
            )]
        return []

    def validate_otp(self, code: Optional[str]) -> ValidationReport:
        """A verification code is exactly `otp_length` digits."""
        length = self._settings.otp_length
        code = (code or "").strip()
        issues = []
        if not code:
            issues.append(ValidationIssue(
                field="code",
                issue_type="missing",
                message="Enter the code you received by email",
                severity="error",
            ))
        elif not (code.isdigit() and len(code) == length):
            issues.append(ValidationIssue(
                field="code",
                issue_type="invalid_format",
                message=f"The code must be exactly {length} digits",
                severity="error",
                suggested_fix="Copy the code from the latest email you received",
            ))
        return _report("otp", issues, [])

    def validate_sign_in(self, email: Optional[str], password: Optional[str]) -> ValidationReport:
        issues = self._check_email(email)
        if not password:
            issues.append(ValidationIssue(
                field="password",
                issue_type="missing",
                message="Password is required",
                severity="error",
            ))
        return _report("sign_in", issues, [])

    def validate_sign_up(
        self,
        email: Optional[str],
        password: Optional[str],
        display_name: Optional[str],
        confirm_password: Optional[str] = None,
    ) -> ValidationReport:
        issues = self._check_email(email)

        if not display_name or not display_name.strip():
            issues.append(ValidationIssue(
                field="display_name",
                issue_type="missing",
                message="Your name is required",
                severity="error",
            ))

        min_length = self._settings.min_password_length
        if not password or len(password) < min_length:
            issues.append(ValidationIssue(
                field="password",
                issue_type="too_short",
                message=f"Password must be at least {min_length} characters",
                severity="error",
            ))
        elif confirm_password is not None and confirm_password != password:
            issues.append(ValidationIssue(
                field="confirm_password",
                issue_type="mismatch",
                message="Passwords do not match",
                severity="error",
            ))

        return _report("sign_up", issues, [])

    # -------------------------------------------------------------------------
    # Ledger forms
    # -------------------------------------------------------------------------

    def _check_positive_amount(self, field: str, value: Amount, label: str) -> list[ValidationIssue]:
        amount = parse_amount(value)
        if value is None or (isinstance(value, str) and not value.strip()):
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{label} is required",
                severity="error",
            )]
        if amount is None:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{label} must be a whole number of FCFA",
                severity="error",
                suggested_fix="Enter digits only, e.g. 15000",
            )]
        if amount <= 0:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{label} must be greater than zero",
                severity="error",
            )]
        return []

    def validate_expense(
        self,
        amount: Amount,
        expense_date: Optional[date],
        today: Optional[date] = None,
    ) -> ValidationReport:
        """
        Checks:
        - amount present, whole and positive
        - date present
        - (stage 2) date not in the future, not older than two years
        - (stage 2) amount not absurdly high
        """
        today = today or date.today()
        schema = self._check_positive_amount("amount", amount, "Amount")
        if expense_date is None:
            schema.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Expense date is required",
                severity="error",
            ))

        semantic = []
        if not any(i.severity == "error" for i in schema):
            max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
            if expense_date > max_future:
                semantic.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Expense date ({expense_date}) is in the future",
                    severity="warning",
                    suggested_fix="It will count towards that month's budget",
                ))
            if expense_date < today - timedelta(days=365 * 2):
                semantic.append(ValidationIssue(
                    field="date",
                    issue_type="suspicious_date",
                    message=f"Expense date ({expense_date}) is more than two years ago",
                    severity="warning",
                ))
            value = parse_amount(amount)
            if value > self._settings.max_expense_amount:
                formatted = f"{value:,}".replace(",", " ")
                semantic.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message=f"Amount ({formatted} FCFA) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

        return _report("expense", schema, semantic)

    def validate_goal(
        self,
        title: Optional[str],
        target_amount: Amount,
        deadline: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ValidationReport:
        today = today or date.today()
        schema = []
        if not title or not title.strip():
            schema.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Goal title is required",
                severity="error",
            ))
        schema += self._check_positive_amount("target_amount", target_amount, "Target amount")

        semantic = []
        if deadline is not None and deadline < today:
            semantic.append(ValidationIssue(
                field="deadline",
                issue_type="past_date",
                message=f"Deadline ({deadline}) is already past",
                severity="warning",
            ))
        return _report("goal", schema, semantic)

    def validate_tontine(
        self,
        name: Optional[str],
        contribution_amount: Amount,
        participant_count: Amount,
    ) -> ValidationReport:
        schema = []
        if not name or not name.strip():
            schema.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Tontine name is required",
                severity="error",
            ))
        schema += self._check_positive_amount("contribution_amount", contribution_amount, "Contribution")
        participants = parse_amount(participant_count)
        if participants is None or participants < 2:
            schema.append(ValidationIssue(
                field="participant_count",
                issue_type="invalid_value",
                message="A tontine needs at least 2 participants",
                severity="error",
            ))
        return _report("tontine", schema, [])

    def get_user_friendly_summary(self, report: ValidationReport) -> str:
        """
        Plain summary of a report, for display next to the form.
        """
        if report.is_valid and not report.warnings:
            return "✅ All checks passed."

        lines = []
        if report.errors:
            lines.append("❌ Please fix the following:")
            for issue in report.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if report.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in report.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
