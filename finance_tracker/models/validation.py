"""
Form validation models.

Validation never corrects input silently: it reports issues, and only
errors block submission. Warnings are shown for the user to confirm.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Form field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="How the user can fix it"
    )


class ValidationReport(BaseModel):
    """
    Outcome of validating one form.

    Stage 1 checks shape (presence, format), stage 2 checks plausibility
    and only runs when stage 1 passed.
    """

    form: str = Field(..., description="Which form was validated")
    schema_valid: bool = Field(..., description="Did stage 1 pass?")
    semantic_valid: bool = Field(..., description="Did stage 2 pass?")
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def errors(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
