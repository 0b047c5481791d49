"""
Result Types and Error Taxonomy

DESIGN DECISION: Public service operations never raise. They return a
Result carrying either data or an AppError, so callers must look at the
outcome explicitly. Exceptions stay inside the adapters and are
translated at the service boundary.
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.auth import AuthPayload


DataT = TypeVar("DataT")


class ErrorKind(str, Enum):
    """Every failure a caller may see."""
    DUPLICATE_ACCOUNT = "DuplicateAccount"
    INVALID_CREDENTIALS = "InvalidCredentials"
    NEEDS_VERIFICATION = "NeedsVerification"
    CODE_EXPIRED = "CodeExpired"
    CODE_INVALID = "CodeInvalid"
    RATE_LIMITED = "RateLimited"
    NOT_FOUND = "NotFound"
    INVALID_INPUT = "InvalidInput"
    TRANSIENT_FAILURE = "TransientFailure"


class AppError(BaseModel):
    """A translated, user-readable failure."""

    kind: ErrorKind
    message: str = Field(..., description="Message safe to show to the user")
    raw_message: Optional[str] = Field(
        default=None,
        description="Original provider/storage message, for logs"
    )

    @classmethod
    def not_found(cls, what: str) -> "AppError":
        return cls(kind=ErrorKind.NOT_FOUND, message=f"{what} not found")

    @classmethod
    def invalid(cls, message: str, raw_message: Optional[str] = None) -> "AppError":
        """A value the caller passed was rejected before anything was written."""
        return cls(kind=ErrorKind.INVALID_INPUT, message=message, raw_message=raw_message)

    @classmethod
    def transient(cls, raw_message: str, message: Optional[str] = None) -> "AppError":
        """Unrecognized failure: the raw message is passed through, never dropped."""
        return cls(
            kind=ErrorKind.TRANSIENT_FAILURE,
            message=message or raw_message or "Something went wrong. Please try again.",
            raw_message=raw_message,
        )


class Result(BaseModel, Generic[DataT]):
    """Outcome of a service operation: data, error, or (rarely) both."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Optional[DataT] = None
    error: Optional[AppError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data=None, **extra):
        return cls(data=data, **extra)

    @classmethod
    def failure(cls, error: AppError, data=None, **extra):
        return cls(data=data, error=error, **extra)


class AuthResult(Result[AuthPayload]):
    """
    Result of an auth gateway call.

    needs_verification tells the caller to route to the code entry
    screen; it is set both on a sign-up awaiting confirmation and on a
    sign-in refused because the email is unconfirmed.
    """

    needs_verification: bool = False
    retry_after_seconds: Optional[int] = None
