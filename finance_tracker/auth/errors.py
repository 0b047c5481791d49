"""
Provider and storage error translation.

Known failure patterns are mapped onto ErrorKind with a message the
user can act on. The provider's machine code is checked first, then its
status, then its message text (older provider versions only send text).
Anything unrecognized becomes TransientFailure carrying the raw message.
"""

import re
from typing import Optional

from pydantic import BaseModel, ValidationError

from finance_tracker.models.results import AppError, ErrorKind
from finance_tracker.services.identity import ProviderError
from finance_tracker.services.storage import NotFoundError


MESSAGES = {
    ErrorKind.DUPLICATE_ACCOUNT: (
        "An account already exists for this email. Sign in instead, "
        "or use password recovery if you forgot your password."
    ),
    ErrorKind.INVALID_CREDENTIALS: "Incorrect email or password.",
    ErrorKind.NEEDS_VERIFICATION: (
        "Your email address is not confirmed yet. Enter the code we sent you."
    ),
    ErrorKind.CODE_EXPIRED: "This code has expired. Request a new one.",
    ErrorKind.CODE_INVALID: "This code is not valid. Check it and try again.",
    ErrorKind.RATE_LIMITED: "Too many attempts. Please wait before trying again.",
}

_CODE_KINDS = {
    "user_already_exists": ErrorKind.DUPLICATE_ACCOUNT,
    "email_exists": ErrorKind.DUPLICATE_ACCOUNT,
    "invalid_credentials": ErrorKind.INVALID_CREDENTIALS,
    "email_not_confirmed": ErrorKind.NEEDS_VERIFICATION,
    "otp_expired": ErrorKind.CODE_EXPIRED,
    "over_email_send_rate_limit": ErrorKind.RATE_LIMITED,
    "over_request_rate_limit": ErrorKind.RATE_LIMITED,
    "over_sms_send_rate_limit": ErrorKind.RATE_LIMITED,
}

# Checked in order; the first match wins.
_MESSAGE_PATTERNS = [
    (re.compile(r"already (been )?registered|already exists", re.I), ErrorKind.DUPLICATE_ACCOUNT),
    (re.compile(r"email not confirmed", re.I), ErrorKind.NEEDS_VERIFICATION),
    (re.compile(r"invalid login credentials", re.I), ErrorKind.INVALID_CREDENTIALS),
    (re.compile(r"expired", re.I), ErrorKind.CODE_EXPIRED),
    (re.compile(r"(invalid|incorrect|wrong).*(otp|token|code)|(otp|token|code).*invalid", re.I), ErrorKind.CODE_INVALID),
    (re.compile(r"rate limit|too many requests|for security purposes", re.I), ErrorKind.RATE_LIMITED),
]

_RETRY_AFTER = re.compile(r"after (\d+) seconds?", re.I)


def classify_provider_error(error: ProviderError) -> Optional[ErrorKind]:
    """Kind for a provider error, or None when the pattern is unknown."""
    if error.code and error.code in _CODE_KINDS:
        return _CODE_KINDS[error.code]
    if error.status == 429:
        return ErrorKind.RATE_LIMITED
    for pattern, kind in _MESSAGE_PATTERNS:
        if pattern.search(error.message or ""):
            return kind
    return None


def retry_after_seconds(error: ProviderError) -> Optional[int]:
    """Wait the provider asked for, when its message states one."""
    match = _RETRY_AFTER.search(error.message or "")
    return int(match.group(1)) if match else None


def translate_auth_error(error: Exception) -> AppError:
    """Turn any exception raised under the auth gateway into an AppError."""
    if isinstance(error, ProviderError):
        kind = classify_provider_error(error)
        if kind is not None:
            return AppError(kind=kind, message=MESSAGES[kind], raw_message=error.message)
        return AppError.transient(error.message)
    return AppError.transient(str(error))


def translate_storage_error(error: Exception, what: str = "Record") -> AppError:
    """Turn a storage exception into an AppError."""
    if isinstance(error, NotFoundError):
        return AppError(kind=ErrorKind.NOT_FOUND, message=f"{what} not found", raw_message=str(error))
    return AppError.transient(str(error))


def translate_validation_error(
    error: ValidationError,
    what: str = "Record",
    model: Optional[type[BaseModel]] = None,
) -> AppError:
    """
    Turn a rejected model value into an InvalidInput error naming the fields.

    Errors may be located by column alias; `model` maps those back to
    attribute names for the message.
    """
    names = {f.alias: name for name, f in model.model_fields.items() if f.alias} if model else {}
    fields = sorted({
        names.get(str(detail["loc"][0]), str(detail["loc"][0])).replace("_", " ")
        for detail in error.errors() if detail.get("loc")
    })
    message = f"Invalid {what.lower()}"
    if fields:
        message += f": check {', '.join(fields)}"
    return AppError.invalid(message + ".", raw_message=str(error))
