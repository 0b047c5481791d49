"""Authentication, session and profile provisioning."""

from finance_tracker.auth.errors import (
    MESSAGES,
    classify_provider_error,
    translate_auth_error,
    translate_storage_error,
    translate_validation_error,
)
from finance_tracker.auth.gateway import AuthGateway, normalize_email
from finance_tracker.auth.profiles import ProfileProvisioner
from finance_tracker.auth.session import SessionSnapshot, SessionStore

__all__ = [
    "MESSAGES",
    "AuthGateway",
    "ProfileProvisioner",
    "SessionSnapshot",
    "SessionStore",
    "classify_provider_error",
    "normalize_email",
    "translate_auth_error",
    "translate_storage_error",
    "translate_validation_error",
]
