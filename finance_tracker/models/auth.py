"""
Authentication Models

Provider-independent views of identities and sessions. The identity
provider adapter converts whatever its client library returns into
these, so nothing above the adapter depends on the client library.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class OtpPurpose(str, Enum):
    """What a one-time code confirms."""
    SIGNUP = "signup"
    RECOVERY = "recovery"
    EMAIL_CHANGE = "email_change"


class AuthEventType(str, Enum):
    """Auth state notifications emitted by the identity provider."""
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


class AuthState(str, Enum):
    """
    Per-attempt login state.

    There is no locked-out state: failures are reported but never
    move the state machine.
    """
    ANONYMOUS = "anonymous"
    PENDING_VERIFICATION = "pending_verification"
    AUTHENTICATED = "authenticated"


class Identity(BaseModel):
    """An authenticated user as issued by the identity provider."""

    id: str = Field(..., min_length=1)
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    email_confirmed_at: Optional[datetime] = None

    @property
    def display_name(self) -> Optional[str]:
        """Name stored in the metadata at sign-up time, if any."""
        name = self.user_metadata.get("nom")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return None


class AuthSession(BaseModel):
    """A live session: tokens plus the identity they belong to."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    identity: Identity


class AuthPayload(BaseModel):
    """What an auth call hands back: an identity, a session, or both."""

    identity: Optional[Identity] = None
    session: Optional[AuthSession] = None
