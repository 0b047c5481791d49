"""
Abstract Identity Provider Interface

DESIGN DECISION: The auth gateway and session store talk to the
identity provider only through this interface. It mirrors the provider
calls the application actually needs, nothing more.

Implementations raise ProviderError on any provider-side failure. The
auth gateway is the only place that interprets those errors.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from finance_tracker.models.auth import (
    AuthEventType,
    AuthPayload,
    AuthSession,
    Identity,
    OtpPurpose,
)


AuthStateListener = Callable[[AuthEventType, Optional[AuthSession]], Awaitable[None]]


class ProviderError(Exception):
    """
    Failure reported by the identity provider.

    Carries the provider's own machine code and HTTP status when it
    gives them; the message is the provider's raw text.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.status = status
        self.code = code
        super().__init__(message)


class IdentityProviderInterface(ABC):
    """
    Abstract interface for a hosted identity provider.
    """

    @abstractmethod
    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> AuthPayload:
        """
        Create an account.

        Returns the new identity, plus a session when the provider does
        not require email confirmation.
        """
        pass

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthPayload:
        """Start a session from email and password."""
        pass

    @abstractmethod
    async def verify_otp(self, email: str, token: str, purpose: OtpPurpose) -> AuthPayload:
        """Check a one-time code; a session starts on success."""
        pass

    @abstractmethod
    async def resend(self, email: str, purpose: OtpPurpose) -> None:
        """Dispatch a fresh one-time code by email."""
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""
        pass

    @abstractmethod
    async def get_session(self) -> Optional[AuthSession]:
        """The persisted session, if any."""
        pass

    @abstractmethod
    async def get_user(self) -> Optional[Identity]:
        """The identity behind the current session, if any."""
        pass

    @abstractmethod
    async def on_auth_state_change(self, listener: AuthStateListener) -> Callable[[], None]:
        """
        Register a listener for auth state changes.

        Returns:
            A callable that unregisters the listener
        """
        pass
