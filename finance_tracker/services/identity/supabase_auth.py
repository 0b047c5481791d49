"""
Supabase Auth Identity Provider

Adapts the supabase async auth client to IdentityProviderInterface.
Client objects (User, Session) are converted to our own Identity and
AuthSession models right here, and every client error becomes a
ProviderError carrying the provider's code and status.
"""

import asyncio
from typing import Any, Callable, Optional

import httpx
import structlog
from supabase import AuthError

from finance_tracker.models.auth import (
    AuthEventType,
    AuthPayload,
    AuthSession,
    Identity,
    OtpPurpose,
)
from finance_tracker.services.identity.interface import (
    AuthStateListener,
    IdentityProviderInterface,
    ProviderError,
)
from finance_tracker.services.supabase_client import SupabaseClient


logger = structlog.get_logger(__name__)


def _to_identity(user: Any) -> Optional[Identity]:
    if user is None:
        return None
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
        email_confirmed_at=getattr(user, "email_confirmed_at", None),
    )


def _to_session(session: Any) -> Optional[AuthSession]:
    if session is None or getattr(session, "user", None) is None:
        return None
    return AuthSession(
        access_token=session.access_token,
        refresh_token=getattr(session, "refresh_token", None),
        expires_at=getattr(session, "expires_at", None),
        identity=_to_identity(session.user),
    )


def _to_provider_error(error: AuthError) -> ProviderError:
    return ProviderError(
        message=getattr(error, "message", None) or str(error),
        status=getattr(error, "status", None),
        code=getattr(error, "code", None),
    )


class SupabaseIdentityProvider(IdentityProviderInterface):
    """
    Identity provider backed by Supabase Auth.
    """

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()
        self._pending: set[asyncio.Task] = set()

    async def _auth(self):
        return (await self._client.connect()).auth

    async def _call(self, operation: str, coro_factory):
        """Await a client call, turning client failures into ProviderError."""
        auth = await self._auth()
        try:
            return await coro_factory(auth)
        except AuthError as e:
            raise _to_provider_error(e) from e
        except httpx.TransportError as e:
            logger.warning("identity_provider_unreachable", operation=operation, error=str(e))
            raise ProviderError(f"Could not reach the identity provider: {e}") from e

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> AuthPayload:
        response = await self._call("sign_up", lambda auth: auth.sign_up({
            "email": email,
            "password": password,
            "options": {"data": metadata},
        }))
        user = response.user
        # With email confirmation enabled, signing up an existing address
        # returns an obfuscated user that has no identities.
        if user is not None and getattr(user, "identities", None) == []:
            raise ProviderError(
                "User already registered",
                status=422,
                code="user_already_exists",
            )
        return AuthPayload(identity=_to_identity(user), session=_to_session(response.session))

    async def sign_in_with_password(self, email: str, password: str) -> AuthPayload:
        response = await self._call("sign_in", lambda auth: auth.sign_in_with_password({
            "email": email,
            "password": password,
        }))
        return AuthPayload(identity=_to_identity(response.user), session=_to_session(response.session))

    async def verify_otp(self, email: str, token: str, purpose: OtpPurpose) -> AuthPayload:
        response = await self._call("verify_otp", lambda auth: auth.verify_otp({
            "email": email,
            "token": token,
            "type": purpose.value,
        }))
        return AuthPayload(identity=_to_identity(response.user), session=_to_session(response.session))

    async def resend(self, email: str, purpose: OtpPurpose) -> None:
        # Recovery codes are not resendable as such; a new reset email is requested.
        if purpose == OtpPurpose.RECOVERY:
            await self._call("resend", lambda auth: auth.reset_password_for_email(email))
            return
        await self._call("resend", lambda auth: auth.resend({
            "type": purpose.value,
            "email": email,
        }))

    async def sign_out(self) -> None:
        await self._call("sign_out", lambda auth: auth.sign_out())

    async def get_session(self) -> Optional[AuthSession]:
        session = await self._call("get_session", lambda auth: auth.get_session())
        return _to_session(session)

    async def get_user(self) -> Optional[Identity]:
        response = await self._call("get_user", lambda auth: auth.get_user())
        return _to_identity(response.user) if response is not None else None

    async def on_auth_state_change(self, listener: AuthStateListener) -> Callable[[], None]:
        def callback(event: str, session: Any) -> None:
            try:
                event_type = AuthEventType(event)
            except ValueError:
                logger.debug("auth_event_ignored", auth_event=event)
                return
            task = asyncio.ensure_future(listener(event_type, _to_session(session)))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        auth = await self._auth()
        subscription = auth.on_auth_state_change(callback)
        return subscription.unsubscribe
