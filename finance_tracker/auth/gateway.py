"""
Auth Gateway

Wraps sign-up, sign-in, one-time-code verification, resend and sign-out
against the identity provider.

CRITICAL BOUNDARY: Nothing raises out of this class. Every public method
returns an AuthResult; provider failures are translated into the
ErrorKind taxonomy on the way out.

State machine (per login attempt):

    ANONYMOUS --sign_up--> PENDING_VERIFICATION --verify_otp--> AUTHENTICATED
    ANONYMOUS --sign_in--> AUTHENTICATED
    ANONYMOUS --sign_in (unconfirmed)--> PENDING_VERIFICATION
    PENDING_VERIFICATION --resend_otp--> PENDING_VERIFICATION
    AUTHENTICATED --sign_out--> ANONYMOUS

Failed attempts never change the state.
"""

import math
import time
from typing import Callable, Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.auth.errors import retry_after_seconds, translate_auth_error
from finance_tracker.models.audit import AuditEventBuilder, AuditEventType
from finance_tracker.models.auth import AuthPayload, AuthState, OtpPurpose
from finance_tracker.models.results import AppError, AuthResult, ErrorKind
from finance_tracker.services.identity import IdentityProviderInterface, ProviderError


logger = structlog.get_logger(__name__)

RESENDABLE_PURPOSES = (OtpPurpose.SIGNUP, OtpPurpose.RECOVERY)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthGateway:
    """
    Sign-up / sign-in / verification front door.
    """

    def __init__(
        self,
        identity_provider: IdentityProviderInterface,
        audit_logger: Optional[AuditLogger] = None,
        resend_cooldown_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._provider = identity_provider
        self._audit_logger = audit_logger
        self._cooldown = resend_cooldown_seconds
        self._clock = clock
        self._state = AuthState.ANONYMOUS
        self._last_dispatch: dict[tuple[str, OtpPurpose], float] = {}

    @property
    def state(self) -> AuthState:
        return self._state

    async def _fail(
        self,
        event_type: AuditEventType,
        email: str,
        error: Exception,
    ) -> AuthResult:
        app_error = translate_auth_error(error)
        if app_error.kind == ErrorKind.TRANSIENT_FAILURE:
            logger.warning("auth_provider_error", operation=event_type.value, error=app_error.raw_message)
        if self._audit_logger:
            await self._audit_logger.log_auth_failure(
                event_type=event_type,
                email=email,
                error_kind=app_error.kind.value,
                error_message=app_error.raw_message,
            )
        retry_after = None
        if isinstance(error, ProviderError) and app_error.kind == ErrorKind.RATE_LIMITED:
            retry_after = retry_after_seconds(error)
        return AuthResult.failure(
            app_error,
            needs_verification=app_error.kind == ErrorKind.NEEDS_VERIFICATION,
            retry_after_seconds=retry_after,
        )

    async def sign_up(self, email: str, password: str, display_name: str) -> AuthResult:
        """
        Create an account.

        Email is lowercased and trimmed, the display name trimmed. When the
        provider returns no session, the account awaits email confirmation
        and the result has needs_verification set.
        """
        email = normalize_email(email)
        display_name = display_name.strip()

        try:
            payload = await self._provider.sign_up(email, password, {"nom": display_name})
        except Exception as e:
            return await self._fail(AuditEventType.SIGN_UP_FAILED, email, e)

        needs_verification = payload.session is None
        if needs_verification:
            self._state = AuthState.PENDING_VERIFICATION
            # The sign-up itself dispatched the first code.
            self._last_dispatch[(email, OtpPurpose.SIGNUP)] = self._clock()
        else:
            self._state = AuthState.AUTHENTICATED

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.sign_up_succeeded(
                user_id=payload.identity.id if payload.identity else None,
                email=email,
                needs_verification=needs_verification,
            ))
        return AuthResult.success(payload, needs_verification=needs_verification)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        """
        Start a session with email and password.

        An unconfirmed account fails with NeedsVerification and
        needs_verification set: the caller routes to code entry.
        """
        email = normalize_email(email)

        try:
            payload = await self._provider.sign_in_with_password(email, password)
        except Exception as e:
            result = await self._fail(AuditEventType.SIGN_IN_FAILED, email, e)
            if result.needs_verification:
                self._state = AuthState.PENDING_VERIFICATION
            return result

        if payload.session is None:
            return await self._fail(
                AuditEventType.SIGN_IN_FAILED,
                email,
                ProviderError("Sign-in returned no session"),
            )

        self._state = AuthState.AUTHENTICATED
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.sign_in_succeeded(
                user_id=payload.session.identity.id,
                email=email,
            ))
        return AuthResult.success(payload)

    async def verify_otp(self, email: str, code: str, purpose: OtpPurpose) -> AuthResult:
        """
        Check a one-time code.

        The code is trimmed and forwarded as is; callers validate the
        6-digit format first, and the provider rejects anything else.
        On success the provider emits a SIGNED_IN change that the
        session store picks up.
        """
        email = normalize_email(email)
        code = code.strip()

        try:
            payload = await self._provider.verify_otp(email, code, purpose)
        except Exception as e:
            return await self._fail(AuditEventType.OTP_FAILED, email, e)

        if payload.session is not None:
            self._state = AuthState.AUTHENTICATED
        self._last_dispatch.pop((email, purpose), None)

        if self._audit_logger:
            identity = payload.identity or (payload.session.identity if payload.session else None)
            await self._audit_logger.log(AuditEventBuilder.otp_verified(
                user_id=identity.id if identity else None,
                email=email,
                purpose=purpose.value,
            ))
        return AuthResult.success(payload)

    def resend_available_in(self, email: str, purpose: OtpPurpose) -> int:
        """Seconds before a code may be re-sent for this email (0 = now)."""
        last = self._last_dispatch.get((normalize_email(email), purpose))
        if last is None:
            return 0
        remaining = self._cooldown - (self._clock() - last)
        return max(0, math.ceil(remaining))

    async def resend_otp(self, email: str, purpose: OtpPurpose) -> AuthResult:
        """
        Dispatch a fresh code by email.

        Resends inside the cooldown window are refused locally with
        RateLimited, without calling the provider.
        """
        email = normalize_email(email)

        if purpose not in RESENDABLE_PURPOSES:
            return AuthResult.failure(AppError.transient(
                f"resend not supported for {purpose.value}",
                message="A new code can only be sent for sign-up or password recovery.",
            ))

        wait = self.resend_available_in(email, purpose)
        if wait > 0:
            if self._audit_logger:
                await self._audit_logger.log_auth_failure(
                    event_type=AuditEventType.OTP_RESEND_BLOCKED,
                    email=email,
                    error_kind=ErrorKind.RATE_LIMITED.value,
                    error_message=f"cooldown: {wait}s left",
                )
            return AuthResult.failure(
                AppError(
                    kind=ErrorKind.RATE_LIMITED,
                    message=f"Please wait {wait} seconds before requesting a new code.",
                ),
                retry_after_seconds=wait,
            )

        try:
            await self._provider.resend(email, purpose)
        except Exception as e:
            result = await self._fail(AuditEventType.OTP_RESEND_BLOCKED, email, e)
            if result.error.kind == ErrorKind.RATE_LIMITED and result.retry_after_seconds:
                # Align the local window with what the provider asked for.
                self._last_dispatch[(email, purpose)] = (
                    self._clock() - self._cooldown + result.retry_after_seconds
                )
            return result

        self._last_dispatch[(email, purpose)] = self._clock()
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.otp_resent(email, purpose.value))
        return AuthResult.success(AuthPayload())

    async def sign_out(self) -> AuthResult:
        """
        End the remote session.

        The local state always returns to ANONYMOUS; a provider failure
        is reported but does not keep the user signed in locally.
        """
        self._state = AuthState.ANONYMOUS
        try:
            await self._provider.sign_out()
        except Exception as e:
            error = translate_auth_error(e)
            logger.warning("sign_out_failed", error=error.raw_message)
            if self._audit_logger:
                await self._audit_logger.log(AuditEventBuilder.signed_out(error.raw_message))
            return AuthResult.failure(error)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.signed_out())
        return AuthResult.success(AuthPayload())
