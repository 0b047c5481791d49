"""
Session Store

Single source of truth for "who is signed in" and their profile.

Observers subscribe and receive a SessionSnapshot after every change.
Each identity change bumps a generation counter; a profile load that
completes after a newer change is dropped, so the last event wins and
a profile is never shown for the wrong identity.
"""

from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel

from finance_tracker.audit import AuditLogger
from finance_tracker.auth.errors import translate_auth_error
from finance_tracker.auth.profiles import ProfileProvisioner
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.auth import AuthEventType, AuthSession, Identity
from finance_tracker.models.finance import Profile
from finance_tracker.models.results import AppError, Result
from finance_tracker.services.identity import IdentityProviderInterface, ProviderError


logger = structlog.get_logger(__name__)


class SessionSnapshot(BaseModel):
    """What observers see after each change."""

    identity: Optional[Identity] = None
    session: Optional[AuthSession] = None
    profile: Optional[Profile] = None
    loading: bool = True
    error: Optional[AppError] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


SessionListener = Callable[[SessionSnapshot], None]


class SessionStore:
    """
    Observable current-session holder.

    Usage:
        store = SessionStore(provider, provisioner)
        await store.restore()
        await store.attach()
        unsubscribe = store.subscribe(lambda snapshot: ...)
    """

    def __init__(
        self,
        identity_provider: IdentityProviderInterface,
        profile_provisioner: ProfileProvisioner,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._provider = identity_provider
        self._profiles = profile_provisioner
        self._audit_logger = audit_logger

        self._session: Optional[AuthSession] = None
        self._identity: Optional[Identity] = None
        self._profile: Optional[Profile] = None
        self._loading = True
        self._error: Optional[AppError] = None

        self._generation = 0
        self._listeners: list[SessionListener] = []
        self._detach: Optional[Callable[[], None]] = None

    # -------------------------------------------------------------------------
    # Read-only view
    # -------------------------------------------------------------------------

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[AppError]:
        return self._error

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            identity=self._identity,
            session=self._session,
            profile=self._profile,
            loading=self._loading,
            error=self._error,
        )

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns the matching unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("session_listener_failed", error=str(e))

    # -------------------------------------------------------------------------
    # Provider wiring
    # -------------------------------------------------------------------------

    async def attach(self) -> None:
        """Start following the provider's auth state changes."""
        if self._detach is None:
            self._detach = await self._provider.on_auth_state_change(self.on_change)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    async def restore(self) -> None:
        """Load the persisted session, if any, and its profile."""
        try:
            session = await self._provider.get_session()
        except ProviderError as e:
            logger.warning("session_restore_failed", error=e.message)
            if self._audit_logger:
                await self._audit_logger.log_external_service_error("identity_provider", e.message)
            self._generation += 1
            self._session = None
            self._identity = None
            self._profile = None
            self._loading = False
            self._error = translate_auth_error(e)
            self._notify()
            return
        await self._apply(session)

    async def on_change(self, event: AuthEventType, session: Optional[AuthSession]) -> None:
        """Handle one auth state notification."""
        logger.info("auth_state_changed", auth_event=event.value)
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.session_changed(
                event.value,
                session.identity.id if session else None,
            ))
        await self._apply(session)

    async def _apply(self, session: Optional[AuthSession]) -> None:
        self._generation += 1
        generation = self._generation

        previous_id = self._identity.id if self._identity else None
        self._session = session
        self._identity = session.identity if session else None
        self._error = None

        if self._identity is None:
            self._profile = None
            self._loading = False
            self._notify()
            return

        if self._identity.id != previous_id:
            self._profile = None
        self._loading = True
        self._notify()

        result = await self._profiles.ensure_profile(self._identity.id)

        if generation != self._generation:
            logger.debug("stale_profile_load_dropped", generation=generation)
            return

        self._profile = result.data
        self._error = result.error
        self._loading = False
        self._notify()

    # -------------------------------------------------------------------------
    # Profile edits
    # -------------------------------------------------------------------------

    async def update_profile(self, updates: dict[str, Any]) -> Result[Profile]:
        """Persist a profile edit and merge it into the cached profile."""
        if self._identity is None:
            return Result.failure(AppError.not_found("Profile"))

        generation = self._generation
        result = await self._profiles.update_profile(self._identity.id, updates)
        if result.ok and generation == self._generation:
            self._profile = result.data
            self._error = None
            self._notify()
        return result
