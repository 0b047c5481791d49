"""
Profile Provisioner

Guarantees that every authenticated identity has exactly one profile row.
The row is looked up by the identity id and created with defaults the
first time it is missing. A duplicate-key error on insert means another
caller created it first, so the row is read back instead.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.auth.errors import translate_storage_error, translate_validation_error
from finance_tracker.config import AppSettings
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import Profile, ProfileUpdate
from finance_tracker.models.results import AppError, Result
from finance_tracker.services.identity import IdentityProviderInterface, ProviderError
from finance_tracker.services.storage import (
    DuplicateError,
    NotFoundError,
    StorageError,
    TableStorageInterface,
)


logger = structlog.get_logger(__name__)

PROFILES_TABLE = "profiles"

# Attributes a user may change from the profile screen.
EDITABLE_FIELDS = ("display_name", "country", "currency")


class ProfileProvisioner:
    """
    Find-or-create for the profile of the signed-in identity.
    """

    def __init__(
        self,
        storage: TableStorageInterface,
        identity_provider: IdentityProviderInterface,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._provider = identity_provider
        self._settings = settings or AppSettings()
        self._audit_logger = audit_logger

    async def _read(self, identity_id: str) -> Profile:
        row = await self._storage.select_one(PROFILES_TABLE, {"id": identity_id})
        return Profile.from_row(row)

    def _unreadable(self, identity_id: str, error: ValidationError) -> Result[Profile]:
        logger.error("profile_row_invalid", user_id=identity_id, error=str(error))
        return Result.failure(AppError.transient(
            str(error),
            message="Your stored profile is incomplete. Fill it in again from the profile page.",
        ))

    async def ensure_profile(self, identity_id: str) -> Result[Profile]:
        """
        Return the identity's profile, creating it on first sight.

        Only a "no row" answer triggers creation; any other lookup
        failure is returned as is, so a flaky read never creates a
        second profile. A stored row that no longer parses is reported,
        never overwritten.
        """
        try:
            return Result.success(await self._read(identity_id))
        except NotFoundError:
            pass
        except StorageError as e:
            logger.warning("profile_lookup_failed", user_id=identity_id, error=str(e))
            return Result.failure(translate_storage_error(e, "Profile"))
        except ValidationError as e:
            return self._unreadable(identity_id, e)

        return await self._create_default(identity_id)

    async def _default_profile(self, identity_id: str) -> Profile:
        identity = None
        try:
            identity = await self._provider.get_user()
        except ProviderError as e:
            logger.warning("profile_identity_lookup_failed", user_id=identity_id, error=e.message)

        # The current user may already be someone else by the time we ask.
        if identity is not None and identity.id != identity_id:
            identity = None

        return Profile(
            id=identity_id,
            display_name=(identity.display_name if identity else None)
            or self._settings.default_display_name,
            email=identity.email if identity else None,
            country=self._settings.default_country,
            currency=self._settings.default_currency,
        )

    async def _create_default(self, identity_id: str) -> Result[Profile]:
        profile = await self._default_profile(identity_id)

        try:
            rows = await self._storage.insert(PROFILES_TABLE, [profile.to_row()])
        except DuplicateError:
            logger.info("profile_created_concurrently", user_id=identity_id)
            try:
                return Result.success(await self._read(identity_id))
            except StorageError as e:
                return Result.failure(translate_storage_error(e, "Profile"))
            except ValidationError as e:
                return self._unreadable(identity_id, e)
        except StorageError as e:
            logger.warning("profile_insert_failed", user_id=identity_id, error=str(e))
            return Result.failure(translate_storage_error(e, "Profile"))

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.profile_created(identity_id))
        return Result.success(Profile.from_row(rows[0]) if rows else profile)

    async def update_profile(self, identity_id: str, updates: dict[str, Any]) -> Result[Profile]:
        """
        Write a partial update to the profile row.

        Keys are attribute names (display_name, country, currency).
        Blank values are rejected before anything is written.
        Returns the updated profile.
        """
        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            return Result.failure(AppError.invalid(
                f"Cannot update profile fields: {', '.join(sorted(unknown))}"
            ))

        try:
            patch = ProfileUpdate.model_validate(updates)
        except ValidationError as e:
            return Result.failure(translate_validation_error(e, "Profile", ProfileUpdate))

        try:
            rows = await self._storage.update(PROFILES_TABLE, patch.columns(), {"id": identity_id})
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Profile"))
        if not rows:
            return Result.failure(AppError.not_found("Profile"))

        try:
            profile = Profile.from_row(rows[0])
        except ValidationError as e:
            return self._unreadable(identity_id, e)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.profile_updated(identity_id, sorted(updates)))
        return Result.success(profile)
