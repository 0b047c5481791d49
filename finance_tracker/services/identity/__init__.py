"""Identity provider services."""

from finance_tracker.services.identity.interface import (
    AuthStateListener,
    IdentityProviderInterface,
    ProviderError,
)
from finance_tracker.services.identity.supabase_auth import SupabaseIdentityProvider

__all__ = [
    "AuthStateListener",
    "IdentityProviderInterface",
    "ProviderError",
    "SupabaseIdentityProvider",
]
