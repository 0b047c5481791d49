"""Services package."""

from finance_tracker.services.identity import (
    IdentityProviderInterface,
    ProviderError,
    SupabaseIdentityProvider,
)
from finance_tracker.services.storage import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    SupabaseTableStorage,
    TableStorageInterface,
)
from finance_tracker.services.supabase_client import SupabaseClient

__all__ = [
    # Supabase connection
    "SupabaseClient",
    # Identity services
    "IdentityProviderInterface",
    "ProviderError",
    "SupabaseIdentityProvider",
    # Storage services
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "SupabaseTableStorage",
    "TableStorageInterface",
]
