"""
Storage Services Package

Provides the abstract table interface and its Supabase implementation.
Designed to be swappable (tests use an in-memory implementation).
"""

from finance_tracker.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    Row,
    StorageError,
    TableStorageInterface,
)
from finance_tracker.services.storage.supabase_tables import SupabaseTableStorage

__all__ = [
    # Interfaces
    "Row",
    "TableStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Supabase implementation
    "SupabaseTableStorage",
]
