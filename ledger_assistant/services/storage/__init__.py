"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements Supabase as the backend, but designed to be swappable.
"""

from ledger_assistant.services.storage.interface import (
    EXPENSES_TABLE,
    PAYABLES_TABLE,
    PROFILES_TABLE,
    SERVICE_ENTRIES_TABLE,
    AuthenticationError,
    Filter,
    FilterOp,
    IdentityInterface,
    PrivilegeNotConfiguredError,
    RecordQuery,
    RecordStoreInterface,
    StorageError,
    StoreFactory,
)
from ledger_assistant.services.storage.supabase import (
    SupabaseIdentity,
    SupabaseRecordStore,
    SupabaseStoreFactory,
    build_params,
)

__all__ = [
    # Tables
    "EXPENSES_TABLE",
    "PAYABLES_TABLE",
    "PROFILES_TABLE",
    "SERVICE_ENTRIES_TABLE",
    # Interfaces
    "Filter",
    "FilterOp",
    "IdentityInterface",
    "RecordQuery",
    "RecordStoreInterface",
    "StoreFactory",
    # Exceptions
    "AuthenticationError",
    "PrivilegeNotConfiguredError",
    "StorageError",
    # Supabase implementation
    "SupabaseIdentity",
    "SupabaseRecordStore",
    "SupabaseStoreFactory",
    "build_params",
]
