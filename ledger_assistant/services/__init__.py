"""Services package."""

from ledger_assistant.services.llm import (
    ChatCompletionClient,
    ChatCompletionInterface,
    GenerativeNotConfiguredError,
    GenerativeServiceError,
)
from ledger_assistant.services.storage import (
    AuthenticationError,
    IdentityInterface,
    PrivilegeNotConfiguredError,
    RecordQuery,
    RecordStoreInterface,
    StorageError,
    StoreFactory,
    SupabaseIdentity,
    SupabaseRecordStore,
    SupabaseStoreFactory,
)

__all__ = [
    # Generative provider
    "ChatCompletionClient",
    "ChatCompletionInterface",
    "GenerativeNotConfiguredError",
    "GenerativeServiceError",
    # Storage services
    "AuthenticationError",
    "IdentityInterface",
    "PrivilegeNotConfiguredError",
    "RecordQuery",
    "RecordStoreInterface",
    "StorageError",
    "StoreFactory",
    "SupabaseIdentity",
    "SupabaseRecordStore",
    "SupabaseStoreFactory",
]
