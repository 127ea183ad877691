"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the assistant decoupled from the hosted store (Supabase today)
2. Use in-memory storage for testing
3. Bind every store handle to exactly one credential

The interface is intentionally simple - we're not building a full ORM.
A filtered select, an insert, and an identity lookup are all the
assistant needs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# Table names in the hosted store
EXPENSES_TABLE = "expenses"
SERVICE_ENTRIES_TABLE = "service_entries"
PAYABLES_TABLE = "accounts_payable"
PROFILES_TABLE = "profiles"


class FilterOp(str, Enum):
    """Predicates a store must support."""
    EQ = "eq"
    GTE = "gte"
    LT = "lt"
    IS_NULL = "is_null"
    CONTAINS = "contains"   # JSON containment on a metadata column
    IN = "in"


@dataclass(frozen=True)
class Filter:
    column: str
    op: FilterOp
    value: Any = None


@dataclass
class RecordQuery:
    """
    A filtered read against one table.

    Built fluently, e.g.:
        RecordQuery("expenses").eq("expense_date", day).order("created_at")
    """
    table: str
    columns: str = "*"
    filters: list[Filter] = field(default_factory=list)
    order_by: Optional[str] = None
    descending: bool = True
    limit: Optional[int] = None

    def eq(self, column: str, value: Any) -> "RecordQuery":
        self.filters.append(Filter(column, FilterOp.EQ, value))
        return self

    def gte(self, column: str, value: Any) -> "RecordQuery":
        self.filters.append(Filter(column, FilterOp.GTE, value))
        return self

    def lt(self, column: str, value: Any) -> "RecordQuery":
        self.filters.append(Filter(column, FilterOp.LT, value))
        return self

    def is_null(self, column: str) -> "RecordQuery":
        self.filters.append(Filter(column, FilterOp.IS_NULL))
        return self

    def contains(self, column: str, value: dict[str, Any]) -> "RecordQuery":
        self.filters.append(Filter(column, FilterOp.CONTAINS, value))
        return self

    def in_(self, column: str, values: list[Any]) -> "RecordQuery":
        self.filters.append(Filter(column, FilterOp.IN, list(values)))
        return self

    def order(self, column: str, descending: bool = True) -> "RecordQuery":
        self.order_by = column
        self.descending = descending
        return self

    def limit_to(self, limit: int) -> "RecordQuery":
        self.limit = limit
        return self


class RecordStoreInterface(ABC):
    """
    Abstract interface for record storage.

    One instance is bound to one credential (the caller's own token or
    the privileged key) and lives for a single `async with` block.
    """

    @abstractmethod
    async def select(self, query: RecordQuery) -> list[dict[str, Any]]:
        """
        Run a filtered read.

        Returns:
            Matching rows as plain dicts

        Raises:
            StorageError: If the store rejects the read
        """
        pass

    @abstractmethod
    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Insert rows and return them as stored (including generated ids).

        Raises:
            StorageError: If the store rejects the insert
        """
        pass

    async def aclose(self) -> None:
        """Release the underlying connection, if any."""
        return None

    async def __aenter__(self) -> "RecordStoreInterface":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class IdentityInterface(ABC):
    """Resolves a bearer token to a user and that user's role."""

    @abstractmethod
    async def get_user_id(self, token: str) -> str:
        """
        Raises:
            AuthenticationError: If the token is invalid or the lookup fails
        """
        pass

    @abstractmethod
    async def get_profile_role(self, token: str, user_id: str) -> Optional[str]:
        """
        Raw role string from the profile store, None when there is no profile.

        Raises:
            StorageError: If the lookup fails
        """
        pass


class StoreFactory(ABC):
    """Creates store handles bound to a specific credential."""

    @property
    @abstractmethod
    def has_privileged_credential(self) -> bool:
        pass

    @abstractmethod
    def user_store(self, token: str) -> RecordStoreInterface:
        """Store acting as the caller (row-level security applies)."""
        pass

    @abstractmethod
    def privileged_store(self) -> RecordStoreInterface:
        """
        Store acting with the elevated key.

        Raises:
            PrivilegeNotConfiguredError: If no elevated key is configured
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(StorageError):
    """The caller's identity could not be established."""
    pass


class PrivilegeNotConfiguredError(StorageError):
    """An elevated store credential was needed but none is configured."""
    pass
