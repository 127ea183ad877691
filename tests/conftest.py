"""
Shared fixtures and in-memory fakes.

No network in tests: the record store, the identity provider and the
chat-completion client are all replaced by the fakes below.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-test-key")

from copy import deepcopy  # noqa: E402
from datetime import date, datetime  # noqa: E402
from typing import Any, Optional  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402

from ledger_assistant.access import AccessGate, Caller  # noqa: E402
from ledger_assistant.audit import AuditLogger  # noqa: E402
from ledger_assistant.models.records import Role  # noqa: E402
from ledger_assistant.services.llm import (  # noqa: E402
    ChatCompletionInterface,
    GenerativeServiceError,
)
from ledger_assistant.services.storage import (  # noqa: E402
    AuthenticationError,
    FilterOp,
    IdentityInterface,
    PrivilegeNotConfiguredError,
    RecordQuery,
    RecordStoreInterface,
    StorageError,
    StoreFactory,
)


TODAY = date(2025, 12, 23)

ADMIN_TOKEN = "admin-token"
EMPLOYEE_TOKEN = "employee-token"
ADMIN_ID = "11111111-1111-1111-1111-111111111111"
EMPLOYEE_ID = "22222222-2222-2222-2222-222222222222"


def _comparable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _matches(row: dict[str, Any], query: RecordQuery) -> bool:
    for f in query.filters:
        current = row.get(f.column)
        if f.op == FilterOp.IS_NULL:
            if current is not None:
                return False
        elif f.op == FilterOp.EQ:
            if _comparable(current) != _comparable(f.value):
                return False
        elif f.op == FilterOp.GTE:
            if current is None or _comparable(current) < _comparable(f.value):
                return False
        elif f.op == FilterOp.LT:
            if current is None or _comparable(current) >= _comparable(f.value):
                return False
        elif f.op == FilterOp.CONTAINS:
            bag = current if isinstance(current, dict) else {}
            if any(bag.get(k) != v for k, v in f.value.items()):
                return False
        elif f.op == FilterOp.IN:
            if current not in f.value:
                return False
    return True


class FakeDatabase:
    """Tables plus a log of every call made through any store."""

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None):
        self.tables: dict[str, list[dict]] = deepcopy(tables or {})
        self.selects: list[tuple[str, RecordQuery]] = []
        self.inserts: list[tuple[str, str, list[dict]]] = []
        self.fail_select: Optional[str] = None
        self.fail_insert: Optional[str] = None

    def add(self, table: str, *rows: dict) -> None:
        self.tables.setdefault(table, []).extend(deepcopy(list(rows)))

    @property
    def call_count(self) -> int:
        return len(self.selects) + len(self.inserts)


class FakeRecordStore(RecordStoreInterface):
    def __init__(self, db: FakeDatabase, credential: str):
        self.db = db
        self.credential = credential
        self.closed = False

    async def select(self, query: RecordQuery) -> list[dict[str, Any]]:
        self.db.selects.append((self.credential, query))
        if self.db.fail_select:
            raise StorageError(self.db.fail_select, status_code=400)

        rows = [deepcopy(r) for r in self.db.tables.get(query.table, []) if _matches(r, query)]
        if query.order_by:
            rows.sort(
                key=lambda r: _comparable(r.get(query.order_by)) or "",
                reverse=query.descending,
            )
        if query.limit is not None:
            rows = rows[: query.limit]
        return rows

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.db.inserts.append((self.credential, table, deepcopy(rows)))
        if self.db.fail_insert:
            raise StorageError(self.db.fail_insert, status_code=400)

        stored = []
        for row in rows:
            row = deepcopy(row)
            row.setdefault("id", str(uuid4()))
            self.db.tables.setdefault(table, []).append(row)
            stored.append(deepcopy(row))
        return stored

    async def aclose(self) -> None:
        self.closed = True


class FakeStoreFactory(StoreFactory):
    def __init__(self, db: FakeDatabase, privileged: bool = True):
        self.db = db
        self._privileged = privileged
        self.opened: list[FakeRecordStore] = []

    @property
    def has_privileged_credential(self) -> bool:
        return self._privileged

    def user_store(self, token: str) -> FakeRecordStore:
        store = FakeRecordStore(self.db, f"user:{token}")
        self.opened.append(store)
        return store

    def privileged_store(self) -> FakeRecordStore:
        if not self._privileged:
            raise PrivilegeNotConfiguredError("SUPABASE_SERVICE_ROLE_KEY is not configured")
        store = FakeRecordStore(self.db, "privileged")
        self.opened.append(store)
        return store


class FakeIdentity(IdentityInterface):
    """token -> (user_id, raw role). A raw role of StorageError fails the lookup."""

    def __init__(self, users: Optional[dict[str, tuple[str, Any]]] = None):
        self.users = users if users is not None else {
            ADMIN_TOKEN: (ADMIN_ID, "admin"),
            EMPLOYEE_TOKEN: (EMPLOYEE_ID, "employee"),
        }

    async def get_user_id(self, token: str) -> str:
        if token not in self.users:
            raise AuthenticationError("invalid JWT", status_code=401)
        return self.users[token][0]

    async def get_profile_role(self, token: str, user_id: str) -> Optional[str]:
        role = self.users[token][1]
        if role is StorageError:
            raise StorageError("profiles unavailable")
        return role


class FakeChatClient(ChatCompletionInterface):
    def __init__(self, reply: str = "Miau! Oi!", error: Optional[str] = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[list[dict[str, str]], bool]] = []

    async def complete(self, messages: list[dict[str, str]], json_mode: bool = False) -> str:
        self.calls.append((messages, json_mode))
        if self.error:
            raise GenerativeServiceError(self.error)
        return self.reply


# =============================================================================
# Row builders
# =============================================================================

def expense_row(name: str, amount: str, expense_date: str, **extra: Any) -> dict:
    row = {
        "id": str(uuid4()),
        "user_id": ADMIN_ID,
        "kind": "variable",
        "name": name,
        "amount": amount,
        "expense_date": expense_date,
        "paid": False,
        "metadata": {},
        "created_at": f"{expense_date}T12:00:00+00:00",
    }
    row.update(extra)
    return row


def entry_row(
    title: str,
    amount: Any,
    entry_date: Optional[str],
    service: str = "gestao_midias",
    metadata: Optional[dict] = None,
    created_at: Optional[str] = None,
) -> dict:
    return {
        "id": str(uuid4()),
        "user_id": EMPLOYEE_ID,
        "service": service,
        "title": title,
        "amount": amount,
        "entry_date": entry_date,
        "metadata": metadata if metadata is not None else {"entry_type": "receita"},
        "created_at": created_at or f"{entry_date or '2025-12-01'}T12:00:00+00:00",
    }


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def store_factory(db) -> FakeStoreFactory:
    return FakeStoreFactory(db)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(keep_events=True)


@pytest.fixture
def gate(store_factory, audit_logger) -> AccessGate:
    return AccessGate(FakeIdentity(), store_factory, audit_logger)


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id=ADMIN_ID, role=Role.ADMIN, token=ADMIN_TOKEN)


@pytest.fixture
def employee() -> Caller:
    return Caller(user_id=EMPLOYEE_ID, role=Role.EMPLOYEE, token=EMPLOYEE_TOKEN)
