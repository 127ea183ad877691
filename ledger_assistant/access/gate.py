"""
Access Gate

CRITICAL: This is the ONE place where role decides data access.
Handlers never branch on role themselves. They ask the gate for a
store, and the gate either:
- ALLOWS: a store bound to the caller's own token (row-level security applies)
- ESCALATES: a store bound to the privileged key, for this request only
- REFUSES: raises AccessRefusedError before any store is created

Role is looked up server-side on every request and never cached.
Any ambiguity in the lookup resolves to EMPLOYEE.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.records import Role
from ledger_assistant.services.storage import (
    IdentityInterface,
    RecordStoreInterface,
    StorageError,
    StoreFactory,
)


logger = structlog.get_logger(__name__)


REFUSAL_MESSAGE = (
    "Miau! As despesas ficam guardadinhas só pro admin. Você está como "
    "funcionário, entra como admin e eu te conto tudinho."
)

PRIVILEGE_MISSING_MESSAGE = (
    "Miau… eu posso ter permissão total, mas falta configurar a "
    "`SUPABASE_SERVICE_ROLE_KEY` no servidor. Aí minhas garrinhas viram "
    "modo admin de verdade."
)


class DataClass(str, Enum):
    """Kinds of data a handler can ask for."""
    SERVICE_ENTRIES = "service_entries"
    EXPENSE_LEDGER = "expense_ledger"
    RECORD_CREATION = "record_creation"


class Verdict(str, Enum):
    ALLOW = "allow"
    ESCALATE = "escalate"
    REFUSE = "refuse"


_CAPABILITIES: dict[tuple[Role, DataClass], Verdict] = {
    (Role.EMPLOYEE, DataClass.SERVICE_ENTRIES): Verdict.ALLOW,
    (Role.EMPLOYEE, DataClass.EXPENSE_LEDGER): Verdict.REFUSE,
    (Role.EMPLOYEE, DataClass.RECORD_CREATION): Verdict.ALLOW,
    (Role.ADMIN, DataClass.SERVICE_ENTRIES): Verdict.ALLOW,
    (Role.ADMIN, DataClass.EXPENSE_LEDGER): Verdict.ESCALATE,
    (Role.ADMIN, DataClass.RECORD_CREATION): Verdict.ALLOW,
}


def check_capability(role: Role, data_class: DataClass) -> Verdict:
    """Decision table lookup. Unknown pairs are refused."""
    return _CAPABILITIES.get((role, data_class), Verdict.REFUSE)


def resolve_role(raw_role: Optional[str]) -> Role:
    """Only an exact "admin" is admin."""
    return Role.ADMIN if raw_role == Role.ADMIN.value else Role.EMPLOYEE


class AccessRefusedError(Exception):
    """The caller's role may not touch this data class."""

    def __init__(self, data_class: DataClass, message: str = REFUSAL_MESSAGE):
        super().__init__(message)
        self.data_class = data_class
        self.message = message


@dataclass(frozen=True)
class Caller:
    """An authenticated caller for the duration of one request."""
    user_id: str
    role: Role
    token: str = field(repr=False)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class AccessGate:
    """
    Resolves the caller and hands out credential-scoped stores.

    Usage:
        caller = await gate.authenticate(token)
        async with gate.open_store(caller, DataClass.EXPENSE_LEDGER) as store:
            rows = await store.select(query)
    """

    def __init__(
        self,
        identity: IdentityInterface,
        store_factory: StoreFactory,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._identity = identity
        self._stores = store_factory
        self._audit = audit_logger or AuditLogger()

    async def authenticate(self, token: str) -> Caller:
        """
        Establish who is calling.

        Raises:
            AuthenticationError: If the token does not resolve to a user
        """
        user_id = await self._identity.get_user_id(token)

        try:
            raw_role = await self._identity.get_profile_role(token, user_id)
        except StorageError as e:
            logger.warning("role_lookup_failed", user_id=user_id, error=str(e))
            raw_role = None

        return Caller(user_id=user_id, role=resolve_role(raw_role), token=token)

    def check(self, caller: Caller, data_class: DataClass) -> Verdict:
        return check_capability(caller.role, data_class)

    @asynccontextmanager
    async def open_store(
        self,
        caller: Caller,
        data_class: DataClass,
        correlation_id: Optional[UUID] = None,
    ) -> AsyncIterator[RecordStoreInterface]:
        """
        Yield a store bound to the credential the verdict selects.

        Raises:
            AccessRefusedError: On REFUSE (no store is created)
            PrivilegeNotConfiguredError: On ESCALATE without a privileged key
        """
        verdict = self.check(caller, data_class)

        if verdict == Verdict.REFUSE:
            await self._audit.log(
                AuditEventBuilder.access_refused(
                    user_id=caller.user_id,
                    data_class=data_class.value,
                    correlation_id=correlation_id,
                )
            )
            raise AccessRefusedError(data_class)

        if verdict == Verdict.ESCALATE:
            store = self._stores.privileged_store()
            await self._audit.log(
                AuditEventBuilder.privilege_escalated(
                    user_id=caller.user_id,
                    data_class=data_class.value,
                    correlation_id=correlation_id,
                )
            )
        else:
            store = self._stores.user_store(caller.token)

        async with store:
            yield store
