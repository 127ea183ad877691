"""Tests for the access gate (role resolution and credential scoping)."""

import pytest

from ledger_assistant.access import (
    AccessGate,
    AccessRefusedError,
    DataClass,
    REFUSAL_MESSAGE,
    Verdict,
    check_capability,
    resolve_role,
)
from ledger_assistant.models.audit import AuditEventType
from ledger_assistant.models.records import Role
from ledger_assistant.services.storage import (
    AuthenticationError,
    PrivilegeNotConfiguredError,
    RecordQuery,
    StorageError,
)

from tests.conftest import (
    ADMIN_ID,
    ADMIN_TOKEN,
    EMPLOYEE_TOKEN,
    FakeDatabase,
    FakeIdentity,
    FakeStoreFactory,
)


class TestCapabilities:
    """Tests for the role x data class decision table."""

    def test_employee_refused_expense_ledger(self):
        """Test employees never reach the expense ledger."""
        assert check_capability(Role.EMPLOYEE, DataClass.EXPENSE_LEDGER) == Verdict.REFUSE

    def test_admin_escalates_for_expense_ledger(self):
        """Test admins get the privileged credential for the ledger."""
        assert check_capability(Role.ADMIN, DataClass.EXPENSE_LEDGER) == Verdict.ESCALATE

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.EMPLOYEE])
    @pytest.mark.parametrize("data_class", [DataClass.SERVICE_ENTRIES, DataClass.RECORD_CREATION])
    def test_everyone_allowed_service_entries(self, role, data_class):
        """Test service entries and creation use the caller's own token."""
        assert check_capability(role, data_class) == Verdict.ALLOW

    @pytest.mark.parametrize("raw", [None, "", "Admin", "ADMIN", "superadmin", "employee"])
    def test_only_exact_admin_is_admin(self, raw):
        """Test any ambiguity resolves to employee."""
        assert resolve_role(raw) == Role.EMPLOYEE

    def test_admin_role(self):
        """Test the exact admin role."""
        assert resolve_role("admin") == Role.ADMIN


class TestAuthenticate:
    """Tests for caller resolution."""

    @pytest.mark.asyncio
    async def test_admin(self, gate):
        """Test an admin token resolves to an admin caller."""
        caller = await gate.authenticate(ADMIN_TOKEN)
        assert caller.user_id == ADMIN_ID
        assert caller.is_admin is True

    @pytest.mark.asyncio
    async def test_unknown_token(self, gate):
        """Test an unknown token fails authentication."""
        with pytest.raises(AuthenticationError):
            await gate.authenticate("forged")

    @pytest.mark.asyncio
    async def test_role_lookup_failure_is_employee(self, store_factory):
        """Test a failed role lookup degrades to employee."""
        identity = FakeIdentity({"t": ("u1", StorageError)})
        gate = AccessGate(identity, store_factory)
        caller = await gate.authenticate("t")
        assert caller.role == Role.EMPLOYEE

    @pytest.mark.asyncio
    async def test_missing_profile_is_employee(self, store_factory):
        """Test a user without a profile row is an employee."""
        identity = FakeIdentity({"t": ("u1", None)})
        gate = AccessGate(identity, store_factory)
        caller = await gate.authenticate("t")
        assert caller.role == Role.EMPLOYEE

    def test_token_not_in_repr(self, admin):
        """Test the bearer token never shows up in logs via repr."""
        assert ADMIN_TOKEN not in repr(admin)


class TestOpenStore:
    """Tests for credential-scoped store handles."""

    @pytest.mark.asyncio
    async def test_refusal_creates_no_store(self, gate, employee, store_factory, db, audit_logger):
        """Test a refused employee never gets a store and nothing is read."""
        with pytest.raises(AccessRefusedError) as exc_info:
            async with gate.open_store(employee, DataClass.EXPENSE_LEDGER):
                pytest.fail("store must not be yielded")

        assert exc_info.value.message == REFUSAL_MESSAGE
        assert store_factory.opened == []
        assert db.call_count == 0
        assert audit_logger.events[-1].event_type == AuditEventType.ACCESS_REFUSED

    @pytest.mark.asyncio
    async def test_escalation_uses_privileged_store(self, gate, admin, store_factory, audit_logger):
        """Test admins reading the ledger use the privileged credential."""
        async with gate.open_store(admin, DataClass.EXPENSE_LEDGER) as store:
            await store.select(RecordQuery("expenses"))

        assert store.credential == "privileged"
        assert store.closed is True
        assert audit_logger.events[-1].event_type == AuditEventType.PRIVILEGE_ESCALATED

    @pytest.mark.asyncio
    async def test_allow_uses_caller_token(self, gate, employee):
        """Test allowed requests act as the caller."""
        async with gate.open_store(employee, DataClass.SERVICE_ENTRIES) as store:
            pass
        assert store.credential == f"user:{EMPLOYEE_TOKEN}"
        assert store.closed is True

    @pytest.mark.asyncio
    async def test_admin_service_entries_use_own_token(self, gate, admin):
        """Test admins only escalate for the expense ledger."""
        async with gate.open_store(admin, DataClass.SERVICE_ENTRIES) as store:
            pass
        assert store.credential == f"user:{ADMIN_TOKEN}"

    @pytest.mark.asyncio
    async def test_escalation_without_key(self, admin):
        """Test escalation fails loudly when no privileged key is configured."""
        db = FakeDatabase()
        gate = AccessGate(FakeIdentity(), FakeStoreFactory(db, privileged=False))
        with pytest.raises(PrivilegeNotConfiguredError):
            async with gate.open_store(admin, DataClass.EXPENSE_LEDGER):
                pass
        assert db.call_count == 0

    @pytest.mark.asyncio
    async def test_admin_without_key_can_still_create(self, admin):
        """Test a missing privileged key only matters when escalation is needed."""
        db = FakeDatabase()
        gate = AccessGate(FakeIdentity(), FakeStoreFactory(db, privileged=False))
        async with gate.open_store(admin, DataClass.RECORD_CREATION) as store:
            await store.insert("service_entries", [{"title": "x"}])
        assert len(db.inserts) == 1
