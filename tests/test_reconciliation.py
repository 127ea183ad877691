"""Tests for payment reconciliation."""

import pytest
from decimal import Decimal

from ledger_assistant.models.records import Expense, Payable, ServiceEntry
from ledger_assistant.reconciliation import EPSILON, reconcile, settle


class TestReconcile:
    """Tests for the settlement rule."""

    def test_paid_flag_settles_everything(self):
        """Test that the paid flag ignores any partial amount."""
        s = reconcile(Decimal("100.00"), True, Decimal("10.00"))
        assert s.effective_paid == Decimal("100.00")
        assert s.remaining == Decimal("0.00")
        assert s.is_paid is True
        assert s.is_partial is False

    def test_partial_payment(self):
        """Test a partial payment leaves the rest open."""
        s = reconcile(Decimal("100.00"), False, Decimal("40.00"))
        assert s.remaining == Decimal("60.00")
        assert s.is_paid is False
        assert s.is_partial is True
        assert s.is_open is False

    def test_nothing_paid(self):
        """Test a record with no payment is open."""
        s = reconcile(Decimal("100.00"), False)
        assert s.remaining == Decimal("100.00")
        assert s.is_open is True

    def test_rounding_tolerance(self):
        """Test that two cents short still counts as paid."""
        s = reconcile(Decimal("100.00"), False, Decimal("99.98"))
        assert s.remaining == Decimal("0.02")
        assert s.is_paid is True
        assert s.is_partial is False

    def test_just_over_tolerance(self):
        """Test that three cents short is partial."""
        s = reconcile(Decimal("100.00"), False, Decimal("99.97"))
        assert s.is_paid is False
        assert s.is_partial is True

    def test_overpayment_is_clamped(self):
        """Test that paid_amount above the total is clamped."""
        s = reconcile(Decimal("100.00"), False, Decimal("150.00"))
        assert s.effective_paid == Decimal("100.00")
        assert s.remaining == Decimal("0.00")

    def test_negative_payment_is_clamped(self):
        """Test that a negative paid_amount counts as nothing paid."""
        s = reconcile(Decimal("100.00"), False, Decimal("-5.00"))
        assert s.effective_paid == Decimal("0.00")
        assert s.remaining == Decimal("100.00")

    def test_negative_total_uses_magnitude(self):
        """Test that signed amounts are reconciled on their magnitude."""
        s = reconcile(Decimal("-80.00"), False, Decimal("30.00"))
        assert s.total == Decimal("80.00")
        assert s.remaining == Decimal("50.00")

    @pytest.mark.parametrize("total,paid_flag,paid_amount", [
        ("0.00", False, None),
        ("10.00", False, "0.00"),
        ("10.00", False, "9.99"),
        ("10.00", True, None),
        ("1234.56", False, "1000.00"),
        ("1234.56", False, "99999.00"),
    ])
    def test_invariants(self, total, paid_flag, paid_amount):
        """Test the settlement invariants hold for any input."""
        s = reconcile(
            Decimal(total),
            paid_flag,
            Decimal(paid_amount) if paid_amount is not None else None,
        )
        assert Decimal("0") <= s.effective_paid <= s.total
        assert s.remaining == max(Decimal("0"), s.total - s.effective_paid)
        assert s.is_paid == (s.remaining <= EPSILON)
        assert not (s.is_paid and s.is_partial)


class TestSettle:
    """Tests for reconciling each record variant."""

    def test_service_entry_uses_metadata(self):
        """Test service entries read paid and paid_amount from metadata."""
        entry = ServiceEntry.model_validate({
            "id": "s1",
            "amount": 300,
            "metadata": {"paid": False, "paid_amount": "100"},
        })
        assert settle(entry).remaining == Decimal("200.00")

    def test_expense_column_or_metadata_flag(self):
        """Test expenses are paid by the column or the metadata flag."""
        by_column = Expense.model_validate({
            "id": "e1", "name": "Luz", "amount": 120,
            "expense_date": "2025-12-01", "paid": True,
        })
        by_metadata = Expense.model_validate({
            "id": "e2", "name": "Água", "amount": 80,
            "expense_date": "2025-12-01", "metadata": {"paid": True},
        })
        assert settle(by_column).is_paid is True
        assert settle(by_metadata).is_paid is True

    def test_payable_status(self):
        """Test a payable with status paid is settled."""
        payable = Payable.model_validate({
            "id": "p1", "vendor": "Gráfica", "amount": 500,
            "due_date": "2025-12-10", "status": "paid",
        })
        open_payable = Payable.model_validate({
            "id": "p2", "vendor": "Gráfica", "amount": 500,
            "due_date": "2025-12-10",
        })
        assert settle(payable).is_paid is True
        assert settle(open_payable).remaining == Decimal("500.00")

    def test_unknown_record_type(self):
        """Test that anything else is rejected."""
        with pytest.raises(TypeError):
            settle({"amount": 10})
