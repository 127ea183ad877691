"""
Payment Reconciliation

CRITICAL: This is the ONLY place that decides whether a record is
paid, partially paid or open. Every aggregate and every rendered line
goes through reconcile(); nothing re-derives settlement on its own.

    total          = |amount|
    effective_paid = total if paid else clamp(paid_amount or 0, 0, total)
    remaining      = max(0, total - effective_paid)
    is_paid        = remaining <= 0.02
    is_partial     = not is_paid and effective_paid > 0
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from ledger_assistant.models.records import (
    TWO_PLACES,
    Expense,
    Payable,
    PayableStatus,
    ServiceEntry,
)


# Rounding tolerance for "fully paid"
EPSILON = Decimal("0.02")

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Settlement:
    """Settlement status of one record."""
    total: Decimal
    effective_paid: Decimal
    remaining: Decimal
    is_paid: bool
    is_partial: bool

    @property
    def is_open(self) -> bool:
        return not self.is_paid and not self.is_partial


def reconcile(
    total: Decimal,
    paid_flag: bool,
    paid_amount: Optional[Decimal] = None,
) -> Settlement:
    """
    Derive settlement from the stored amount, paid flag and partial payment.

    A negative `total` is treated as its magnitude.
    """
    total = abs(Decimal(total)).quantize(TWO_PLACES)

    if paid_flag:
        effective_paid = total
    else:
        paid = Decimal(paid_amount) if paid_amount is not None else ZERO
        effective_paid = min(max(paid, ZERO), total).quantize(TWO_PLACES)

    remaining = max(ZERO, total - effective_paid)
    is_paid = remaining <= EPSILON

    return Settlement(
        total=total,
        effective_paid=effective_paid,
        remaining=remaining,
        is_paid=is_paid,
        is_partial=not is_paid and effective_paid > 0,
    )


def settle(record: Union[Expense, ServiceEntry, Payable]) -> Settlement:
    """
    Reconcile any record variant.

    - Expense: column `paid`, partial amount in metadata
    - ServiceEntry: paid flag and partial amount both in metadata
    - Payable: status "paid" counts as the paid flag
    """
    if isinstance(record, ServiceEntry):
        return reconcile(
            record.magnitude,
            record.metadata.paid,
            record.metadata.paid_amount,
        )
    if isinstance(record, Expense):
        return reconcile(
            record.amount,
            record.paid or record.metadata.paid,
            record.metadata.paid_amount,
        )
    if isinstance(record, Payable):
        return reconcile(
            record.amount,
            record.status == PayableStatus.PAID,
            record.metadata.paid_amount,
        )
    raise TypeError(f"Cannot reconcile {type(record).__name__}")
