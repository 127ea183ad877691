"""
Import draft models.

These are the shapes the generative model must produce for the
spreadsheet normalizer. They are strict on purpose: unknown fields,
missing required fields, malformed dates and non-numeric amounts are
rejected rather than coerced. The model's output is only trusted after
passing through one of these.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ledger_assistant.models.records import ExpenseKind, ServiceKey


_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _require_iso_date(v: Any) -> Any:
    if not isinstance(v, str) or not _ISO_DATE_RE.match(v.strip()):
        raise ValueError(f"date must be a YYYY-MM-DD string, got {v!r}")
    return v.strip()


def _require_number(v: Any) -> Any:
    # "1.324,00" is what the spreadsheet says; the model must convert it
    if isinstance(v, bool) or not isinstance(v, (int, float, Decimal)):
        raise ValueError(f"amount must be a JSON number, got {v!r}")
    return v


class ExpenseDraft(BaseModel):
    """A proposed row for the ledger expense table."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    kind: ExpenseKind
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    expense_date: date
    paid: Optional[bool] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    check_date = field_validator('expense_date', mode='before')(_require_iso_date)
    check_amount = field_validator('amount', mode='before')(_require_number)

    @field_serializer('amount', when_used='json')
    def amount_as_number(self, v: Decimal) -> float:
        return float(v)

    @property
    def dedup_key(self) -> tuple:
        return (self.name.lower(), self.amount, self.expense_date)

    @property
    def draft_date(self) -> date:
        return self.expense_date


class RevenueDraft(BaseModel):
    """A proposed service entry (revenue)."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    service: ServiceKey
    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    entry_date: date
    paid: Optional[bool] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    check_date = field_validator('entry_date', mode='before')(_require_iso_date)
    check_amount = field_validator('amount', mode='before')(_require_number)

    @field_serializer('amount', when_used='json')
    def amount_as_number(self, v: Decimal) -> float:
        return float(v)

    @property
    def dedup_key(self) -> tuple:
        return (self.service.value, self.title.lower(), self.amount, self.entry_date)

    @property
    def draft_date(self) -> date:
        return self.entry_date


class DraftEnvelope(BaseModel):
    """
    Top-level object the model must answer with.

    items are validated separately (per import kind) so errors can
    point at the offending index.
    """
    model_config = ConfigDict(extra="forbid")

    items: list[dict[str, Any]]
    warnings: list[str] = Field(default_factory=list)
