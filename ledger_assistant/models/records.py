"""
Core Data Models for the Ledger Assistant

These models define the strict schemas for every record the assistant reads
or writes. They are designed to:
1. Enforce type safety at runtime
2. Keep money in Decimal, never float
3. Be serializable for storage and logging
4. Replace stringly-typed metadata lookups with explicit fields

DESIGN DECISION: The store keeps a free-form JSON metadata bag per record.
We parse it into RecordMetadata, which names every field the assistant
relies on and still carries unknown provenance keys through untouched.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a store value (number, numeric string or None) to a 2-place Decimal.

    Returns None for anything that is not a finite number or is too
    large to carry two decimal places.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
        if not number.is_finite():
            return None
        return number.quantize(TWO_PLACES)
    except (InvalidOperation, ValueError):
        return None


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ServiceKey(str, Enum):
    """
    Agency service lines a service entry belongs to.

    SERVICOS_VARIADOS is the catch-all used when nothing more specific fits.
    """
    MELHORES_DO_ANO = "melhores_do_ano"
    GESTAO_MIDIAS = "gestao_midias"
    PREMIO_EXCELENCIA = "premio_excelencia"
    CARRO_DE_SOM = "carro_de_som"
    REVISTA_FACTUS = "revista_factus"
    REVISTA_SAUDE = "revista_saude"
    SERVICOS_VARIADOS = "servicos_variados"


SERVICE_LABELS: dict[ServiceKey, str] = {
    ServiceKey.MELHORES_DO_ANO: "Melhores do Ano",
    ServiceKey.GESTAO_MIDIAS: "Gestão de Mídias",
    ServiceKey.PREMIO_EXCELENCIA: "Prêmio Excelência",
    ServiceKey.CARRO_DE_SOM: "Carro de Som",
    ServiceKey.REVISTA_FACTUS: "Revista Factus",
    ServiceKey.REVISTA_SAUDE: "Factus Saúde",
    ServiceKey.SERVICOS_VARIADOS: "Serviços Variados",
}


class ExpenseKind(str, Enum):
    """Ledger expense classification."""
    FIXED = "fixed"
    VARIABLE = "variable"
    PROVISION = "provision"


class EntryType(str, Enum):
    """Revenue/expense tag carried in a service entry's metadata."""
    RECEITA = "receita"
    DESPESA = "despesa"


class PayableStatus(str, Enum):
    OPEN = "open"
    PAID = "paid"
    CANCELED = "canceled"


class RecurrenceRule(str, Enum):
    MENSAL = "mensal"
    SEMANAL = "semanal"
    ANUAL = "anual"


class Role(str, Enum):
    """
    Caller role.

    Resolved server-side from the caller's identity on every request.
    Anything that is not explicitly "admin" is treated as EMPLOYEE.
    """
    ADMIN = "admin"
    EMPLOYEE = "employee"


class ImportKind(str, Enum):
    """What a spreadsheet sample should be turned into."""
    EXPENSES = "despesas"
    REVENUE = "receitas"


# =============================================================================
# METADATA
# =============================================================================

class RecordMetadata(BaseModel):
    """
    Typed view over a record's metadata bag.

    Known keys get explicit fields. Unknown keys (import provenance such as
    "raw", "parc1", "sen_ext") are kept as extras and written back unchanged.
    """
    model_config = ConfigDict(extra="allow")

    entry_type: Optional[EntryType] = None
    paid: bool = False
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    installments: Optional[int] = None
    recurring: Optional[bool] = None
    recurring_rule: Optional[RecurrenceRule] = None
    source: Optional[str] = None

    @field_validator('entry_type', mode='before')
    @classmethod
    def unknown_entry_type_is_none(cls, v: Any) -> Any:
        """Only the two known tags count; anything else falls back to the amount sign."""
        if isinstance(v, str) and v in {t.value for t in EntryType}:
            return v
        if isinstance(v, EntryType):
            return v
        return None

    @field_validator('paid', mode='before')
    @classmethod
    def paid_only_when_true(cls, v: Any) -> bool:
        """Only a literal JSON true marks a record as paid."""
        return v is True

    @field_validator('paid_amount', mode='before')
    @classmethod
    def coerce_paid_amount(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)

    @field_validator('installments', mode='before')
    @classmethod
    def coerce_installments(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip())
        return None

    @field_validator('recurring_rule', mode='before')
    @classmethod
    def unknown_rule_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and v in {r.value for r in RecurrenceRule}:
            return v
        if isinstance(v, RecurrenceRule):
            return v
        return None

    @field_serializer('paid_amount', when_used='json')
    def paid_amount_as_number(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None


# =============================================================================
# RECORD VARIANTS
# =============================================================================

class Expense(BaseModel):
    """
    A row of the ledger-style expense table.

    Admin-only data. The amount is always a magnitude.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str
    user_id: Optional[str] = None
    kind: ExpenseKind = ExpenseKind.VARIABLE
    name: str
    amount: Decimal = Field(default=Decimal("0.00"))
    expense_date: date
    paid: bool = False
    payment_method: Optional[str] = None
    installments: Optional[int] = None
    recurring: bool = False
    recurring_rule: Optional[str] = None
    notes: Optional[str] = None
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)
    created_at: Optional[datetime] = None

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return to_decimal(v) or Decimal("0.00")

    @field_validator('paid', 'recurring', mode='before')
    @classmethod
    def null_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator('metadata', mode='before')
    @classmethod
    def null_metadata(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, RecordMetadata)) else {}


class ServiceEntry(BaseModel):
    """
    A per-service revenue (or expense) entry.

    The amount is signed (positive = revenue, negative = expense) unless
    metadata.entry_type says otherwise. entry_date may be missing; the
    creation timestamp then anchors the entry in time.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str
    user_id: Optional[str] = None
    service: ServiceKey = ServiceKey.SERVICOS_VARIADOS
    title: str = "(sem título)"
    amount: Optional[Decimal] = None
    entry_date: Optional[date] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)
    created_at: Optional[datetime] = None

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)

    @field_validator('title', mode='before')
    @classmethod
    def blank_title(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "(sem título)"
        return v

    @field_validator('metadata', mode='before')
    @classmethod
    def null_metadata(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, RecordMetadata)) else {}

    @property
    def entry_type(self) -> EntryType:
        """Metadata tag first, amount sign second."""
        if self.metadata.entry_type is not None:
            return self.metadata.entry_type
        if self.amount is not None and self.amount < 0:
            return EntryType.DESPESA
        return EntryType.RECEITA

    @property
    def magnitude(self) -> Decimal:
        return abs(self.amount) if self.amount is not None else Decimal("0.00")


class Payable(BaseModel):
    """An account payable. Admin-only data."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str
    vendor: str
    amount: Decimal = Field(default=Decimal("0.00"))
    due_date: date
    status: PayableStatus = PayableStatus.OPEN
    payment_method: Optional[str] = None
    description: Optional[str] = None
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)
    created_at: Optional[datetime] = None

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return to_decimal(v) or Decimal("0.00")

    @field_validator('metadata', mode='before')
    @classmethod
    def null_metadata(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, RecordMetadata)) else {}


class NewServiceEntry(BaseModel):
    """
    Insert payload for a service entry created from a chat command.

    Always a revenue entry: metadata.entry_type is "receita".
    """

    user_id: str
    service: ServiceKey
    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    entry_date: date
    status: Optional[str] = None
    notes: Optional[str] = None
    metadata: RecordMetadata

    def to_row(self) -> dict[str, Any]:
        """Row as the store expects it (amount as a 2-place string)."""
        row = self.model_dump(mode="json", exclude={"metadata"})
        row["amount"] = f"{self.amount:.2f}"
        row["metadata"] = self.metadata.model_dump(mode="json", exclude_none=True)
        return row


class NewExpense(BaseModel):
    """
    Insert payload for an expense loaded by the batch import tool.

    Imported expenses are variable, unpaid and non-recurring until
    someone reviews them in the app.
    """

    user_id: str
    kind: ExpenseKind = ExpenseKind.VARIABLE
    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    expense_date: date
    paid: bool = False
    recurring: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def dedup_key(self) -> tuple[str, Decimal, date]:
        return (self.name.strip().lower(), self.amount, self.expense_date)

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json")
        row["amount"] = f"{self.amount:.2f}"
        return row
