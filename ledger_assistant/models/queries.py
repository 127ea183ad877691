"""
Query Models

CRITICAL: The router turns a message into a RoutedIntent.
The executor runs that intent DETERMINISTICALLY against stored data
and fills one of the result models below. Replies are rendered from
these results only, so every number in an answer comes from the store.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger_assistant.models.records import ServiceKey


class IntentKind(str, Enum):
    """What the router decided a message is."""
    CREATE_RECORD = "create_record"
    DATED_QUERY = "dated_query"
    MONTHLY_QUERY = "monthly_query"
    UNCLASSIFIED = "unclassified"


class QueryFamily(str, Enum):
    """Keyword families a question can mention."""
    RECEIPTS = "recebimentos"
    EXPENSES = "despesas"
    REVENUE = "receitas"


class RoutedIntent(BaseModel):
    """
    Everything the router extracted from one message.

    Only the fields relevant to `kind` are meaningful.
    """

    intent_id: UUID = Field(default_factory=uuid4)
    kind: IntentKind
    message: str

    families: frozenset[QueryFamily] = frozenset()
    query_date: Optional[date] = None
    month_key: Optional[str] = None
    asks_open: bool = False
    asks_monthly: bool = False

    # Caller-supplied hints
    context_service: Optional[ServiceKey] = None

    @property
    def asks_expenses(self) -> bool:
        return QueryFamily.EXPENSES in self.families

    @property
    def asks_receipts(self) -> bool:
        return QueryFamily.RECEIPTS in self.families


class DatedQueryResult(BaseModel):
    """
    Result of a single-day query.

    count and total cover every matching row; lines is capped.
    """

    query_date: date
    family: QueryFamily
    count: int = Field(default=0, ge=0)
    total: Decimal = Decimal("0.00")
    lines: list[str] = Field(default_factory=list)

    success: bool = True
    error_message: Optional[str] = None


class OpenItem(BaseModel):
    """A revenue entry that still has money to receive."""

    title: str
    remaining: Decimal


class MonthlySummary(BaseModel):
    """Result of a month-window aggregate query."""

    month_key: str
    scoped_service: Optional[ServiceKey] = None

    entry_count: int = 0
    revenue_total: Decimal = Decimal("0.00")
    expense_total: Decimal = Decimal("0.00")

    # Outstanding receivables (only when asked)
    asks_open: bool = False
    open_total: Decimal = Decimal("0.00")
    open_count: int = 0
    open_items: list[OpenItem] = Field(default_factory=list)

    # Ledger expense table (only when asked)
    asks_expenses: bool = False
    ledger_refused: bool = False
    ledger_total: Decimal = Decimal("0.00")
    ledger_open_total: Decimal = Decimal("0.00")
    ledger_error: Optional[str] = None

    success: bool = True
    error_message: Optional[str] = None
