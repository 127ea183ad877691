"""
Data Models Package

This package contains all Pydantic models used by the Ledger Assistant.
All data flowing through the system must conform to these schemas.
"""

from ledger_assistant.models.records import (
    SERVICE_LABELS,
    EntryType,
    Expense,
    ExpenseKind,
    ImportKind,
    NewExpense,
    NewServiceEntry,
    Payable,
    PayableStatus,
    RecordMetadata,
    RecurrenceRule,
    Role,
    ServiceEntry,
    ServiceKey,
)
from ledger_assistant.models.queries import (
    DatedQueryResult,
    IntentKind,
    MonthlySummary,
    OpenItem,
    QueryFamily,
    RoutedIntent,
)
from ledger_assistant.models.imports import (
    DraftEnvelope,
    ExpenseDraft,
    RevenueDraft,
)
from ledger_assistant.models.api import (
    AssistantRequest,
    ChatContext,
    ChatReply,
    ChatRequest,
    ChatTurn,
    ErrorResponse,
    ImportSuggestion,
    ImportSuggestRequest,
)
from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "SERVICE_LABELS",
    "EntryType",
    "Expense",
    "ExpenseKind",
    "ImportKind",
    "NewExpense",
    "NewServiceEntry",
    "Payable",
    "PayableStatus",
    "RecordMetadata",
    "RecurrenceRule",
    "Role",
    "ServiceEntry",
    "ServiceKey",
    # Query models
    "DatedQueryResult",
    "IntentKind",
    "MonthlySummary",
    "OpenItem",
    "QueryFamily",
    "RoutedIntent",
    # Import draft models
    "DraftEnvelope",
    "ExpenseDraft",
    "RevenueDraft",
    # API models
    "AssistantRequest",
    "ChatContext",
    "ChatReply",
    "ChatRequest",
    "ChatTurn",
    "ErrorResponse",
    "ImportSuggestion",
    "ImportSuggestRequest",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
