"""
Audit Models for the Ledger Assistant

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who asked what and which data was touched
2. Debugging information when the store or the provider misbehaves
3. A record of every access refusal and privilege escalation

DESIGN DECISION: Audit events never carry credentials. The privileged
store key, bearer tokens and provider keys must not appear in details.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every decision point in a request has its own event type.
    """
    # Request lifecycle
    REQUEST_RECEIVED = "request_received"
    REQUEST_REJECTED = "request_rejected"

    # Access gate
    ACCESS_REFUSED = "access_refused"
    PRIVILEGE_ESCALATED = "privilege_escalated"

    # Deterministic queries
    QUERY_EXECUTED = "query_executed"
    QUERY_FAILED = "query_failed"

    # Record creation
    RECORD_CREATED = "record_created"
    CLARIFICATION_REQUESTED = "clarification_requested"
    SAVE_FAILED = "save_failed"

    # Generative paths
    GENERATIVE_FALLBACK_USED = "generative_fallback_used"
    GENERATIVE_FAILED = "generative_failed"
    IMPORT_SUGGESTED = "import_suggested"
    IMPORT_REJECTED = "import_rejected"

    # Batch import tool
    IMPORT_BATCH_INSERTED = "import_batch_inserted"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'service_entry', 'intent', 'import')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who triggered it
    user_id: Optional[str] = Field(
        default=None,
        description="Authenticated caller, when known"
    )
    role: Optional[str] = Field(
        default=None,
        description="Caller role resolved for this request"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (all events of one request)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "role": self.role,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.access_refused(user_id, "expense_ledger", correlation_id)
        event = AuditEventBuilder.record_created(entry_id, title, amount, user_id, correlation_id)
    """

    @staticmethod
    def request_received(
        mode: str,
        user_id: str,
        role: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_RECEIVED,
            user_id=user_id,
            role=role,
            correlation_id=correlation_id,
            description=f"Assistant request received ({mode})",
            details={"mode": mode},
        )

    @staticmethod
    def request_rejected(
        reason: str,
        status_code: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_REJECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Request rejected with {status_code}",
            details={"status_code": status_code},
            error_message=reason,
        )

    @staticmethod
    def access_refused(
        user_id: str,
        data_class: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_REFUSED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            role="employee",
            correlation_id=correlation_id,
            description=f"Access to {data_class} refused for employee",
            details={"data_class": data_class},
        )

    @staticmethod
    def privilege_escalated(
        user_id: str,
        data_class: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRIVILEGE_ESCALATED,
            user_id=user_id,
            role="admin",
            correlation_id=correlation_id,
            description=f"Privileged store credential used for {data_class}",
            details={"data_class": data_class},
        )

    @staticmethod
    def query_executed(
        intent_id: UUID,
        intent_kind: str,
        result_count: int,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            entity_type="intent",
            entity_id=str(intent_id),
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Query executed: {intent_kind} returned {result_count} rows",
            details={
                "intent_kind": intent_kind,
                "result_count": result_count,
            },
        )

    @staticmethod
    def query_failed(
        intent_id: UUID,
        intent_kind: str,
        error_message: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="intent",
            entity_id=str(intent_id),
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Query failed: {intent_kind}",
            error_message=error_message,
            details={"intent_kind": intent_kind},
        )

    @staticmethod
    def record_created(
        entry_id: Optional[str],
        title: str,
        amount: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type="service_entry",
            entity_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Service entry created: {title} - R$ {amount}",
            details={"title": title, "amount": amount},
        )

    @staticmethod
    def clarification_requested(
        missing_field: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLARIFICATION_REQUESTED,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Creation command missing {missing_field}; nothing inserted",
            details={"missing_field": missing_field},
        )

    @staticmethod
    def save_failed(
        table: str,
        error_message: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=table,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Insert into {table} failed",
            error_message=error_message,
        )

    @staticmethod
    def generative_fallback_used(
        history_turns: int,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GENERATIVE_FALLBACK_USED,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Unclassified message forwarded to the generative model",
            details={"history_turns": history_turns},
        )

    @staticmethod
    def generative_failed(
        purpose: str,
        error_message: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GENERATIVE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Generative provider failed during {purpose}",
            error_message=error_message,
            details={"purpose": purpose},
        )

    @staticmethod
    def import_suggested(
        import_kind: str,
        rows_sent: int,
        items_accepted: int,
        warnings: int,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_SUGGESTED,
            entity_type="import",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Import drafts suggested: {items_accepted} {import_kind}",
            details={
                "import_kind": import_kind,
                "rows_sent": rows_sent,
                "items_accepted": items_accepted,
                "warnings": warnings,
            },
        )

    @staticmethod
    def import_rejected(
        import_kind: str,
        error_message: str,
        user_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Model output for {import_kind} import rejected",
            error_message=error_message,
            details={"import_kind": import_kind},
        )

    @staticmethod
    def import_batch_inserted(
        table: str,
        batch_number: int,
        batch_count: int,
        rows: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_BATCH_INSERTED,
            entity_type=table,
            correlation_id=correlation_id,
            description=f"Inserted batch {batch_number}/{batch_count} into {table}",
            details={"rows": rows, "batch_number": batch_number, "batch_count": batch_count},
        )
