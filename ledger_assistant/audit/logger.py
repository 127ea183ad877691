"""
Audit Logger

DESIGN DECISION: Every significant decision in a request is logged.
This provides:
1. Traceability of which data each caller touched
2. Debugging capability when the store or provider fails
3. A trail of refusals and privilege escalations

The audit logger:
- Is async so it fits the request flow
- Never breaks a request (a logging failure is reported, not raised)
- Supports correlation IDs to trace related events
"""

import logging
from uuid import UUID, uuid4

import structlog

from ledger_assistant.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log. Events are kept in memory
    only when `keep_events` is set (used by tests and the import tool's
    summary).
    """

    def __init__(self, keep_events: bool = False):
        self._logger = structlog.get_logger("ledger_assistant.audit")
        self._keep_events = keep_events
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        try:
            log_dict = event.to_log_dict()
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error(
                "audit log write failed for %s: %s", event.event_id, e
            )
            return False

        if self._keep_events:
            self.events.append(event)
        return True


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of every request.
    Pass it through all subsequent operations.
    """
    return uuid4()
