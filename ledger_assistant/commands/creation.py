"""
Record Creation Handler

Turns a chat command like

    "cadastre Duo Medic R$ 300 mensal já pago"

into exactly one new revenue service entry, or into a clarifying
question when the title or the amount is missing.

CRITICAL: Nothing is inserted unless both a title and a positive
amount were parsed. We never guess either one.
"""

from datetime import date
from typing import Callable, Optional
from uuid import UUID

import structlog

from ledger_assistant.access import AccessGate, Caller, DataClass
from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.api import ChatReply
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.records import (
    SERVICE_LABELS,
    EntryType,
    NewServiceEntry,
    RecordMetadata,
    ServiceKey,
)
from ledger_assistant.parsing import (
    detect_installments,
    detect_paid,
    detect_payment_method,
    detect_recurrence,
    detect_service_key,
    extract_title,
    format_money,
    parse_money,
    utc_today,
)
from ledger_assistant.services.storage import SERVICE_ENTRIES_TABLE, StorageError


logger = structlog.get_logger(__name__)


ASK_TITLE_REPLY = "Miau! Qual é o nome/título desse cadastro? (ex: 'cadastre Duo Medic ...')"
ASK_AMOUNT_REPLY = "Miau! Qual é o valor? (ex: R$ 1.500,00)"

MAX_TITLE_LENGTH = 200


class RecordCreationHandler:
    """Validates a creation command and performs the single insert."""

    def __init__(
        self,
        gate: AccessGate,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = utc_today,
    ):
        self._gate = gate
        self._audit = audit_logger or AuditLogger()
        self._clock = clock

    def build_entry(
        self,
        message: str,
        caller: Caller,
        context_service: Optional[ServiceKey] = None,
    ) -> tuple[Optional[NewServiceEntry], Optional[str]]:
        """
        Parse the command.

        Returns (entry, None) when it is complete, or (None, missing_field)
        where missing_field is "title" or "amount".
        """
        title = extract_title(message)
        if not title:
            return None, "title"

        amount = parse_money(message)
        if amount is None or amount <= 0:
            return None, "amount"

        # Text wins; the tab the user is on only fills in when the text is silent
        service = detect_service_key(message)
        if service == ServiceKey.SERVICOS_VARIADOS and context_service is not None:
            service = context_service

        paid = detect_paid(message)
        recurrence = detect_recurrence(message)

        metadata = RecordMetadata(
            entry_type=EntryType.RECEITA,
            paid=paid,
            paid_amount=amount if paid else None,
            payment_method=detect_payment_method(message),
            installments=detect_installments(message),
            recurring=True if recurrence else None,
            recurring_rule=recurrence,
            source="assistant",
        )

        entry = NewServiceEntry(
            user_id=caller.user_id,
            service=service,
            title=title[:MAX_TITLE_LENGTH],
            amount=amount,
            entry_date=self._clock(),
            status="pago" if paid else None,
            metadata=metadata,
        )
        return entry, None

    async def handle(
        self,
        message: str,
        caller: Caller,
        context_service: Optional[ServiceKey] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ChatReply:
        entry, missing = self.build_entry(message, caller, context_service)

        if entry is None:
            await self._audit.log(
                AuditEventBuilder.clarification_requested(
                    missing_field=missing,
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
            return ChatReply(reply=ASK_TITLE_REPLY if missing == "title" else ASK_AMOUNT_REPLY)

        try:
            async with self._gate.open_store(
                caller, DataClass.RECORD_CREATION, correlation_id
            ) as store:
                inserted = await store.insert(SERVICE_ENTRIES_TABLE, [entry.to_row()])
        except StorageError as e:
            await self._audit.log(
                AuditEventBuilder.save_failed(
                    table=SERVICE_ENTRIES_TABLE,
                    error_message=e.message,
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
            return ChatReply(reply=f"Miau… tentei cadastrar, mas deu erro no banco: {e.message}")

        entry_id = None
        if inserted and inserted[0].get("id") is not None:
            entry_id = str(inserted[0]["id"])

        await self._audit.log(
            AuditEventBuilder.record_created(
                entry_id=entry_id,
                title=entry.title,
                amount=f"{entry.amount:.2f}",
                user_id=caller.user_id,
                correlation_id=correlation_id,
            )
        )
        logger.info("service_entry_created", entry_id=entry_id, service=entry.service.value)

        return ChatReply(reply=render_confirmation(entry, entry_id))


def render_confirmation(entry: NewServiceEntry, entry_id: Optional[str]) -> str:
    rule = entry.metadata.recurring_rule
    recurrence = f" ({rule.value})" if rule else ""
    paid_label = "pago" if entry.metadata.paid else "em aberto"
    return (
        f"Miau! Cadastrei pra você: '{entry.title}' em {SERVICE_LABELS[entry.service]}, "
        f"{format_money(entry.amount)}{recurrence}, {paid_label}. (id: {entry_id or '-'})"
    )
