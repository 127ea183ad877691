"""
Query Execution Engine

DESIGN DECISION: Query execution is DETERMINISTIC.
The router turns a message into a RoutedIntent.
This engine runs that intent against actual stored data and renders
the answer from the result. No model ever sees or phrases these numbers.

GUARANTEES:
- Only returns real data from storage
- Never invents or estimates
- Every settlement figure comes from reconciliation.settle()
- Money is summed in Decimal
- Protected tables are only read through the access gate
"""

from typing import Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from ledger_assistant.access import (
    PRIVILEGE_MISSING_MESSAGE,
    AccessGate,
    AccessRefusedError,
    Caller,
    DataClass,
)
from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.api import ChatReply
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.queries import (
    DatedQueryResult,
    IntentKind,
    MonthlySummary,
    OpenItem,
    QueryFamily,
    RoutedIntent,
)
from ledger_assistant.models.records import (
    SERVICE_LABELS,
    EntryType,
    Expense,
    ServiceEntry,
    ServiceKey,
)
from ledger_assistant.parsing import (
    MonthWindow,
    detect_service_key,
    format_money,
    month_window,
    to_iso,
)
from ledger_assistant.reconciliation import ZERO, settle
from ledger_assistant.services.storage import (
    EXPENSES_TABLE,
    SERVICE_ENTRIES_TABLE,
    PrivilegeNotConfiguredError,
    RecordQuery,
    StorageError,
)


RecordT = TypeVar("RecordT", bound=BaseModel)

INVALID_MONTH_REPLY = (
    "Miau… não entendi qual mês você quis dizer. Use formato YYYY-MM (ex: 2025-12)."
)

_DATED_LABELS = {
    QueryFamily.RECEIPTS: "Recebimentos",
    QueryFamily.REVENUE: "Receitas",
    QueryFamily.EXPENSES: "Despesas",
}


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


def parse_rows(model: Type[RecordT], rows: list[dict], table: str) -> list[RecordT]:
    """
    Validate store rows into record models.

    A malformed row fails the whole query rather than being skipped,
    so totals never silently leave data out.
    """
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            raise StorageError(
                f"Registro inválido em {table} (id={row.get('id')}): "
                f"{e.error_count()} erro(s) de validação"
            ) from e
    return parsed


def union_by_id(*batches: list[ServiceEntry]) -> list[ServiceEntry]:
    """Merge reads, keeping the first occurrence of each id."""
    seen: dict[str, ServiceEntry] = {}
    for batch in batches:
        for entry in batch:
            seen.setdefault(entry.id, entry)
    return list(seen.values())


class QueryExecutor:
    """
    Executes routed dated and monthly queries.

    Reads are issued sequentially:
    - dated: exactly one read keyed on the day
    - monthly: dated-range read, null-date fallback read, optional ledger read
    """

    def __init__(
        self,
        gate: AccessGate,
        audit_logger: Optional[AuditLogger] = None,
        line_limit: int = 50,
        open_items_limit: int = 12,
    ):
        self._gate = gate
        self._audit = audit_logger or AuditLogger()
        self._line_limit = line_limit
        self._open_items_limit = open_items_limit

    async def execute(
        self,
        intent: RoutedIntent,
        caller: Caller,
        correlation_id: Optional[UUID] = None,
    ) -> ChatReply:
        """Run the intent and render the reply."""
        try:
            if intent.kind == IntentKind.DATED_QUERY:
                result = await self.run_dated(intent, caller, correlation_id)
                return ChatReply(reply=render_dated(result))

            if intent.kind == IntentKind.MONTHLY_QUERY:
                window = month_window(intent.month_key or "")
                if window is None:
                    return ChatReply(reply=INVALID_MONTH_REPLY)
                summary = await self.run_monthly(intent, window, caller, correlation_id)
                return ChatReply(reply=render_monthly(summary))

        except AccessRefusedError as e:
            return ChatReply(reply=e.message)
        except PrivilegeNotConfiguredError as e:
            return ChatReply(reply=PRIVILEGE_MISSING_MESSAGE, detail=e.message)

        raise QueryExecutionError(f"Not a query intent: {intent.kind.value}")

    # =========================================================================
    # DATED QUERIES
    # =========================================================================

    async def run_dated(
        self,
        intent: RoutedIntent,
        caller: Caller,
        correlation_id: Optional[UUID] = None,
    ) -> DatedQueryResult:
        """
        One read keyed on the day.

        expenses wins over receipts, receipts over revenue.

        Raises:
            AccessRefusedError: Employee asking for expenses (nothing is read)
            PrivilegeNotConfiguredError: Admin escalation without a key
        """
        query_date = intent.query_date
        if query_date is None:
            raise QueryExecutionError("Dated query without a date")

        if intent.asks_expenses:
            family = QueryFamily.EXPENSES
        elif intent.asks_receipts:
            family = QueryFamily.RECEIPTS
        else:
            family = QueryFamily.REVENUE

        try:
            if family == QueryFamily.EXPENSES:
                query = (
                    RecordQuery(
                        EXPENSES_TABLE,
                        columns="id,name,amount,expense_date,paid,metadata,created_at",
                    )
                    .eq("expense_date", query_date)
                    .order("created_at", descending=True)
                )
                async with self._gate.open_store(
                    caller, DataClass.EXPENSE_LEDGER, correlation_id
                ) as store:
                    rows = await store.select(query)
                expenses = parse_rows(Expense, rows, EXPENSES_TABLE)
                total = sum((e.amount for e in expenses), ZERO)
                lines = [
                    f"- {e.name}: {format_money(e.amount)}"
                    for e in expenses[: self._line_limit]
                ]
                count = len(expenses)
            else:
                query = (
                    RecordQuery(
                        SERVICE_ENTRIES_TABLE,
                        columns="id,title,amount,entry_date,metadata,created_at",
                    )
                    .eq("entry_date", query_date)
                    .order("created_at", descending=True)
                )
                if family == QueryFamily.RECEIPTS:
                    query.contains("metadata", {"paid": True})
                else:
                    query.contains("metadata", {"entry_type": EntryType.RECEITA.value})

                async with self._gate.open_store(
                    caller, DataClass.SERVICE_ENTRIES, correlation_id
                ) as store:
                    rows = await store.select(query)
                entries = parse_rows(ServiceEntry, rows, SERVICE_ENTRIES_TABLE)
                total = sum((e.amount or ZERO for e in entries), ZERO)
                lines = [
                    f"- {e.title}: {format_money(e.amount or ZERO)}"
                    for e in entries[: self._line_limit]
                ]
                count = len(entries)

        except PrivilegeNotConfiguredError:
            raise
        except StorageError as e:
            await self._audit.log(
                AuditEventBuilder.query_failed(
                    intent_id=intent.intent_id,
                    intent_kind=intent.kind.value,
                    error_message=e.message,
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
            return DatedQueryResult(
                query_date=query_date,
                family=family,
                success=False,
                error_message=e.message,
            )

        await self._audit.log(
            AuditEventBuilder.query_executed(
                intent_id=intent.intent_id,
                intent_kind=intent.kind.value,
                result_count=count,
                user_id=caller.user_id,
                correlation_id=correlation_id,
            )
        )
        return DatedQueryResult(
            query_date=query_date,
            family=family,
            count=count,
            total=total,
            lines=lines,
        )

    # =========================================================================
    # MONTHLY AGGREGATES
    # =========================================================================

    async def run_monthly(
        self,
        intent: RoutedIntent,
        window: MonthWindow,
        caller: Caller,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlySummary:
        """
        Aggregate service entries over the month window.

        The entry date is nullable, so two reads are unioned:
        (A) entry_date in [start, end)
        (B) entry_date is null and created_at in [start, end)

        Raises:
            PrivilegeNotConfiguredError: Admin ledger read without a key
        """
        service = intent.context_service or detect_service_key(intent.message)
        scoped = service if service != ServiceKey.SERVICOS_VARIADOS else None

        summary = MonthlySummary(
            month_key=window.month_key,
            scoped_service=scoped,
            asks_open=intent.asks_open,
            asks_expenses=intent.asks_expenses,
        )

        columns = "id,title,amount,entry_date,created_at,service,metadata"
        dated = (
            RecordQuery(SERVICE_ENTRIES_TABLE, columns=columns)
            .gte("entry_date", window.start_date)
            .lt("entry_date", window.end_date)
            .order("created_at", descending=True)
        )
        undated = (
            RecordQuery(SERVICE_ENTRIES_TABLE, columns=columns)
            .is_null("entry_date")
            .gte("created_at", window.start_ts)
            .lt("created_at", window.end_ts)
            .order("created_at", descending=True)
        )
        if scoped is not None:
            dated.eq("service", scoped.value)
            undated.eq("service", scoped.value)

        try:
            async with self._gate.open_store(
                caller, DataClass.SERVICE_ENTRIES, correlation_id
            ) as store:
                dated_rows = await store.select(dated)
                undated_rows = await store.select(undated)
            entries = union_by_id(
                parse_rows(ServiceEntry, dated_rows, SERVICE_ENTRIES_TABLE),
                parse_rows(ServiceEntry, undated_rows, SERVICE_ENTRIES_TABLE),
            )
        except StorageError as e:
            await self._audit.log(
                AuditEventBuilder.query_failed(
                    intent_id=intent.intent_id,
                    intent_kind=intent.kind.value,
                    error_message=e.message,
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
            summary.success = False
            summary.error_message = e.message
            return summary

        self._aggregate_entries(summary, entries)

        if intent.asks_expenses:
            await self._aggregate_ledger(summary, window, caller, correlation_id)

        await self._audit.log(
            AuditEventBuilder.query_executed(
                intent_id=intent.intent_id,
                intent_kind=intent.kind.value,
                result_count=len(entries),
                user_id=caller.user_id,
                correlation_id=correlation_id,
            )
        )
        return summary

    def _aggregate_entries(
        self,
        summary: MonthlySummary,
        entries: list[ServiceEntry],
    ) -> None:
        revenue = ZERO
        expense = ZERO
        open_items: list[OpenItem] = []

        for entry in entries:
            if entry.entry_type == EntryType.RECEITA:
                revenue += entry.magnitude
                if summary.asks_open:
                    settlement = settle(entry)
                    if not settlement.is_paid:
                        open_items.append(
                            OpenItem(title=entry.title, remaining=settlement.remaining)
                        )
            else:
                expense += entry.magnitude

        open_items.sort(key=lambda item: item.remaining, reverse=True)

        summary.entry_count = len(entries)
        summary.revenue_total = revenue
        summary.expense_total = expense
        summary.open_count = len(open_items)
        summary.open_total = sum((item.remaining for item in open_items), ZERO)
        summary.open_items = open_items[: self._open_items_limit]

    async def _aggregate_ledger(
        self,
        summary: MonthlySummary,
        window: MonthWindow,
        caller: Caller,
        correlation_id: Optional[UUID],
    ) -> None:
        """Third read: the admin-only expense table, reconciled row by row."""
        query = (
            RecordQuery(
                EXPENSES_TABLE,
                columns="id,name,amount,expense_date,paid,metadata",
            )
            .gte("expense_date", window.start_date)
            .lt("expense_date", window.end_date)
        )

        try:
            async with self._gate.open_store(
                caller, DataClass.EXPENSE_LEDGER, correlation_id
            ) as store:
                rows = await store.select(query)
            expenses = parse_rows(Expense, rows, EXPENSES_TABLE)
        except AccessRefusedError:
            summary.ledger_refused = True
            return
        except PrivilegeNotConfiguredError:
            raise
        except StorageError as e:
            summary.ledger_error = e.message
            return

        total = ZERO
        outstanding = ZERO
        for expense in expenses:
            settlement = settle(expense)
            total += settlement.total
            if not settlement.is_paid:
                outstanding += settlement.remaining

        summary.ledger_total = total
        summary.ledger_open_total = outstanding


# =============================================================================
# RENDERING
# =============================================================================

def render_dated(result: DatedQueryResult) -> str:
    """One pt-BR block: header, total, itemized lines."""
    iso = to_iso(result.query_date)

    if not result.success:
        what = "despesas" if result.family == QueryFamily.EXPENSES else "esses lançamentos"
        return (
            f"Não consegui acessar {what} agora. Pode ser permissão/configuração. "
            f"Se persistir, me mande o print desse erro: {result.error_message}"
        )

    label = _DATED_LABELS[result.family]
    empty = "(Nenhuma)" if result.family == QueryFamily.EXPENSES else "(Nenhum)"

    parts = [
        f"Miau! {label} em {iso}: {result.count} registro(s).",
        f"Total: {format_money(result.total)}",
    ]
    if result.lines:
        parts.extend(result.lines)
        if result.count > len(result.lines):
            parts.append(f"(mostrando os {len(result.lines)} mais recentes)")
    else:
        parts.append(empty)
    return "\n".join(parts)


def render_monthly(summary: MonthlySummary) -> str:
    if not summary.success:
        return (
            "Não consegui acessar os lançamentos desse mês agora. "
            f"Pode ser permissão/configuração. Erro: {summary.error_message}"
        )

    scope = ""
    if summary.scoped_service is not None:
        scope = f" ({SERVICE_LABELS[summary.scoped_service]})"

    lines = [
        f"Miau! Resumo de {summary.month_key}{scope}:",
        f"- Receitas: {format_money(summary.revenue_total)}",
        f"- Despesas (lançamentos): {format_money(summary.expense_total)}",
    ]

    if summary.asks_expenses:
        if summary.ledger_refused:
            lines.append("- Despesas (tabela despesas): acesso só do admin.")
        elif summary.ledger_error:
            lines.append(
                f"- Despesas (tabela despesas): não consegui consultar. Erro: {summary.ledger_error}"
            )
        else:
            lines.append(
                f"- Despesas (tabela despesas): {format_money(summary.ledger_total)} "
                f"(em aberto: {format_money(summary.ledger_open_total)})"
            )

    if summary.asks_open:
        lines.append(
            f"- Falta receber: {format_money(summary.open_total)} "
            f"({summary.open_count} pendência(s))"
        )
        if summary.open_items:
            lines.extend(
                f"- {item.title}: {format_money(item.remaining)}"
                for item in summary.open_items
            )
        else:
            lines.append("(Nenhuma pendência de recebimento)")

    return "\n".join(lines)
