"""
Expense batch import.

DESIGN DECISION: A dry run is the default and touches nothing.
Only an explicit commit opens a store, and then:
1. Existing (name, amount, date) keys for the user are fetched once
2. Lines already in the store, or repeated in the input, are dropped
3. The rest is inserted in fixed-size batches with the privileged key

Two commits running at the same time over overlapping dates can both
pass the duplicate check. The tool is meant to be run by one operator.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog

from ledger_assistant.audit import AuditLogger, create_correlation_id
from ledger_assistant.importing.parser import ExpenseLine, SkippedLine, parse_expense_lines
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.records import Expense, NewExpense
from ledger_assistant.queries import parse_rows
from ledger_assistant.services.storage import (
    EXPENSES_TABLE,
    RecordQuery,
    RecordStoreInterface,
    StoreFactory,
)


logger = structlog.get_logger(__name__)


@dataclass
class ImportReport:
    rows: list[NewExpense] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)
    duplicates: int = 0
    inserted: int = 0
    committed: bool = False

    def summary(self) -> dict[str, Any]:
        return {
            "parsed": len(self.rows),
            "skipped": len(self.skipped),
            "duplicates": self.duplicates,
            "inserted": self.inserted,
            "committed": self.committed,
        }


def build_rows(lines: list[ExpenseLine], user_id: str) -> list[NewExpense]:
    return [
        NewExpense(
            user_id=user_id,
            name=line.name,
            amount=line.amount,
            expense_date=line.expense_date,
        )
        for line in lines
    ]


def chunk(rows: list[NewExpense], size: int) -> list[list[NewExpense]]:
    return [rows[i:i + size] for i in range(0, len(rows), size)]


async def fetch_existing_keys(
    store: RecordStoreInterface,
    user_id: str,
    rows: list[NewExpense],
) -> set[tuple]:
    """Dedup keys already stored for the user within the input's date range."""
    if not rows:
        return set()

    first = min(r.expense_date for r in rows)
    last = max(r.expense_date for r in rows)
    query = (
        RecordQuery(EXPENSES_TABLE, columns="id,name,amount,expense_date")
        .eq("user_id", user_id)
        .gte("expense_date", first.isoformat())
        .lt("expense_date", (last + timedelta(days=1)).isoformat())
    )
    existing = parse_rows(Expense, await store.select(query), EXPENSES_TABLE)
    return {(e.name.strip().lower(), e.amount, e.expense_date) for e in existing}


def drop_duplicates(rows: list[NewExpense], existing: set[tuple]) -> tuple[list[NewExpense], int]:
    seen = set(existing)
    kept = []
    for row in rows:
        if row.dedup_key in seen:
            continue
        seen.add(row.dedup_key)
        kept.append(row)
    return kept, len(rows) - len(kept)


async def run_import(
    lines: Iterable[str],
    user_id: str,
    year: int,
    store_factory: Optional[StoreFactory] = None,
    commit: bool = False,
    batch_size: int = 250,
    audit_logger: Optional[AuditLogger] = None,
    correlation_id: Optional[UUID] = None,
) -> ImportReport:
    """
    Parse and, on commit, insert expense lines.

    Raises:
        ValueError: On commit without a store factory
        PrivilegeNotConfiguredError: On commit without the privileged key
        StorageError: If a read or insert is rejected (earlier batches stay)
    """
    parsed = parse_expense_lines(lines, year)
    report = ImportReport(rows=build_rows(parsed.parsed, user_id), skipped=parsed.skipped)

    if not commit:
        return report

    if store_factory is None:
        raise ValueError("commit requires a store factory")

    audit_logger = audit_logger or AuditLogger()
    correlation_id = correlation_id or create_correlation_id()

    async with store_factory.privileged_store() as store:
        existing = await fetch_existing_keys(store, user_id, report.rows)
        to_insert, report.duplicates = drop_duplicates(report.rows, existing)

        batches = chunk(to_insert, batch_size)
        for number, batch in enumerate(batches, start=1):
            await store.insert(EXPENSES_TABLE, [row.to_row() for row in batch])
            report.inserted += len(batch)
            await audit_logger.log(
                AuditEventBuilder.import_batch_inserted(
                    table=EXPENSES_TABLE,
                    batch_number=number,
                    batch_count=len(batches),
                    rows=len(batch),
                    correlation_id=correlation_id,
                )
            )

    report.committed = True
    logger.info("expense_import_committed", **report.summary())
    return report
