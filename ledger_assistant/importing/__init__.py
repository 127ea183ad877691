"""Expense batch import package."""

from ledger_assistant.importing.parser import (
    ExpenseLine,
    ParseResult,
    SkippedLine,
    parse_expense_lines,
    split_columns,
)
from ledger_assistant.importing.runner import (
    ImportReport,
    build_rows,
    drop_duplicates,
    run_import,
)

__all__ = [
    "ExpenseLine",
    "ImportReport",
    "ParseResult",
    "SkippedLine",
    "build_rows",
    "drop_duplicates",
    "parse_expense_lines",
    "run_import",
    "split_columns",
]
