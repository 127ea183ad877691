"""Query execution package."""

from ledger_assistant.queries.executor import (
    INVALID_MONTH_REPLY,
    QueryExecutionError,
    QueryExecutor,
    parse_rows,
    render_dated,
    render_monthly,
    union_by_id,
)

__all__ = [
    "INVALID_MONTH_REPLY",
    "QueryExecutionError",
    "QueryExecutor",
    "parse_rows",
    "render_dated",
    "render_monthly",
    "union_by_id",
]
