"""Text parsing package (dates, money, keywords)."""

from ledger_assistant.parsing.dates import (
    MonthWindow,
    find_date_start,
    month_window,
    parse_date,
    parse_month_key,
    pick_context_month,
    to_iso,
    utc_today,
)
from ledger_assistant.parsing.money import (
    find_money_span,
    format_money,
    parse_money,
)
from ledger_assistant.parsing.keywords import (
    asks_monthly,
    asks_outstanding,
    detect_installments,
    detect_paid,
    detect_payment_method,
    detect_recurrence,
    detect_service_key,
    extract_title,
    fold_preserving_length,
    is_creation_command,
    mentions_expenses,
    mentions_receipts,
    mentions_revenue,
    normalize_text,
)

__all__ = [
    # Dates
    "MonthWindow",
    "find_date_start",
    "month_window",
    "parse_date",
    "parse_month_key",
    "pick_context_month",
    "to_iso",
    "utc_today",
    # Money
    "find_money_span",
    "format_money",
    "parse_money",
    # Keywords
    "asks_monthly",
    "asks_outstanding",
    "detect_installments",
    "detect_paid",
    "detect_payment_method",
    "detect_recurrence",
    "detect_service_key",
    "extract_title",
    "fold_preserving_length",
    "is_creation_command",
    "mentions_expenses",
    "mentions_receipts",
    "mentions_revenue",
    "normalize_text",
]
