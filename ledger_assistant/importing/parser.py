"""
Expense sheet line parser.

Accepts lines copied from a spreadsheet, one expense per line:

    DESPESA         VALOR       DATA
    Aluguel         1.324,00    05/01
    Luz             120         10/01

Columns are tab-separated, or separated by two or more spaces.
Lines that cannot be parsed are kept with the reason, never guessed.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ledger_assistant.parsing import parse_date, parse_money


HEADER_NAME = "DESPESA"

_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_AMOUNT_COLUMN_RE = re.compile(r"(?:R\$\s*)?[\d.,]+", re.IGNORECASE)
_DAY_MONTH_COLUMN_RE = re.compile(r"\d{1,2}/\d{1,2}")


@dataclass(frozen=True)
class ExpenseLine:
    name: str
    amount: Decimal
    expense_date: date


@dataclass(frozen=True)
class SkippedLine:
    line: str
    reason: str


@dataclass
class ParseResult:
    parsed: list[ExpenseLine] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)


def split_columns(line: str) -> list[str]:
    """Tabs first, then runs of two or more spaces."""
    if "\t" in line:
        return [col.strip() for col in line.split("\t")]
    return [col.strip() for col in _MULTI_SPACE_RE.split(line.strip())]


def parse_amount_column(raw: str) -> Optional[Decimal]:
    if not _AMOUNT_COLUMN_RE.fullmatch(raw):
        return None
    return parse_money(raw)


def parse_day_month_column(raw: str, year: int) -> Optional[date]:
    if not _DAY_MONTH_COLUMN_RE.fullmatch(raw):
        return None
    return parse_date(raw, today=date(year, 1, 1))


def parse_expense_lines(lines: Iterable[str], year: int) -> ParseResult:
    """
    Parse spreadsheet lines into expense lines.

    Blank lines, the header and lines with fewer than two columns are
    ignored. Everything else either parses or lands in `skipped`.
    """
    result = ParseResult()

    for raw_line in lines:
        line = raw_line.rstrip()
        if not line.strip():
            continue

        cols = split_columns(line)
        if len(cols) < 2:
            continue
        if cols[0].upper() == HEADER_NAME:
            continue

        name = cols[0]
        amount_raw = cols[1]
        date_raw = cols[2] if len(cols) > 2 else ""

        amount = parse_amount_column(amount_raw)
        expense_date = parse_day_month_column(date_raw, year)

        if not name or amount is None or expense_date is None:
            result.skipped.append(
                SkippedLine(
                    line=line,
                    reason=f"name={bool(name)} amount={amount_raw!r} date={date_raw!r}",
                )
            )
            continue

        result.parsed.append(
            ExpenseLine(name=name, amount=amount, expense_date=expense_date)
        )

    return result
