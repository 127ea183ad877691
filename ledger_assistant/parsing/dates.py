"""
Date and month parsing for pt-BR text.

DESIGN DECISION: Parsing is DETERMINISTIC and never guesses.
Anything that does not look like a real calendar date comes back as None.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional


# dd/mm, dd/mm/yy, dd/mm/yyyy (not part of a longer number)
_DATE_RE = re.compile(r"(?<![\d/])(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?(?![\d/])")

# yyyy-mm with a 20xx year
_MONTH_KEY_RE = re.compile(r"(?<!\d)(20\d{2})-(0[1-9]|1[0-2])(?!\d)")

# What a client may send as context.month
_CONTEXT_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def parse_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """
    Find the first pt-BR date in `text`.

    - "23/12"      -> 23 Dec of the current year
    - "23/12/25"   -> 2025-12-23 (two-digit years are 2000+yy)
    - "23/12/2025" -> 2025-12-23
    - "32/01"      -> None (day out of range)
    - "31/02"      -> None (not a calendar date)
    """
    if not text:
        return None

    match = _DATE_RE.search(text)
    if not match:
        return None

    day = int(match.group(1))
    month = int(match.group(2))
    year_raw = match.group(3)

    if year_raw is None:
        year = (today or date.today()).year
    elif len(year_raw) == 2:
        year = 2000 + int(year_raw)
    else:
        year = int(year_raw)

    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None

    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_iso(value: date) -> str:
    """yyyy-mm-dd"""
    return value.isoformat()


def parse_month_key(text: str) -> Optional[str]:
    """Find a 'yyyy-mm' month key (20xx years only) in free text."""
    if not text:
        return None
    match = _MONTH_KEY_RE.search(text.strip())
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}"


def pick_context_month(value: Optional[str]) -> Optional[str]:
    """
    Accept a caller-supplied month only if it is shaped like 'yyyy-mm'.

    The month number itself is checked later by month_window().
    """
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value if _CONTEXT_MONTH_RE.match(value) else None


@dataclass(frozen=True)
class MonthWindow:
    """
    Half-open month interval [start, end).

    Dates are for the `date` columns, timestamps (UTC) for `created_at`.
    """
    month_key: str
    start_date: date
    end_date: date

    @property
    def start_ts(self) -> datetime:
        return datetime(
            self.start_date.year, self.start_date.month, 1, tzinfo=timezone.utc
        )

    @property
    def end_ts(self) -> datetime:
        return datetime(
            self.end_date.year, self.end_date.month, 1, tzinfo=timezone.utc
        )

    def contains_date(self, value: date) -> bool:
        return self.start_date <= value < self.end_date


def month_window(month_key: str) -> Optional[MonthWindow]:
    """Build the window for 'yyyy-mm', or None if the key is not a real month."""
    if not month_key or not _CONTEXT_MONTH_RE.match(month_key):
        return None

    year = int(month_key[:4])
    month = int(month_key[5:7])
    if year < 1 or not 1 <= month <= 12:
        return None

    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)

    return MonthWindow(month_key=month_key, start_date=start, end_date=end)


def find_date_start(text: str) -> Optional[int]:
    """Index where the first dd/mm token starts, or None."""
    match = _DATE_RE.search(text or "")
    return match.start() if match else None


def utc_today() -> date:
    """Today's date in UTC (the server's notion of "today")."""
    return datetime.now(timezone.utc).date()
