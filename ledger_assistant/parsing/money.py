"""
BRL money parsing and formatting.

All amounts are Decimal quantized to two places. Floats never enter.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional


TWO_PLACES = Decimal("0.01")

_NUMBER = r"(\d{1,3}(?:\.\d{3})+|\d+)(?:,(\d{1,2}))?(?![\d/])"

# "R$ 1.500,00", "-R$ 10,00", "r$1500"
_PREFIXED_RE = re.compile(r"(-)?\s*r\$\s*" + _NUMBER, re.IGNORECASE)

# bare "1.500,00" / "1500" / "-10,5", never part of a date like 23/12
_BARE_RE = re.compile(r"(?<![\w/.,])(-)?(?<![\w/.,])" + _NUMBER)


def _to_decimal(sign: Optional[str], integer: str, fraction: Optional[str]) -> Optional[Decimal]:
    integer = integer.replace(".", "")
    fraction = (fraction or "").ljust(2, "0")
    try:
        value = Decimal(f"{integer}.{fraction}").quantize(TWO_PLACES)
    except InvalidOperation:
        # more digits than the context precision
        return None
    return -value if sign else value


def parse_money(text: str) -> Optional[Decimal]:
    """
    Find a BRL amount in `text`.

    A currency-prefixed amount wins over a bare number; otherwise the
    first bare number that is not part of a date is used.
    Returns None when nothing numeric is found.
    """
    if not text or not text.strip():
        return None

    cleaned = re.sub(r"\s+", " ", text)

    match = _PREFIXED_RE.search(cleaned) or _BARE_RE.search(cleaned)
    if not match:
        return None
    return _to_decimal(match.group(1), match.group(2), match.group(3))


def find_money_span(text: str) -> Optional[int]:
    """Index of the first money-looking token (prefixed or bare), for title cutting."""
    starts = []
    for pattern in (_PREFIXED_RE, _BARE_RE):
        match = pattern.search(text)
        if match:
            starts.append(match.start())
    return min(starts) if starts else None


def format_money(value: Decimal) -> str:
    """
    Format as pt-BR currency: Decimal("1234.5") -> "R$ 1.234,50".

    parse_money(format_money(x)) == x for any two-place Decimal x.
    """
    quantized = Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    integer, fraction = f"{abs(quantized):.2f}".split(".")
    grouped = f"{int(integer):,}".replace(",", ".")
    return f"{sign}R$ {grouped},{fraction}"
