"""
Keyword detectors for pt-BR chat messages.

Everything here matches on accent-folded lowercase text, so
"Não pagou", "nao pagou" and "NÃO PAGOU" behave the same.
"""

import re
import unicodedata
from typing import Optional

from ledger_assistant.models.records import RecurrenceRule, ServiceKey
from ledger_assistant.parsing.dates import find_date_start
from ledger_assistant.parsing.money import find_money_span


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and surrounding whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


def _fold_char(ch: str) -> str:
    base = unicodedata.normalize("NFD", ch)[0]
    lowered = base.lower()
    return lowered if len(lowered) == 1 else base


def fold_preserving_length(text: str) -> str:
    """
    Accent-fold and lowercase one character at a time.

    Positions in the result line up with positions in `text`, which lets
    us search the folded text and slice the original.
    """
    return "".join(_fold_char(ch) for ch in text)


# Order matters: the first matching family wins.
_SERVICE_PATTERNS: list[tuple[ServiceKey, re.Pattern]] = [
    (ServiceKey.GESTAO_MIDIAS, re.compile(r"\b(gestao|midia|midias|redes sociais)\b")),
    (ServiceKey.MELHORES_DO_ANO, re.compile(r"melhores do ano")),
    (ServiceKey.PREMIO_EXCELENCIA, re.compile(r"premio excelencia")),
    (ServiceKey.CARRO_DE_SOM, re.compile(r"carro de som")),
    (ServiceKey.REVISTA_FACTUS, re.compile(r"revista factus")),
    (ServiceKey.REVISTA_SAUDE, re.compile(r"revista saude|factus saude")),
]


def detect_service_key(text: str) -> ServiceKey:
    """Map a message to its service family, SERVICOS_VARIADOS when nothing matches."""
    folded = normalize_text(text)
    for key, pattern in _SERVICE_PATTERNS:
        if pattern.search(folded):
            return key
    return ServiceKey.SERVICOS_VARIADOS


_NOT_PAID_RE = re.compile(r"\b(nao\s+pag\w*|em\s+aberto|pendente|a\s+receber)\b")
_PAID_RE = re.compile(r"\b(ja\s+pag\w*|pago|paga|pagou|quitad[oa]|recebid[oa])\b")


def detect_paid(text: str) -> bool:
    """
    True only when the text says it was paid.

    A negation ("não pagou", "em aberto") always wins over a paid keyword.
    """
    folded = normalize_text(text)
    if _NOT_PAID_RE.search(folded):
        return False
    return bool(_PAID_RE.search(folded))


_RECURRENCE_PATTERNS: list[tuple[RecurrenceRule, re.Pattern]] = [
    (RecurrenceRule.MENSAL, re.compile(r"\b(mensal|mensais|mensalmente|todo mes)\b")),
    (RecurrenceRule.SEMANAL, re.compile(r"\b(semanal|semanais|semanalmente|toda semana)\b")),
    (RecurrenceRule.ANUAL, re.compile(r"\b(anual|anuais|anualmente|todo ano)\b")),
]


def detect_recurrence(text: str) -> Optional[RecurrenceRule]:
    folded = normalize_text(text)
    for rule, pattern in _RECURRENCE_PATTERNS:
        if pattern.search(folded):
            return rule
    return None


_PAYMENT_METHOD_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("pix", re.compile(r"\bpix\b")),
    ("cartao", re.compile(r"\b(cartao|credito|debito)\b")),
    ("boleto", re.compile(r"\bboleto\b")),
    ("cheque", re.compile(r"\bcheque\b")),
    ("dinheiro", re.compile(r"\b(dinheiro|especie)\b")),
    ("transferencia", re.compile(r"\b(transferencia|ted|doc)\b")),
]


def detect_payment_method(text: str) -> Optional[str]:
    folded = normalize_text(text)
    for method, pattern in _PAYMENT_METHOD_PATTERNS:
        if pattern.search(folded):
            return method
    return None


_INSTALLMENTS_RE = re.compile(r"\b(\d{1,2})\s*x\b")


def detect_installments(text: str) -> Optional[int]:
    """'3x' / '10 x' -> installment count (1 is treated as none)."""
    match = _INSTALLMENTS_RE.search(normalize_text(text))
    if not match:
        return None
    count = int(match.group(1))
    return count if count > 1 else None


# Query families and flags
_RECEIPTS_RE = re.compile(r"\b(recebimentos?|recebido|recebidos)\b")
_EXPENSES_RE = re.compile(r"\b(despesas?|gastos?)\b")
_REVENUE_RE = re.compile(r"\b(receitas?|faturamento)\b")
_OPEN_RE = re.compile(
    r"(falta\s+pagar|falta\s+receber|quem\s+falta|em\s+aberto|\bpendentes?\b|\bpendencias?\b)"
)
_MONTHLY_RE = re.compile(r"\b(mes|mensal|mensais|no\s+mes|neste\s+mes|nesse\s+mes)\b")


def mentions_receipts(text: str) -> bool:
    return bool(_RECEIPTS_RE.search(normalize_text(text)))


def mentions_expenses(text: str) -> bool:
    return bool(_EXPENSES_RE.search(normalize_text(text)))


def mentions_revenue(text: str) -> bool:
    return bool(_REVENUE_RE.search(normalize_text(text)))


def asks_outstanding(text: str) -> bool:
    return bool(_OPEN_RE.search(normalize_text(text)))


def asks_monthly(text: str) -> bool:
    return bool(_MONTHLY_RE.search(normalize_text(text)))


# Creation commands
_CREATION_VERB_RE = re.compile(
    r"^\s*(cadastre|cadastrar|cadastra|registre|registrar|lance|lancar)\b"
)

# Where a title stops
_TITLE_STOP_RE = re.compile(
    r"(\bvalor\b|r\$|\bmensal\w*|\bsemanal\w*|\banual\w*"
    r"|\bem\s|\bpara\s|\bno\s|\bna\s|\bainda\b|\bja\b"
    r"|\bpago\b|\bpagou\b|\bnao\s+pag\w*|\bquitad\w*|\bpendente\b)"
)


def is_creation_command(text: str) -> bool:
    return bool(_CREATION_VERB_RE.search(normalize_text(text)))


def extract_title(text: str) -> Optional[str]:
    """
    Pull the record title out of a creation command.

    "Cadastre Duo Medic R$ 300 mensal" -> "Duo Medic"

    The title is what follows the verb, up to the first money-looking
    token or reserved keyword. Returns None when nothing is left.
    """
    if not text:
        return None

    folded = fold_preserving_length(text)
    verb = _CREATION_VERB_RE.search(folded)
    if not verb:
        return None

    tail = text[verb.end():]
    folded_tail = folded[verb.end():]

    cuts = [len(tail)]
    for found in (find_money_span(tail), find_date_start(tail)):
        if found is not None:
            cuts.append(found)
    stop = _TITLE_STOP_RE.search(folded_tail)
    if stop:
        cuts.append(stop.start())

    title = tail[: min(cuts)]
    title = re.sub(r"\s+", " ", title).strip(" \t:-,.;")
    return title or None
