"""
Intent Router

DESIGN DECISION: Routing is an explicit, ordered list of rules.
Each rule is a (kind, predicate) pair evaluated against features
extracted ONCE from the message. The first rule that matches wins,
and the final rule always matches, so every message gets exactly
one intent.

    1. CREATE_RECORD  - message starts with a creation verb
    2. DATED_QUERY    - a dd/mm date AND a receipts/expenses/revenue keyword
    3. MONTHLY_QUERY  - a month key AND a monthly/outstanding/family keyword
    4. UNCLASSIFIED   - everything else (goes to the generative fallback)

No model is involved here.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from ledger_assistant.models.api import ChatContext
from ledger_assistant.models.queries import IntentKind, QueryFamily, RoutedIntent
from ledger_assistant.models.records import ServiceKey
from ledger_assistant.parsing import (
    asks_monthly,
    asks_outstanding,
    is_creation_command,
    mentions_expenses,
    mentions_receipts,
    mentions_revenue,
    parse_date,
    parse_month_key,
    pick_context_month,
)


@dataclass(frozen=True)
class MessageFeatures:
    """Everything the rules look at, parsed once per message."""
    message: str
    is_creation: bool
    families: frozenset
    query_date: Optional[date]
    month_key: Optional[str]
    asks_open: bool
    asks_monthly: bool
    context_service: Optional[ServiceKey]


@dataclass(frozen=True)
class RoutingRule:
    kind: IntentKind
    matches: Callable[[MessageFeatures], bool]


def _is_creation(f: MessageFeatures) -> bool:
    return f.is_creation


def _is_dated_query(f: MessageFeatures) -> bool:
    return f.query_date is not None and bool(f.families)


def _is_monthly_query(f: MessageFeatures) -> bool:
    return f.month_key is not None and (
        f.asks_monthly or f.asks_open or bool(f.families)
    )


def _always(f: MessageFeatures) -> bool:
    return True


ROUTING_RULES: list[RoutingRule] = [
    RoutingRule(IntentKind.CREATE_RECORD, _is_creation),
    RoutingRule(IntentKind.DATED_QUERY, _is_dated_query),
    RoutingRule(IntentKind.MONTHLY_QUERY, _is_monthly_query),
    RoutingRule(IntentKind.UNCLASSIFIED, _always),
]


def context_service_key(context: Optional[ChatContext]) -> Optional[ServiceKey]:
    """The caller's service hint, if it names a known service."""
    if context is None or not context.service:
        return None
    try:
        return ServiceKey(context.service)
    except ValueError:
        return None


def extract_features(
    message: str,
    context: Optional[ChatContext] = None,
    today: Optional[date] = None,
) -> MessageFeatures:
    families = set()
    if mentions_receipts(message):
        families.add(QueryFamily.RECEIPTS)
    if mentions_expenses(message):
        families.add(QueryFamily.EXPENSES)
    if mentions_revenue(message):
        families.add(QueryFamily.REVENUE)

    # The month the app is showing beats a month typed in the text
    month_key = pick_context_month(context.month if context else None)
    if month_key is None:
        month_key = parse_month_key(message)

    return MessageFeatures(
        message=message,
        is_creation=is_creation_command(message),
        families=frozenset(families),
        query_date=parse_date(message, today=today),
        month_key=month_key,
        asks_open=asks_outstanding(message),
        asks_monthly=asks_monthly(message),
        context_service=context_service_key(context),
    )


class IntentRouter:
    """
    Classifies a chat message into exactly one intent.

    `rules` can be swapped for testing a single rule in isolation.
    """

    def __init__(self, rules: Optional[list[RoutingRule]] = None):
        self._rules = rules if rules is not None else ROUTING_RULES

    def route(
        self,
        message: str,
        context: Optional[ChatContext] = None,
        today: Optional[date] = None,
    ) -> RoutedIntent:
        features = extract_features(message, context, today)

        kind = IntentKind.UNCLASSIFIED
        for rule in self._rules:
            if rule.matches(features):
                kind = rule.kind
                break

        return RoutedIntent(
            kind=kind,
            message=message,
            families=features.families,
            query_date=features.query_date,
            month_key=features.month_key,
            asks_open=features.asks_open,
            asks_monthly=features.asks_monthly,
            context_service=features.context_service,
        )
