"""Intent routing package."""

from ledger_assistant.routing.router import (
    ROUTING_RULES,
    IntentRouter,
    MessageFeatures,
    RoutingRule,
    context_service_key,
    extract_features,
)

__all__ = [
    "ROUTING_RULES",
    "IntentRouter",
    "MessageFeatures",
    "RoutingRule",
    "context_service_key",
    "extract_features",
]
