"""Generative provider client package."""

from ledger_assistant.services.llm.client import (
    ChatCompletionClient,
    ChatCompletionInterface,
    GenerativeNotConfiguredError,
    GenerativeServiceError,
)

__all__ = [
    "ChatCompletionClient",
    "ChatCompletionInterface",
    "GenerativeNotConfiguredError",
    "GenerativeServiceError",
]
