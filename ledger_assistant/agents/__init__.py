"""AI Agents package."""

from ledger_assistant.agents.ai_agents import (
    FallbackAgent,
    ImportSuggestionAgent,
    build_import_prompt,
    build_system_preamble,
    not_configured_reply,
)

__all__ = [
    "FallbackAgent",
    "ImportSuggestionAgent",
    "build_import_prompt",
    "build_system_preamble",
    "not_configured_reply",
]
