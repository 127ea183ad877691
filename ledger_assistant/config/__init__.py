"""Configuration package."""

from ledger_assistant.config.settings import (
    AppSettings,
    AssistantAISettings,
    ImportSettings,
    Settings,
    SupabaseSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AssistantAISettings",
    "ImportSettings",
    "Settings",
    "SupabaseSettings",
    "get_settings",
    "validate_all_settings",
]
