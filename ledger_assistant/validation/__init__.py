"""Model output validation package."""

from ledger_assistant.validation.validator import (
    ImportDraftValidator,
    InvalidModelOutputError,
)

__all__ = ["ImportDraftValidator", "InvalidModelOutputError"]
