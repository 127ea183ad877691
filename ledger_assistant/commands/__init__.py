"""Chat command handlers package."""

from ledger_assistant.commands.creation import (
    ASK_AMOUNT_REPLY,
    ASK_TITLE_REPLY,
    RecordCreationHandler,
    render_confirmation,
)

__all__ = [
    "ASK_AMOUNT_REPLY",
    "ASK_TITLE_REPLY",
    "RecordCreationHandler",
    "render_confirmation",
]
