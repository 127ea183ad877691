"""Role-based access gate package."""

from ledger_assistant.access.gate import (
    PRIVILEGE_MISSING_MESSAGE,
    REFUSAL_MESSAGE,
    AccessGate,
    AccessRefusedError,
    Caller,
    DataClass,
    Verdict,
    check_capability,
    resolve_role,
)

__all__ = [
    "PRIVILEGE_MISSING_MESSAGE",
    "REFUSAL_MESSAGE",
    "AccessGate",
    "AccessRefusedError",
    "Caller",
    "DataClass",
    "Verdict",
    "check_capability",
    "resolve_role",
]
