"""
Request/response models for the assistant endpoint.

One endpoint, two modes, discriminated on "mode":
- chat: questions, creation commands and free conversation
- import_suggest: spreadsheet sample -> import drafts
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger_assistant.models.records import ImportKind


class ChatTurn(BaseModel):
    """One previous turn of the conversation, as the client remembers it."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatContext(BaseModel):
    """
    What the client knows about where the user is in the app.

    Both fields are hints. Values that are not strings are dropped;
    validity against the service enumeration and the month format is
    checked by the parsers, not here.
    """
    model_config = ConfigDict(extra="ignore")

    service: Optional[str] = None
    month: Optional[str] = None

    @field_validator('service', 'month', mode='before')
    @classmethod
    def strings_only(cls, v: Any) -> Optional[str]:
        return v.strip() if isinstance(v, str) else None


class ChatRequest(BaseModel):
    mode: Literal["chat"]
    message: str = ""
    history: list[ChatTurn] = Field(default_factory=list)
    context: Optional[ChatContext] = None

    @field_validator('context', mode='before')
    @classmethod
    def objects_only(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, ChatContext)) else None

    @field_validator('history', mode='before')
    @classmethod
    def lists_only(cls, v: Any) -> Any:
        return v if isinstance(v, list) else []


class ImportSuggestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: Literal["import_suggest"]
    import_kind: ImportKind = Field(..., alias="importKind")
    rows: list[Any] = Field(default_factory=list)


AssistantRequest = Annotated[
    Union[ChatRequest, ImportSuggestRequest],
    Field(discriminator="mode"),
]


class ChatReply(BaseModel):
    """
    Natural-language answer.

    detail is only set on degraded outcomes and carries the raw
    upstream error for operators.
    """

    reply: str
    detail: Optional[str] = None


class ImportSuggestion(BaseModel):
    """Validated import drafts plus anything the reviewer should double-check."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    raw: Optional[str] = None
    detail: Optional[str] = None
