"""
FastAPI Entrypoint for the Ledger Assistant

One endpoint, POST /assistant, two modes:
- chat: questions, creation commands and free conversation
- import_suggest: spreadsheet sample -> drafts for human review

DESIGN PRINCIPLES:
1. No bearer credential, no work: rejected before the body is read
2. Role is derived server-side on every request, never from the body
3. Policy refusals and persistence errors are in-band replies (200)
4. Nothing from the import flow is saved; drafts go back to a person

Status codes:
- 400: bad JSON, unknown mode, empty message, empty rows
- 401: missing bearer or identity lookup failed
- 502: generative provider failed or answered with invalid drafts
- 500: server misconfiguration
"""

import json
from functools import lru_cache
from typing import Any, Optional, Union

import structlog
from fastapi import Depends, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError

from ledger_assistant.agents import not_configured_reply
from ledger_assistant.audit import create_correlation_id
from ledger_assistant.config import validate_all_settings
from ledger_assistant.models.api import (
    AssistantRequest,
    ChatRequest,
    ErrorResponse,
    ImportSuggestRequest,
)
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.orchestrator import (
    AppComponents,
    InvalidRequestError,
    create_app_components,
    validate_request,
)
from ledger_assistant.services.llm import GenerativeServiceError
from ledger_assistant.services.storage import AuthenticationError
from ledger_assistant.validation import InvalidModelOutputError


logger = structlog.get_logger(__name__)

_REQUEST_ADAPTER = TypeAdapter(AssistantRequest)

app = FastAPI(title="Ledger Assistant")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


class ConfigurationError(Exception):
    """The server cannot build its components from the environment."""


@lru_cache()
def _build_components() -> AppComponents:
    return create_app_components()


def get_components() -> AppComponents:
    """
    Application components (cached).

    Tests override this dependency with components built on fakes.
    """
    try:
        return _build_components()
    except ValidationError as e:
        logger.error("components_misconfigured", error=str(e))
        raise ConfigurationError("Supabase env não configurado") from e


def _error(status_code: int, error: str, **extra: Optional[str]) -> JSONResponse:
    body = ErrorResponse(error=error, **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return _error(500, str(exc))


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def _read_request(request: Request) -> Union[ChatRequest, ImportSuggestRequest]:
    """
    Parse and validate the body.

    Raises:
        InvalidRequestError: Bad JSON, unknown mode or empty input
    """
    body = await request.body()
    try:
        payload = json.loads(body or b"null")
    except ValueError as e:
        raise InvalidRequestError("JSON inválido") from e

    try:
        parsed = _REQUEST_ADAPTER.validate_python(payload)
    except ValidationError as e:
        if not isinstance(payload, dict) or payload.get("mode") not in ("chat", "import_suggest"):
            raise InvalidRequestError("mode inválido") from e
        raise InvalidRequestError("Requisição inválida") from e

    validate_request(parsed)
    return parsed


@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    """Configuration status only; error text is logged, never returned."""
    status = validate_all_settings()
    for key, value in status.items():
        if key.endswith("_error"):
            logger.warning("settings_invalid", setting=key[: -len("_error")], error=value)

    return {
        "status": "ok" if status.get("supabase") else "misconfigured",
        "checks": {k: v for k, v in status.items() if isinstance(v, bool)},
    }


@app.post("/assistant")
async def assistant(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
) -> Any:
    correlation_id = create_correlation_id()
    audit_logger = components.audit_logger

    token = _bearer_token(authorization)
    if token is None:
        await audit_logger.log(
            AuditEventBuilder.request_rejected("missing bearer", 401, correlation_id)
        )
        return _error(401, "Não autenticado")

    try:
        parsed = await _read_request(request)
    except InvalidRequestError as e:
        await audit_logger.log(
            AuditEventBuilder.request_rejected(e.message, 400, correlation_id)
        )
        return _error(400, e.message)

    try:
        caller = await components.gate.authenticate(token)
    except AuthenticationError as e:
        await audit_logger.log(
            AuditEventBuilder.request_rejected(e.message, 401, correlation_id)
        )
        return _error(401, "Sessão inválida")

    await audit_logger.log(
        AuditEventBuilder.request_received(
            mode=parsed.mode,
            user_id=caller.user_id,
            role=caller.role.value,
            correlation_id=correlation_id,
        )
    )

    if isinstance(parsed, ChatRequest):
        reply = await components.chat_flow.handle(parsed, caller, correlation_id)
        return reply.model_dump(exclude_none=True)

    try:
        suggestion = await components.import_flow.suggest(parsed, caller, correlation_id)
    except GenerativeServiceError as e:
        return _error(502, not_configured_reply(components.persona_name), detail=str(e))
    except InvalidModelOutputError as e:
        return _error(502, e.message, raw=e.raw)

    return {"suggestion": suggestion.model_dump()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
