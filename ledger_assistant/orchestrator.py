"""
Main Orchestrator for the Ledger Assistant

This module ties together all the components and defines the
end-to-end flows for:
1. Chat (message -> route -> create | query | generative fallback)
2. Import suggestion (rows -> capped sample -> model -> strict validation)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Creation and query paths only touch the store through the access gate
- The generative paths never read the store
- Model output is never returned without passing the validator
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Union
from uuid import UUID

from ledger_assistant.access import AccessGate, Caller
from ledger_assistant.agents import FallbackAgent, ImportSuggestionAgent
from ledger_assistant.audit import AuditLogger, create_correlation_id
from ledger_assistant.commands import RecordCreationHandler
from ledger_assistant.config import get_settings
from ledger_assistant.models.api import (
    ChatReply,
    ChatRequest,
    ImportSuggestion,
    ImportSuggestRequest,
)
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.queries import IntentKind
from ledger_assistant.parsing import utc_today
from ledger_assistant.queries import QueryExecutor
from ledger_assistant.routing import IntentRouter
from ledger_assistant.services.llm import (
    ChatCompletionClient,
    ChatCompletionInterface,
    GenerativeServiceError,
)
from ledger_assistant.services.storage import (
    IdentityInterface,
    StoreFactory,
    SupabaseIdentity,
    SupabaseStoreFactory,
)
from ledger_assistant.validation import ImportDraftValidator, InvalidModelOutputError


EMPTY_MESSAGE = "Mensagem vazia"
EMPTY_ROWS = "Planilha vazia"


class InvalidRequestError(Exception):
    """The request is well-formed JSON but cannot be processed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def validate_request(request: Union[ChatRequest, ImportSuggestRequest]) -> None:
    """
    Reject empty input before anything else happens.

    Raises:
        InvalidRequestError: On an empty chat message or empty row sample
    """
    if isinstance(request, ChatRequest):
        if not request.message.strip():
            raise InvalidRequestError(EMPTY_MESSAGE)
    elif not request.rows:
        raise InvalidRequestError(EMPTY_ROWS)


class ChatFlow:
    """
    Orchestrates one chat turn.

    Flow:
    1. Route → exactly one intent (no model involved)
    2a. CREATE_RECORD → creation handler (one insert, or a question)
    2b. DATED_QUERY / MONTHLY_QUERY → deterministic executor
    2c. UNCLASSIFIED → generative fallback (never sees the store)
    """

    def __init__(
        self,
        gate: AccessGate,
        fallback_agent: FallbackAgent,
        router: Optional[IntentRouter] = None,
        executor: Optional[QueryExecutor] = None,
        creation_handler: Optional[RecordCreationHandler] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = utc_today,
    ):
        self._audit_logger = audit_logger or AuditLogger()
        self._router = router or IntentRouter()
        self._executor = executor or QueryExecutor(gate, self._audit_logger)
        self._creation = creation_handler or RecordCreationHandler(
            gate, self._audit_logger, clock=clock
        )
        self._fallback = fallback_agent
        self._clock = clock

    async def handle(
        self,
        request: ChatRequest,
        caller: Caller,
        correlation_id: Optional[UUID] = None,
    ) -> ChatReply:
        correlation_id = correlation_id or create_correlation_id()
        validate_request(request)

        message = request.message.strip()
        intent = self._router.route(message, request.context, today=self._clock())

        if intent.kind == IntentKind.CREATE_RECORD:
            return await self._creation.handle(
                message,
                caller,
                context_service=intent.context_service,
                correlation_id=correlation_id,
            )

        if intent.kind in (IntentKind.DATED_QUERY, IntentKind.MONTHLY_QUERY):
            return await self._executor.execute(intent, caller, correlation_id)

        # Unclassified: the model only sees the preamble, history and message
        await self._audit_logger.log(
            AuditEventBuilder.generative_fallback_used(
                history_turns=len(request.history),
                user_id=caller.user_id,
                correlation_id=correlation_id,
            )
        )
        reply = await self._fallback.respond(message, request.history)
        if reply.detail:
            await self._audit_logger.log(
                AuditEventBuilder.generative_failed(
                    purpose="chat",
                    error_message=reply.detail,
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
        return reply


class ImportSuggestFlow:
    """
    Orchestrates a spreadsheet import suggestion.

    Flow:
    1. Cap the sample (the agent never sends more than the limit)
    2. Ask the model for drafts
    3. Strictly validate (cap enforced again on the way out)
    4. Return drafts + warnings for human review (NOTHING is saved)
    """

    def __init__(
        self,
        agent: ImportSuggestionAgent,
        validator: Optional[ImportDraftValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = utc_today,
    ):
        self._agent = agent
        self._validator = validator or ImportDraftValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock

    async def suggest(
        self,
        request: ImportSuggestRequest,
        caller: Caller,
        correlation_id: Optional[UUID] = None,
    ) -> ImportSuggestion:
        """
        Raises:
            InvalidRequestError: Empty row sample
            GenerativeServiceError: Provider failure (terminal, not retried)
            InvalidModelOutputError: Answer failed strict validation
        """
        correlation_id = correlation_id or create_correlation_id()
        validate_request(request)

        try:
            raw = await self._agent.suggest(request.import_kind, request.rows)
        except GenerativeServiceError as e:
            await self._audit_logger.log(
                AuditEventBuilder.generative_failed(
                    purpose="import_suggest",
                    error_message=str(e),
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
            raise

        try:
            suggestion = self._validator.validate(
                raw, request.import_kind, today=self._clock()
            )
        except InvalidModelOutputError as e:
            await self._audit_logger.log(
                AuditEventBuilder.import_rejected(
                    import_kind=request.import_kind.value,
                    error_message=e.message,
                    user_id=caller.user_id,
                    correlation_id=correlation_id,
                )
            )
            raise

        await self._audit_logger.log(
            AuditEventBuilder.import_suggested(
                import_kind=request.import_kind.value,
                rows_sent=len(request.rows),
                items_accepted=len(suggestion.items),
                warnings=len(suggestion.warnings),
                user_id=caller.user_id,
                correlation_id=correlation_id,
            )
        )
        return suggestion


@dataclass
class AppComponents:
    gate: AccessGate
    chat_flow: ChatFlow
    import_flow: ImportSuggestFlow
    audit_logger: AuditLogger
    persona_name: str = "Chuvinha"


def create_app_components(
    identity: Optional[IdentityInterface] = None,
    store_factory: Optional[StoreFactory] = None,
    chat_client: Optional[ChatCompletionInterface] = None,
    audit_logger: Optional[AuditLogger] = None,
    clock: Callable[[], date] = utc_today,
) -> AppComponents:
    """
    Factory function to create all application components.

    Anything not passed in is built from settings (Supabase + the
    OpenAI-compatible provider). Tests pass in-memory fakes.
    """
    settings = get_settings()
    app_settings = settings.app
    audit_logger = audit_logger or AuditLogger()

    identity = identity or SupabaseIdentity()
    store_factory = store_factory or SupabaseStoreFactory()
    chat_client = chat_client or ChatCompletionClient()

    persona = settings.assistant_ai.persona_name

    gate = AccessGate(identity, store_factory, audit_logger)

    executor = QueryExecutor(
        gate,
        audit_logger,
        line_limit=app_settings.query_line_limit,
        open_items_limit=app_settings.open_items_limit,
    )

    chat_flow = ChatFlow(
        gate,
        FallbackAgent(
            chat_client,
            history_limit=app_settings.history_turn_limit,
            persona_name=persona,
        ),
        executor=executor,
        audit_logger=audit_logger,
        clock=clock,
    )

    import_flow = ImportSuggestFlow(
        ImportSuggestionAgent(
            chat_client,
            sample_limit=app_settings.import_sample_limit,
            clock=clock,
        ),
        validator=ImportDraftValidator(
            item_limit=app_settings.import_sample_limit,
            future_date_tolerance_days=app_settings.future_date_tolerance_days,
        ),
        audit_logger=audit_logger,
        clock=clock,
    )

    return AppComponents(
        gate=gate,
        chat_flow=chat_flow,
        import_flow=import_flow,
        audit_logger=audit_logger,
        persona_name=persona,
    )
