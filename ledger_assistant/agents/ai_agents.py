"""
AI Agents for the Ledger Assistant

CRITICAL BOUNDARIES:

1. FALLBACK AGENT:
   - CAN: Chat about anything the deterministic paths did not recognize
   - CANNOT: Read the store (it only sees the preamble, history and message)
   - MUST: Never claim to have consulted data it was not given
   - MUST: Degrade to a fixed reply naming the missing configuration

2. IMPORT SUGGESTION AGENT:
   - CAN: Turn a spreadsheet sample into draft rows
   - CANNOT: Persist anything (drafts go back to a human)
   - CANNOT: See more than the capped sample
   - Its output is only trusted after ImportDraftValidator accepts it

The model is a TRANSLATOR, not an ORACLE.
Every number in a deterministic answer comes from the query executor.
"""

import json
from datetime import date
from typing import Any, Callable, Optional

import structlog

from ledger_assistant.models.api import ChatReply, ChatTurn
from ledger_assistant.models.records import ExpenseKind, ImportKind, ServiceKey
from ledger_assistant.parsing import utc_today
from ledger_assistant.services.llm import ChatCompletionInterface, GenerativeServiceError


logger = structlog.get_logger(__name__)


def not_configured_reply(persona: str) -> str:
    """Fixed reply used whenever the generative provider cannot answer."""
    return (
        f"{persona} ainda não está configurada com uma API de IA. Peça ao admin "
        "para configurar `ASSISTANT_AI_API_KEY` (e opcionalmente "
        "`ASSISTANT_AI_BASE_URL`/`ASSISTANT_AI_MODEL_NAME`)."
    )


def build_system_preamble(persona: str) -> str:
    """Fixed system message for free conversation."""
    return f"""Você é a {persona}, a gatinha mascote da agência e agente financeira. Fale em pt-BR.

Personalidade: divertida, carinhosa, com jeitinho de gatinha (pode usar 'miau' e trocadilhos leves), mas SEM exagero e SEM emojis.

Estilo: objetiva, educada e prática. Quando faltar informação, faça 1-2 perguntas curtas. Não invente números.

Contexto do app (importante):
- Existe um filtro de mês (YYYY-MM) nas abas. Se o usuário estiver numa aba de serviço, o contexto pode incluir {{ service }} e {{ month }}.
- Tabela service_entries guarda lançamentos de serviços (receitas e algumas despesas). Campos: service, title, amount (positivo=receita, negativo=despesa), entry_date, metadata. Em metadata: entry_type ('receita'|'despesa'), paid (boolean), paid_amount (número).
- Serviços: {', '.join(k.value for k in ServiceKey)}.
- Tabela expenses guarda despesas (admin-only) com kind ({', '.join(k.value for k in ExpenseKind)}), name, amount, expense_date, paid e metadata.paid_amount.
- Tabela accounts_payable guarda contas a pagar (admin-only) com vendor, amount, due_date, status ('open'|'paid'|'canceled').
- Um lançamento está pago quando o que falta é no máximo R$ 0,02; parcial quando já tem algo pago mas ainda falta.
- Roles: admin vê tudo; employee não vê despesas nem contas a pagar.

Regras: se a pergunta pedir dados do banco e não vier data/mês, peça o mês (YYYY-MM) ou use o contexto se existir. Se pedir 'quem falta pagar', entenda como pendências (a receber ou a pagar) e pergunte se é por serviço/aba ou geral. Nunca finja que consultou dados se você não consultou."""


class FallbackAgent:
    """
    Forwards unclassified chat turns to the generative provider.

    Only the last `history_limit` turns are sent. Client-supplied
    "system" turns are dropped so the preamble cannot be overridden.
    """

    def __init__(
        self,
        client: ChatCompletionInterface,
        history_limit: int = 10,
        persona_name: str = "Chuvinha",
    ):
        self._client = client
        self._history_limit = history_limit
        self._persona = persona_name

    def build_messages(
        self,
        message: str,
        history: Optional[list[ChatTurn]] = None,
    ) -> list[dict[str, str]]:
        turns = [t for t in (history or []) if t.role in ("user", "assistant")]
        recent = turns[-self._history_limit:] if self._history_limit > 0 else []

        messages = [{"role": "system", "content": build_system_preamble(self._persona)}]
        messages.extend({"role": t.role, "content": t.content} for t in recent)
        messages.append({"role": "user", "content": message})
        return messages

    async def respond(
        self,
        message: str,
        history: Optional[list[ChatTurn]] = None,
    ) -> ChatReply:
        """
        One provider call, never retried.

        Any provider failure becomes the fixed "not configured" reply
        with the raw error in `detail`.
        """
        messages = self.build_messages(message, history)
        try:
            reply = await self._client.complete(messages)
        except GenerativeServiceError as e:
            logger.warning("fallback_failed", error=str(e))
            return ChatReply(reply=not_configured_reply(self._persona), detail=str(e))

        return ChatReply(reply=reply)


_EXPENSE_SHAPE = (
    "{ kind: 'fixed'|'variable'|'provision', name: string, amount: number, "
    "expense_date: 'YYYY-MM-DD', paid?: boolean, payment_method?: string, notes?: string }"
)

_REVENUE_SHAPE = (
    "{ service: " + "|".join(f"'{k.value}'" for k in ServiceKey) + ", "
    "title: string, amount: number, entry_date: 'YYYY-MM-DD', paid?: boolean, "
    "payment_method?: string, notes?: string }"
)


def build_import_prompt(import_kind: ImportKind, today: date, limit: int) -> str:
    """System message describing the exact draft shape for one import kind."""
    if import_kind == ImportKind.EXPENSES:
        what = "despesas"
        shape = _EXPENSE_SHAPE
        default_hint = "Use kind 'variable' quando não der para saber se é fixa."
    else:
        what = "receitas"
        shape = _REVENUE_SHAPE
        default_hint = "Use service 'servicos_variados' quando a planilha não indicar o serviço."

    return f"""Você é uma agente financeira. Sua tarefa é transformar uma amostra de linhas de planilha de {what} em um JSON válido para importação. Responda SOMENTE com JSON, sem texto antes ou depois.

Formato da resposta: {{ "items": [ ... ], "warnings": [ string, ... ] }}

Cada item deve ter EXATAMENTE estes campos (nenhum outro): {shape}

Regras:
- Valores em BRL podem vir como "1.324,00" ou "R$ 1.324,00": converta para número com ponto decimal e no máximo 2 casas (1324.00).
- Datas podem vir dd/mm/aaaa ou dd/mm: converta para YYYY-MM-DD.
- Se não existir o campo, infira pelo nome da coluna.
- Não invente dados ausentes: se não achar a data, use hoje ({today.isoformat()}) e explique em warnings.
- {default_hint}
- Se uma linha for ambígua (por exemplo, dois valores sem rótulo), não adivinhe: inclua um aviso em warnings.
- Limite a {limit} itens."""


class ImportSuggestionAgent:
    """
    Asks the provider to turn a spreadsheet sample into draft rows.

    Returns the model's RAW text. Parsing and validation are the
    validator's job, so a bad answer can be reported with its raw text.
    """

    def __init__(
        self,
        client: ChatCompletionInterface,
        sample_limit: int = 50,
        clock: Callable[[], date] = utc_today,
    ):
        self._client = client
        self._sample_limit = sample_limit
        self._clock = clock

    def build_messages(
        self,
        import_kind: ImportKind,
        rows: list[Any],
    ) -> list[dict[str, str]]:
        sample = rows[: self._sample_limit]
        user_content = json.dumps(
            {"importKind": import_kind.value, "rows": sample},
            ensure_ascii=False,
            default=str,
        )
        return [
            {
                "role": "system",
                "content": build_import_prompt(import_kind, self._clock(), self._sample_limit),
            },
            {"role": "user", "content": user_content},
        ]

    async def suggest(self, import_kind: ImportKind, rows: list[Any]) -> str:
        """
        Raises:
            GenerativeServiceError: If the provider call fails
        """
        messages = self.build_messages(import_kind, rows)
        logger.info(
            "import_suggest_requested",
            import_kind=import_kind.value,
            rows_received=len(rows),
            rows_sent=min(len(rows), self._sample_limit),
        )
        return await self._client.complete(messages, json_mode=True)
