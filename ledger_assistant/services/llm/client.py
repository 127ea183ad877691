"""
Chat-completion client.

Any OpenAI-compatible endpoint works (Groq, OpenAI, LM Studio...): the
base URL, model and key all come from ASSISTANT_AI_* settings.

DESIGN DECISION: No retries. The SDK's own retry loop is switched off
(max_retries=0) so a provider failure is terminal for the request.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import openai
import structlog

from ledger_assistant.config import get_settings


logger = structlog.get_logger(__name__)


class GenerativeServiceError(Exception):
    """The provider call failed or returned nothing usable."""
    pass


class GenerativeNotConfiguredError(GenerativeServiceError):
    """No provider credential is configured."""
    pass


class ChatCompletionInterface(ABC):
    """Send messages, get one reply."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        json_mode: bool = False,
    ) -> str:
        """
        Raises:
            GenerativeServiceError: On any transport, auth or empty-reply failure
        """
        pass


class ChatCompletionClient(ChatCompletionInterface):
    """AsyncOpenAI-backed implementation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings().assistant_ai
        self._api_key = api_key or settings.api_key
        self._base_url = base_url or settings.base_url
        self._model = model or settings.model_name
        self._temperature = settings.temperature if temperature is None else temperature
        self._timeout = timeout or settings.timeout_seconds
        self._client: Optional[openai.AsyncOpenAI] = None
        self._logger = logger.bind(model=self._model, base_url=self._base_url)

    def _get_client(self) -> openai.AsyncOpenAI:
        if not self._api_key:
            raise GenerativeNotConfiguredError("ASSISTANT_AI_API_KEY is not set")
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        messages: list[dict[str, str]],
        json_mode: bool = False,
    ) -> str:
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            self._logger.warning("completion_failed", error=str(e))
            raise GenerativeServiceError(f"{type(e).__name__}: {e}") from e

        if not response.choices:
            raise GenerativeServiceError("Provider returned no choices")

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise GenerativeServiceError("Provider returned an empty reply")

        self._logger.debug(
            "completion_received",
            prompt_messages=len(messages),
            reply_chars=len(content),
        )
        return content
