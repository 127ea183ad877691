"""
Import Draft Validation Pipeline

DESIGN DECISION: The model's answer is untrusted text. It goes through
three stages before anything is shown to the user:

STAGE 0 - STRICT DECODE:
- Must be valid JSON (NaN/Infinity rejected)
- Must be an object with "items" and optional "warnings", nothing else

STAGE 1 - SCHEMA VALIDATION:
- Each item must match the draft model for the import kind exactly
- Unknown fields, missing required fields, malformed dates, non-numeric
  amounts and more than two decimal places are rejected
- The item cap is enforced here, by us, whatever the model did

STAGE 2 - SEMANTIC VALIDATION:
- Duplicated drafts inside the batch
- Dates far in the future
- Zero amounts

IMPORTANT: Validation NEVER silently fixes issues.
Stage 0/1 failures raise InvalidModelOutputError carrying the raw text.
Stage 2 findings are reported as warnings for human review.
"""

import json
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError

from ledger_assistant.config import get_settings
from ledger_assistant.models.api import ImportSuggestion
from ledger_assistant.models.imports import DraftEnvelope, ExpenseDraft, RevenueDraft
from ledger_assistant.models.records import ImportKind
from ledger_assistant.parsing import utc_today


Draft = Union[ExpenseDraft, RevenueDraft]

_DRAFT_MODELS = {
    ImportKind.EXPENSES: ExpenseDraft,
    ImportKind.REVENUE: RevenueDraft,
}


class InvalidModelOutputError(Exception):
    """
    The model answered with something we cannot accept.

    `raw` is the model's untouched text, kept for operators.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.message = message
        self.raw = raw


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not valid JSON")


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "(root)"
    return f"{location}: {first.get('msg', 'invalid')}"


class ImportDraftValidator:
    """
    Validates the normalizer's raw answer into an ImportSuggestion.

    Stage 0/1 failures are errors. Stage 2 only adds warnings.
    """

    def __init__(
        self,
        item_limit: Optional[int] = None,
        future_date_tolerance_days: Optional[int] = None,
    ):
        settings = get_settings().app
        self._item_limit = item_limit or settings.import_sample_limit
        if future_date_tolerance_days is None:
            future_date_tolerance_days = settings.future_date_tolerance_days
        self._future_tolerance = timedelta(days=future_date_tolerance_days)

    def _decode(self, raw: str) -> DraftEnvelope:
        """Stage 0: strict JSON decode and envelope shape."""
        try:
            payload = json.loads(
                raw,
                parse_float=Decimal,
                parse_constant=_reject_constant,
            )
        except ValueError as e:
            raise InvalidModelOutputError(f"IA retornou JSON inválido: {e}", raw) from e

        if not isinstance(payload, dict):
            raise InvalidModelOutputError(
                "IA retornou JSON inválido: esperado um objeto com 'items'", raw
            )

        try:
            return DraftEnvelope.model_validate(payload)
        except ValidationError as e:
            raise InvalidModelOutputError(
                f"IA retornou JSON fora do formato: {_describe(e)}", raw
            ) from e

    def _validate_schema(
        self,
        envelope: DraftEnvelope,
        import_kind: ImportKind,
        raw: str,
    ) -> tuple[list[Draft], list[str]]:
        """Stage 1: cap, then validate every item against the draft model."""
        warnings: list[str] = []
        items = envelope.items

        if len(items) > self._item_limit:
            warnings.append(
                f"A IA devolveu {len(items)} itens; só os primeiros "
                f"{self._item_limit} foram mantidos."
            )
            items = items[: self._item_limit]

        model = _DRAFT_MODELS[import_kind]
        drafts: list[Draft] = []
        for index, item in enumerate(items):
            try:
                drafts.append(model.model_validate(item))
            except ValidationError as e:
                raise InvalidModelOutputError(
                    f"IA retornou item inválido na posição {index}: {_describe(e)}", raw
                ) from e

        return drafts, warnings

    def _validate_semantic(
        self,
        drafts: list[Draft],
        today: date,
    ) -> list[str]:
        """Stage 2: report suspicious drafts, never change them."""
        warnings: list[str] = []
        max_future_date = today + self._future_tolerance

        seen: dict[tuple, int] = {}
        for index, draft in enumerate(drafts):
            key = draft.dedup_key
            if key in seen:
                warnings.append(
                    f"Itens {seen[key]} e {index} parecem duplicados."
                )
            else:
                seen[key] = index

            if draft.draft_date > max_future_date:
                warnings.append(
                    f"Item {index} tem data no futuro ({draft.draft_date.isoformat()})."
                )

            if draft.amount == 0:
                warnings.append(f"Item {index} está com valor zero.")

        return warnings

    def validate(
        self,
        raw: str,
        import_kind: ImportKind,
        today: Optional[date] = None,
    ) -> ImportSuggestion:
        """
        Run the full pipeline.

        Raises:
            InvalidModelOutputError: If the answer fails stage 0 or 1
        """
        envelope = self._decode(raw)
        drafts, cap_warnings = self._validate_schema(envelope, import_kind, raw)
        semantic_warnings = self._validate_semantic(drafts, today or utc_today())

        return ImportSuggestion(
            items=[d.model_dump(mode="json", exclude_none=True) for d in drafts],
            warnings=[*envelope.warnings, *cap_warnings, *semantic_warnings],
        )
