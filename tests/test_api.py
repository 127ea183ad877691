"""
End-to-end tests for POST /assistant.

The app runs with components built on the in-memory fakes, so every
store read/insert and every model call can be counted.
"""

import json
import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import ConfigurationError, app, get_components
from ledger_assistant.access import REFUSAL_MESSAGE
from ledger_assistant.agents import not_configured_reply
from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.audit import AuditEventType
from ledger_assistant.orchestrator import EMPTY_MESSAGE, EMPTY_ROWS, create_app_components
from ledger_assistant.services.storage import (
    EXPENSES_TABLE,
    SERVICE_ENTRIES_TABLE,
    SupabaseIdentity,
)

from tests.conftest import (
    ADMIN_TOKEN,
    EMPLOYEE_TOKEN,
    TODAY,
    FakeChatClient,
    FakeDatabase,
    FakeIdentity,
    FakeStoreFactory,
    expense_row,
)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def draft_answer(count):
    return json.dumps({
        "items": [
            {
                "kind": "variable",
                "name": f"Item {i}",
                "amount": 10.5,
                "expense_date": "2025-12-01",
            }
            for i in range(count)
        ],
        "warnings": [],
    })


class Harness:
    """Components on fakes plus a client wired to them."""

    def __init__(self, chat_client=None, privileged=True, identity=None):
        self.db = FakeDatabase()
        self.chat_client = chat_client or FakeChatClient()
        self.audit_logger = AuditLogger(keep_events=True)
        self.components = create_app_components(
            identity=identity or FakeIdentity(),
            store_factory=FakeStoreFactory(self.db, privileged=privileged),
            chat_client=self.chat_client,
            audit_logger=self.audit_logger,
            clock=lambda: TODAY,
        )
        app.dependency_overrides[get_components] = lambda: self.components
        self.client = TestClient(app)

    def post(self, body, token=EMPLOYEE_TOKEN, raw=None):
        headers = bearer(token) if token else {}
        if raw is not None:
            headers["Content-Type"] = "application/json"
            return self.client.post("/assistant", content=raw, headers=headers)
        return self.client.post("/assistant", json=body, headers=headers)


@pytest.fixture
def harness():
    created = []

    def build(**kwargs):
        h = Harness(**kwargs)
        created.append(h)
        return h

    yield build
    app.dependency_overrides.clear()


class TestRejections:
    """Tests for the request gate in front of both modes."""

    def test_missing_bearer(self, harness):
        """Test no bearer means 401 and nothing else happens."""
        h = harness()
        response = h.post({"mode": "chat", "message": "oi"}, token=None)

        assert response.status_code == 401
        assert response.json() == {"error": "Não autenticado"}
        assert h.chat_client.calls == []
        assert h.db.call_count == 0
        assert h.audit_logger.events[-1].event_type == AuditEventType.REQUEST_REJECTED

    def test_non_bearer_scheme(self, harness):
        """Test a basic-auth header is not a bearer credential."""
        h = harness()
        response = h.client.post(
            "/assistant",
            json={"mode": "chat", "message": "oi"},
            headers={"Authorization": "Basic abc"},
        )
        assert response.status_code == 401

    def test_bad_json(self, harness):
        """Test an unparseable body is a 400."""
        response = harness().post(None, raw="{not json")
        assert response.status_code == 400
        assert response.json() == {"error": "JSON inválido"}

    @pytest.mark.parametrize("body", [
        {"mode": "report"},
        {"message": "oi"},
        ["chat"],
    ])
    def test_unknown_mode(self, harness, body):
        """Test an absent or unknown mode is a 400."""
        response = harness().post(body)
        assert response.status_code == 400
        assert response.json() == {"error": "mode inválido"}

    def test_empty_message(self, harness):
        """Test a blank chat message is a 400."""
        h = harness()
        response = h.post({"mode": "chat", "message": "   "})

        assert response.status_code == 400
        assert response.json() == {"error": EMPTY_MESSAGE}
        assert h.chat_client.calls == []

    def test_empty_rows(self, harness):
        """Test an empty spreadsheet sample is a 400."""
        h = harness()
        response = h.post({"mode": "import_suggest", "importKind": "despesas", "rows": []})

        assert response.status_code == 400
        assert response.json() == {"error": EMPTY_ROWS}
        assert h.chat_client.calls == []

    def test_long_identity_error_is_still_401(self, harness):
        """Test an identity service error page of any length still gives 401."""
        page = "<html>" + "x" * 2000 + "</html>"
        identity = SupabaseIdentity(
            url="https://test.supabase.co",
            anon_key="anon",
            timeout=5,
            transport=httpx.MockTransport(lambda request: httpx.Response(502, text=page)),
        )
        h = harness(identity=identity)
        response = h.post({"mode": "chat", "message": "oi"})

        assert response.status_code == 401
        assert response.json() == {"error": "Sessão inválida"}
        event = h.audit_logger.events[-1]
        assert event.event_type == AuditEventType.REQUEST_REJECTED
        assert event.details == {"status_code": 401}
        assert page in event.error_message
        assert len(event.description) <= 500

    def test_unknown_token(self, harness):
        """Test an identity lookup failure is a 401."""
        h = harness()
        response = h.post({"mode": "chat", "message": "oi"}, token="forged")

        assert response.status_code == 401
        assert response.json() == {"error": "Sessão inválida"}
        assert h.chat_client.calls == []

    def test_misconfiguration(self):
        """Test components that cannot be built give a 500."""
        def broken():
            raise ConfigurationError("Supabase env não configurado")

        app.dependency_overrides[get_components] = broken
        try:
            response = TestClient(app).post(
                "/assistant", json={"mode": "chat", "message": "oi"}, headers=bearer(ADMIN_TOKEN)
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"error": "Supabase env não configurado"}


class TestChatMode:
    """Tests for chat requests end to end."""

    def test_fallback_reply(self, harness):
        """Test free conversation is answered by the model."""
        h = harness(chat_client=FakeChatClient(reply="Miau! Tudo ótimo."))
        response = h.post({
            "mode": "chat",
            "message": "oi, tudo bem?",
            "history": [{"role": "user", "content": "olá"}],
            "context": "not-an-object",
        })

        assert response.status_code == 200
        assert response.json() == {"reply": "Miau! Tudo ótimo."}
        assert h.db.call_count == 0
        assert len(h.chat_client.calls) == 1

    def test_degraded_reply(self, harness):
        """Test a provider failure is still a 200 with the detail attached."""
        h = harness(chat_client=FakeChatClient(error="RateLimitError: quota"))
        response = h.post({"mode": "chat", "message": "me conta uma piada"})

        assert response.status_code == 200
        body = response.json()
        assert "ASSISTANT_AI_API_KEY" in body["reply"]
        assert body["detail"] == "RateLimitError: quota"

    def test_employee_expense_question_refused(self, harness):
        """Test an employee's expense question is refused with zero reads."""
        h = harness()
        h.db.add(EXPENSES_TABLE, expense_row("Aluguel", "450", "2025-12-23"))

        response = h.post({"mode": "chat", "message": "despesas 23/12"})

        assert response.status_code == 200
        assert response.json() == {"reply": REFUSAL_MESSAGE}
        assert h.db.call_count == 0
        assert h.chat_client.calls == []

    def test_admin_expense_question(self, harness):
        """Test an admin gets the day's expenses from the store."""
        h = harness()
        h.db.add(EXPENSES_TABLE, expense_row("Aluguel", "450", "2025-12-23"))

        response = h.post({"mode": "chat", "message": "despesas 23/12"}, token=ADMIN_TOKEN)

        assert response.status_code == 200
        assert "Aluguel" in response.json()["reply"]
        assert "R$ 450,00" in response.json()["reply"]
        assert h.chat_client.calls == []

    def test_creation(self, harness):
        """Test a creation command performs one insert and no model call."""
        h = harness()
        response = h.post({
            "mode": "chat",
            "message": "cadastre Duo Medic R$ 300",
            "context": {"service": "revista_saude", "month": "2025-12"},
        })

        assert response.status_code == 200
        assert response.json()["reply"].startswith("Miau! Cadastrei pra você: 'Duo Medic'")
        assert len(h.db.inserts) == 1
        assert h.db.inserts[0][1] == SERVICE_ENTRIES_TABLE
        assert h.db.inserts[0][2][0]["service"] == "revista_saude"
        assert h.chat_client.calls == []


class TestImportMode:
    """Tests for import suggestions end to end."""

    def test_large_sample_capped_both_ways(self, harness):
        """Test 200 rows send at most 50 and at most 50 drafts come back."""
        h = harness(chat_client=FakeChatClient(reply=draft_answer(60)))
        rows = [{"DESPESA": f"Item {i}", "VALOR": "10,50", "DATA": "01/12"} for i in range(200)]

        response = h.post({"mode": "import_suggest", "importKind": "despesas", "rows": rows})

        assert response.status_code == 200
        suggestion = response.json()["suggestion"]
        assert len(suggestion["items"]) == 50
        assert suggestion["items"][0] == {
            "kind": "variable",
            "name": "Item 0",
            "amount": 10.5,
            "expense_date": "2025-12-01",
        }
        assert any("60 itens" in w for w in suggestion["warnings"])

        messages, json_mode = h.chat_client.calls[0]
        assert json_mode is True
        assert len(json.loads(messages[1]["content"])["rows"]) == 50
        assert h.db.call_count == 0
        assert h.audit_logger.events[-1].event_type == AuditEventType.IMPORT_SUGGESTED

    def test_provider_failure(self, harness):
        """Test a provider failure is a 502 naming the missing key, with the upstream detail."""
        h = harness(chat_client=FakeChatClient(error="APIConnectionError: timeout"))
        response = h.post({"mode": "import_suggest", "importKind": "receitas", "rows": [{"a": 1}]})

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == not_configured_reply(h.components.persona_name)
        assert "ASSISTANT_AI_API_KEY" in body["error"]
        assert body["detail"] == "APIConnectionError: timeout"
        assert h.db.call_count == 0

    def test_invalid_model_answer(self, harness):
        """Test a non-JSON answer is a 502 carrying the raw text."""
        h = harness(chat_client=FakeChatClient(reply="Claro! Segue a lista..."))
        response = h.post({"mode": "import_suggest", "importKind": "despesas", "rows": [{"a": 1}]})

        assert response.status_code == 502
        body = response.json()
        assert body["error"].startswith("IA retornou JSON inválido")
        assert body["raw"] == "Claro! Segue a lista..."
        assert h.audit_logger.events[-1].event_type == AuditEventType.IMPORT_REJECTED


class TestHealth:
    """Tests for the configuration status endpoint."""

    def test_configured(self, monkeypatch):
        """Test the store settings from the environment are reported as valid."""
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
        response = TestClient(app).get("/healthz")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["checks"]["supabase"] is True
        assert body["checks"]["supabase_privileged"] is False
        assert body["checks"]["app"] is True

    def test_misconfigured(self, monkeypatch):
        """Test a missing store URL is reported without leaking error text."""
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.chdir("/")
        response = TestClient(app).get("/healthz")

        body = response.json()
        assert body["status"] == "misconfigured"
        assert body["checks"]["supabase"] is False
        assert "supabase_error" not in body["checks"]
