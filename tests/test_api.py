# =============================================================================
# tests/test_api.py - API Endpoint Tests
# =============================================================================
# Routes run against the in-memory credit store (see conftest.py). Gemini
# agents and Supabase lookups are patched per test.
# =============================================================================

import base64
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from agents.models.analysis import AnalysisResult
from agents.models.extraction import ExtractedField
from app.auth.dependencies import require_admin
from app.config import settings
from app.exceptions import LLMServiceError, LLMTimeoutError
from core.models.plan import PlanType
from core.models.profile import AdminUserSummary, UserProfile
from tests.conftest import OTHER_USER_ID, USER_ID

PDF_B64 = base64.b64encode(b"%PDF-1.4 invoice").decode()


def sse_events(body: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


# =============================================================================
# Root, Health & Request IDs
# =============================================================================

class TestRootAndHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Veriflo API"

    def test_liveness(self, client):
        response = client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_response_has_request_id(self, client):
        response = client.get("/api/v1/health/live")

        assert len(response.headers["X-Request-ID"]) == 36

    def test_inbound_request_id_is_kept(self, client):
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "req-abc-12345"})

        assert response.headers["X-Request-ID"] == "req-abc-12345"


# =============================================================================
# Credits
# =============================================================================

class TestCreditsEndpoint:

    def test_balance(self, client, account):
        response = client.get("/api/v1/credits")

        assert response.status_code == 200
        data = response.json()
        assert data["credits"] == 50
        assert data["plan"] == "free"
        assert data["monthly_credits"] == 100
        assert data["documents"] == {"used": 0, "limit": 10, "can_extract": True}

    def test_due_reset_tops_up_first(self, client, store):
        # Arrange - no reset recorded yet
        store.add_account(USER_ID, credits=3, plan=PlanType.STARTER)

        # Act
        response = client.get("/api/v1/credits")

        # Assert
        assert response.json()["credits"] == 750
        assert response.json()["next_reset_at"] is not None

    def test_missing_profile(self, client):
        response = client.get("/api/v1/credits")

        assert response.status_code == 404


class TestWorkflowCharge:

    def test_charges_five(self, client, account, store):
        response = client.post("/api/v1/workflows/charge")

        assert response.status_code == 200
        assert response.json() == {"success": True, "credits": 45}
        assert store.get_balance(USER_ID) == 45

    def test_insufficient_credits(self, client, store):
        store.add_account(USER_ID, credits=3)

        response = client.post("/api/v1/workflows/charge")

        assert response.status_code == 402
        body = response.json()
        assert body["code"] == "INSUFFICIENT_CREDITS"
        assert body["details"] == {"required": 5, "available": 3}
        assert store.get_balance(USER_ID) == 3


# =============================================================================
# Extraction
# =============================================================================

class TestExtractEndpoint:

    def payload(self, **overrides):
        body = {"file": PDF_B64, "fields": ["Total"], "fileType": "application/pdf"}
        body.update(overrides)
        return body

    def test_success_charges_credit_and_document(self, client, account, store):
        fields = [ExtractedField(key="Total", value="120.00", confidence=0.95)]

        with patch("app.routers.extract.ExtractionAgent.extract", return_value=fields):
            response = client.post("/api/v1/extract", json=self.payload())

        assert response.status_code == 200
        assert response.json()["fields"][0]["value"] == "120.00"
        assert store.get_balance(USER_ID) == 49
        assert store.get_account(USER_ID).documents_used == 1

    def test_failure_refunds_both(self, client, account, store):
        with patch("app.routers.extract.ExtractionAgent.extract", side_effect=LLMTimeoutError(60)):
            response = client.post("/api/v1/extract", json=self.payload())

        assert response.status_code == 504
        assert store.get_balance(USER_ID) == 50
        assert store.get_account(USER_ID).documents_used == 0

    def test_bad_request_costs_nothing(self, client, account, store):
        response = client.post("/api/v1/extract", json=self.payload(fileType="text/plain"))

        assert response.status_code == 400
        assert store.get_balance(USER_ID) == 50
        assert store.get_account(USER_ID).documents_used == 0

    def test_document_quota_used_up(self, client, store):
        store.add_account(
            USER_ID, credits=50, documents_used=10,
            monthly_credits_reset_at=datetime.now(timezone.utc),
            monthly_documents_reset_at=datetime.now(timezone.utc),
        )

        with patch("app.routers.extract.ExtractionAgent.extract") as extract:
            response = client.post("/api/v1/extract", json=self.payload())

        assert response.status_code == 402
        assert response.json()["code"] == "INSUFFICIENT_DOCUMENTS"
        extract.assert_not_called()
        assert store.get_balance(USER_ID) == 50

    def test_no_credits_releases_document(self, client, store):
        store.add_account(USER_ID, credits=0)

        response = client.post("/api/v1/extract", json=self.payload())

        assert response.status_code == 402
        assert response.json()["code"] == "INSUFFICIENT_CREDITS"
        assert store.get_account(USER_ID).documents_used == 0


# =============================================================================
# Analysis & Enrichment
# =============================================================================

class TestAnalyzeEndpoint:

    def test_returns_card_with_camel_case(self, client, account, store):
        card = AnalysisResult(intent="SUMMARY", title="Totals", follow_ups=["By region?"])

        with patch("app.routers.analyze.AnalystAgent.analyze", return_value=card):
            response = client.post("/api/v1/analyze", json={"query": "Totals?", "fileContext": "ctx"})

        assert response.status_code == 200
        assert response.json()["followUps"] == ["By region?"]
        assert store.get_balance(USER_ID) == 48

    def test_failure_refunds(self, client, account, store):
        with patch("app.routers.analyze.AnalystAgent.analyze", side_effect=LLMServiceError("down")):
            response = client.post("/api/v1/analyze", json={"query": "Totals?", "fileContext": "ctx"})

        assert response.status_code == 502
        assert store.get_balance(USER_ID) == 50

    def test_raw_files_are_summarized(self, client, account):
        files = [{"name": "sales.csv", "data": [["Region", "Revenue"], ["North", "1200"], ["South", "5300"]]}]

        with patch("app.routers.analyze.AnalystAgent.analyze", return_value=AnalysisResult()) as analyze:
            response = client.post("/api/v1/analyze", json={"query": "Totals?", "files": files})

        assert response.status_code == 200
        context = analyze.call_args.args[1]
        assert 'File: "sales.csv"' in context
        assert "- Revenue: numeric, min=1200, max=5300, sum=6500.00" in context

    def test_invalid_raw_file(self, client, account, store):
        response = client.post("/api/v1/analyze", json={"query": "Totals?", "files": [{"name": "x.csv", "data": []}]})

        assert response.status_code == 400
        assert store.get_balance(USER_ID) == 50

    def test_empty_query(self, client, account):
        response = client.post("/api/v1/analyze", json={"query": " ", "fileContext": "ctx"})

        assert response.status_code == 400


class TestEnrichEndpoint:

    def test_charges_per_batch_of_unique_entities(self, client, store):
        store.add_account(USER_ID, credits=100)
        entities = [f"Company {i}" for i in range(60)] + ["company 1"]

        with patch("app.routers.enrich.EnrichmentAgent.enrich", return_value={"Company 0": "Berlin"}) as enrich:
            response = client.post("/api/v1/enrich", json={"entities": entities, "prompt": "City?"})

        assert response.status_code == 200
        assert response.json() == {"result": {"Company 0": "Berlin"}}
        # 60 unique entities -> two batches of 25 credits
        assert store.get_balance(USER_ID) == 50
        assert len(enrich.call_args.args[0]) == 60

    def test_failure_refunds(self, client, store):
        store.add_account(USER_ID, credits=100)
        error = LLMServiceError("no json", code="LLM_INVALID_RESPONSE")

        with patch("app.routers.enrich.EnrichmentAgent.enrich", side_effect=error):
            response = client.post("/api/v1/enrich", json={"entities": ["Acme"], "prompt": "City?"})

        assert response.status_code == 502
        assert response.json()["code"] == "LLM_INVALID_RESPONSE"
        assert store.get_balance(USER_ID) == 100


# =============================================================================
# Chat
# =============================================================================

class TestChatEndpoint:

    def test_streams_text_then_done(self, client, account, store):
        with patch("app.routers.chat.ChatAssistant.stream", return_value=iter(["Hel", "lo"])):
            response = client.post("/api/v1/chat/stream", json={"prompt": "Hi"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert sse_events(response.text) == [{"text": "Hel"}, {"text": "lo"}, {"done": True}]
        assert store.get_balance(USER_ID) == 49

    def test_failure_before_text_refunds(self, client, account, store):
        with patch("app.routers.chat.ChatAssistant.stream", side_effect=LLMTimeoutError(30)):
            response = client.post("/api/v1/chat/stream", json={"prompt": "Hi"})

        events = sse_events(response.text)
        assert "error" in events[-1]
        assert store.get_balance(USER_ID) == 50

    def test_failure_after_text_keeps_charge(self, client, account, store):
        def partial(*args, **kwargs):
            yield "Par"
            raise LLMServiceError("cut off")

        with patch("app.routers.chat.ChatAssistant.stream", side_effect=partial):
            response = client.post("/api/v1/chat/stream", json={"prompt": "Hi"})

        events = sse_events(response.text)
        assert events[0] == {"text": "Par"}
        assert "error" in events[-1]
        assert store.get_balance(USER_ID) == 49

    def test_no_credits_is_plain_402(self, client, store):
        store.add_account(USER_ID, credits=0)

        response = client.post("/api/v1/chat/stream", json={"prompt": "Hi"})

        assert response.status_code == 402


# =============================================================================
# Auth
# =============================================================================

class TestAuthEndpoints:

    def test_verify(self, client):
        response = client.get("/api/v1/auth/verify")

        assert response.status_code == 200
        assert response.json()["user_id"] == str(USER_ID)

    def test_me_clamps_negative_credits(self, client):
        profile = UserProfile(id=USER_ID, email="ada@example.com", credits=-4, subscription_plan="pro")

        with patch("app.auth.routes.ProfileService.get_profile", return_value=profile):
            response = client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["credits"] == 0
        assert response.json()["plan"] == "pro"

    def test_welcome_email_is_queued(self, client):
        with patch("app.auth.routes.dispatch_welcome_email", return_value=True) as dispatch:
            response = client.post("/api/v1/auth/welcome-email", json={"name": "Ada"})

        assert response.json() == {"queued": True}
        dispatch.assert_called_once_with(str(USER_ID), "ada@example.com", "Ada")


# =============================================================================
# Admin
# =============================================================================

@pytest.fixture
def as_admin(app, auth_user):
    app.dependency_overrides[require_admin] = lambda: auth_user
    return auth_user


class TestAdminEndpoints:

    def test_non_admin_is_forbidden(self, client):
        with patch("core.services.profile_service.ProfileService.is_admin", return_value=False):
            response = client.get("/api/v1/admin/users")

        assert response.status_code == 403

    def test_list_users(self, client, as_admin):
        users = [AdminUserSummary(id=OTHER_USER_ID, email="bob@example.com", credits=10)]

        with patch("app.routers.admin.ProfileService.list_users", return_value=users):
            response = client.get("/api/v1/admin/users")

        assert response.status_code == 200
        assert response.json()["users"][0]["email"] == "bob@example.com"

    def test_set_credits(self, client, as_admin, store):
        store.add_account(OTHER_USER_ID, credits=10)

        response = client.post(f"/api/v1/admin/users/{OTHER_USER_ID}/credits", json={"credits": 500})

        assert response.json() == {"success": True, "credits": 500}
        assert store.get_balance(OTHER_USER_ID) == 500

    def test_negative_credits_rejected(self, client, as_admin, store):
        store.add_account(OTHER_USER_ID, credits=10)

        response = client.post(f"/api/v1/admin/users/{OTHER_USER_ID}/credits", json={"credits": -1})

        assert response.status_code == 400
        assert store.get_balance(OTHER_USER_ID) == 10

    def test_set_plan(self, client, as_admin, store):
        store.add_account(OTHER_USER_ID)

        response = client.post(f"/api/v1/admin/users/{OTHER_USER_ID}/plan", json={"plan": "pro"})

        assert response.json() == {"success": True, "plan": "pro"}
        assert store.get_account(OTHER_USER_ID).plan == PlanType.PRO

    def test_unknown_plan(self, client, as_admin, store):
        store.add_account(OTHER_USER_ID)

        response = client.post(f"/api/v1/admin/users/{OTHER_USER_ID}/plan", json={"plan": "platinum"})

        assert response.status_code == 400

    def test_plans(self, client, as_admin):
        plans = client.get("/api/v1/admin/plans").json()["plans"]

        assert plans["starter"]["monthly_credits"] == 750
        assert plans["enterprise"]["monthly_documents"] == 0

    def test_reset_monthly(self, client, as_admin, store):
        store.add_account(OTHER_USER_ID, credits=1)

        response = client.post("/api/v1/admin/credits/reset-monthly")

        assert response.json()["reset"] == 1
        assert store.get_balance(OTHER_USER_ID) == 100


# =============================================================================
# Cron
# =============================================================================

class TestCronEndpoints:

    def test_wrong_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

        response = client.post("/api/v1/cron/reset-credits", headers={"X-Cron-Secret": "nope"})

        assert response.status_code == 401

    def test_reset_with_secret(self, client, monkeypatch, store):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        store.add_account(OTHER_USER_ID, credits=1)

        response = client.post("/api/v1/cron/reset-credits", headers={"X-Cron-Secret": "s3cret"})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "reset": 1, "skipped": 0, "failed": 0}

    def test_followups(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "")
        summary = SimpleNamespace(model_dump=lambda: {"sent": 2, "skipped": 5, "failed": 0})

        with patch("app.routers.cron.FollowupService.run", return_value=summary):
            response = client.post("/api/v1/cron/followup-emails")

        assert response.json() == {"ok": True, "sent": 2, "skipped": 5, "failed": 0}
