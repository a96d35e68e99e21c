# =============================================================================
# tests/test_email.py - Email Template & Sender Tests
# =============================================================================

from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.config import settings
from lib import email_templates, mailer
from lib.http import HttpRequestError


class TestTemplates:

    def test_welcome(self):
        rendered = email_templates.welcome("Ada")

        assert rendered.subject == "Welcome to Veriflo!"
        assert "Hi Ada," in rendered.html
        assert "/dashboard" in rendered.html

    def test_names_are_escaped(self):
        rendered = email_templates.welcome("<script>alert(1)</script>")

        assert "<script>" not in rendered.html
        assert "&lt;script&gt;" in rendered.html

    def test_blank_name_greets_there(self):
        assert "Hi there," in email_templates.low_credits("  ", 42).html

    def test_low_credits_shows_balance(self):
        rendered = email_templates.low_credits("Ada", 42)

        assert rendered.subject == "Low Credits Warning - Veriflo"
        assert "42 credits" in rendered.html

    @pytest.mark.parametrize("stage,subject", [
        ("day2", "You haven't extracted yet - try Veriflo in 2 minutes"),
        ("day5", "Here's a quick way to try Veriflo extraction"),
        ("day7", "Your first week with Veriflo"),
    ])
    def test_followup_subjects(self, stage, subject):
        assert email_templates.followup(stage, "Ada").subject == subject

    def test_day7_body_depends_on_usage(self):
        tried = email_templates.followup("day7", "Ada", invoices_processed=3).html
        untried = email_templates.followup("day7", "Ada", invoices_processed=0).html

        assert "You've tried extraction" in tried
        assert "free plan" in untried

    def test_unknown_stage(self):
        with pytest.raises(ValueError):
            email_templates.followup("day30", "Ada")


class TestSendEmail:

    def test_disabled_without_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "ZEPTOMAIL_API_KEY", None)

        with patch("lib.mailer.fetch_with_retry") as fetch:
            assert mailer.send_email("ada@example.com", "Hi", "<p>Hi</p>") is False

        fetch.assert_not_called()

    def test_sends_zeptomail_payload(self, monkeypatch):
        monkeypatch.setattr(settings, "ZEPTOMAIL_API_KEY", "zk-test")

        with patch("lib.mailer.fetch_with_retry", return_value=httpx.Response(201)) as fetch:
            sent = mailer.send_email("ada@example.com", "Hi", "<p>Hi</p>", to_name="Ada")

        assert sent is True
        method, url = fetch.call_args.args
        assert method == "POST"
        assert url == settings.ZEPTOMAIL_API_URL
        payload = fetch.call_args.kwargs["json"]
        assert payload["to"] == [{"email_address": {"address": "ada@example.com", "name": "Ada"}}]
        assert payload["htmlbody"] == "<p>Hi</p>"
        assert fetch.call_args.kwargs["headers"]["Authorization"] == "Zoho-enczapikey zk-test"

    def test_rejected_send_returns_false(self, monkeypatch):
        monkeypatch.setattr(settings, "ZEPTOMAIL_API_KEY", "zk-test")

        with patch("lib.mailer.fetch_with_retry", return_value=httpx.Response(401, text="bad key")):
            assert mailer.send_email("ada@example.com", "Hi", "<p>Hi</p>") is False

    def test_transport_failure_returns_false(self, monkeypatch):
        monkeypatch.setattr(settings, "ZEPTOMAIL_API_KEY", "zk-test")
        error = HttpRequestError("POST", settings.ZEPTOMAIL_API_URL, "refused", attempts=4)

        with patch("lib.mailer.fetch_with_retry", side_effect=error):
            assert mailer.send_email("ada@example.com", "Hi", "<p>Hi</p>") is False

    def test_followup_uses_template(self, monkeypatch):
        send = MagicMock(return_value=True)
        monkeypatch.setattr(mailer, "send_email", send)

        mailer.send_followup_email("day5", "ada@example.com", "Ada")

        assert send.call_args.args[1] == "Here's a quick way to try Veriflo extraction"
