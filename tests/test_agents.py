# =============================================================================
# tests/test_agents.py - Gemini Agent Tests
# =============================================================================
# The Gemini client is patched; these tests cover validation, prompt
# plumbing and how model output is parsed.
# =============================================================================

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from agents import AnalystAgent, ChatAssistant, EnrichmentAgent, ExtractionAgent
from agents.enricher import unique_entities
from agents.extractor import decode_document
from agents.gemini import classify_error, parse_json_array, parse_json_object
from agents.models import AnalysisResult, ChatTurn, ExtractedField
from app.exceptions import (
    FileTooLargeError,
    InvalidRequestError,
    LLMQuotaExceededError,
    LLMServiceError,
    LLMTimeoutError,
    UnsupportedFileTypeError,
)

PDF_B64 = base64.b64encode(b"%PDF-1.4 test document").decode()


@pytest.fixture
def gemini():
    """Patched Gemini client; set .models.generate_content.return_value.text."""
    client = MagicMock()
    with patch("agents.gemini.get_gemini_client", return_value=client):
        yield client


def respond(client, text):
    client.models.generate_content.return_value = SimpleNamespace(text=text)


# =============================================================================
# Shared Helpers
# =============================================================================

class TestJsonHelpers:

    def test_array_inside_prose(self):
        assert parse_json_array('Here you go:\n```json\n[{"key": "a"}]\n```') == [{"key": "a"}]

    def test_array_missing(self):
        assert parse_json_array("no data") is None

    def test_object_direct_and_embedded(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}
        assert parse_json_object('Result: {"a": 1} done') == {"a": 1}
        assert parse_json_object("[1, 2]") is None


class TestClassifyError:

    def test_quota(self):
        assert isinstance(classify_error(Exception("429 RESOURCE_EXHAUSTED"), 60), LLMQuotaExceededError)

    def test_timeout(self):
        error = classify_error(httpx.ReadTimeout("read timed out"), 60)

        assert isinstance(error, LLMTimeoutError)
        assert error.status_code == 504

    def test_auth(self):
        error = classify_error(Exception("API key not valid"), 60)

        assert error.code == "LLM_AUTH_ERROR"

    def test_generic(self):
        error = classify_error(RuntimeError("boom"), 60)

        assert isinstance(error, LLMServiceError)
        assert error.status_code == 502


# =============================================================================
# Extraction
# =============================================================================

class TestExtractionAgent:

    def test_extract_parses_fields(self, gemini):
        respond(gemini, '[{"key": "Total", "value": "120.00", "confidence": 0.97, "box2d": [1, 2, 3, 4]},'
                        ' {"key": "Date", "value": "2026-01-02"}]')

        fields = ExtractionAgent().extract(PDF_B64, ["Total", "Date"], "application/pdf")

        assert fields[0] == ExtractedField(key="Total", value="120.00", confidence=0.97, box2d=[1, 2, 3, 4])
        assert fields[1].confidence == 0.9
        assert fields[1].flagged is False

    def test_unparseable_output_gives_empty_list(self, gemini):
        respond(gemini, "I could not read this document.")

        assert ExtractionAgent().extract(PDF_B64, ["Total"], "application/pdf") == []

    def test_percent_confidence_and_bad_box(self):
        field = ExtractedField(key="Total", confidence=85, box2d=[1, 2])

        assert field.confidence == pytest.approx(0.85)
        assert field.box2d is None

    def test_model_errors_are_classified(self, gemini):
        gemini.models.generate_content.side_effect = Exception("quota exceeded")

        with pytest.raises(LLMQuotaExceededError):
            ExtractionAgent().extract(PDF_B64, ["Total"], "application/pdf")

    @pytest.mark.parametrize("fields", [[], ["", "  "], [f"f{i}" for i in range(51)]])
    def test_field_validation(self, fields):
        with pytest.raises(InvalidRequestError):
            ExtractionAgent().validate(PDF_B64, fields, "application/pdf")

    def test_unsupported_mime_type(self):
        with pytest.raises(UnsupportedFileTypeError):
            ExtractionAgent().validate(PDF_B64, ["Total"], "text/plain")

    def test_file_too_large(self):
        agent = ExtractionAgent(max_bytes=4)

        with pytest.raises(FileTooLargeError):
            agent.validate(PDF_B64, ["Total"], "application/pdf")

    def test_data_url_prefix_is_stripped(self):
        assert decode_document(f"data:application/pdf;base64,{PDF_B64}") == b"%PDF-1.4 test document"


# =============================================================================
# Analysis
# =============================================================================

class TestAnalystAgent:

    def test_analyze_returns_card(self, gemini):
        respond(gemini, '{"intent": "change_explanation", "title": "Revenue up", "metrics": {"growth": "12%"},'
                        ' "followUps": ["Why?"]}')

        card = AnalystAgent().analyze("How did revenue change?", 'File: "sales.csv"')

        assert card.intent == "CHANGE_EXPLANATION"
        assert card.title == "Revenue up"
        assert card.follow_ups == ["Why?"]
        config = gemini.models.generate_content.call_args.kwargs["config"]
        assert config.response_mime_type == "application/json"
        assert 'File: "sales.csv"' in config.system_instruction

    def test_non_json_falls_back_to_summary(self, gemini):
        respond(gemini, "Revenue grew steadily.")

        card = AnalystAgent().analyze("How did revenue change?", "ctx")

        assert card.intent == "SUMMARY"
        assert card.explanation == "Revenue grew steadily."

    def test_unknown_intent_becomes_summary(self):
        assert AnalysisResult(intent="dance").intent == "SUMMARY"

    def test_serializes_follow_ups_camel_case(self):
        assert "followUps" in AnalysisResult(follow_ups=["x"]).model_dump(by_alias=True)

    @pytest.mark.parametrize("query,context", [("", "ctx"), ("q" * 501, "ctx"), ("q", ""), ("q", "x" * 50_001)])
    def test_validation(self, query, context):
        with pytest.raises(InvalidRequestError):
            AnalystAgent.validate(query, context)


# =============================================================================
# Enrichment
# =============================================================================

class TestEnrichmentAgent:

    def test_enrich_uses_search_tool(self, gemini):
        respond(gemini, 'Sure! {"Acme": {"city": "Springfield"}}')

        result = EnrichmentAgent().enrich(["Acme", "acme"], "Find the city")

        assert result == {"Acme": {"city": "Springfield"}}
        kwargs = gemini.models.generate_content.call_args.kwargs
        assert kwargs["config"].tools[0].google_search is not None
        assert kwargs["contents"].count("Acme") >= 1

    def test_no_json_object_is_an_error(self, gemini):
        respond(gemini, "nothing found")

        with pytest.raises(LLMServiceError) as exc_info:
            EnrichmentAgent().enrich(["Acme"], "Find the city")

        assert exc_info.value.code == "LLM_INVALID_RESPONSE"

    def test_unique_entities(self):
        assert unique_entities(["Acme", " acme ", "", "Globex"]) == ["Acme", "Globex"]

    def test_too_many_entities(self):
        with pytest.raises(InvalidRequestError):
            EnrichmentAgent.validate([f"e{i}" for i in range(101)], "prompt")


# =============================================================================
# Chat
# =============================================================================

class TestChatAssistant:

    def test_stream_yields_text_chunks(self, gemini):
        gemini.models.generate_content_stream.return_value = iter([
            SimpleNamespace(text="Hel"), SimpleNamespace(text=None), SimpleNamespace(text="lo"),
        ])

        chunks = list(ChatAssistant().stream("Hi", file_context="ctx"))

        assert chunks == ["Hel", "lo"]

    def test_history_is_trimmed_to_last_six_turns(self):
        history = [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"m{i}") for i in range(10)]

        contents = ChatAssistant.build_contents("now", history)

        assert len(contents) == 7
        assert contents[0].parts[0].text == "m4"
        assert contents[1].role == "model"
        assert contents[-1].parts[0].text == "now"

    def test_data_mode_prompt(self, gemini):
        gemini.models.generate_content_stream.return_value = iter([])

        list(ChatAssistant().stream("sum revenue", file_context="ctx", data_mode=True))

        config = gemini.models.generate_content_stream.call_args.kwargs["config"]
        assert "findCol" in config.system_instruction

    def test_empty_prompt(self):
        with pytest.raises(InvalidRequestError):
            ChatAssistant.validate("   ")
