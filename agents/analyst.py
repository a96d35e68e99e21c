# =============================================================================
# agents/analyst.py - Analysis Card Agent
# =============================================================================
# Answers one question about spreadsheet data with a structured card
# (see agents/models/analysis.py). The model is asked for JSON output; if it
# still returns something unparseable, the raw text becomes a SUMMARY card.
# =============================================================================

from __future__ import annotations

import logging

from google.genai import types
from pydantic import ValidationError

from app.config import settings
from app.exceptions import InvalidRequestError
from agents.gemini import generate_text, parse_json_object
from agents.models.analysis import AnalysisResult
from agents.prompts.analysis import build_analysis_prompt, build_analysis_query

logger = logging.getLogger(__name__)

MAX_QUERY_CHARS = 500
MAX_CONTEXT_CHARS = 50_000


class AnalystAgent:
    """Single-shot analysis over a spreadsheet context string."""

    def __init__(self, model: str | None = None, timeout_seconds: int | None = None):
        self.model = model or settings.GEMINI_ANALYSIS_MODEL
        self.timeout_seconds = timeout_seconds or settings.GEMINI_TIMEOUT_SECONDS

    @staticmethod
    def validate(query: str, file_context: str) -> str:
        query = (query or "").strip()
        if not query:
            raise InvalidRequestError("Query must be a non-empty string")
        if len(query) > MAX_QUERY_CHARS:
            raise InvalidRequestError(f"Query too long (max {MAX_QUERY_CHARS} characters)")
        if not file_context:
            raise InvalidRequestError("Missing file context", suggestion="Open a spreadsheet first")
        if len(file_context) > MAX_CONTEXT_CHARS:
            raise InvalidRequestError("File context too large (max 50KB)")
        return query

    def analyze(self, query: str, file_context: str) -> AnalysisResult:
        """
        Produce an analysis card.

        Raises:
            InvalidRequestError: Empty or oversized input
            LLMQuotaExceededError, LLMTimeoutError, LLMServiceError
        """
        query = self.validate(query, file_context)

        text = generate_text(
            self.model,
            build_analysis_query(query),
            types.GenerateContentConfig(
                system_instruction=build_analysis_prompt(file_context),
                response_mime_type="application/json",
            ),
            timeout_seconds=self.timeout_seconds,
        )
        return self.parse_result(text)

    @staticmethod
    def parse_result(text: str) -> AnalysisResult:
        data = parse_json_object(text)
        if data is None:
            logger.warning("Analysis response was not JSON; using fallback card")
            return AnalysisResult.fallback(text)
        try:
            return AnalysisResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Analysis JSON did not match the card schema: {e}")
            return AnalysisResult.fallback(text)
