# =============================================================================
# agents/enricher.py - Entity Enrichment Agent
# =============================================================================
# Looks up one piece of information per entity (company, vendor, product)
# using Gemini with the Google Search tool.
#
# Search grounding cannot be combined with a JSON response MIME type, so the
# JSON object is pulled out of the text answer.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from google.genai import types

from app.config import settings
from app.exceptions import InvalidRequestError, LLMServiceError
from agents.gemini import generate_text, parse_json_object
from agents.prompts.enrichment import build_enrichment_prompt

logger = logging.getLogger(__name__)

MAX_ENTITIES = 100
MAX_PROMPT_CHARS = 1000


def unique_entities(entities: list[str]) -> list[str]:
    """Strip blanks and case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    unique = []
    for entity in entities:
        cleaned = (entity or "").strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            unique.append(cleaned)
    return unique


class EnrichmentAgent:
    """Web-grounded lookups for a list of entities."""

    def __init__(self, model: str | None = None, timeout_seconds: int | None = None):
        self.model = model or settings.GEMINI_ENRICHMENT_MODEL
        self.timeout_seconds = timeout_seconds or settings.GEMINI_TIMEOUT_SECONDS

    @staticmethod
    def validate(entities: list[str], prompt: str) -> tuple[list[str], str]:
        if len(entities) > MAX_ENTITIES:
            raise InvalidRequestError(f"Too many entities (max {MAX_ENTITIES})")
        unique = unique_entities(entities)
        if not unique:
            raise InvalidRequestError("Entities array cannot be empty")
        prompt = (prompt or "").strip()
        if not prompt:
            raise InvalidRequestError("Prompt must be a non-empty string")
        if len(prompt) > MAX_PROMPT_CHARS:
            raise InvalidRequestError(f"Prompt too long (max {MAX_PROMPT_CHARS} characters)")
        return unique, prompt

    def enrich(self, entities: list[str], prompt: str) -> dict[str, Any]:
        """
        Returns:
            {entity: info} as the model keyed it

        Raises:
            InvalidRequestError: Bad input
            LLMServiceError: The model answered without a JSON object
            LLMQuotaExceededError, LLMTimeoutError
        """
        entities, prompt = self.validate(entities, prompt)
        logger.info(f"Enriching {len(entities)} entities")

        text = generate_text(
            self.model,
            build_enrichment_prompt(entities, prompt),
            types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
            timeout_seconds=self.timeout_seconds,
        )

        result = parse_json_object(text)
        if result is None:
            raise LLMServiceError("Model returned no JSON object", code="LLM_INVALID_RESPONSE")
        return result
