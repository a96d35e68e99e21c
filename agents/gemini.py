# =============================================================================
# agents/gemini.py - Shared Gemini Client
# =============================================================================
# One google-genai client per process, plus the plumbing every agent needs:
# - generate_text(): a single call with a per-request timeout
# - stream_text(): streaming call yielding text chunks
# - classify_error(): SDK/transport failures -> API exceptions
# - JSON extraction from model text that may be wrapped in prose or fences
#
# Usage:
#   from agents.gemini import generate_text
#   text = generate_text(model, contents, types.GenerateContentConfig(...), timeout_seconds=60)
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from typing import Any, Iterator

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.config import settings
from app.exceptions import (
    LLMQuotaExceededError,
    LLMServiceError,
    LLMTimeoutError,
    VerifloException,
)

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_QUOTA_MARKERS = ("quota", "resource_exhausted", "too many requests", "rate limit")


@lru_cache(maxsize=1)
def get_gemini_client() -> genai.Client:
    """
    Get or create the shared Gemini client.

    Uses lru_cache as a thread-safe singleton; call
    get_gemini_client.cache_clear() after changing GEMINI_API_KEY.
    """
    logger.info("Initializing Gemini client")
    return genai.Client(api_key=settings.GEMINI_API_KEY)


def classify_error(error: Exception, timeout_seconds: int) -> VerifloException:
    """
    Map a Gemini failure to the exception the API should surface.

    Example:
        classify_error(genai_errors.ClientError(429, {...}), 60)  # LLMQuotaExceededError
    """
    if isinstance(error, VerifloException):
        return error

    message = str(error)
    lowered = message.lower()
    status = getattr(error, "code", None)

    if status == 429 or any(marker in lowered for marker in _QUOTA_MARKERS):
        return LLMQuotaExceededError(message)

    if isinstance(error, (httpx.TimeoutException, TimeoutError)) or status == 504 or "timeout" in lowered or "timed out" in lowered:
        return LLMTimeoutError(timeout_seconds)

    if status in (401, 403) or "api key" in lowered or "api_key_invalid" in lowered:
        return LLMServiceError("Invalid API key. Check GEMINI_API_KEY.", code="LLM_AUTH_ERROR")

    if isinstance(error, genai_errors.APIError):
        return LLMServiceError(message)

    return LLMServiceError(message or error.__class__.__name__)


def _with_timeout(config: types.GenerateContentConfig | None, timeout_seconds: int) -> types.GenerateContentConfig:
    config = config or types.GenerateContentConfig()
    config.http_options = types.HttpOptions(timeout=timeout_seconds * 1000)
    return config


def generate_text(
    model: str,
    contents: Any,
    config: types.GenerateContentConfig | None = None,
    timeout_seconds: int | None = None,
) -> str:
    """
    Run one generate_content call and return the response text ("" if none).

    Raises:
        LLMQuotaExceededError, LLMTimeoutError, LLMServiceError
    """
    timeout_seconds = timeout_seconds or settings.GEMINI_TIMEOUT_SECONDS
    client = get_gemini_client()

    try:
        response = client.models.generate_content(
            model=model,
            contents=contents,
            config=_with_timeout(config, timeout_seconds),
        )
    except Exception as e:
        logger.error(f"Gemini call to {model} failed: {e}")
        raise classify_error(e, timeout_seconds) from e

    return response.text or ""


def stream_text(
    model: str,
    contents: Any,
    config: types.GenerateContentConfig | None = None,
    timeout_seconds: int | None = None,
) -> Iterator[str]:
    """
    Stream a response as text chunks, skipping empty ones.

    Raises:
        LLMQuotaExceededError, LLMTimeoutError, LLMServiceError (possibly
        after some chunks were already yielded)
    """
    timeout_seconds = timeout_seconds or settings.CHAT_TIMEOUT_SECONDS
    client = get_gemini_client()

    try:
        for chunk in client.models.generate_content_stream(
            model=model,
            contents=contents,
            config=_with_timeout(config, timeout_seconds),
        ):
            if chunk.text:
                yield chunk.text
    except Exception as e:
        logger.error(f"Gemini stream from {model} failed: {e}")
        raise classify_error(e, timeout_seconds) from e


# =============================================================================
# JSON Helpers
# =============================================================================

def parse_json_array(text: str) -> list[Any] | None:
    """First-to-last bracket span of `text` as a JSON array, or None."""
    match = _JSON_ARRAY.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group())
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """`text` as a JSON object, falling back to its outermost brace span."""
    text = text or ""
    for candidate in (text, *(m.group() for m in [_JSON_OBJECT.search(text)] if m)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
