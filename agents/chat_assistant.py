# =============================================================================
# agents/chat_assistant.py - Streaming Chat Assistant
# =============================================================================
# Conversational help over the user's spreadsheets. Only the last six turns
# of history are sent. In data mode the system prompt carries the dataset
# context and asks for executable JavaScript (run in the browser).
# =============================================================================

from __future__ import annotations

import logging
from typing import Iterator

from google.genai import types

from app.config import settings
from app.exceptions import InvalidRequestError
from agents.gemini import stream_text
from agents.models.chat import ChatTurn
from agents.prompts.chat import build_chat_system_prompt

logger = logging.getLogger(__name__)

HISTORY_TURNS = 6
MAX_PROMPT_CHARS = 10_000


class ChatAssistant:
    """Streams answers from Gemini."""

    def __init__(
        self,
        model: str | None = None,
        temperature: float | None = None,
        timeout_seconds: int | None = None,
    ):
        self.model = model or settings.GEMINI_CHAT_MODEL
        self.temperature = temperature if temperature is not None else settings.CHAT_TEMPERATURE
        self.timeout_seconds = timeout_seconds or settings.CHAT_TIMEOUT_SECONDS

    @staticmethod
    def build_contents(prompt: str, history: list[ChatTurn] | None) -> list[types.Content]:
        recent = (history or [])[-HISTORY_TURNS:]
        contents = [
            types.Content(role=turn.gemini_role, parts=[types.Part.from_text(text=turn.content)])
            for turn in recent
        ]
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=prompt)]))
        return contents

    @staticmethod
    def validate(prompt: str) -> str:
        prompt = (prompt or "").strip()
        if not prompt:
            raise InvalidRequestError("Missing prompt")
        if len(prompt) > MAX_PROMPT_CHARS:
            raise InvalidRequestError(f"Prompt too long (max {MAX_PROMPT_CHARS} characters)")
        return prompt

    def stream(
        self,
        prompt: str,
        file_context: str | None = None,
        history: list[ChatTurn] | None = None,
        data_mode: bool = False,
    ) -> Iterator[str]:
        """
        Yield the answer in chunks.

        Raises:
            LLMQuotaExceededError, LLMTimeoutError, LLMServiceError
        """
        prompt = self.validate(prompt)
        config = types.GenerateContentConfig(
            system_instruction=build_chat_system_prompt(file_context, data_mode),
            temperature=self.temperature,
        )
        logger.info(f"Chat stream (data_mode={data_mode}, history={len(history or [])})")
        yield from stream_text(
            self.model,
            self.build_contents(prompt, history),
            config,
            timeout_seconds=self.timeout_seconds,
        )
