# =============================================================================
# agents/models/chat.py - Chat History Schema
# =============================================================================

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """A previous message in the conversation, as the browser stores it."""
    role: Literal["user", "assistant", "model"]
    content: str = Field(default="", max_length=20_000)

    @property
    def gemini_role(self) -> str:
        return "user" if self.role == "user" else "model"
