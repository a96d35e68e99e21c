# =============================================================================
# agents/models/extraction.py - Extraction Result Schema
# =============================================================================

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIDENCE = 0.9


class ExtractedField(BaseModel):
    """
    One field pulled from a document.

    box2d is [ymin, xmin, ymax, xmax] on Gemini's 0-1000 grid; the frontend
    draws it over the page for verification.
    """
    key: str
    value: Any = None
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    box2d: list[float] | None = None
    flagged: bool = False

    model_config = {"extra": "ignore"}

    @field_validator("confidence", mode="before")
    @classmethod
    def default_missing_confidence(cls, value: Any) -> Any:
        # 0, null and "" all mean the model gave no confidence
        if not value:
            return DEFAULT_CONFIDENCE
        try:
            number = float(value)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE
        # Percentages
        return number / 100 if 1 < number <= 100 else number

    @field_validator("box2d", mode="before")
    @classmethod
    def drop_malformed_box(cls, value: Any) -> Any:
        if isinstance(value, list) and len(value) == 4:
            return value
        return None
