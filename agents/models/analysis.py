# =============================================================================
# agents/models/analysis.py - Analysis Card Schema
# =============================================================================
# Field names on the wire are camelCase (followUps) because the frontend
# renders the model's JSON directly.
# =============================================================================

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agents.prompts.analysis import ANALYSIS_INTENTS


class AnalysisResult(BaseModel):
    """An analysis card."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    intent: str = "SUMMARY"
    title: str = "Analysis"
    metrics: dict[str, Any] = Field(default_factory=dict)
    explanation: str = ""
    buckets: list[Any] = Field(default_factory=list)
    drivers: list[Any] = Field(default_factory=list)
    sanity: dict[str, Any] = Field(default_factory=dict)
    follow_ups: list[str] = Field(default_factory=list, alias="followUps")

    @field_validator("intent", mode="before")
    @classmethod
    def normalize_intent(cls, value: Any) -> str:
        intent = str(value or "").strip().upper()
        return intent if intent in ANALYSIS_INTENTS else "SUMMARY"

    @field_validator("metrics", "sanity", mode="before")
    @classmethod
    def default_dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("buckets", "drivers", "follow_ups", mode="before")
    @classmethod
    def default_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @classmethod
    def fallback(cls, text: str) -> "AnalysisResult":
        """Card shown when the model did not return valid JSON."""
        return cls(intent="SUMMARY", title="Analysis", explanation=text)
