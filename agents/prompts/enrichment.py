# =============================================================================
# agents/prompts/enrichment.py - Entity Enrichment Prompt
# =============================================================================

from __future__ import annotations

import json


def build_enrichment_prompt(entities: list[str], query: str) -> str:
    """Ask for one piece of information per entity, keyed by the entity."""
    return (
        f"Enrich entities: {json.dumps(entities, ensure_ascii=False)}. "
        f"Query: {query}. "
        "Return JSON object { entity: info }."
    )
