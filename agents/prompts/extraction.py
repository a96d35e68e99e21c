# =============================================================================
# agents/prompts/extraction.py - Document Extraction Prompt
# =============================================================================
# Sent alongside the document image/PDF. The model answers with a JSON array;
# box2d coordinates are normalized to 0-1000 as Gemini returns them.
# =============================================================================

from __future__ import annotations


def build_extraction_prompt(fields: list[str]) -> str:
    """
    Prompt asking for exactly the requested fields.

    Example:
        build_extraction_prompt(["Invoice Number", "Total"])
    """
    return (
        f"Extract only these fields: {', '.join(fields)}. "
        "Return JSON array of objects { key, value, confidence, box2d: [ymin, xmin, ymax, xmax] }."
    )
