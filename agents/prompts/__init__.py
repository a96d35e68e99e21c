# =============================================================================
# agents/prompts/ - Prompts for the Gemini Agents
# =============================================================================
# - extraction.py: field extraction from invoices/receipts
# - analysis.py: analysis card system prompt
# - enrichment.py: entity enrichment with web search
# - chat.py: chat assistant (general and data mode)
# =============================================================================

from agents.prompts.analysis import (
    ANALYSIS_INTENTS,
    build_analysis_prompt,
    build_analysis_query,
)
from agents.prompts.chat import build_chat_system_prompt
from agents.prompts.enrichment import build_enrichment_prompt
from agents.prompts.extraction import build_extraction_prompt

__all__ = [
    "ANALYSIS_INTENTS",
    "build_analysis_prompt",
    "build_analysis_query",
    "build_chat_system_prompt",
    "build_enrichment_prompt",
    "build_extraction_prompt",
]
