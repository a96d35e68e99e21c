# =============================================================================
# agents/ - Gemini Agents
# =============================================================================
# Each agent wraps one prompt and one kind of model call:
# - extractor.py: ExtractionAgent - fields from invoices/receipts (vision)
# - analyst.py: AnalystAgent - analysis cards over spreadsheet context
# - enricher.py: EnrichmentAgent - web-grounded entity lookups
# - chat_assistant.py: ChatAssistant - streaming chat
#
# Shared client, error mapping and JSON helpers live in gemini.py.
# =============================================================================

from agents.analyst import AnalystAgent
from agents.chat_assistant import ChatAssistant
from agents.enricher import EnrichmentAgent
from agents.extractor import ExtractionAgent

__all__ = [
    "AnalystAgent",
    "ChatAssistant",
    "EnrichmentAgent",
    "ExtractionAgent",
]
