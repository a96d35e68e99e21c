# =============================================================================
# agents/models/ - Agent Result Schemas
# =============================================================================

from agents.models.analysis import AnalysisResult
from agents.models.chat import ChatTurn
from agents.models.extraction import ExtractedField

__all__ = [
    "AnalysisResult",
    "ChatTurn",
    "ExtractedField",
]
