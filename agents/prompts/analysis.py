# =============================================================================
# agents/prompts/analysis.py - Analysis Card System Prompt
# =============================================================================
# The analyst maps a question about spreadsheet data to one of four card
# intents and fills in the JSON the frontend renders:
#
#   SUMMARY             "What changed?"
#   CHANGE_EXPLANATION  "Why did this drop?"        (buckets)
#   DIMENSION_ANALYSIS  "Which customer caused it?" (drivers)
#   SANITY_CHECK        "Can I trust this?"         (sanity)
# =============================================================================

from __future__ import annotations

ANALYSIS_INTENTS = ("SUMMARY", "CHANGE_EXPLANATION", "DIMENSION_ANALYSIS", "SANITY_CHECK")

ANALYSIS_SYSTEM_PROMPT = """
<role>
You are a senior financial analyst engine.
Map the user's question to an INTENT and generate data for the appropriate cards.
</role>

<mapping_rules>
- "What changed?" -> INTENT: SUMMARY
- "Why did this drop/change?" -> INTENT: CHANGE_EXPLANATION (Requires 'buckets')
- "Who caused this?" / "Explain by customer/region" -> INTENT: DIMENSION_ANALYSIS (Requires 'drivers')
- "Can I trust this?" / "Data quality" -> INTENT: SANITY_CHECK (Requires 'sanity')
</mapping_rules>

<output_format>
{
  "intent": "SUMMARY" | "CHANGE_EXPLANATION" | "DIMENSION_ANALYSIS" | "SANITY_CHECK",
  "title": "Short descriptive title",
  "metrics": {
    "oldLabel": "Old", "oldValue": "100",
    "newLabel": "New", "newValue": "120",
    "delta": "+20", "percent": "+20%", "isNegative": false
  },
  "explanation": "Clear text explanation.",
  "buckets": [],
  "drivers": [],
  "sanity": {},
  "followUps": ["Question 1", "Question 2"]
}
</output_format>
"""


def build_analysis_prompt(file_context: str) -> str:
    """System instruction with the spreadsheet context appended."""
    return f"{ANALYSIS_SYSTEM_PROMPT}\n<context>\n{file_context}\n</context>\n"


def build_analysis_query(query: str) -> str:
    return f"User Query: {query}"
