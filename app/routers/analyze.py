# =============================================================================
# app/routers/analyze.py - Spreadsheet Analysis Endpoint
# =============================================================================

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from agents.analyst import AnalystAgent
from agents.models.analysis import AnalysisResult
from app.dependencies import CurrentUser, LedgerDep
from app.middleware.rate_limit import analyze_limit
from core.models.plan import ANALYSIS_COST
from core.services.metering import metered
from lib.spreadsheet import SpreadsheetFile, resolve_file_context

router = APIRouter()


class AnalyzeRequest(BaseModel):
    """A question about spreadsheets summarized by the browser."""
    query: str = Field(..., example="Which region grew fastest last quarter?")
    file_context: str | None = Field(default=None, alias="fileContext", description="Output of the spreadsheet summarizer")
    files: list[SpreadsheetFile] | None = Field(default=None, description="Raw sheets, summarized here when fileContext is absent")

    model_config = {"populate_by_name": True}


@router.post("", response_model=AnalysisResult, response_model_by_alias=True, dependencies=[Depends(analyze_limit)])
async def analyze(
    body: AnalyzeRequest,
    user: CurrentUser,
    ledger: LedgerDep,
) -> AnalysisResult:
    """
    Answer a question with an analysis card. Costs 2 credits, refunded on failure.
    """
    agent = AnalystAgent()
    file_context = await run_in_threadpool(resolve_file_context, body.file_context, body.files)
    agent.validate(body.query, file_context)

    async with metered(ledger, user.id, ANALYSIS_COST, "analysis"):
        return await run_in_threadpool(agent.analyze, body.query, file_context)
