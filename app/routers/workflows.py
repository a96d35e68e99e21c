# =============================================================================
# app/routers/workflows.py - Workflow Billing
# =============================================================================
# Workflows run in the browser; this endpoint only charges for a run.
# =============================================================================

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.dependencies import CurrentUser, LedgerDep
from core.models.plan import WORKFLOW_RUN_COST

router = APIRouter()


class WorkflowChargeResponse(BaseModel):
    success: bool = True
    credits: int


@router.post("/charge", response_model=WorkflowChargeResponse)
async def charge_workflow_run(user: CurrentUser, ledger: LedgerDep) -> WorkflowChargeResponse:
    """
    Charge 5 credits for one workflow run.

    Raises:
        402: Not enough credits
        409: The balance kept changing; retry
    """
    change = await run_in_threadpool(ledger.charge, user.id, WORKFLOW_RUN_COST)
    return WorkflowChargeResponse(credits=change.after)
