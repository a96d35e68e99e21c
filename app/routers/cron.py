# =============================================================================
# app/routers/cron.py - Scheduled Job Triggers
# =============================================================================
# For external schedulers. The same jobs also run from Celery beat.
# Guarded by X-Cron-Secret when CRON_SECRET is set.
# =============================================================================

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.config import settings
from app.dependencies import LedgerDep
from core.services.followup_service import FollowupService

logger = logging.getLogger(__name__)


def verify_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    if not settings.CRON_SECRET:
        return
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.CRON_SECRET):
        logger.warning("Cron call with a missing or wrong secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


router = APIRouter(dependencies=[Depends(verify_cron_secret)])


class FollowupRunResponse(BaseModel):
    ok: bool = True
    sent: int
    skipped: int
    failed: int


class CreditResetRunResponse(BaseModel):
    ok: bool = True
    reset: int
    skipped: int
    failed: int


@router.post("/followup-emails", response_model=FollowupRunResponse)
async def run_followup_emails() -> FollowupRunResponse:
    summary = await run_in_threadpool(FollowupService().run)
    return FollowupRunResponse(**summary.model_dump())


@router.post("/reset-credits", response_model=CreditResetRunResponse)
async def run_credit_reset(ledger: LedgerDep) -> CreditResetRunResponse:
    summary = await run_in_threadpool(ledger.reset_all_due)
    return CreditResetRunResponse(**summary.model_dump())
