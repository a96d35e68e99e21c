# =============================================================================
# app/routers/credits.py - Credit Balance Endpoint
# =============================================================================
# GET /credits is where the monthly reset happens for active users: the
# balance is topped up to the plan allotment first if 30 days have passed.
# Inactive users are caught by the daily reset job instead.
# =============================================================================

from uuid import UUID

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from app.dependencies import CurrentUser, DocumentQuotaDep, LedgerDep
from core.models.credits import CreditBalanceResponse
from core.models.plan import get_monthly_credits
from core.services.document_quota import DocumentQuotaService
from core.services.ledger import CreditLedger, next_reset_at

router = APIRouter()


def read_balance(ledger: CreditLedger, documents: DocumentQuotaService, user_id: UUID) -> CreditBalanceResponse:
    reset = ledger.reset_if_due(user_id)
    credits = ledger.get_balance(user_id)
    account = ledger.store.get_account(reset.user_id)

    return CreditBalanceResponse(
        credits=credits,
        plan=account.plan,
        monthly_credits=get_monthly_credits(account.plan),
        documents=documents.get_quota(user_id),
        monthly_credits_reset_at=account.monthly_credits_reset_at,
        next_reset_at=next_reset_at(account.monthly_credits_reset_at),
    )


@router.get("", response_model=CreditBalanceResponse)
async def get_credits(
    user: CurrentUser,
    ledger: LedgerDep,
    documents: DocumentQuotaDep,
) -> CreditBalanceResponse:
    """
    Current balance, plan and document quota.

    Raises:
        404: No profile for the user
    """
    return await run_in_threadpool(read_balance, ledger, documents, user.id)
