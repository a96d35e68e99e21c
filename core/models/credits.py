# =============================================================================
# core/models/credits.py - Credit Ledger Models
# =============================================================================
# Value types passed between the credit store, the ledger and the API.
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, Field

from core.models.plan import PlanType, resolve_plan


class CreditAccount(BaseModel):
    """
    The ledger-relevant slice of a profile.

    This is what a credit store reads; it never carries more than the
    columns the ledger and the document quota need.
    """
    user_id: str
    credits: int = 0
    subscription_plan: str = PlanType.FREE.value
    documents_used: int = 0
    monthly_credits_reset_at: datetime | None = None
    monthly_documents_reset_at: datetime | None = None

    @property
    def plan(self) -> PlanType:
        return resolve_plan(self.subscription_plan)


class CreditChange(BaseModel):
    """Outcome of a charge, refund or grant."""
    user_id: str
    amount: int
    before: int = Field(..., ge=0)
    after: int = Field(..., ge=0)

    @property
    def changed(self) -> bool:
        return self.before != self.after


class ResetResult(BaseModel):
    """Outcome of a monthly reset check for one user."""
    user_id: str
    reset: bool
    credits: int = Field(..., ge=0)
    reset_at: datetime | None = None


class BatchResetSummary(BaseModel):
    """Outcome of resetting every profile that is due."""
    reset: int = 0
    skipped: int = 0
    failed: int = 0


class DocumentQuota(BaseModel):
    """Monthly document usage for a user."""
    used: int = Field(..., ge=0)
    limit: int = Field(..., ge=0, description="0 means unlimited")
    can_extract: bool


class CreditBalanceResponse(BaseModel):
    """Response for GET /credits."""
    credits: int = Field(..., ge=0, example=642)
    plan: PlanType = Field(..., example=PlanType.STARTER)
    monthly_credits: int = Field(..., example=750)
    documents: DocumentQuota
    monthly_credits_reset_at: datetime | None = None
    next_reset_at: datetime | None = None
