# =============================================================================
# core/models/plan.py - Subscription Plans & Operation Costs
# =============================================================================
# Static plan table: each tier maps to a monthly credit allotment and a
# monthly document allotment. A document limit of 0 means unlimited.
#
# Also holds what each metered operation costs in credits.
# =============================================================================

import math
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Subscription tiers."""
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class PlanLimits(BaseModel):
    """Monthly allotments for a plan."""
    monthly_credits: int = Field(..., ge=0)
    monthly_documents: int = Field(..., ge=0, description="0 means unlimited")
    features: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def unlimited_documents(self) -> bool:
        return self.monthly_documents == 0


PLAN_LIMITS: dict[PlanType, PlanLimits] = {
    PlanType.FREE: PlanLimits(
        monthly_credits=100,
        monthly_documents=10,
        features=["Basic features"],
    ),
    PlanType.STARTER: PlanLimits(
        monthly_credits=750,
        monthly_documents=150,
        features=["Basic features", "Priority support"],
    ),
    PlanType.PRO: PlanLimits(
        monthly_credits=3000,
        monthly_documents=750,
        features=["All starter features", "Higher limits", "Priority support"],
    ),
    PlanType.ENTERPRISE: PlanLimits(
        monthly_credits=100000,
        monthly_documents=0,
        features=["All pro features", "Team-friendly limits", "Dedicated support"],
    ),
}


def is_valid_plan(plan: str | None) -> bool:
    """Check whether a plan name is one of the known tiers."""
    return plan in {p.value for p in PlanType}


def resolve_plan(plan: str | PlanType | None) -> PlanType:
    """Map a stored plan name to a PlanType; unknown or missing means free."""
    if isinstance(plan, PlanType):
        return plan
    return PlanType(plan) if is_valid_plan(plan) else PlanType.FREE


def get_plan_limits(plan: str | PlanType | None) -> PlanLimits:
    return PLAN_LIMITS[resolve_plan(plan)]


def get_monthly_credits(plan: str | PlanType | None) -> int:
    return get_plan_limits(plan).monthly_credits


def get_monthly_documents(plan: str | PlanType | None) -> int:
    return get_plan_limits(plan).monthly_documents


# =============================================================================
# Operation Costs
# =============================================================================

EXTRACTION_COST = 1
ANALYSIS_COST = 2
CHAT_MESSAGE_COST = 1
WORKFLOW_RUN_COST = 5

ENRICHMENT_BATCH_SIZE = 50
ENRICHMENT_BATCH_COST = 25

# Balance below which the user gets a low-credit warning email
LOW_BALANCE_THRESHOLD = 100


def enrichment_cost(entities: Iterable[str]) -> int:
    """
    Credits for enriching a list of entities.

    Charged per started batch of 50 unique entities; duplicates and blank
    entries are not billed.

    Example:
        enrichment_cost(["Acme"] * 3)     # 25
        enrichment_cost(str(i) for i in range(51))  # 50
    """
    unique = {e.strip().lower() for e in entities if e and e.strip()}
    if not unique:
        return 0
    return math.ceil(len(unique) / ENRICHMENT_BATCH_SIZE) * ENRICHMENT_BATCH_COST
