# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - plan.py: Subscription tiers, monthly allotments, operation costs
# - credits.py: Credit ledger value types and the /credits response
# - profile.py: Supabase `profiles` row and admin views
# - payment.py: Razorpay checkout bodies
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Plan Models - Tiers and costs
# -----------------------------------------------------------------------------
from .plan import (
    ANALYSIS_COST,
    CHAT_MESSAGE_COST,
    EXTRACTION_COST,
    LOW_BALANCE_THRESHOLD,
    PLAN_LIMITS,
    WORKFLOW_RUN_COST,
    PlanLimits,
    PlanType,
    enrichment_cost,
    get_monthly_credits,
    get_monthly_documents,
    get_plan_limits,
    is_valid_plan,
    resolve_plan,
)

# -----------------------------------------------------------------------------
# Credit Models - Ledger values
# -----------------------------------------------------------------------------
from .credits import (
    BatchResetSummary,
    CreditAccount,
    CreditBalanceResponse,
    CreditChange,
    DocumentQuota,
    ResetResult,
)

# -----------------------------------------------------------------------------
# Profile Models
# -----------------------------------------------------------------------------
from .profile import (
    AdminUserSummary,
    FollowupStage,
    ProfileResponse,
    UserProfile,
)

# -----------------------------------------------------------------------------
# Payment Models
# -----------------------------------------------------------------------------
from .payment import (
    BillingPeriod,
    CreateOrderRequest,
    OrderResponse,
    PaymentType,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

__all__ = [
    # Plan
    "ANALYSIS_COST",
    "CHAT_MESSAGE_COST",
    "EXTRACTION_COST",
    "LOW_BALANCE_THRESHOLD",
    "PLAN_LIMITS",
    "WORKFLOW_RUN_COST",
    "PlanLimits",
    "PlanType",
    "enrichment_cost",
    "get_monthly_credits",
    "get_monthly_documents",
    "get_plan_limits",
    "is_valid_plan",
    "resolve_plan",
    # Credits
    "BatchResetSummary",
    "CreditAccount",
    "CreditBalanceResponse",
    "CreditChange",
    "DocumentQuota",
    "ResetResult",
    # Profile
    "AdminUserSummary",
    "FollowupStage",
    "ProfileResponse",
    "UserProfile",
    # Payment
    "BillingPeriod",
    "CreateOrderRequest",
    "OrderResponse",
    "PaymentType",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
]
