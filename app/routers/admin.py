# =============================================================================
# app/routers/admin.py - Admin Panel Endpoints
# =============================================================================
# Every route here requires profiles.is_admin (see require_admin).
# =============================================================================

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from app.auth import require_admin
from app.dependencies import LedgerDep
from core.models.credits import BatchResetSummary
from core.models.plan import PLAN_LIMITS
from core.models.profile import AdminUserSummary
from core.services.admin_service import AdminService
from core.services.profile_service import ProfileService

router = APIRouter(dependencies=[Depends(require_admin)])


# =============================================================================
# Request/Response Models
# =============================================================================

class UserListResponse(BaseModel):
    users: list[AdminUserSummary]


class SetCreditsRequest(BaseModel):
    credits: int = Field(..., example=500)


class SetCreditsResponse(BaseModel):
    success: bool = True
    credits: int


class SuspendRequest(BaseModel):
    suspended: bool


class SuspendResponse(BaseModel):
    success: bool = True
    suspended: bool


class SetPlanRequest(BaseModel):
    plan: str = Field(..., example="pro")


class SetPlanResponse(BaseModel):
    success: bool = True
    plan: str


class AnalyticsResponse(BaseModel):
    users: int
    total_credits: int = Field(..., serialization_alias="totalCredits")
    jobs: int
    timestamp: datetime


class ResetMonthlyResponse(BaseModel):
    success: bool = True
    reset: int
    skipped: int
    failed: int


class AdminHealthResponse(BaseModel):
    status: str
    database: str
    timestamp: datetime


# =============================================================================
# Users
# =============================================================================

@router.get("/users", response_model=UserListResponse)
async def list_users() -> UserListResponse:
    """All users, newest first."""
    return UserListResponse(users=await run_in_threadpool(ProfileService.list_users))


@router.post("/users/{user_id}/credits", response_model=SetCreditsResponse)
async def set_user_credits(
    body: SetCreditsRequest,
    ledger: LedgerDep,
    user_id: UUID = Path(...),
) -> SetCreditsResponse:
    """Overwrite a balance. Negative values are rejected with 400."""
    credits = await run_in_threadpool(AdminService.set_credits, ledger.store, user_id, body.credits)
    return SetCreditsResponse(credits=credits)


@router.post("/users/{user_id}/suspend", response_model=SuspendResponse)
async def suspend_user(body: SuspendRequest, user_id: UUID = Path(...)) -> SuspendResponse:
    """Ban or unban the user's Supabase auth account."""
    suspended = await run_in_threadpool(AdminService.set_suspended, user_id, body.suspended)
    return SuspendResponse(suspended=suspended)


@router.post("/users/{user_id}/plan", response_model=SetPlanResponse)
async def set_user_plan(
    body: SetPlanRequest,
    ledger: LedgerDep,
    user_id: UUID = Path(...),
) -> SetPlanResponse:
    plan = await run_in_threadpool(AdminService.set_plan, ledger.store, user_id, body.plan)
    return SetPlanResponse(plan=plan.value)


# =============================================================================
# Credits & Plans
# =============================================================================

@router.post("/credits/reset-monthly", response_model=ResetMonthlyResponse)
async def reset_monthly_credits(ledger: LedgerDep) -> ResetMonthlyResponse:
    """Run the monthly reset for every account that is due."""
    summary: BatchResetSummary = await run_in_threadpool(ledger.reset_all_due)
    return ResetMonthlyResponse(reset=summary.reset, skipped=summary.skipped, failed=summary.failed)


@router.get("/plans")
async def list_plans() -> dict[str, Any]:
    return {"plans": {plan.value: limits.model_dump() for plan, limits in PLAN_LIMITS.items()}}


# =============================================================================
# Analytics & Health
# =============================================================================

@router.get("/analytics", response_model=AnalyticsResponse)
async def analytics() -> AnalyticsResponse:
    return AnalyticsResponse(**await run_in_threadpool(AdminService.analytics))


@router.get("/health", response_model=AdminHealthResponse)
async def admin_health() -> AdminHealthResponse:
    return AdminHealthResponse(**await run_in_threadpool(AdminService.health))
