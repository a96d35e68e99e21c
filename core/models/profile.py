# =============================================================================
# core/models/profile.py - User Profile Models
# =============================================================================
# Mirrors the Supabase `profiles` row. The table is owned by the database
# schema, not by this service; unknown columns are ignored.
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.plan import PlanType, resolve_plan


class FollowupStage(str, Enum):
    """Onboarding email the user has most recently received."""
    NONE = "none"
    DAY2 = "day2"
    DAY5 = "day5"
    DAY7 = "day7"


class UserProfile(BaseModel):
    """A row of the `profiles` table."""
    id: UUID
    email: str | None = None
    full_name: str | None = None
    credits: int = 0
    is_admin: bool = False
    subscription_plan: str = PlanType.FREE.value
    documents_used: int = 0
    monthly_credits_reset_at: datetime | None = None
    monthly_documents_reset_at: datetime | None = None
    credits_expires_at: datetime | None = None
    followup_stage: FollowupStage = FollowupStage.NONE
    last_followup_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"extra": "ignore"}

    @property
    def plan(self) -> PlanType:
        return resolve_plan(self.subscription_plan)

    @property
    def display_name(self) -> str:
        """Name to greet the user with in emails."""
        if self.full_name:
            return self.full_name
        if self.email:
            return self.email.split("@")[0]
        return "there"


class ProfileResponse(BaseModel):
    """Profile as returned by GET /auth/me."""
    id: UUID
    email: str | None = None
    credits: int = Field(..., ge=0)
    plan: PlanType
    documents_used: int = 0
    is_admin: bool = False
    created_at: datetime | None = None


class AdminUserSummary(BaseModel):
    """One line of the admin user list."""
    id: UUID
    email: str | None = None
    credits: int = 0
    is_admin: bool = False
    subscription_plan: str = PlanType.FREE.value
    created_at: datetime | None = None

    model_config = {"extra": "ignore"}
