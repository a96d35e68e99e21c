# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Supabase JWT.

    Only what the token itself carries; profile data (credits, plan, admin
    flag) is read from the database when a route needs it.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str | None = None
    name: str | None = None


class TokenVerification(BaseModel):
    """Response for GET /auth/verify."""
    valid: bool = True
    user_id: UUID
    email: str | None = None


class WelcomeEmailResponse(BaseModel):
    queued: bool


class WelcomeEmailRequest(BaseModel):
    """Body for POST /auth/welcome-email; the address comes from the token."""
    name: str | None = Field(default=None, max_length=100)
