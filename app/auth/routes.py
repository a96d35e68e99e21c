# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# API endpoints for authentication-related operations.
#
# Note: Actual signup/login is handled by Supabase Auth client-side.
# These routes are for getting user info after authentication.
# =============================================================================

import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser, TokenVerification, WelcomeEmailRequest, WelcomeEmailResponse
from app.exceptions import InvalidRequestError
from core.models.profile import ProfileResponse
from core.services.notifications import dispatch_welcome_email
from core.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me", response_model=ProfileResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> ProfileResponse:
    """
    Get the current user's profile: credits, plan and admin flag.

    Raises:
        401: If not authenticated
        404: If the profile row has not been created yet
    """
    profile = await run_in_threadpool(ProfileService.get_profile, user.id)
    return ProfileResponse(
        id=profile.id,
        email=profile.email or user.email,
        credits=max(0, profile.credits),
        plan=profile.plan,
        documents_used=max(0, profile.documents_used),
        is_admin=profile.is_admin,
        created_at=profile.created_at,
    )


@router.get("/verify", response_model=TokenVerification)
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> TokenVerification:
    """
    Verify that the current token is valid.

    Useful for checking if a stored token is still valid.

    Raises:
        401: If token is invalid or expired
    """
    return TokenVerification(user_id=user.id, email=user.email)


@router.post("/welcome-email", response_model=WelcomeEmailResponse)
async def send_welcome_email(
    body: WelcomeEmailRequest,
    user: AuthUser = Depends(get_current_user)
) -> WelcomeEmailResponse:
    """
    Queue the welcome email for the signed-in user.

    The email goes out from a Celery worker; `queued` is False when the
    broker was unreachable.
    """
    if not user.email:
        raise InvalidRequestError("Email missing", suggestion="Sign in with an account that has an email address")

    queued = dispatch_welcome_email(str(user.id), user.email, body.name or user.name)
    logger.info(f"Welcome email for {user.id} {'queued' if queued else 'not queued'}")
    return WelcomeEmailResponse(queued=queued)
