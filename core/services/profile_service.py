# =============================================================================
# core/services/profile_service.py - Profile Business Logic
# =============================================================================
# Reads of the Supabase `profiles` table outside the credit ledger: the
# /auth/me view, admin checks and follow-up bookkeeping.
# =============================================================================

import logging
from datetime import datetime
from uuid import UUID

from app.exceptions import ProfileNotFoundError
from core.models.profile import AdminUserSummary, FollowupStage, UserProfile
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)


class ProfileService:
    """Profile reads and small profile updates."""

    @staticmethod
    def get_profile(user_id: UUID | str) -> UserProfile:
        """
        Raises:
            ProfileNotFoundError: No profile row for the user
        """
        row = SupabaseClient.fetch_profile(user_id)
        if not row:
            raise ProfileNotFoundError(normalize_uuid(user_id))
        return UserProfile.model_validate(row)

    @staticmethod
    def find_profile(user_id: UUID | str) -> UserProfile | None:
        row = SupabaseClient.fetch_profile(user_id)
        return UserProfile.model_validate(row) if row else None

    @staticmethod
    def is_admin(user_id: UUID | str) -> bool:
        """False for missing profiles and on lookup errors."""
        try:
            row = SupabaseClient.fetch_profile(user_id, columns="is_admin")
        except SupabaseClientError as e:
            logger.error(f"Admin check failed for {user_id}: {e}")
            return False
        return bool(row and row.get("is_admin"))

    @staticmethod
    def list_users() -> list[AdminUserSummary]:
        """All profiles, newest first."""
        rows = SupabaseClient.list_profiles(
            columns="id, email, credits, is_admin, subscription_plan, created_at",
            order_by="created_at",
        )
        return [AdminUserSummary.model_validate(row) for row in rows]

    @staticmethod
    def record_followup(user_id: UUID | str, stage: FollowupStage, sent_at: datetime) -> None:
        SupabaseClient.update_profile(
            user_id,
            {"followup_stage": stage.value, "last_followup_at": sent_at.isoformat()},
        )
