# =============================================================================
# core/services/admin_service.py - Admin Operations
# =============================================================================
# Back-office actions for the admin panel: credit and plan overrides,
# suspensions, usage counters and a database health probe.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import InvalidPlanError, InvalidRequestError
from core.models.plan import PlanType, is_valid_plan
from core.services.credit_store import CreditStore
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import normalize_uuid, utc_now

logger = logging.getLogger(__name__)


class AdminService:
    """Admin-only operations. Callers must have passed require_admin."""

    @staticmethod
    def set_credits(store: CreditStore, user_id: UUID | str, credits: int) -> int:
        """
        Overwrite a user's balance.

        Raises:
            InvalidRequestError: Negative credits
            ProfileNotFoundError: Unknown user
        """
        if credits < 0:
            raise InvalidRequestError("Invalid credits value", details={"credits": credits})
        store.set_balance(normalize_uuid(user_id), credits)
        logger.info(f"Admin set credits for {user_id} to {credits}")
        return credits

    @staticmethod
    def set_plan(store: CreditStore, user_id: UUID | str, plan: str) -> PlanType:
        """
        Raises:
            InvalidPlanError: Not one of the known tiers
            ProfileNotFoundError: Unknown user
        """
        if not is_valid_plan(plan):
            raise InvalidPlanError(plan)
        plan_type = PlanType(plan)
        store.set_plan(normalize_uuid(user_id), plan_type)
        logger.info(f"Admin set plan for {user_id} to {plan_type.value}")
        return plan_type

    @staticmethod
    def set_suspended(user_id: UUID | str, suspended: bool) -> bool:
        SupabaseClient.set_user_banned(user_id, suspended)
        return suspended

    @staticmethod
    def analytics() -> dict[str, Any]:
        """User count, credits outstanding across all users, job count."""
        profiles = SupabaseClient.list_profiles(columns="credits")
        return {
            "users": len(profiles),
            "total_credits": sum(max(0, row.get("credits") or 0) for row in profiles),
            "jobs": SupabaseClient.count_rows("jobs"),
            "timestamp": utc_now(),
        }

    @staticmethod
    def health() -> dict[str, Any]:
        try:
            SupabaseClient.count_rows("profiles")
            database_ok = True
        except SupabaseClientError as e:
            logger.error(f"Database health check failed: {e}")
            database_ok = False

        return {
            "status": "healthy" if database_ok else "degraded",
            "database": "connected" if database_ok else "error",
            "timestamp": utc_now(),
        }
