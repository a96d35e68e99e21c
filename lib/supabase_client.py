# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for:
# - Profile reads and writes
# - Conditional (compare-and-swap) updates used by the credit ledger
# - Payment records and admin counters
# - Auth admin calls (user listing, bans)
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   profile = SupabaseClient.fetch_profile(user_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings
from lib.utils import ApplicationError, normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
PAYMENTS_TABLE = "payments"

# PostgREST code for "no rows" on .single()
NO_ROWS_CODE = "PGRST116"

CREDIT_ACCOUNT_COLUMNS = (
    "id, credits, subscription_plan, documents_used, "
    "monthly_credits_reset_at, monthly_documents_reset_at"
)


class SupabaseClientError(ApplicationError):
    """
    Error during Supabase operations.

    Provides actionable error messages:
    "Errors should tell HOW to fix, not just WHAT failed."
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        profile = SupabaseClient.fetch_profile("550e8400-...")
        applied = SupabaseClient.compare_and_set(
            user_id="550e8400-...", column="credits", expected=120, new=115
        )
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side credit enforcement.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    # -------------------------------------------------------------------------
    # Profile Reads
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_profile(
        cls,
        user_id: str | UUID,
        columns: str = "*",
    ) -> dict[str, Any] | None:
        """
        Fetch a profile row by user ID.

        Args:
            user_id: The user UUID
            columns: PostgREST select list

        Returns:
            Profile dict, or None if the user has no profile

        Raises:
            SupabaseClientError: If the query fails
        """
        client = cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            response = (
                client.table(PROFILES_TABLE)
                .select(columns)
                .eq("id", user_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if NO_ROWS_CODE in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch profile: {e}",
                code="FETCH_PROFILE_FAILED",
                suggestion="Check that the profiles table is reachable with the service key",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_credit_account(cls, user_id: str | UUID) -> dict[str, Any] | None:
        """Fetch only the columns the credit ledger needs."""
        return cls.fetch_profile(user_id, columns=CREDIT_ACCOUNT_COLUMNS)

    @classmethod
    def list_profiles(
        cls,
        columns: str = "*",
        page_size: int = 1000,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch every profile, paging through PostgREST's row limit.

        Raises:
            SupabaseClientError: If a page fails to load
        """
        client = cls.get_client()
        rows: list[dict[str, Any]] = []
        start = 0

        try:
            while True:
                query = client.table(PROFILES_TABLE).select(columns)
                if order_by:
                    query = query.order(order_by, desc=True)
                response = query.range(start, start + page_size - 1).execute()
                page = response.data or []
                rows.extend(page)
                if len(page) < page_size:
                    break
                start += page_size

            logger.debug(f"Fetched {len(rows)} profiles")
            return rows

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to list profiles: {e}",
                code="LIST_PROFILES_FAILED",
                details={"fetched": len(rows)}
            )

    # -------------------------------------------------------------------------
    # Profile Writes
    # -------------------------------------------------------------------------

    @classmethod
    def compare_and_set(
        cls,
        user_id: str | UUID,
        column: str,
        expected: Any,
        new: Any,
    ) -> bool:
        """
        Conditionally update one column of a profile.

        Runs `UPDATE profiles SET column = new WHERE id = user_id AND column = expected`.

        Returns:
            True if a row was updated, False if the stored value no longer
            matched `expected` (another writer got there first)

        Raises:
            SupabaseClientError: If the update itself fails
        """
        client = cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            response = (
                client.table(PROFILES_TABLE)
                .update({column: new})
                .eq("id", user_id_str)
                .eq(column, expected)
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update {column}: {e}",
                code="CONDITIONAL_UPDATE_FAILED",
                details={"user_id": user_id_str, "column": column}
            )

    @classmethod
    def update_profile_if(
        cls,
        user_id: str | UUID,
        data: dict[str, Any],
        column: str,
        expected: Any,
    ) -> bool:
        """
        Update several profile columns, guarded by one column's current value.

        A None `expected` matches SQL NULL.

        Returns:
            True if a row was updated
        """
        client = cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            query = (
                client.table(PROFILES_TABLE)
                .update(data)
                .eq("id", user_id_str)
            )
            if expected is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, expected)
            response = query.execute()
            return bool(response.data)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update profile: {e}",
                code="CONDITIONAL_UPDATE_FAILED",
                details={"user_id": user_id_str, "guard": column}
            )

    @classmethod
    def update_profile(
        cls,
        user_id: str | UUID,
        data: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Unconditionally update profile columns.

        Returns:
            The updated row, or None if the user has no profile
        """
        client = cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            response = (
                client.table(PROFILES_TABLE)
                .update(data)
                .eq("id", user_id_str)
                .execute()
            )
            if response.data:
                logger.info(f"Updated profile {user_id_str}: {sorted(data)}")
                return response.data[0]
            return None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update profile: {e}",
                code="UPDATE_PROFILE_FAILED",
                details={"user_id": user_id_str, "columns": sorted(data)}
            )

    # -------------------------------------------------------------------------
    # Payments & Counters
    # -------------------------------------------------------------------------

    @classmethod
    def insert_row(cls, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a row and return it.

        Raises:
            SupabaseClientError: If the insert fails or returns nothing
        """
        client = cls.get_client()

        try:
            response = client.table(table).insert(data).execute()
            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA",
                details={"table": table}
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert into {table}: {e}",
                code="INSERT_FAILED",
                details={"table": table}
            )

    @classmethod
    def fetch_payment(cls, razorpay_payment_id: str) -> dict[str, Any] | None:
        """Look up a recorded payment by its Razorpay payment ID."""
        client = cls.get_client()

        try:
            response = (
                client.table(PAYMENTS_TABLE)
                .select("id, user_id, type")
                .eq("razorpay_payment_id", razorpay_payment_id)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch payment: {e}",
                code="FETCH_PAYMENT_FAILED",
                details={"razorpay_payment_id": razorpay_payment_id}
            )

    @classmethod
    def count_rows(cls, table: str) -> int:
        """Exact row count of a table (head request, no rows transferred)."""
        client = cls.get_client()

        try:
            response = (
                client.table(table)
                .select("id", count="exact")
                .limit(1)
                .execute()
            )
            return response.count or 0

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count {table}: {e}",
                code="COUNT_FAILED",
                details={"table": table}
            )

    # -------------------------------------------------------------------------
    # Auth Admin
    # -------------------------------------------------------------------------

    @classmethod
    def list_auth_users(cls, page: int = 1, per_page: int = 100) -> list[Any]:
        """
        List auth users one page at a time.

        Returns:
            supabase-py User objects (id, email, created_at, user_metadata)
        """
        client = cls.get_client()

        try:
            return list(client.auth.admin.list_users(page=page, per_page=per_page))

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to list users: {e}",
                code="LIST_USERS_FAILED",
                details={"page": page, "per_page": per_page}
            )

    @classmethod
    def set_user_banned(cls, user_id: str | UUID, banned: bool) -> None:
        """Ban a user for a year, or lift the ban."""
        client = cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            client.auth.admin.update_user_by_id(
                user_id_str,
                {"ban_duration": "8760h" if banned else "none"},
            )
            logger.info(f"User {user_id_str} {'suspended' if banned else 'reinstated'}")

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update user status: {e}",
                code="UPDATE_USER_FAILED",
                details={"user_id": user_id_str, "banned": banned}
            )
