# =============================================================================
# core/services/credit_store.py - Credit Storage Backends
# =============================================================================
# The ledger never talks to the database directly. It goes through a credit
# store, which exposes single-row reads and conditional (compare-and-swap)
# writes on the profile columns the ledger owns:
#
#   credits, documents_used, monthly_credits_reset_at, monthly_documents_reset_at
#
# Backends:
# - SupabaseCreditStore: the `profiles` table via PostgREST filters
# - InMemoryCreditStore: lock-protected dict, for local development and tests
#
# Usage:
#   from core.services.credit_store import get_credit_store
#   store = get_credit_store()
#   account = store.get_account(user_id)
# =============================================================================

from __future__ import annotations

import logging
import threading
from datetime import datetime
from functools import lru_cache
from typing import Protocol
from uuid import UUID

from app.config import settings
from app.exceptions import ProfileNotFoundError
from core.models.credits import CreditAccount
from core.models.plan import PlanType
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, parse_timestamp

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class CreditStore(Protocol):
    """Storage contract the ledger and document quota rely on."""

    def get_account(self, user_id: str) -> CreditAccount: ...

    def get_balance(self, user_id: str) -> int: ...

    def compare_and_set_balance(self, user_id: str, expected: int, new: int) -> bool: ...

    def compare_and_set_documents(self, user_id: str, expected: int, new: int) -> bool: ...

    def apply_monthly_reset(
        self,
        user_id: str,
        credits: int,
        reset_at: datetime,
        expected_reset_at: datetime | None,
    ) -> bool: ...

    def reset_documents(
        self,
        user_id: str,
        reset_at: datetime,
        expected_reset_at: datetime | None,
    ) -> bool: ...

    def set_balance(self, user_id: str, credits: int) -> None: ...

    def set_plan(self, user_id: str, plan: PlanType) -> None: ...

    def set_credits_expiry(self, user_id: str, expires_at: datetime) -> None: ...

    def list_accounts(self) -> list[CreditAccount]: ...


# =============================================================================
# Supabase Backend
# =============================================================================

class SupabaseCreditStore:
    """
    Credit store backed by the Supabase `profiles` table.

    Every conditional write is a single UPDATE with the expected value in its
    WHERE clause; PostgREST returns the updated rows, so an empty result
    means the guard did not match.
    """

    @staticmethod
    def _to_account(row: dict) -> CreditAccount:
        return CreditAccount(
            user_id=str(row["id"]),
            credits=row.get("credits") or 0,
            subscription_plan=row.get("subscription_plan") or PlanType.FREE.value,
            documents_used=row.get("documents_used") or 0,
            monthly_credits_reset_at=parse_timestamp(row.get("monthly_credits_reset_at")),
            monthly_documents_reset_at=parse_timestamp(row.get("monthly_documents_reset_at")),
        )

    def get_account(self, user_id: str | UUID) -> CreditAccount:
        row = SupabaseClient.fetch_credit_account(user_id)
        if not row:
            raise ProfileNotFoundError(normalize_uuid(user_id))
        return self._to_account(row)

    def get_balance(self, user_id: str | UUID) -> int:
        row = SupabaseClient.fetch_profile(user_id, columns="credits")
        if not row:
            raise ProfileNotFoundError(normalize_uuid(user_id))
        return row.get("credits") or 0

    def compare_and_set_balance(self, user_id: str | UUID, expected: int, new: int) -> bool:
        return SupabaseClient.compare_and_set(user_id, "credits", expected, new)

    def compare_and_set_documents(self, user_id: str | UUID, expected: int, new: int) -> bool:
        return SupabaseClient.compare_and_set(user_id, "documents_used", expected, new)

    def apply_monthly_reset(
        self,
        user_id: str | UUID,
        credits: int,
        reset_at: datetime,
        expected_reset_at: datetime | None,
    ) -> bool:
        stamp = _iso(reset_at)
        return SupabaseClient.update_profile_if(
            user_id,
            {
                "credits": credits,
                "documents_used": 0,
                "monthly_credits_reset_at": stamp,
                "monthly_documents_reset_at": stamp,
            },
            column="monthly_credits_reset_at",
            expected=_iso(expected_reset_at),
        )

    def reset_documents(
        self,
        user_id: str | UUID,
        reset_at: datetime,
        expected_reset_at: datetime | None,
    ) -> bool:
        return SupabaseClient.update_profile_if(
            user_id,
            {"documents_used": 0, "monthly_documents_reset_at": _iso(reset_at)},
            column="monthly_documents_reset_at",
            expected=_iso(expected_reset_at),
        )

    def set_balance(self, user_id: str | UUID, credits: int) -> None:
        if SupabaseClient.update_profile(user_id, {"credits": max(0, credits)}) is None:
            raise ProfileNotFoundError(normalize_uuid(user_id))

    def set_plan(self, user_id: str | UUID, plan: PlanType) -> None:
        if SupabaseClient.update_profile(user_id, {"subscription_plan": plan.value}) is None:
            raise ProfileNotFoundError(normalize_uuid(user_id))

    def set_credits_expiry(self, user_id: str | UUID, expires_at: datetime) -> None:
        SupabaseClient.update_profile(user_id, {"credits_expires_at": _iso(expires_at)})

    def list_accounts(self) -> list[CreditAccount]:
        rows = SupabaseClient.list_profiles(
            columns="id, credits, subscription_plan, documents_used, "
                    "monthly_credits_reset_at, monthly_documents_reset_at"
        )
        return [self._to_account(row) for row in rows]


# =============================================================================
# In-Memory Backend
# =============================================================================

class InMemoryCreditStore:
    """
    Credit store kept in process memory.

    Conditional writes hold a lock for the compare and the set, which gives
    them the same exactly-one-winner behaviour as a guarded UPDATE.
    """

    def __init__(self):
        self._accounts: dict[str, CreditAccount] = {}
        self._expiry: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add_account(
        self,
        user_id: str | UUID,
        credits: int = 0,
        plan: PlanType | str = PlanType.FREE,
        documents_used: int = 0,
        monthly_credits_reset_at: datetime | None = None,
        monthly_documents_reset_at: datetime | None = None,
    ) -> CreditAccount:
        """Create (or replace) an account. Negative credits are stored as given."""
        user_id = normalize_uuid(user_id)
        account = CreditAccount(
            user_id=user_id,
            credits=credits,
            subscription_plan=plan.value if isinstance(plan, PlanType) else plan,
            documents_used=documents_used,
            monthly_credits_reset_at=monthly_credits_reset_at,
            monthly_documents_reset_at=monthly_documents_reset_at,
        )
        with self._lock:
            self._accounts[user_id] = account
        return account

    def _require(self, user_id: str) -> CreditAccount:
        account = self._accounts.get(user_id)
        if account is None:
            raise ProfileNotFoundError(user_id)
        return account

    def _update(self, user_id: str, **changes) -> None:
        self._accounts[user_id] = self._accounts[user_id].model_copy(update=changes)

    def get_account(self, user_id: str | UUID) -> CreditAccount:
        with self._lock:
            return self._require(normalize_uuid(user_id)).model_copy()

    def get_balance(self, user_id: str | UUID) -> int:
        return self.get_account(user_id).credits

    def compare_and_set_balance(self, user_id: str | UUID, expected: int, new: int) -> bool:
        user_id = normalize_uuid(user_id)
        with self._lock:
            if self._require(user_id).credits != expected:
                return False
            self._update(user_id, credits=new)
            return True

    def compare_and_set_documents(self, user_id: str | UUID, expected: int, new: int) -> bool:
        user_id = normalize_uuid(user_id)
        with self._lock:
            if self._require(user_id).documents_used != expected:
                return False
            self._update(user_id, documents_used=new)
            return True

    def apply_monthly_reset(
        self,
        user_id: str | UUID,
        credits: int,
        reset_at: datetime,
        expected_reset_at: datetime | None,
    ) -> bool:
        user_id = normalize_uuid(user_id)
        with self._lock:
            if self._require(user_id).monthly_credits_reset_at != expected_reset_at:
                return False
            self._update(
                user_id,
                credits=credits,
                documents_used=0,
                monthly_credits_reset_at=reset_at,
                monthly_documents_reset_at=reset_at,
            )
            return True

    def reset_documents(
        self,
        user_id: str | UUID,
        reset_at: datetime,
        expected_reset_at: datetime | None,
    ) -> bool:
        user_id = normalize_uuid(user_id)
        with self._lock:
            if self._require(user_id).monthly_documents_reset_at != expected_reset_at:
                return False
            self._update(user_id, documents_used=0, monthly_documents_reset_at=reset_at)
            return True

    def set_balance(self, user_id: str | UUID, credits: int) -> None:
        user_id = normalize_uuid(user_id)
        with self._lock:
            self._require(user_id)
            self._update(user_id, credits=max(0, credits))

    def set_plan(self, user_id: str | UUID, plan: PlanType) -> None:
        user_id = normalize_uuid(user_id)
        with self._lock:
            self._require(user_id)
            self._update(user_id, subscription_plan=plan.value)

    def set_credits_expiry(self, user_id: str | UUID, expires_at: datetime) -> None:
        user_id = normalize_uuid(user_id)
        with self._lock:
            self._require(user_id)
            self._expiry[user_id] = expires_at

    def credits_expiry(self, user_id: str | UUID) -> datetime | None:
        return self._expiry.get(normalize_uuid(user_id))

    def list_accounts(self) -> list[CreditAccount]:
        with self._lock:
            return [account.model_copy() for account in self._accounts.values()]


@lru_cache
def get_credit_store() -> CreditStore:
    """
    Get the configured credit store (cached).

    CREDIT_STORE_BACKEND=memory keeps balances in process memory and loses
    them on restart; never use it with more than one worker.
    """
    if settings.CREDIT_STORE_BACKEND == "memory":
        logger.warning("Using in-memory credit store; balances are not persisted")
        return InMemoryCreditStore()
    return SupabaseCreditStore()
