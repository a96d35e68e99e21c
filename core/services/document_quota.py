# =============================================================================
# core/services/document_quota.py - Monthly Document Quota
# =============================================================================
# Each plan allows a number of extracted documents per 30-day cycle
# (0 = unlimited). `documents_used` is counted up with the same
# compare-and-swap retries the credit ledger uses, so two uploads racing for
# the last document cannot both get it.
#
# The document cycle resets lazily: the first quota check after 30 days
# zeroes the counter.
# =============================================================================

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable
from uuid import UUID

from app.exceptions import ConcurrentUpdateError, InsufficientDocumentsError
from core.models.credits import CreditAccount, DocumentQuota
from core.models.plan import get_monthly_documents
from core.services.credit_store import CreditStore, get_credit_store
from core.services.ledger import RESET_INTERVAL, is_reset_due
from lib.retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, OptimisticLockExhausted, optimistic_update
from lib.utils import normalize_uuid, utc_now

logger = logging.getLogger(__name__)


def _quota(used: int, limit: int) -> DocumentQuota:
    used = max(0, used)
    return DocumentQuota(used=used, limit=limit, can_extract=limit == 0 or used < limit)


class DocumentQuotaService:
    """Reads and updates the per-user monthly document counter."""

    def __init__(
        self,
        store: CreditStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def _ensure_monthly_reset(self, account: CreditAccount, now: datetime) -> CreditAccount:
        if not is_reset_due(account.monthly_documents_reset_at, now, RESET_INTERVAL):
            return account

        if self.store.reset_documents(account.user_id, now, account.monthly_documents_reset_at):
            logger.info(f"Monthly document reset for {account.user_id}")
        return self.store.get_account(account.user_id)

    def get_quota(self, user_id: str | UUID, now: datetime | None = None) -> DocumentQuota:
        """Usage for the current cycle, resetting the cycle first if it ran out."""
        account = self.store.get_account(normalize_uuid(user_id))
        account = self._ensure_monthly_reset(account, now or utc_now())
        return _quota(account.documents_used, get_monthly_documents(account.plan))

    def _update(self, user_id: str, compute: Callable[[int], int]) -> tuple[int, int]:
        try:
            return optimistic_update(
                read=lambda: self.store.get_account(user_id).documents_used,
                compute=compute,
                write=lambda expected, new: self.store.compare_and_set_documents(user_id, expected, new),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                sleep=self._sleep,
            )
        except OptimisticLockExhausted as e:
            raise ConcurrentUpdateError(user_id, attempts=e.attempts) from e

    def consume(self, user_id: str | UUID, now: datetime | None = None) -> DocumentQuota:
        """
        Use one document from this cycle's quota.

        Raises:
            InsufficientDocumentsError: The quota is used up
            ConcurrentUpdateError: The counter kept changing under every attempt
        """
        user_id = normalize_uuid(user_id)
        account = self._ensure_monthly_reset(self.store.get_account(user_id), now or utc_now())
        limit = get_monthly_documents(account.plan)

        def take_one(used: int) -> int:
            if limit > 0 and used >= limit:
                raise InsufficientDocumentsError(used=used, limit=limit)
            return max(0, used) + 1

        _, after = self._update(user_id, take_one)
        logger.info(f"Document used by {user_id}: {after}/{limit or 'unlimited'}")
        return _quota(after, limit)

    def release(self, user_id: str | UUID) -> DocumentQuota:
        """Give one document back after a failed extraction."""
        user_id = normalize_uuid(user_id)
        limit = get_monthly_documents(self.store.get_account(user_id).plan)
        _, after = self._update(user_id, lambda used: max(0, used - 1))
        logger.info(f"Document released for {user_id}: {after}/{limit or 'unlimited'}")
        return _quota(after, limit)

    def credit_documents(self, user_id: str | UUID, documents: int) -> DocumentQuota:
        """Apply a document add-on purchase by lowering this cycle's usage."""
        user_id = normalize_uuid(user_id)
        limit = get_monthly_documents(self.store.get_account(user_id).plan)
        if documents <= 0:
            return _quota(self.store.get_account(user_id).documents_used, limit)

        _, after = self._update(user_id, lambda used: max(0, used - documents))
        logger.info(f"Credited {documents} documents to {user_id}: now {after} used")
        return _quota(after, limit)


def get_document_quota_service() -> DocumentQuotaService:
    """FastAPI dependency: quota service over the configured credit store."""
    return DocumentQuotaService(get_credit_store())
