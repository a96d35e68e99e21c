# =============================================================================
# core/services/ledger.py - Credit Ledger
# =============================================================================
# Per-user credit balance: charged by metered operations, refunded when an
# operation fails, topped up by purchases and reset monthly to the plan
# allotment.
#
# All balance writes are compare-and-swap on the previously read value
# (see lib/retry.py), so concurrent charges from the same user can never
# overdraft: exactly one writer wins each read.
#
# Invariant: the stored balance is never negative. Writes clamp to 0, and a
# negative value found in storage is logged CRITICAL and corrected.
# =============================================================================

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from app.exceptions import ConcurrentUpdateError, InsufficientCreditsError
from core.models.credits import BatchResetSummary, CreditAccount, CreditChange, ResetResult
from core.models.plan import LOW_BALANCE_THRESHOLD, get_monthly_credits
from core.services.credit_store import CreditStore, get_credit_store
from lib.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    OptimisticLockExhausted,
    optimistic_update,
)
from lib.utils import normalize_uuid, utc_now

logger = logging.getLogger(__name__)

RESET_INTERVAL = timedelta(days=30)

LowBalanceNotifier = Callable[[str, int], None]

# Warnings are queued off the request path; a stalled broker must not hold a charge
_NOTIFY_POOL = ThreadPoolExecutor(max_workers=2, thread_name_prefix="low-balance")


def is_reset_due(
    last_reset_at: datetime | None,
    now: datetime,
    interval: timedelta = RESET_INTERVAL,
) -> bool:
    """A reset is due when none was ever recorded or `interval` has elapsed."""
    if last_reset_at is None:
        return True
    return now - last_reset_at >= interval


def next_reset_at(last_reset_at: datetime | None, interval: timedelta = RESET_INTERVAL) -> datetime | None:
    return last_reset_at + interval if last_reset_at else None


def _default_notifier(user_id: str, balance: int) -> None:
    # Imported lazily: the Celery app is only needed once a warning fires
    from core.services.notifications import dispatch_low_balance_warning

    dispatch_low_balance_warning(user_id, balance)


class CreditLedger:
    """
    Charges, refunds, grants and monthly resets against a credit store.

    Example:
        ledger = CreditLedger(get_credit_store())
        change = ledger.charge(user_id, 2)
        try:
            ...
        except Exception:
            ledger.refund(user_id, change.amount)
            raise
    """

    def __init__(
        self,
        store: CreditStore,
        notifier: LowBalanceNotifier | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        reset_interval: timedelta = RESET_INTERVAL,
        notify_executor: Executor | None = None,
    ):
        self.store = store
        self.notifier = notifier or _default_notifier
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.reset_interval = reset_interval
        self._sleep = sleep
        self._notify_executor = notify_executor or _NOTIFY_POOL

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_balance(self, user_id: str | UUID) -> int:
        """Current balance, repairing a negative stored value first."""
        return self._read_balance(normalize_uuid(user_id))

    def _read_balance(self, user_id: str) -> int:
        balance = self.store.get_balance(user_id)
        if balance >= 0:
            return balance

        logger.critical(f"Negative balance {balance} stored for user {user_id}; clamping to 0")
        if self.store.compare_and_set_balance(user_id, balance, 0):
            return 0
        # Someone else wrote in between; their value was clamped on write
        return max(0, self.store.get_balance(user_id))

    # -------------------------------------------------------------------------
    # Balance Changes
    # -------------------------------------------------------------------------

    def _update(
        self,
        user_id: str,
        compute: Callable[[int], int],
        max_attempts: int | None = None,
    ) -> tuple[int, int]:
        return optimistic_update(
            read=lambda: self._read_balance(user_id),
            compute=lambda balance: max(0, compute(balance)),
            write=lambda expected, new: self.store.compare_and_set_balance(user_id, expected, new),
            max_attempts=max_attempts or self.max_attempts,
            base_delay=self.base_delay,
            sleep=self._sleep,
        )

    def charge(self, user_id: str | UUID, amount: int) -> CreditChange:
        """
        Deduct `amount` credits.

        Args:
            user_id: Profile to charge
            amount: Credits to deduct; amount <= 0 changes nothing

        Returns:
            CreditChange with the balance before and after

        Raises:
            InsufficientCreditsError: Balance is below `amount` (nothing charged)
            ConcurrentUpdateError: The balance kept changing under every attempt
            ProfileNotFoundError: The user has no profile
        """
        user_id = normalize_uuid(user_id)
        if amount <= 0:
            balance = self._read_balance(user_id)
            return CreditChange(user_id=user_id, amount=0, before=balance, after=balance)

        def deduct(balance: int) -> int:
            if balance < amount:
                raise InsufficientCreditsError(available=balance, required=amount)
            return balance - amount

        try:
            before, after = self._update(user_id, deduct)
        except OptimisticLockExhausted:
            logger.warning(
                f"Charge for {user_id} lost {self.max_attempts} races; trying once more"
            )
            try:
                before, after = self._update(user_id, deduct, max_attempts=1)
            except OptimisticLockExhausted as e:
                logger.error(f"Charge of {amount} for {user_id} abandoned after concurrent updates")
                raise ConcurrentUpdateError(user_id, attempts=self.max_attempts + 1) from e

        logger.info(f"Charged {amount} credits to {user_id}: {before} -> {after}")

        if 0 < after < LOW_BALANCE_THRESHOLD:
            self._notify_low_balance(user_id, after)

        return CreditChange(user_id=user_id, amount=amount, before=before, after=after)

    def refund(self, user_id: str | UUID, amount: int) -> CreditChange:
        """
        Give back `amount` credits after a failed operation.

        amount <= 0 is a no-op that returns the current balance.

        Raises:
            ConcurrentUpdateError: The balance kept changing under every attempt
        """
        return self._increment(normalize_uuid(user_id), amount, reason="Refunded")

    def grant(self, user_id: str | UUID, amount: int) -> CreditChange:
        """Add purchased credits. Same semantics as refund."""
        return self._increment(normalize_uuid(user_id), amount, reason="Granted")

    def _increment(self, user_id: str, amount: int, reason: str) -> CreditChange:
        if amount <= 0:
            balance = self._read_balance(user_id)
            return CreditChange(user_id=user_id, amount=0, before=balance, after=balance)

        try:
            before, after = self._update(user_id, lambda balance: balance + amount)
        except OptimisticLockExhausted as e:
            logger.error(f"{reason} {amount} credits to {user_id} failed after concurrent updates")
            raise ConcurrentUpdateError(user_id, attempts=e.attempts) from e

        logger.info(f"{reason} {amount} credits to {user_id}: {before} -> {after}")
        return CreditChange(user_id=user_id, amount=amount, before=before, after=after)

    def _notify_low_balance(self, user_id: str, balance: int) -> None:
        """Hand the warning to the notify executor; charge() never waits on it."""
        try:
            self._notify_executor.submit(self._send_low_balance, user_id, balance)
        except RuntimeError as e:
            # Executor already shut down (interpreter exit)
            logger.error(f"Low balance notification for {user_id} not queued: {e}")

    def _send_low_balance(self, user_id: str, balance: int) -> None:
        try:
            self.notifier(user_id, balance)
        except Exception as e:
            logger.error(f"Low balance notification for {user_id} failed: {e}")

    # -------------------------------------------------------------------------
    # Monthly Reset
    # -------------------------------------------------------------------------

    def reset_if_due(self, user_id: str | UUID, now: datetime | None = None) -> ResetResult:
        """
        Reset the balance to the plan allotment if 30 days have passed.

        The write is guarded by the reset timestamp that was read, so running
        this twice (or from two processes) in one window credits only once.
        """
        account = self.store.get_account(normalize_uuid(user_id))
        return self._reset_account(account, now or utc_now())

    def _reset_account(self, account: CreditAccount, now: datetime) -> ResetResult:
        user_id = account.user_id

        if not is_reset_due(account.monthly_credits_reset_at, now, self.reset_interval):
            return ResetResult(
                user_id=user_id,
                reset=False,
                credits=max(0, account.credits),
                reset_at=account.monthly_credits_reset_at,
            )

        allotment = get_monthly_credits(account.plan)
        applied = self.store.apply_monthly_reset(
            user_id,
            credits=allotment,
            reset_at=now,
            expected_reset_at=account.monthly_credits_reset_at,
        )

        if not applied:
            # Another process reset this account first
            current = self.store.get_account(user_id)
            logger.debug(f"Monthly reset for {user_id} already applied elsewhere")
            return ResetResult(
                user_id=user_id,
                reset=False,
                credits=max(0, current.credits),
                reset_at=current.monthly_credits_reset_at,
            )

        logger.info(f"Monthly reset for {user_id} ({account.plan.value}): {allotment} credits")
        return ResetResult(user_id=user_id, reset=True, credits=allotment, reset_at=now)

    def reset_all_due(self, now: datetime | None = None) -> BatchResetSummary:
        """
        Reset every account that is due.

        A failure on one account is logged and counted; the batch continues.
        """
        now = now or utc_now()
        summary = BatchResetSummary()

        for account in self.store.list_accounts():
            try:
                result = self._reset_account(account, now)
            except Exception as e:
                logger.error(f"Monthly reset failed for {account.user_id}: {e}")
                summary.failed += 1
                continue

            if result.reset:
                summary.reset += 1
            else:
                summary.skipped += 1

        logger.info(
            f"Monthly reset batch: {summary.reset} reset, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary


def get_ledger() -> CreditLedger:
    """FastAPI dependency: a ledger over the configured credit store."""
    return CreditLedger(get_credit_store())
