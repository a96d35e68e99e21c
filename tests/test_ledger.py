# =============================================================================
# tests/test_ledger.py - Credit Ledger Tests
# =============================================================================
# Charges, refunds, grants and monthly resets against the in-memory store,
# including concurrent charges from many threads.
#
# Run with: pytest tests/test_ledger.py -v
# =============================================================================

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import ConcurrentUpdateError, InsufficientCreditsError, ProfileNotFoundError
from core.models.plan import PlanType
from core.services.credit_store import InMemoryCreditStore
from core.services.ledger import CreditLedger, is_reset_due, next_reset_at
from tests.conftest import FIXED_NOW, OTHER_USER_ID, USER_ID, InlineExecutor, no_sleep


class LosingStore(InMemoryCreditStore):
    """Loses the first `losses` balance writes, as if another writer got there first."""

    def __init__(self, losses: int):
        super().__init__()
        self.losses = losses
        self.balance_writes = 0

    def compare_and_set_balance(self, user_id, expected, new):
        self.balance_writes += 1
        if self.losses > 0:
            self.losses -= 1
            return False
        return super().compare_and_set_balance(user_id, expected, new)


# =============================================================================
# Charge
# =============================================================================

class TestCharge:
    """Tests for CreditLedger.charge()."""

    def test_charge_deducts(self, ledger, store, account):
        # Act
        change = ledger.charge(USER_ID, 20)

        # Assert
        assert (change.before, change.after, change.amount) == (50, 30, 20)
        assert store.get_balance(USER_ID) == 30

    def test_charge_entire_balance(self, ledger, store, account):
        change = ledger.charge(USER_ID, 50)

        assert change.after == 0
        assert store.get_balance(USER_ID) == 0

    def test_insufficient_credits_leaves_balance_unchanged(self, ledger, store, account):
        with pytest.raises(InsufficientCreditsError) as exc_info:
            ledger.charge(USER_ID, 51)

        assert exc_info.value.available == 50
        assert exc_info.value.required == 51
        assert exc_info.value.status_code == 402
        assert store.get_balance(USER_ID) == 50

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_charge_is_noop(self, ledger, store, account, amount):
        change = ledger.charge(USER_ID, amount)

        assert change.before == change.after == 50
        assert change.amount == 0
        assert not change.changed

    def test_unknown_user(self, ledger):
        with pytest.raises(ProfileNotFoundError):
            ledger.charge(OTHER_USER_ID, 1)

    def test_retries_lost_races(self, notifications):
        # Arrange: two lost races, then the write applies
        store = LosingStore(losses=2)
        store.add_account(USER_ID, credits=10)
        ledger = CreditLedger(store, notifier=lambda *a: None, sleep=no_sleep)

        # Act
        change = ledger.charge(USER_ID, 4)

        # Assert
        assert change.after == 6
        assert store.balance_writes == 3

    def test_final_attempt_after_exhaustion_can_still_win(self):
        # Arrange: loses every regular attempt, wins the last-chance one
        store = LosingStore(losses=5)
        store.add_account(USER_ID, credits=10)
        ledger = CreditLedger(store, notifier=lambda *a: None, max_attempts=5, sleep=no_sleep)

        change = ledger.charge(USER_ID, 4)

        assert change.after == 6
        assert store.balance_writes == 6

    def test_concurrent_update_error_when_every_attempt_loses(self):
        store = LosingStore(losses=100)
        store.add_account(USER_ID, credits=10)
        ledger = CreditLedger(store, notifier=lambda *a: None, max_attempts=3, sleep=no_sleep)

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            ledger.charge(USER_ID, 4)

        assert exc_info.value.status_code == 409
        assert exc_info.value.attempts == 4
        assert store.get_balance(USER_ID) == 10


# =============================================================================
# Low Balance Notification
# =============================================================================

class TestLowBalanceNotification:

    def test_notifies_when_balance_drops_below_threshold(self, ledger, store, notifications):
        store.add_account(USER_ID, credits=120)

        ledger.charge(USER_ID, 30)

        assert notifications == [(str(USER_ID), 90)]

    def test_no_notification_at_zero_or_above_threshold(self, ledger, store, notifications):
        store.add_account(USER_ID, credits=200)
        ledger.charge(USER_ID, 50)  # 150 left

        store.add_account(OTHER_USER_ID, credits=5)
        ledger.charge(OTHER_USER_ID, 5)  # 0 left

        assert notifications == []

    def test_notifier_failure_does_not_fail_the_charge(self, store, caplog):
        def broken(user_id, balance):
            raise RuntimeError("broker down")

        store.add_account(USER_ID, credits=50)
        ledger = CreditLedger(store, notifier=broken, sleep=no_sleep, notify_executor=InlineExecutor())

        with caplog.at_level("ERROR", logger="core.services.ledger"):
            change = ledger.charge(USER_ID, 10)

        assert change.after == 40
        assert store.get_balance(USER_ID) == 40
        assert any("broker down" in r.message for r in caplog.records)

    def test_stalled_notifier_does_not_hold_the_charge(self, store):
        # Arrange: a notifier stuck like a publish against an unreachable broker
        release = threading.Event()
        started = threading.Event()

        def stalled(user_id, balance):
            started.set()
            release.wait(timeout=10)

        store.add_account(USER_ID, credits=50)
        ledger = CreditLedger(store, notifier=stalled, sleep=no_sleep)

        # Act
        began = time.monotonic()
        try:
            change = ledger.charge(USER_ID, 10)
            elapsed = time.monotonic() - began
        finally:
            release.set()

        # Assert
        assert change.after == 40
        assert elapsed < 1.0
        assert started.wait(timeout=5)


# =============================================================================
# Refund & Grant
# =============================================================================

class TestRefundAndGrant:

    def test_refund_adds_back(self, ledger, store, account):
        ledger.charge(USER_ID, 20)

        change = ledger.refund(USER_ID, 20)

        assert (change.before, change.after) == (30, 50)

    def test_refund_zero_is_noop(self, ledger, account):
        change = ledger.refund(USER_ID, 0)

        assert change.before == change.after == 50

    def test_grant_adds_purchased_credits(self, ledger, store, account):
        ledger.grant(USER_ID, 500)

        assert store.get_balance(USER_ID) == 550

    def test_refund_exhaustion_raises_concurrent_update(self):
        store = LosingStore(losses=100)
        store.add_account(USER_ID, credits=10)
        ledger = CreditLedger(store, notifier=lambda *a: None, max_attempts=2, sleep=no_sleep)

        with pytest.raises(ConcurrentUpdateError):
            ledger.refund(USER_ID, 5)


# =============================================================================
# Negative Balances
# =============================================================================

class TestNegativeBalance:

    def test_negative_stored_balance_is_clamped_and_logged(self, ledger, store, caplog):
        store.add_account(USER_ID, credits=-7)

        with caplog.at_level("CRITICAL", logger="core.services.ledger"):
            balance = ledger.get_balance(USER_ID)

        assert balance == 0
        assert store.get_balance(USER_ID) == 0
        assert any("Negative balance" in r.message for r in caplog.records)

    def test_charge_against_negative_balance_is_insufficient(self, ledger, store):
        store.add_account(USER_ID, credits=-3)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            ledger.charge(USER_ID, 1)

        assert exc_info.value.available == 0


# =============================================================================
# Concurrency
# =============================================================================

class TestConcurrentCharges:
    """Many threads charging one account must never overdraft it."""

    def test_exactly_the_balance_is_charged_under_contention(self, store):
        # Arrange: 20 credits, 40 threads each charging 1. At most 20 writes can
        # ever land, so 50 attempts per charge can never run out.
        store.add_account(USER_ID, credits=20)
        ledger = CreditLedger(
            store, notifier=lambda *a: None, max_attempts=50, sleep=no_sleep,
            notify_executor=InlineExecutor(),
        )
        barrier = threading.Barrier(40)
        successes = []
        refusals = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                ledger.charge(USER_ID, 1)
                with lock:
                    successes.append(1)
            except InsufficientCreditsError as e:
                with lock:
                    refusals.append(e)

        threads = [threading.Thread(target=worker) for _ in range(40)]

        # Act
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Assert
        assert len(successes) == 20
        assert len(refusals) == 20
        assert all(e.available == 0 for e in refusals)
        assert store.get_balance(USER_ID) == 0

    def test_mixed_amounts_never_overdraft(self, store):
        # Arrange: 50 credits, 30 threads charging 3, 5 or 7
        store.add_account(USER_ID, credits=50)
        ledger = CreditLedger(
            store, notifier=lambda *a: None, max_attempts=50, sleep=no_sleep,
            notify_executor=InlineExecutor(),
        )
        amounts = [3, 5, 7] * 10
        barrier = threading.Barrier(len(amounts))
        charged = []
        refusals = []
        lock = threading.Lock()

        def worker(amount):
            barrier.wait()
            try:
                ledger.charge(USER_ID, amount)
                with lock:
                    charged.append(amount)
            except InsufficientCreditsError as e:
                with lock:
                    refusals.append((amount, e.available))

        threads = [threading.Thread(target=worker, args=(a,)) for a in amounts]

        # Act
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Assert
        assert len(charged) + len(refusals) == len(amounts)
        assert sum(charged) <= 50
        assert store.get_balance(USER_ID) == 50 - sum(charged)
        assert all(available < amount for amount, available in refusals)
        if any(amount == 3 for amount, _ in refusals):
            assert store.get_balance(USER_ID) < 3

    def test_mixed_charges_and_refunds_balance_out(self, store):
        store.add_account(USER_ID, credits=100)
        ledger = CreditLedger(store, notifier=lambda *a: None, max_attempts=100, sleep=no_sleep)

        def charge_then_refund():
            for _ in range(10):
                ledger.charge(USER_ID, 2)
                ledger.refund(USER_ID, 2)

        threads = [threading.Thread(target=charge_then_refund) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get_balance(USER_ID) == 100


# =============================================================================
# Monthly Reset
# =============================================================================

class TestMonthlyReset:

    def test_is_reset_due(self):
        assert is_reset_due(None, FIXED_NOW)
        assert is_reset_due(FIXED_NOW - timedelta(days=30), FIXED_NOW)
        assert not is_reset_due(FIXED_NOW - timedelta(days=29, hours=23), FIXED_NOW)

    def test_next_reset_at(self):
        assert next_reset_at(None) is None
        assert next_reset_at(FIXED_NOW) == FIXED_NOW + timedelta(days=30)

    def test_reset_restores_plan_allotment(self, ledger, store):
        store.add_account(
            USER_ID,
            credits=3,
            plan=PlanType.STARTER,
            documents_used=40,
            monthly_credits_reset_at=FIXED_NOW - timedelta(days=31),
        )

        result = ledger.reset_if_due(USER_ID, now=FIXED_NOW)

        assert result.reset
        assert result.credits == 750
        account = store.get_account(USER_ID)
        assert account.credits == 750
        assert account.documents_used == 0
        assert account.monthly_credits_reset_at == FIXED_NOW

    def test_reset_replaces_rather_than_adds(self, ledger, store):
        store.add_account(USER_ID, credits=90, monthly_credits_reset_at=None)

        ledger.reset_if_due(USER_ID, now=FIXED_NOW)

        assert store.get_balance(USER_ID) == 100

    def test_reset_is_idempotent_within_window(self, ledger, store):
        store.add_account(USER_ID, credits=0, monthly_credits_reset_at=FIXED_NOW - timedelta(days=40))

        first = ledger.reset_if_due(USER_ID, now=FIXED_NOW)
        ledger.charge(USER_ID, 10)
        second = ledger.reset_if_due(USER_ID, now=FIXED_NOW + timedelta(days=1))

        assert first.reset
        assert not second.reset
        assert store.get_balance(USER_ID) == 90

    def test_concurrent_resets_credit_once(self, store):
        store.add_account(USER_ID, credits=0, monthly_credits_reset_at=FIXED_NOW - timedelta(days=31))
        ledger = CreditLedger(store, notifier=lambda *a: None, sleep=no_sleep)
        results = []
        barrier = threading.Barrier(10)

        def worker():
            barrier.wait()
            results.append(ledger.reset_if_due(USER_ID, now=FIXED_NOW))

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(1 for r in results if r.reset) == 1
        assert store.get_balance(USER_ID) == 100

    def test_unknown_plan_resets_to_free(self, ledger, store):
        store.add_account(USER_ID, credits=0, plan="platinum")

        result = ledger.reset_if_due(USER_ID, now=FIXED_NOW)

        assert result.credits == 100

    def test_reset_all_due_counts_outcomes(self, ledger, store):
        store.add_account(USER_ID, credits=0, monthly_credits_reset_at=FIXED_NOW - timedelta(days=31))
        store.add_account(OTHER_USER_ID, credits=5, monthly_credits_reset_at=FIXED_NOW - timedelta(days=2))

        summary = ledger.reset_all_due(now=FIXED_NOW)

        assert (summary.reset, summary.skipped, summary.failed) == (1, 1, 0)

    def test_reset_all_due_continues_after_failure(self, store):
        class BrokenResetStore(InMemoryCreditStore):
            def apply_monthly_reset(self, user_id, credits, reset_at, expected_reset_at):
                if user_id == str(USER_ID):
                    raise RuntimeError("db down")
                return super().apply_monthly_reset(user_id, credits, reset_at, expected_reset_at)

        broken = BrokenResetStore()
        broken.add_account(USER_ID, credits=0)
        broken.add_account(OTHER_USER_ID, credits=0)
        ledger = CreditLedger(broken, notifier=lambda *a: None, sleep=no_sleep)

        summary = ledger.reset_all_due(now=datetime(2026, 1, 1, tzinfo=timezone.utc))

        assert summary.failed == 1
        assert summary.reset == 1
        assert broken.get_balance(OTHER_USER_ID) == 100
