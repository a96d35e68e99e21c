# =============================================================================
# lib/retry.py - Optimistic Concurrency Retry Combinator
# =============================================================================
# Read -> compute -> conditional write -> retry on a lost race.
#
# The store is expected to offer a compare-and-swap style write:
#   UPDATE profiles SET credits = :new WHERE id = :id AND credits = :expected
# which reports whether a row was affected. A False result means another
# writer changed the value since we read it.
#
# Usage:
#   before, after = optimistic_update(
#       read=lambda: store.get_balance(user_id),
#       compute=lambda balance: balance - 5,
#       write=lambda expected, new: store.compare_and_set_balance(user_id, expected, new),
#   )
# =============================================================================

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 0.05  # seconds, multiplied by the attempt number


class OptimisticLockExhausted(ApplicationError):
    """Every attempt lost its race against another writer."""

    def __init__(self, attempts: int):
        super().__init__(
            message=f"Conditional update lost the race {attempts} time(s)",
            code="OPTIMISTIC_LOCK_EXHAUSTED",
            suggestion="Retry the operation",
            details={"attempts": attempts},
        )
        self.attempts = attempts


def optimistic_update(
    read: Callable[[], T],
    compute: Callable[[T], T],
    write: Callable[[T, T], bool],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[T, T]:
    """
    Apply `compute` to a shared value with compare-and-swap retries.

    Args:
        read: Returns the current stored value
        compute: Maps the current value to the new one. May raise to abort;
            the exception propagates and nothing is written.
        write: Conditional write `write(expected, new)`; True if it applied
        max_attempts: Lost races tolerated before giving up
        base_delay: Seconds; the wait after attempt N is base_delay * N
        sleep: Injected for tests

    Returns:
        (before, after) of the winning attempt

    Raises:
        OptimisticLockExhausted: If every attempt lost its race
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def attempt() -> tuple[T, T, bool]:
        before = read()
        after = compute(before)
        return before, after, write(before, after)

    def log_lost_race(retry_state: RetryCallState) -> None:
        logger.debug(
            f"Conditional update lost race (attempt {retry_state.attempt_number}/{max_attempts})"
        )

    def exhausted(retry_state: RetryCallState):
        raise OptimisticLockExhausted(retry_state.attempt_number)

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=base_delay, increment=base_delay),
        # Only a lost race retries; anything compute() raises propagates as is
        retry=retry_if_result(lambda outcome: not outcome[2]),
        before_sleep=log_lost_race,
        retry_error_callback=exhausted,
        sleep=sleep,
    )

    before, after, _ = retrying(attempt)
    attempts = retrying.statistics["attempt_number"]
    if attempts > 1:
        logger.debug(f"Conditional update succeeded on attempt {attempts}")
    return before, after
