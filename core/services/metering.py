# =============================================================================
# core/services/metering.py - Charge-Then-Refund Wrapper
# =============================================================================
# Routes wrap paid work in `metered(...)`: credits are charged up front and
# given back if the work raises, so a user never pays for a failed call.
#
# Usage:
#   async with metered(ledger, user.id, ANALYSIS_COST, "analysis"):
#       result = await run_in_threadpool(agent.analyze, query, context)
# =============================================================================

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from fastapi.concurrency import run_in_threadpool

from core.models.credits import CreditChange
from core.services.ledger import CreditLedger

logger = logging.getLogger(__name__)


async def refund_quietly(ledger: CreditLedger, user_id: str | UUID, amount: int, operation: str) -> None:
    """Refund without masking the error that caused it."""
    try:
        await run_in_threadpool(ledger.refund, user_id, amount)
        logger.info(f"Refunded {amount} credits to {user_id} after failed {operation}")
    except Exception as e:
        logger.error(f"Refund of {amount} credits to {user_id} after failed {operation} failed: {e}")


@asynccontextmanager
async def metered(
    ledger: CreditLedger,
    user_id: str | UUID,
    amount: int,
    operation: str,
) -> AsyncIterator[CreditChange]:
    """
    Charge `amount` credits for the body; refund them if the body raises.

    Raises:
        InsufficientCreditsError: Before the body runs
        ConcurrentUpdateError: Before the body runs
        Whatever the body raises, after the refund
    """
    change = await run_in_threadpool(ledger.charge, user_id, amount)
    try:
        yield change
    except Exception:
        charged = change.before - change.after
        if charged > 0:
            await refund_quietly(ledger, user_id, charged, operation)
        raise
