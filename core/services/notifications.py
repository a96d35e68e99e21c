# =============================================================================
# core/services/notifications.py - Email Dispatch
# =============================================================================
# Hands email work to Celery so request handlers and the ledger never wait
# on ZeptoMail. Dispatch failures (broker down, misconfiguration) are logged
# and swallowed: a missing email must never fail a charge or a signup.
# =============================================================================

import logging

logger = logging.getLogger(__name__)


def dispatch_low_balance_warning(user_id: str, balance: int) -> bool:
    """
    Queue a low-credit warning email.

    Returns:
        True if the task was queued
    """
    try:
        from workers.tasks import send_low_balance_email

        send_low_balance_email.delay(user_id, balance)
        logger.info(f"Queued low balance email for {user_id} (balance {balance})")
        return True
    except Exception as e:
        logger.error(f"Could not queue low balance email for {user_id}: {e}")
        return False


def dispatch_welcome_email(user_id: str, email: str, name: str | None = None) -> bool:
    """Queue a welcome email. Returns True if the task was queued."""
    try:
        from workers.tasks import send_welcome_email

        send_welcome_email.delay(user_id, email, name)
        logger.info(f"Queued welcome email for {user_id}")
        return True
    except Exception as e:
        logger.error(f"Could not queue welcome email for {user_id}: {e}")
        return False
