# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background tasks for email and scheduled credit maintenance.
#
# Tasks:
# - send_low_balance_email: Queued by the ledger when a charge leaves < 100 credits
# - send_welcome_email: Queued by POST /auth/welcome-email
# - reset_monthly_credits: Daily (beat); tops up every account that is due
# - run_followup_emails: Daily (beat); onboarding day2/day5/day7 sequence
#
# Email tasks retry on delivery failure; with no ZeptoMail key configured
# they return without sending.
# =============================================================================

import logging
from typing import Any

from celery import shared_task

from app.exceptions import EmailDeliveryError
from lib import mailer

logger = logging.getLogger(__name__)

EMAIL_RETRY_KWARGS = {
    "autoretry_for": (EmailDeliveryError,),
    "retry_backoff": True,
    "retry_backoff_max": 600,
    "max_retries": 3,
}


# =============================================================================
# Email Tasks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.send_low_balance_email", **EMAIL_RETRY_KWARGS)
def send_low_balance_email(self, user_id: str, balance: int) -> dict[str, Any]:
    """
    Warn a user that their balance is running low.

    Args:
        user_id: Profile to notify
        balance: Balance right after the charge that triggered this

    Returns:
        Dict with `sent` and, when nothing was sent, `reason`
    """
    from core.services.profile_service import ProfileService

    if not mailer.email_enabled():
        return {"sent": False, "reason": "email_disabled"}

    profile = ProfileService.find_profile(user_id)
    if profile is None or not profile.email:
        logger.warning(f"No email address for {user_id}; low balance email skipped")
        return {"sent": False, "reason": "no_email"}

    if not mailer.send_low_credits_email(profile.email, profile.display_name, balance):
        raise EmailDeliveryError("low_credits")

    logger.info(f"Low balance email sent to {user_id} (balance {balance})")
    return {"sent": True}


@shared_task(bind=True, name="workers.tasks.send_welcome_email", **EMAIL_RETRY_KWARGS)
def send_welcome_email(self, user_id: str, email: str, name: str | None = None) -> dict[str, Any]:
    """Send the welcome email to a new user."""
    if not mailer.email_enabled():
        return {"sent": False, "reason": "email_disabled"}

    if not mailer.send_welcome_email(email, name):
        raise EmailDeliveryError("welcome")

    logger.info(f"Welcome email sent to {user_id}")
    return {"sent": True}


# =============================================================================
# Scheduled Tasks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.reset_monthly_credits")
def reset_monthly_credits(self) -> dict[str, int]:
    """
    Reset every account whose 30-day cycle has ended.

    Safe to run more than once a day: each reset is guarded by the
    timestamp it replaces.
    """
    from core.services.credit_store import get_credit_store
    from core.services.ledger import CreditLedger

    summary = CreditLedger(get_credit_store()).reset_all_due()
    return summary.model_dump()


@shared_task(bind=True, name="workers.tasks.run_followup_emails")
def run_followup_emails(self) -> dict[str, int]:
    from core.services.followup_service import FollowupService

    summary = FollowupService().run()
    return summary.model_dump()
