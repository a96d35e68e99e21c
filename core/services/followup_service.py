# =============================================================================
# core/services/followup_service.py - Onboarding Follow-up Emails
# =============================================================================
# Run once a day (Celery beat or POST /cron/followup-emails). Each new user
# gets at most one email per run:
#
#   age ~2 days, stage none, no documents yet    -> day2 nudge
#   age ~5 days, stage day2, no documents yet    -> day5 nudge
#   age ~7 days, stage none/day2/day5            -> day7 first-week summary
#
# "~N days" is an age in [N-1, N+1] days. The profile's followup_stage only
# advances after the email was actually sent, so a failed send is retried
# on the next run.
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from pydantic import BaseModel

from core.models.profile import FollowupStage
from core.services.profile_service import ProfileService
from lib.mailer import send_followup_email
from lib.supabase_client import SupabaseClient
from lib.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

USERS_PER_PAGE = 100

FollowupSender = Callable[[str, str, str | None, int], bool]


class FollowupSummary(BaseModel):
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def is_within_day(created_at: datetime, days: int, now: datetime) -> bool:
    """True when the account age is between days-1 and days+1 days."""
    age = now - created_at
    return timedelta(days=days - 1) <= age <= timedelta(days=days + 1)


def choose_stage(
    created_at: datetime,
    stage: FollowupStage,
    documents_used: int,
    now: datetime,
) -> FollowupStage | None:
    """The follow-up to send now, or None."""
    if is_within_day(created_at, 2, now) and stage == FollowupStage.NONE and documents_used == 0:
        return FollowupStage.DAY2
    if is_within_day(created_at, 5, now) and stage == FollowupStage.DAY2 and documents_used == 0:
        return FollowupStage.DAY5
    if is_within_day(created_at, 7, now) and stage in (
        FollowupStage.NONE, FollowupStage.DAY2, FollowupStage.DAY5
    ):
        return FollowupStage.DAY7
    return None


def _display_name(user: Any, email: str) -> str:
    metadata = getattr(user, "user_metadata", None) or {}
    return metadata.get("full_name") or metadata.get("name") or email.split("@")[0] or "there"


class FollowupService:
    """Sends the onboarding follow-up sequence."""

    def __init__(self, sender: FollowupSender = send_followup_email, per_page: int = USERS_PER_PAGE):
        self.sender = sender
        self.per_page = per_page

    def run(self, now: datetime | None = None) -> FollowupSummary:
        """
        Page through every auth user and send what is due.

        Raises:
            SupabaseClientError: Listing users failed
        """
        now = now or utc_now()
        summary = FollowupSummary()
        page = 1

        while True:
            users = SupabaseClient.list_auth_users(page=page, per_page=self.per_page)
            if not users:
                break

            for user in users:
                self._process(user, now, summary)

            if len(users) < self.per_page:
                break
            page += 1

        logger.info(
            f"Follow-up run: {summary.sent} sent, {summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    def _process(self, user: Any, now: datetime, summary: FollowupSummary) -> None:
        email = getattr(user, "email", None)
        created_at = parse_timestamp(getattr(user, "created_at", None))
        if not email or created_at is None:
            summary.skipped += 1
            return

        try:
            profile = ProfileService.find_profile(user.id)
            stage = profile.followup_stage if profile else FollowupStage.NONE
            documents_used = profile.documents_used if profile else 0

            next_stage = choose_stage(created_at, stage, documents_used, now)
            if next_stage is None:
                summary.skipped += 1
                return

            if not self.sender(next_stage.value, email, _display_name(user, email), documents_used):
                logger.warning(f"Follow-up {next_stage.value} to {user.id} was not sent")
                summary.failed += 1
                return

            ProfileService.record_followup(user.id, next_stage, utc_now())
            summary.sent += 1

        except Exception as e:
            logger.error(f"Follow-up for {getattr(user, 'id', '?')} failed: {e}")
            summary.failed += 1
