# =============================================================================
# tests/test_tasks.py - Celery Task Tests
# =============================================================================
# Tasks are called directly (no broker); email sending is patched.
# =============================================================================

from unittest.mock import patch

from core.models.profile import UserProfile
from core.services.notifications import dispatch_low_balance_warning
from workers.config import CeleryConfig
from workers.tasks import send_low_balance_email, send_welcome_email
from tests.conftest import USER_ID


class TestLowBalanceEmail:

    def test_disabled_without_email_provider(self):
        with patch("workers.tasks.mailer.email_enabled", return_value=False):
            assert send_low_balance_email(str(USER_ID), 42) == {"sent": False, "reason": "email_disabled"}

    def test_profile_without_email(self):
        profile = UserProfile(id=USER_ID, email=None)

        with patch("workers.tasks.mailer.email_enabled", return_value=True), \
                patch("core.services.profile_service.ProfileService.find_profile", return_value=profile):
            assert send_low_balance_email(str(USER_ID), 42) == {"sent": False, "reason": "no_email"}

    def test_sends_with_display_name(self):
        profile = UserProfile(id=USER_ID, email="ada@example.com", full_name="Ada")

        with patch("workers.tasks.mailer.email_enabled", return_value=True), \
                patch("core.services.profile_service.ProfileService.find_profile", return_value=profile), \
                patch("workers.tasks.mailer.send_low_credits_email", return_value=True) as send:
            result = send_low_balance_email(str(USER_ID), 42)

        assert result == {"sent": True}
        send.assert_called_once_with("ada@example.com", "Ada", 42)


class TestWelcomeEmail:

    def test_sends(self):
        with patch("workers.tasks.mailer.email_enabled", return_value=True), \
                patch("workers.tasks.mailer.send_welcome_email", return_value=True) as send:
            assert send_welcome_email(str(USER_ID), "ada@example.com", "Ada") == {"sent": True}

        send.assert_called_once_with("ada@example.com", "Ada")


class TestDispatch:

    def test_broker_down_is_not_fatal(self):
        with patch("workers.tasks.send_low_balance_email.delay", side_effect=ConnectionError("redis down")):
            assert dispatch_low_balance_warning(str(USER_ID), 10) is False

    def test_queued(self):
        with patch("workers.tasks.send_low_balance_email.delay") as delay:
            assert dispatch_low_balance_warning(str(USER_ID), 10) is True

        delay.assert_called_once_with(str(USER_ID), 10)


class TestSchedule:

    def test_jobs_are_scheduled(self):
        tasks = {entry["task"] for entry in CeleryConfig.beat_schedule.values()}

        assert tasks == {"workers.tasks.reset_monthly_credits", "workers.tasks.run_followup_emails"}

    def test_email_tasks_use_email_queue(self):
        assert CeleryConfig.task_routes["workers.tasks.send_welcome_email"] == {"queue": "email"}

    def test_publishing_gives_up_quickly_without_a_broker(self):
        policy = CeleryConfig.task_publish_retry_policy

        assert CeleryConfig.broker_connection_timeout <= 2
        assert policy["max_retries"] <= 1
        assert policy["interval_max"] <= 0.5
