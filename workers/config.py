# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers.
# =============================================================================

from celery.schedules import crontab

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    # Redis URL for message broker
    broker_url = settings.REDIS_URL

    # Redis URL for result backend (store task results)
    result_backend = settings.REDIS_URL

    # Publishing from the API gives up quickly when Redis is unreachable
    broker_connection_timeout = 2
    broker_transport_options = {"socket_connect_timeout": 2}
    task_publish_retry_policy = {
        "max_retries": 1,
        "interval_start": 0,
        "interval_step": 0.2,
        "interval_max": 0.5,
    }

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete (not before)
    # This prevents task loss if worker crashes mid-task
    task_acks_late = True

    # Only prefetch one task at a time
    worker_prefetch_multiplier = 1

    # Task results expire after 1 hour
    result_expires = 3600

    # The follow-up run pages through every user
    task_time_limit = 900
    task_soft_time_limit = 840

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    # Use JSON for task serialization (safer than pickle)
    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "email": {
            "exchange": "email",
            "routing_key": "email",
        },
    }

    # Emails get their own queue so a slow mail provider never delays resets
    task_routes = {
        "workers.tasks.send_low_balance_email": {"queue": "email"},
        "workers.tasks.send_welcome_email": {"queue": "email"},
        "workers.tasks.run_followup_emails": {"queue": "email"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Periodic Tasks (celery beat)
    # -------------------------------------------------------------------------

    beat_schedule = {
        "reset-monthly-credits": {
            "task": "workers.tasks.reset_monthly_credits",
            "schedule": crontab(hour=0, minute=15),
        },
        "run-followup-emails": {
            "task": "workers.tasks.run_followup_emails",
            "schedule": crontab(hour=14, minute=0),
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    # Send task events for monitoring (Flower, etc.)
    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = "UTC"
    enable_utc = True
