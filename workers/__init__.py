# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# email delivery and scheduled credit maintenance.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (emails, monthly reset, follow-ups)
# - config.py: Worker-specific settings and the beat schedule
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker -B -Q default,email --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import send_welcome_email
#   send_welcome_email.delay(user_id, email, name)
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
