# =============================================================================
# workers/celery_app.py - Celery Application Configuration
# =============================================================================
# This module creates and configures the Celery application instance.
#
# Usage:
#   # Start worker (both queues) with the beat scheduler
#   celery -A workers.celery_app worker -B -Q default,email --loglevel=info
#
#   # Or the project script
#   start-worker
# =============================================================================

import logging
import sys

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun
from dotenv import load_dotenv

# Load environment variables before app.config reads them
load_dotenv()

from app.config import settings  # noqa: E402
from app.observability import configure_logging  # noqa: E402

configure_logging()
logger = logging.getLogger(__name__)


def create_celery_app() -> Celery:
    """
    Create and configure Celery application.

    Returns:
        Configured Celery app instance
    """
    redis_url = settings.REDIS_URL

    app = Celery(
        "veriflo_worker",
        broker=redis_url,
        backend=redis_url,
        include=["workers.tasks"],
    )

    # Load configuration
    app.config_from_object("workers.config:CeleryConfig")

    # Log startup without credentials
    logger.info(f"Celery app created with broker: {redis_url.split('@')[-1]}")

    return app


# Create the Celery app instance
celery_app = create_celery_app()


# =============================================================================
# Celery Signals (Lifecycle Hooks)
# =============================================================================

@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    """Log when a task starts."""
    logger.info(f"Task started: {task.name} [{task_id}]")


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, retval=None, state=None, **extra):
    """Log when a task completes."""
    logger.info(f"Task completed: {task.name} [{task_id}] - State: {state}")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, traceback=None, **extra):
    """Log when a task fails."""
    logger.error(f"Task failed: {sender.name} [{task_id}] - Error: {exception}")


# =============================================================================
# CLI Entry Point
# =============================================================================

def main() -> None:
    """Run a worker on both queues with the beat scheduler embedded."""
    args = sys.argv[1:] or ["-B", "-Q", "default,email", "--loglevel=info"]
    celery_app.worker_main(["worker", *args])


if __name__ == "__main__":
    main()
