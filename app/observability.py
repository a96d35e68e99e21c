# =============================================================================
# app/observability.py - Logging & Error Tracking Setup
# =============================================================================
# - configure_logging(): stdlib logging with the request id on every line
# - init_sentry(): Sentry error tracking with sensitive fields redacted
#
# The request id is set per request by app/middleware/request_id.py and read
# here through a ContextVar, so loggers anywhere in the call stack (services,
# agents, lib) pick it up without passing it around.
# =============================================================================

import logging
from contextvars import ContextVar
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from app.config import settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

# "-" outside of a request (startup, Celery, scripts)
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

SENSITIVE_KEYS = frozenset({"password", "token", "access_token", "refresh_token", "apikey", "api_key"})
REDACTED = "[REDACTED]"


class RequestIdFilter(logging.Filter):
    """Adds `request_id` to every record so LOG_FORMAT can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once at startup.

    The filter is attached to the handlers, not the loggers, so records from
    third-party loggers get a request id too.
    """
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT, force=True)
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdFilter())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def scrub_event(event: dict[str, Any], hint: dict[str, Any] | None = None) -> dict[str, Any]:
    """Sentry before_send hook: redact credentials from request data and headers."""
    request = event.get("request")
    if isinstance(request, dict):
        if "data" in request:
            request["data"] = _redact(request["data"])
        headers = request.get("headers")
        if isinstance(headers, dict):
            for name in list(headers):
                if name.lower() in ("authorization", "cookie", "x-cron-secret"):
                    headers[name] = REDACTED
    return event


def init_sentry() -> bool:
    """
    Initialize Sentry if SENTRY_DSN is set.

    Returns:
        True if Sentry was initialized
    """
    if not settings.SENTRY_DSN:
        logger.info("SENTRY_DSN not set; error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.ENVIRONMENT,
        send_default_pii=False,
        before_send=scrub_event,
    )
    logger.info(f"Sentry initialized for {settings.ENVIRONMENT}")
    return True
