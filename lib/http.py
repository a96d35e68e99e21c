# =============================================================================
# lib/http.py - HTTP Requests With Retry
# =============================================================================
# Thin httpx wrapper used for outbound calls to ZeptoMail and Razorpay.
#
# Retries:
# - Transport errors (connection refused, DNS, read timeouts)
# - Retryable HTTP statuses (408, 429, 5xx gateway errors)
#
# Anything else is returned to the caller untouched, so callers still decide
# what a 400 or 401 means for them.
#
# Usage:
#   from lib.http import fetch_with_retry
#   response = fetch_with_retry("POST", url, json=payload, headers=headers)
# =============================================================================

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpRequestError(ApplicationError):
    """Raised when a request keeps failing at the transport level."""

    def __init__(self, method: str, url: str, error: str, attempts: int):
        super().__init__(
            message=f"{method} {url} failed after {attempts} attempt(s): {error}",
            code="HTTP_REQUEST_FAILED",
            suggestion="Check network connectivity and the remote service status",
            details={"method": method, "url": url, "attempts": attempts},
        )


def fetch_with_retry(
    method: str,
    url: str,
    *,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    retryable_statuses: frozenset[int] | set[int] = DEFAULT_RETRYABLE_STATUSES,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
    sleep: Callable[[float], None] = time.sleep,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Send an HTTP request, retrying transient failures with exponential backoff.

    Args:
        method: HTTP method
        url: Absolute URL
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        retry_delay: Seconds before the first retry
        backoff_multiplier: Delay grows by this factor per retry
        retryable_statuses: Statuses that trigger a retry
        timeout: Per-attempt timeout in seconds
        client: Optional shared httpx.Client (a short-lived one is used otherwise)
        sleep: Injected for tests
        **request_kwargs: Passed to httpx (json, headers, auth, params, ...)

    Returns:
        The first non-retryable response, or the last response once retries
        are exhausted

    Raises:
        HttpRequestError: If every attempt failed at the transport level
    """
    owns_client = client is None
    http = client or httpx.Client(timeout=timeout)

    def log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        reason = outcome.exception() if outcome.failed else f"HTTP {outcome.result().status_code}"
        logger.warning(
            f"{method} {url} failed ({reason}); retrying in {retry_state.next_action.sleep:.1f}s"
        )

    retrying = Retrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=retry_delay, exp_base=backoff_multiplier),
        retry=(
            retry_if_exception_type(httpx.TransportError)
            | retry_if_result(lambda response: response.status_code in retryable_statuses)
        ),
        before_sleep=log_retry,
        # Out of retries: hand back the last response, or re-raise the last transport error
        retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        sleep=sleep,
    )

    try:
        return retrying(http.request, method, url, timeout=timeout, **request_kwargs)
    except httpx.TransportError as e:
        raise HttpRequestError(method, url, str(e), attempts=max_retries + 1) from e
    finally:
        if owns_client:
            http.close()
