# =============================================================================
# app/middleware/rate_limit.py - Per-User Rate Limiting
# =============================================================================
# Fixed-window counters keyed by "<prefix>:<user id>" (or the client IP when
# there is no user). Used as a route dependency so it runs after auth:
#
#   extract_limit = RateLimiter("extract", max_requests=30, window_seconds=60)
#
#   @router.post("", dependencies=[Depends(extract_limit)])
#
# Counters live in a TTLCache, so idle keys expire with their window and
# memory stays bounded. Limits are per process; behind several workers each
# one counts separately.
# =============================================================================

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from cachetools import TTLCache
from fastapi import Depends, HTTPException, Request, status

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser
from app.config import settings

logger = logging.getLogger(__name__)

MAX_TRACKED_KEYS = 10_000


@dataclass
class _Window:
    count: int
    reset_at: float


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """
    Fixed-window limiter.

    Attributes:
        prefix: Namespace for the counters ("extract", "chat", ...)
        max_requests: Requests allowed per window
        window_seconds: Window length
    """

    def __init__(
        self,
        prefix: str,
        max_requests: int,
        window_seconds: int | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.prefix = prefix
        self.max_requests = max_requests
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self._timer = timer
        self._windows: TTLCache[str, _Window] = TTLCache(
            maxsize=MAX_TRACKED_KEYS, ttl=self.window_seconds, timer=timer
        )
        self._lock = threading.Lock()

    def hit(self, key: str) -> int | None:
        """
        Count one request for `key`.

        Returns:
            None if allowed, otherwise seconds until the window resets
        """
        key = f"{self.prefix}:{key}"
        now = self._timer()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return None

            window.count += 1
            if window.count > self.max_requests:
                return max(1, math.ceil(window.reset_at - now))
            return None

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    async def __call__(self, request: Request, user: AuthUser = Depends(get_current_user)) -> None:
        key = str(user.id) if user else client_ip(request)
        retry_after = self.hit(key)
        if retry_after is not None:
            logger.warning(f"Rate limit hit for {self.prefix}:{key}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded. Please slow down.",
                headers={"Retry-After": str(retry_after)},
            )


extract_limit = RateLimiter("extract", settings.RATE_LIMIT_EXTRACT_MAX)
analyze_limit = RateLimiter("analyze", settings.RATE_LIMIT_ANALYZE_MAX)
chat_limit = RateLimiter("chat", settings.RATE_LIMIT_CHAT_MAX)
enrich_limit = RateLimiter("enrich", settings.RATE_LIMIT_ENRICH_MAX)
payment_limit = RateLimiter("payment", settings.RATE_LIMIT_PAYMENT_MAX)

ALL_LIMITERS = (extract_limit, analyze_limit, chat_limit, enrich_limit, payment_limit)
