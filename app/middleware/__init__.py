# =============================================================================
# app/middleware/ - Request Middleware & Guards
# =============================================================================
# - request_id.py: X-Request-ID tagging bound to log records
# - rate_limit.py: per-user fixed-window rate limits (route dependencies)
# =============================================================================

from app.middleware.rate_limit import RateLimiter
from app.middleware.request_id import RequestIdMiddleware

__all__ = [
    "RateLimiter",
    "RequestIdMiddleware",
]
