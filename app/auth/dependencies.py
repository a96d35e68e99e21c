# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Verifies Supabase access tokens locally (no round trip to Supabase Auth):
# - HS256 tokens with SUPABASE_JWT_SECRET (legacy projects)
# - ES256/RS256 tokens with the project's JWKS, cached for an hour
#
# Usage:
#   from app.auth import get_current_user, require_admin, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

import logging
import time
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.models import AuthUser
from app.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

JWKS_CACHE_TTL = 3600
TOKEN_AUDIENCE = "authenticated"


class JWKSCache:
    """Fetches the Supabase JWKS at most once per TTL; serves stale keys if a refresh fails."""

    def __init__(self, ttl: int = JWKS_CACHE_TTL):
        self.ttl = ttl
        self._keys: list[dict[str, Any]] = []
        self._fetched_at = 0.0

    @property
    def url(self) -> str:
        return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"

    def keys(self) -> list[dict[str, Any]]:
        if self._keys and time.time() - self._fetched_at < self.ttl:
            return self._keys
        try:
            response = httpx.get(self.url, timeout=10)
            response.raise_for_status()
            self._keys = response.json().get("keys", [])
            self._fetched_at = time.time()
            logger.debug(f"Fetched {len(self._keys)} JWKS keys")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch JWKS: {e}")
        return self._keys

    def find(self, kid: str) -> dict[str, Any] | None:
        return next((key for key in self.keys() if key.get("kid") == kid), None)


jwks_cache = JWKSCache()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _signing_key(token: str) -> tuple[Any, str]:
    """Pick the verification key and algorithm from the token header."""
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return settings.SUPABASE_JWT_SECRET, "HS256"

    alg = header.get("alg", "HS256")
    if alg == "HS256":
        return settings.SUPABASE_JWT_SECRET, "HS256"

    kid = header.get("kid")
    key = jwks_cache.find(kid) if kid else None
    if key is None:
        raise _unauthorized("Invalid token: unknown signing key")
    return key, alg


def decode_token(token: str) -> AuthUser:
    """
    Verify a Supabase access token and return its user.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no user
    """
    key, algorithm = _signing_key(token)
    try:
        payload = jwt.decode(token, key, algorithms=[algorithm], audience=TOKEN_AUDIENCE)
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized("Invalid or expired token")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid token: missing user ID")

    metadata = payload.get("user_metadata") or {}
    return AuthUser(
        id=user_id,
        email=payload.get("email"),
        name=metadata.get("full_name") or metadata.get("name"),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthUser:
    """
    Authenticated user from the `Authorization: Bearer <token>` header.

    Raises:
        HTTPException: 401 without a valid token
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Missing or invalid authorization header")
    user = decode_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id}")
    return user


async def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """
    Authenticated user who is flagged is_admin in profiles.

    Raises:
        HTTPException: 403 for everyone else
    """
    from core.services.profile_service import ProfileService

    if not await run_in_threadpool(ProfileService.is_admin, user.id):
        logger.warning(f"Non-admin {user.id} tried an admin route")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Admin access required",
        )
    return user
