# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# JWT-based authentication against Supabase Auth tokens.
#
# Usage:
#   from app.auth import get_current_user, require_admin, AuthUser
# =============================================================================

from app.auth.dependencies import get_current_user, require_admin
from app.auth.models import AuthUser

__all__ = [
    "get_current_user",
    "require_admin",
    "AuthUser",
]
