# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - retry.py: Compare-and-swap retry loop used by the credit ledger
# - http.py: httpx requests with retry and backoff
# - mailer.py / email_templates.py: Transactional email via ZeptoMail
# - spreadsheet.py: Spreadsheet validation and LLM context
# - utils.py: Shared utilities (error handling, UUID normalization, time)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.retry import OptimisticLockExhausted, optimistic_update
from lib.http import HttpRequestError, fetch_with_retry
from lib.utils import ApplicationError, normalize_uuid, utc_now

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Retry
    "OptimisticLockExhausted",
    "optimistic_update",
    # HTTP
    "HttpRequestError",
    "fetch_with_retry",
    # Utils
    "ApplicationError",
    "normalize_uuid",
    "utc_now",
]
