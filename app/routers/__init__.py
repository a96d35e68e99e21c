# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - credits.py: Balance, plan and document quota (with the lazy monthly reset)
# - extract.py: Document field extraction
# - analyze.py: Spreadsheet analysis cards
# - enrich.py: Entity enrichment with Google Search
# - chat.py: Streaming chat (server-sent events)
# - workflows.py: Workflow run billing
# - payment.py: Razorpay checkout
# - admin.py: Admin panel
# - cron.py: Scheduled job triggers
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import credits
from . import extract
from . import analyze
from . import enrich
from . import chat
from . import workflows
from . import payment
from . import admin
from . import cron

__all__ = [
    "health",
    "credits",
    "extract",
    "analyze",
    "enrich",
    "chat",
    "workflows",
    "payment",
    "admin",
    "cron",
]
