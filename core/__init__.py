# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the credit ledger and the services around it:
# - models/: Pydantic schemas for plans, credits, profiles and payments
# - services/: ledger, document quota, payments, admin and follow-ups
#
# Code in this package should NOT import from FastAPI or Celery, apart from
# run_in_threadpool in services/metering.py and the lazy task imports in
# services/notifications.py.
# =============================================================================
