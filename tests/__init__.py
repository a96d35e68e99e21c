# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Veriflo API:
# - test_retry.py, test_ledger.py, test_credit_store.py: credit ledger core
# - test_document_quota.py, test_metering.py, test_plans.py: quotas and costs
# - test_agents.py: Gemini agents with the client patched
# - test_api.py: Integration tests for API endpoints
# - test_payment.py, test_followup.py, test_tasks.py: billing and email jobs
#
# Run tests with: poetry run pytest
# =============================================================================
