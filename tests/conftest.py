# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - In-memory credit store so the ledger never touches Supabase
# - A TestClient with auth and services swapped via dependency_overrides
# =============================================================================

import os
from concurrent.futures import Executor, Future
from datetime import datetime, timezone
from uuid import UUID

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("CREDIT_STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from app.auth.models import AuthUser
from core.services.credit_store import InMemoryCreditStore
from core.services.document_quota import DocumentQuotaService
from core.services.ledger import CreditLedger

USER_ID = UUID("11111111-1111-4111-8111-111111111111")
OTHER_USER_ID = UUID("22222222-2222-4222-8222-222222222222")

# A reset timestamp inside the current window, so nothing resets unexpectedly
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def no_sleep(_seconds: float) -> None:
    pass


class InlineExecutor(Executor):
    """Runs submitted work on the calling thread so notifications are visible at once."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


# =============================================================================
# Ledger Fixtures
# =============================================================================

@pytest.fixture
def store():
    """In-memory credit store with no accounts."""
    return InMemoryCreditStore()


@pytest.fixture
def notifications():
    """Records low balance notifications instead of queueing emails."""
    return []


@pytest.fixture
def ledger(store, notifications):
    """Ledger over the in-memory store with no backoff sleeps."""
    return CreditLedger(
        store,
        notifier=lambda user_id, balance: notifications.append((user_id, balance)),
        sleep=no_sleep,
        notify_executor=InlineExecutor(),
    )


@pytest.fixture
def documents(store):
    return DocumentQuotaService(store, sleep=no_sleep)


@pytest.fixture
def account(store):
    """Free-plan user with 50 credits, reset recently."""
    return store.add_account(
        USER_ID,
        credits=50,
        monthly_credits_reset_at=datetime.now(timezone.utc),
        monthly_documents_reset_at=datetime.now(timezone.utc),
    )


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def auth_user():
    return AuthUser(id=USER_ID, email="ada@example.com", name="Ada")


@pytest.fixture
def app(ledger, documents, auth_user):
    """The FastAPI app with auth and credit services overridden."""
    from app.auth.dependencies import get_current_user
    from app.main import app as fastapi_app
    from app.middleware.rate_limit import ALL_LIMITERS
    from core.services.document_quota import get_document_quota_service
    from core.services.ledger import get_ledger

    fastapi_app.dependency_overrides[get_current_user] = lambda: auth_user
    fastapi_app.dependency_overrides[get_ledger] = lambda: ledger
    fastapi_app.dependency_overrides[get_document_quota_service] = lambda: documents
    for limiter in ALL_LIMITERS:
        limiter.reset()

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()
    for limiter in ALL_LIMITERS:
        limiter.reset()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app, raise_server_exceptions=False)
