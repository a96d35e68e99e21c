# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
#
# Tests swap the ledger and quota service through app.dependency_overrides
# (see tests/conftest.py).
# =============================================================================

from typing import Annotated

from fastapi import Depends

from app.auth import AuthUser, get_current_user
from core.services.document_quota import DocumentQuotaService, get_document_quota_service
from core.services.ledger import CreditLedger, get_ledger
from core.services.payment_service import PaymentService


def get_payment_service(
    ledger: CreditLedger = Depends(get_ledger),
    documents: DocumentQuotaService = Depends(get_document_quota_service),
) -> PaymentService:
    """Payment service sharing the request's ledger and quota service."""
    return PaymentService(ledger, documents)


# Type aliases for dependency injection
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
LedgerDep = Annotated[CreditLedger, Depends(get_ledger)]
DocumentQuotaDep = Annotated[DocumentQuotaService, Depends(get_document_quota_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
