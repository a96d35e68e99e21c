# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .credit_store import CreditStore, InMemoryCreditStore, SupabaseCreditStore, get_credit_store
from .ledger import CreditLedger, get_ledger
from .document_quota import DocumentQuotaService, get_document_quota_service
from .metering import metered
from .profile_service import ProfileService
from .admin_service import AdminService
from .payment_service import PaymentService
from .followup_service import FollowupService

__all__ = [
    "CreditStore",
    "InMemoryCreditStore",
    "SupabaseCreditStore",
    "get_credit_store",
    "CreditLedger",
    "get_ledger",
    "DocumentQuotaService",
    "get_document_quota_service",
    "metered",
    "ProfileService",
    "AdminService",
    "PaymentService",
    "FollowupService",
]
