# =============================================================================
# core/services/payment_service.py - Razorpay Checkout
# =============================================================================
# Prices are set in USD and charged in INR paise:
#   paise = round(usd * USD_TO_INR) * 100
#
# Flow:
# 1. create_order(): price the purchase, create a Razorpay order whose notes
#    record what was bought
# 2. verify_payment(): check the checkout signature, read the order notes,
#    apply the purchase to the profile and log it in `payments`
#
# A payment is applied at most once per razorpay_payment_id: the `payments`
# row is written first and acts as the claim.
# =============================================================================

import hashlib
import hmac
import logging
import time
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import (
    ConcurrentUpdateError,
    PaymentError,
    PaymentNotConfiguredError,
    VerifloException,
)
from core.models.payment import (
    BillingPeriod,
    CreateOrderRequest,
    OrderResponse,
    PaymentType,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from core.models.plan import PlanType, get_monthly_credits, is_valid_plan
from core.services.credit_store import CreditStore
from core.services.document_quota import DocumentQuotaService
from core.services.ledger import CreditLedger
from lib.http import HttpRequestError, fetch_with_retry
from lib.supabase_client import PAYMENTS_TABLE, SupabaseClient, SupabaseClientError
from lib.utils import normalize_uuid, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Price List (USD)
# =============================================================================

PLAN_PRICES: dict[str, dict[BillingPeriod, int]] = {
    "starter": {BillingPeriod.MONTHLY: 29, BillingPeriod.YEARLY: 290},
    "pro": {BillingPeriod.MONTHLY: 79, BillingPeriod.YEARLY: 790},
}

ADDON_DOCS: dict[str, dict[str, int]] = {
    "50": {"docs": 50, "price": 8},
    "100": {"docs": 100, "price": 15},
    "250": {"docs": 250, "price": 35},
}

ADDON_CREDITS: dict[str, dict[str, int]] = {
    "small": {"credits": 500, "price": 9},
    "medium": {"credits": 1200, "price": 19},
    "large": {"credits": 3000, "price": 39},
}

# First month of Starter at a discount
INTRO_OFFER = {"plan": "starter", "price": 19}

MIN_ORDER_PAISE = 100
ADDON_CREDITS_VALIDITY = timedelta(days=30)
PLAN_ACTIVATION_ATTEMPTS = 3


def usd_to_paise(usd: float, rate: float | None = None) -> int:
    """
    Example:
        usd_to_paise(19, rate=85)  # 161500
    """
    return round(usd * (rate or settings.USD_TO_INR)) * 100


def sign(order_id: str, payment_id: str, secret: str) -> str:
    """Razorpay checkout signature: hex HMAC-SHA256 of "order_id|payment_id"."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str | None) -> bool:
    if not secret:
        return False
    return hmac.compare_digest(sign(order_id, payment_id, secret), signature)


def price_order(request: CreateOrderRequest) -> tuple[float, dict[str, Any]]:
    """
    Work out what an order costs and the notes to store on it.

    Returns:
        (price in USD, order notes)

    Raises:
        PaymentError: Unknown plan or add-on for the payment type
    """
    notes: dict[str, Any] = {"type": request.type.value}

    if request.type == PaymentType.INTRO_OFFER:
        notes["plan"] = INTRO_OFFER["plan"]
        return INTRO_OFFER["price"], notes

    if request.type == PaymentType.SUBSCRIPTION and request.plan_id in PLAN_PRICES:
        notes["planId"] = request.plan_id
        notes["period"] = request.period.value
        return PLAN_PRICES[request.plan_id][request.period], notes

    if request.type == PaymentType.ADDON_DOCS and request.addon_id in ADDON_DOCS:
        addon = ADDON_DOCS[request.addon_id]
        notes["docs"] = addon["docs"]
        return addon["price"], notes

    if request.type == PaymentType.ADDON_CREDITS and request.addon_id in ADDON_CREDITS:
        addon = ADDON_CREDITS[request.addon_id]
        notes["credits"] = addon["credits"]
        return addon["price"], notes

    raise PaymentError(
        "Invalid payment type or parameters",
        details={"type": request.type.value, "planId": request.plan_id, "addonId": request.addon_id},
    )


def _int_note(notes: dict[str, Any], key: str) -> int:
    try:
        return int(notes.get(key) or 0)
    except (TypeError, ValueError):
        return 0


class PaymentService:
    """Creates Razorpay orders and applies verified payments."""

    def __init__(self, ledger: CreditLedger, documents: DocumentQuotaService):
        self.ledger = ledger
        self.documents = documents

    @property
    def store(self) -> CreditStore:
        return self.ledger.store

    # -------------------------------------------------------------------------
    # Razorpay API
    # -------------------------------------------------------------------------

    @staticmethod
    def _razorpay(method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if not settings.payments_configured:
            raise PaymentNotConfiguredError()

        url = f"{settings.RAZORPAY_API_URL.rstrip('/')}{path}"
        try:
            response = fetch_with_retry(
                method,
                url,
                auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
                **kwargs,
            )
        except HttpRequestError as e:
            raise PaymentError("Payment provider unreachable", status_code=502, details={"error": str(e)}) from e

        if response.status_code >= 400:
            logger.error(f"Razorpay {method} {path} returned {response.status_code}: {response.text}")
            raise PaymentError(
                "Payment provider rejected the request",
                status_code=502,
                details={"status": response.status_code},
            )
        return response.json()

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    def create_order(self, user_id: UUID | str, request: CreateOrderRequest) -> OrderResponse:
        """
        Raises:
            PaymentNotConfiguredError: Razorpay keys are missing
            PaymentError: Invalid purchase, amount too small, or Razorpay failure
        """
        if not settings.payments_configured:
            raise PaymentNotConfiguredError()

        user_id = normalize_uuid(user_id)
        usd, notes = price_order(request)
        notes["userId"] = user_id

        amount = usd_to_paise(usd)
        if amount < MIN_ORDER_PAISE:
            raise PaymentError("Amount too small", details={"amount_paise": amount})

        order = self._razorpay(
            "POST",
            "/orders",
            json={
                "amount": amount,
                "currency": "INR",
                "receipt": f"rcpt_{int(time.time() * 1000)}_{user_id[:8]}",
                "notes": notes,
            },
        )
        logger.info(f"Created order {order.get('id')} for {user_id}: {notes['type']} ({amount} paise)")

        return OrderResponse(
            order_id=order["id"],
            amount=order.get("amount", amount),
            currency=order.get("currency", "INR"),
            key_id=settings.RAZORPAY_KEY_ID,
            metadata=notes,
        )

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def verify_payment(self, user_id: UUID | str, request: VerifyPaymentRequest) -> VerifyPaymentResponse:
        """
        Verify a checkout and apply what was bought.

        Raises:
            PaymentNotConfiguredError: Razorpay keys are missing
            PaymentError: Bad signature, an order created for another user,
                or the purchase could not be applied
        """
        if not settings.payments_configured:
            raise PaymentNotConfiguredError()

        user_id = normalize_uuid(user_id)
        if not verify_signature(
            request.razorpay_order_id,
            request.razorpay_payment_id,
            request.razorpay_signature,
            settings.RAZORPAY_KEY_SECRET,
        ):
            logger.warning(f"Invalid payment signature from {user_id} for {request.razorpay_order_id}")
            raise PaymentError("Invalid payment signature")

        if SupabaseClient.fetch_payment(request.razorpay_payment_id):
            logger.info(f"Payment {request.razorpay_payment_id} already applied")
            return VerifyPaymentResponse(already_applied=True)

        order = self._razorpay("GET", f"/orders/{request.razorpay_order_id}")
        notes = order.get("notes") or {}
        if isinstance(notes, list):
            # Razorpay returns [] for an order without notes
            notes = {}

        owner = notes.get("userId")
        if owner and str(owner).lower() != user_id.lower():
            logger.warning(
                f"User {user_id} tried to verify order {request.razorpay_order_id} created for {owner}"
            )
            raise PaymentError("This order belongs to another account", status_code=403)

        payment_type = notes.get("type") or PaymentType.SUBSCRIPTION.value

        if not self._claim(user_id, request, order, payment_type, notes):
            return VerifyPaymentResponse(already_applied=True)

        try:
            self.apply_purchase(user_id, payment_type, notes)
        except VerifloException:
            logger.critical(
                f"Payment {request.razorpay_payment_id} recorded but not applied for {user_id}"
            )
            raise
        except Exception as e:
            logger.critical(
                f"Payment {request.razorpay_payment_id} recorded but not applied for {user_id}: {e}"
            )
            raise PaymentError("Verification failed", status_code=502, details={"error": str(e)}) from e

        return VerifyPaymentResponse()

    @staticmethod
    def _claim(
        user_id: str,
        request: VerifyPaymentRequest,
        order: dict[str, Any],
        payment_type: str,
        notes: dict[str, Any],
    ) -> bool:
        """Insert the payments row. False if another request inserted it first."""
        try:
            SupabaseClient.insert_row(PAYMENTS_TABLE, {
                "user_id": user_id,
                "razorpay_order_id": request.razorpay_order_id,
                "razorpay_payment_id": request.razorpay_payment_id,
                "amount_paise": order.get("amount") if isinstance(order.get("amount"), int) else 0,
                "currency": order.get("currency") or "INR",
                "type": payment_type,
                "metadata": notes,
            })
            return True
        except SupabaseClientError:
            if SupabaseClient.fetch_payment(request.razorpay_payment_id):
                logger.info(f"Payment {request.razorpay_payment_id} claimed by a concurrent request")
                return False
            raise

    def apply_purchase(self, user_id: str, payment_type: str, notes: dict[str, Any], now: datetime | None = None) -> None:
        """Credit the profile for a verified purchase."""
        now = now or utc_now()

        if payment_type == PaymentType.INTRO_OFFER.value:
            self.activate_plan(user_id, notes.get("plan") or "starter", now)

        elif payment_type == PaymentType.SUBSCRIPTION.value:
            plan = notes.get("planId") or "starter"
            if is_valid_plan(plan):
                self.activate_plan(user_id, plan, now)
            else:
                logger.warning(f"Subscription payment for {user_id} names unknown plan {plan}")

        elif payment_type == PaymentType.ADDON_DOCS.value:
            self.documents.credit_documents(user_id, _int_note(notes, "docs"))

        elif payment_type == PaymentType.ADDON_CREDITS.value:
            credits = _int_note(notes, "credits")
            if credits > 0:
                self.ledger.grant(user_id, credits)
                self.store.set_credits_expiry(user_id, now + ADDON_CREDITS_VALIDITY)

        else:
            logger.warning(f"Unknown payment type {payment_type} for {user_id}; nothing applied")

    def activate_plan(self, user_id: str, plan: str, now: datetime) -> None:
        """Switch plan and start a fresh cycle with the plan's full allotment."""
        plan_type = PlanType(plan)
        self.store.set_plan(user_id, plan_type)

        for _ in range(PLAN_ACTIVATION_ATTEMPTS):
            account = self.store.get_account(user_id)
            if self.store.apply_monthly_reset(
                user_id,
                credits=get_monthly_credits(plan_type),
                reset_at=now,
                expected_reset_at=account.monthly_credits_reset_at,
            ):
                logger.info(f"Activated {plan_type.value} for {user_id}")
                return

        raise ConcurrentUpdateError(user_id, attempts=PLAN_ACTIVATION_ATTEMPTS)
