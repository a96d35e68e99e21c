# =============================================================================
# core/models/payment.py - Payment Schemas
# =============================================================================
# Request/response bodies for Razorpay checkout. Field aliases match the
# camelCase names the web app already sends (planId, addonId, orderId...).
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PaymentType(str, Enum):
    """What a Razorpay order pays for."""
    INTRO_OFFER = "intro_offer"
    SUBSCRIPTION = "subscription"
    ADDON_DOCS = "addon_docs"
    ADDON_CREDITS = "addon_credits"


class BillingPeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CreateOrderRequest(BaseModel):
    """Body for POST /payment/create-order."""
    type: PaymentType
    plan_id: str | None = Field(default=None, alias="planId")
    addon_id: str | None = Field(default=None, alias="addonId")
    period: BillingPeriod = BillingPeriod.MONTHLY

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {"type": "subscription", "planId": "starter", "period": "yearly"}
        },
    }


class OrderResponse(BaseModel):
    """A created Razorpay order, ready for the checkout widget."""
    order_id: str = Field(..., serialization_alias="orderId")
    amount: int = Field(..., description="Amount in paise")
    currency: str = "INR"
    key_id: str = Field(..., serialization_alias="keyId")
    metadata: dict[str, Any] = Field(default_factory=dict)


class VerifyPaymentRequest(BaseModel):
    """Body for POST /payment/verify, as returned by the checkout widget."""
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    already_applied: bool = Field(
        default=False,
        description="True when this payment id had been applied before",
    )
