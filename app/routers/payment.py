# =============================================================================
# app/routers/payment.py - Razorpay Checkout Endpoints
# =============================================================================

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.dependencies import CurrentUser, PaymentServiceDep
from app.middleware.rate_limit import payment_limit
from core.models.payment import (
    CreateOrderRequest,
    OrderResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

router = APIRouter(dependencies=[Depends(payment_limit)])


@router.post("/create-order", response_model=OrderResponse)
async def create_order(
    body: CreateOrderRequest,
    user: CurrentUser,
    payments: PaymentServiceDep,
) -> OrderResponse:
    """
    Create a Razorpay order for a plan, the intro offer or an add-on.

    Raises:
        400: Unknown plan/add-on or amount too small
        500: Payments not configured
        502: Razorpay failure
    """
    return await run_in_threadpool(payments.create_order, user.id, body)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    user: CurrentUser,
    payments: PaymentServiceDep,
) -> VerifyPaymentResponse:
    """
    Check the checkout signature and apply the purchase.

    Replaying a verified payment succeeds with already_applied=true and
    changes nothing.
    """
    return await run_in_threadpool(payments.verify_payment, user.id, body)
