"""FastAPI routes for the payment gateway — create and verify payment orders."""

import os

import structlog
from fastapi import APIRouter, HTTPException

from payments.api.schemas import (
    ConfigureGatewayRequest,
    CreatePaymentOrderRequest,
    GatewayConfigResponse,
    PaymentOrderResponse,
    PaymentVerificationResponse,
    VerifyPaymentRequest,
)
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import CustomerDetails, PaymentGatewayError

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/orders", status_code=201, response_model=PaymentOrderResponse)
async def create_payment_order(body: CreatePaymentOrderRequest) -> PaymentOrderResponse:
    """Open a payment order the client pays against before checkout."""
    customer = body.customer_details
    try:
        order = await get_gateway().create_order(
            order_id=body.order_id,
            amount=body.amount,
            currency=body.currency,
            customer=CustomerDetails(
                customer_id=customer.customer_id,
                name=customer.customer_name,
                email=customer.customer_email,
                phone=customer.customer_phone,
            ),
            note=body.order_note,
        )
    except PaymentGatewayError as exc:
        logger.warning("Payment order creation failed", order_id=body.order_id, error=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return PaymentOrderResponse(
        order_id=order.order_id,
        amount=order.amount,
        currency=order.currency,
        payment_session_id=order.payment_session_id,
        gateway_order_id=order.gateway_order_id,
    )


@payment_router.post("/verify", response_model=PaymentVerificationResponse)
async def verify_payment(body: VerifyPaymentRequest) -> PaymentVerificationResponse:
    try:
        verification = await get_gateway().verify_payment(body.order_id)
    except PaymentGatewayError as exc:
        logger.warning("Payment verification failed", order_id=body.order_id, error=str(exc))
        return PaymentVerificationResponse(order_id=body.order_id, verified=False)

    return PaymentVerificationResponse(
        order_id=verification.order_id,
        verified=verification.paid,
        gateway_status=verification.gateway_status,
        gateway_order_id=verification.gateway_order_id,
        amount=verification.amount,
    )


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
