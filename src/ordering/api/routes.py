"""FastAPI routes for the Ordering domain — checkout, order status, courier webhooks and wallets."""

import hmac
import os

import structlog
from fastapi import APIRouter, Cookie, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.courier.port import CourierError
from fulfillment.dispatcher import ShippingDispatcher
from ordering.api.schemas import (
    AffiliateSaleSchema,
    AwbResponse,
    CheckoutRequest,
    CheckoutResponse,
    CourierWebhookRequest,
    OrderStatusResponse,
    RejectWithdrawalRequest,
    ReleaseCashbackResponse,
    StatusResponse,
    TransactionIdResponse,
    UpdateOrderStatusRequest,
    WalletResponse,
    WalletTransactionSchema,
    WithdrawalRequest,
)
from ordering.checkout.assembler import OrderAssembler
from ordering.ledger.operations import (
    ApproveWithdrawal,
    RejectWithdrawal,
    ReleaseEligibleCashback,
    RequestWithdrawal,
)
from ordering.ledger.wallet import Wallet, WalletKind
from ordering.order.emails import send_status_update
from ordering.order.order import Order, StatusSource
from ordering.order.status import ChangeOrderStatus
from ordering.projections.affiliate_sales import AffiliateSale
from ordering.settlement.status_mapping import map_courier_status

logger = structlog.get_logger(__name__)

AFFILIATE_COOKIE = "affiliate_ref"


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _change_status(order_id: str, status: str, source: StatusSource, tracking_number: str | None = None) -> dict:
    result = current_domain.process(
        ChangeOrderStatus(order_id=order_id, status=status, source=source.value, tracking_number=tracking_number),
        asynchronous=False,
    )
    if result["changed"]:
        order = current_domain.repository_for(Order).get(order_id)
        send_status_update(order, cashback_credited=result.get("cashback_credited", 0.0))
    return result


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    affiliate_ref: str | None = Cookie(default=None, alias=AFFILIATE_COOKIE),
) -> CheckoutResponse:
    """Place an order.

    The affiliate attribution cookie is only used when the body carries no
    affiliate code, and never together with a promo code.
    """
    result = await OrderAssembler().place_order(body.model_dump(), affiliate_cookie=affiliate_ref)
    return CheckoutResponse(**result)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}")
async def get_order(order_id: str) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "user_id": str(order.user_id),
        "status": order.status,
        "total_amount": order.total_amount,
        "shipping_charge": order.shipping_charge,
        "payment_method": order.payment_method,
        "delivery_partner": order.delivery_partner,
        "delivery_type": order.delivery_type,
        "courier_order_id": order.courier_order_id,
        "shipment_id": order.shipment_id,
        "tracking_number": order.tracking_number,
        "courier_company": order.courier_company,
        "redeem_amount": order.redeem_amount,
        "affiliate_code": order.affiliate_code,
        "recipients": order.recipients,
        "notes": order.note_list,
        "items": [
            {
                "line_kind": item.line_kind,
                "product_id": item.product_id,
                "combo_id": item.combo_id,
                "offer_id": item.offer_id,
                "name": item.name,
                "quantity": item.quantity,
                "price": item.price,
                "shade": item.shade,
                "cashback_amount": item.cashback_amount,
                "commission_amount": item.commission_amount,
            }
            for item in order.items
        ],
        "created_at": _iso(order.created_at),
        "delivered_at": _iso(order.delivered_at),
    }


@order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderStatusResponse:
    """Admin status change. Settlement or reversal happens before the response."""
    result = _change_status(order_id, body.status, StatusSource.ADMIN, tracking_number=body.tracking_number)
    return OrderStatusResponse(**result)


@order_router.post("/{order_id}/awb", response_model=AwbResponse)
async def generate_awb(order_id: str):
    outcome = await ShippingDispatcher().generate_awb(order_id)
    if outcome.status == "retry_later":
        return JSONResponse(status_code=202, content=outcome.as_dict())
    if outcome.status == "failed":
        raise HTTPException(status_code=502, detail=outcome.error)
    return AwbResponse(**outcome.as_dict())


@order_router.post("/{order_id}/tracking/refresh")
async def refresh_tracking(order_id: str) -> dict:
    try:
        result = await ShippingDispatcher().refresh_tracking(order_id)
    except CourierError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if result["applied"]:
        order = current_domain.repository_for(Order).get(order_id)
        send_status_update(order, cashback_credited=result["settlement"].get("cashback_credited", 0.0))
    return result


# ---------------------------------------------------------------------------
# Courier Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _authenticate_webhook(header_secret: str | None, query_secret: str | None) -> None:
    expected = os.environ.get("COURIER_WEBHOOK_SECRET")
    if not expected:
        return
    supplied = header_secret or query_secret or ""
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid courier webhook secret")


def _resolve_webhook_order(body: CourierWebhookRequest) -> Order | None:
    repo = current_domain.repository_for(Order)
    for reference in body.order_references:
        order = repo.find_by_reference(reference)
        if order is not None:
            return order
    return repo.find_by_tracking_number(body.tracking_number)


@webhook_router.post("/courier")
async def courier_webhook(
    body: CourierWebhookRequest,
    x_webhook_secret: str | None = Header(default=None),
    secret: str | None = Query(default=None),
) -> dict:
    """Apply a courier status callback. Anything that cannot be applied is acknowledged and ignored."""
    _authenticate_webhook(x_webhook_secret, secret)

    order = _resolve_webhook_order(body)
    if order is None:
        logger.info("Courier webhook for unknown order", references=body.order_references, awb=body.tracking_number)
        return {"status": "ignored", "reason": "order not found"}

    target = map_courier_status(body.status_text)
    if target is None:
        logger.info("Courier webhook status not mapped", order_id=str(order.id), courier_status=body.status_text)
        return {"status": "ignored", "reason": "unrecognized status", "order_id": str(order.id)}

    try:
        result = _change_status(str(order.id), target.value, StatusSource.WEBHOOK)
    except ValidationError as exc:
        logger.info(
            "Courier webhook transition rejected",
            order_id=str(order.id),
            status=target.value,
            error=exc.messages,
        )
        return {"status": "ignored", "reason": "transition not allowed", "order_id": str(order.id)}

    settlement = {key: value for key, value in result.items() if key != "status"}
    return {"status": "ok", "order_status": result["status"], **settlement}


# ---------------------------------------------------------------------------
# Wallet Router
# ---------------------------------------------------------------------------
wallet_router = APIRouter(prefix="/wallets", tags=["wallets"])


def _wallet_kind(kind: str) -> WalletKind:
    try:
        return WalletKind(kind)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown wallet kind: {kind}") from None


@wallet_router.post("/cashback/release", response_model=ReleaseCashbackResponse)
async def release_cashback() -> ReleaseCashbackResponse:
    result = current_domain.process(ReleaseEligibleCashback(), asynchronous=False)
    return ReleaseCashbackResponse(**result)


@wallet_router.get("/{user_id}/{kind}", response_model=WalletResponse)
async def get_wallet(user_id: str, kind: str) -> WalletResponse:
    wallet_kind = _wallet_kind(kind)
    wallet = current_domain.repository_for(Wallet).find_for(user_id, wallet_kind)
    if wallet is None:
        return WalletResponse(user_id=user_id, kind=wallet_kind.value, balance=0.0, total_earned=0.0, total_spent=0.0)

    return WalletResponse(
        user_id=str(wallet.user_id),
        kind=wallet.kind,
        balance=wallet.balance,
        total_earned=wallet.total_earned,
        total_spent=wallet.total_spent,
        transactions=[
            WalletTransactionSchema(
                transaction_id=str(txn.id),
                order_id=str(txn.order_id) if txn.order_id else None,
                type=txn.type,
                amount=txn.amount,
                status=txn.status,
                description=txn.description,
                balance_before=txn.balance_before,
                balance_after=txn.balance_after,
                is_held=bool(txn.is_held),
                eligible_at=_iso(txn.eligible_at),
                created_at=_iso(txn.created_at),
                processed_at=_iso(txn.processed_at),
            )
            for txn in sorted(wallet.transactions, key=lambda t: t.sequence)
        ],
    )


@wallet_router.post("/{user_id}/withdrawals", status_code=201, response_model=TransactionIdResponse)
async def request_withdrawal(user_id: str, body: WithdrawalRequest) -> TransactionIdResponse:
    command = RequestWithdrawal(user_id=user_id, amount=body.amount, hold=body.hold, description=body.description)
    transaction_id = current_domain.process(command, asynchronous=False)
    return TransactionIdResponse(transaction_id=transaction_id)


@wallet_router.put("/{user_id}/withdrawals/{transaction_id}/approve", response_model=StatusResponse)
async def approve_withdrawal(user_id: str, transaction_id: str) -> StatusResponse:
    current_domain.process(ApproveWithdrawal(user_id=user_id, transaction_id=transaction_id), asynchronous=False)
    return StatusResponse()


@wallet_router.put("/{user_id}/withdrawals/{transaction_id}/reject", response_model=StatusResponse)
async def reject_withdrawal(user_id: str, transaction_id: str, body: RejectWithdrawalRequest) -> StatusResponse:
    command = RejectWithdrawal(user_id=user_id, transaction_id=transaction_id, reason=body.reason)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Affiliate Sales Router
# ---------------------------------------------------------------------------
affiliate_router = APIRouter(prefix="/affiliate-sales", tags=["affiliates"])


@affiliate_router.get("/{order_id}", response_model=list[AffiliateSaleSchema])
async def affiliate_sales_for_order(order_id: str) -> list[AffiliateSaleSchema]:
    repo = current_domain.repository_for(AffiliateSale)
    sales = repo._dao.query.filter(order_id=order_id).all().items
    return [
        AffiliateSaleSchema(
            transaction_id=str(sale.transaction_id),
            order_id=str(sale.order_id),
            affiliate_user_id=str(sale.affiliate_user_id),
            sale_amount=sale.sale_amount,
            commission_amount=sale.commission_amount,
            commission_rate=sale.commission_rate,
            status=sale.status,
        )
        for sale in sales
    ]
