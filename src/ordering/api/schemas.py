"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Checkout payloads are deliberately loose
(shipping addresses and items come in several shapes); they are normalized
by the order assembler, not here.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        allow_inf_nan=False,
        json_schema_extra={
            "examples": [
                {
                    "user_id": "user-001",
                    "total_amount": 800.0,
                    "payment_method": "Prepaid",
                    "shipping_address": {
                        "name": "Asha Rao",
                        "phone": "9876543210",
                        "email": "asha@example.com",
                        "address": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "pincode": "560001",
                    },
                    "items": [
                        {"product_id": "prod-001", "quantity": 1, "price": 500.0},
                        {"product_id": "prod-002", "quantity": 1, "price": 300.0},
                    ],
                }
            ]
        },
    )

    user_id: str | None = None
    total_amount: float | None = None
    shipping_charge: float = 0.0
    payment_method: str | None = None
    payment_order_id: str | None = None
    shipping_address: Any = None
    items: list[dict] = Field(default_factory=list)
    delivery_type: str | None = None
    redeem_amount: float = 0.0
    affiliate_code: str | None = None
    affiliate_wallet_amount: float = 0.0
    promo_code: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None


class CourierDispatchResponse(BaseModel):
    status: str
    tracking_number: str | None = None
    shipment_id: str | None = None
    error: str | None = None


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    delivery_partner: str
    delivery_type: str
    courier: CourierDispatchResponse


# ---------------------------------------------------------------------------
# Order status
# ---------------------------------------------------------------------------
class UpdateOrderStatusRequest(BaseModel):
    status: str
    tracking_number: str | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str
    changed: bool
    settled: int = 0
    voided: int = 0
    cashback_credited: float = 0.0
    commission_credited: float = 0.0


class CourierWebhookRequest(BaseModel):
    """Courier status callback. Couriers disagree on field names, so several are accepted."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: str | None = None
    current_status: str | None = None
    order_id: str | None = None
    order_no: str | None = None
    channel_order_id: str | None = None
    awb: str | None = None
    awb_no: str | None = None

    @property
    def status_text(self) -> str | None:
        return self.current_status or self.status

    @property
    def order_references(self) -> list[str]:
        return [ref for ref in (self.order_id, self.order_no, self.channel_order_id) if ref]

    @property
    def tracking_number(self) -> str | None:
        return self.awb or self.awb_no


class AwbResponse(BaseModel):
    status: str
    tracking_number: str | None = None
    courier_company: str | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------
class WalletTransactionSchema(BaseModel):
    transaction_id: str
    order_id: str | None = None
    type: str
    amount: float
    status: str
    description: str | None = None
    balance_before: float | None = None
    balance_after: float | None = None
    is_held: bool = False
    eligible_at: str | None = None
    created_at: str | None = None
    processed_at: str | None = None


class WalletResponse(BaseModel):
    user_id: str
    kind: str
    balance: float
    total_earned: float
    total_spent: float
    transactions: list[WalletTransactionSchema] = Field(default_factory=list)


class WithdrawalRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    amount: float = Field(gt=0)
    hold: bool = True
    description: str | None = None


class RejectWithdrawalRequest(BaseModel):
    reason: str | None = None


class TransactionIdResponse(BaseModel):
    transaction_id: str


class AffiliateSaleSchema(BaseModel):
    transaction_id: str
    order_id: str
    affiliate_user_id: str
    sale_amount: float
    commission_amount: float
    commission_rate: float
    status: str


class ReleaseCashbackResponse(BaseModel):
    released: int
    failed: int


class StatusResponse(BaseModel):
    status: str = "ok"
