"""Order aggregate (CQRS) — the order lifecycle that drives settlement.

An Order and its line items are persisted together in one Unit of Work, so an
order can never exist without items. Courier references are set once when the
shipment is accepted and only replaced through explicit re-generation.

State Machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED   (forward skips allowed)
    {PENDING, CONFIRMED, PROCESSING} → CANCELLED → REFUNDED
    {SHIPPED, DELIVERED} → RETURNED → REFUNDED
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from ordering.domain import ordering
from ordering.order.events import (
    CourierDispatchFailed,
    CourierShipmentRecorded,
    OrderPlaced,
    OrderStatusChanged,
    TrackingNumberAssigned,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"


class DeliveryPartner(Enum):
    COURIER = "COURIER"
    MANUAL = "MANUAL"


class DeliveryType(Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    MANUAL = "MANUAL"


class LineKind(Enum):
    PRODUCT = "product"
    OFFER = "offer"
    COMBO_HEADER = "combo_header"
    COMBO_COMPONENT = "combo_component"


class StatusSource(Enum):
    ADMIN = "admin"
    WEBHOOK = "webhook"
    TRACKING = "tracking"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},  # RTO before delivery
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # terminal
}

SETTLING_STATUSES = {OrderStatus.DELIVERED}
REVERSING_STATUSES = {OrderStatus.CANCELLED, OrderStatus.RETURNED, OrderStatus.REFUNDED}


def new_order_number(now: datetime) -> str:
    return f"ORD-{now:%y%m%d}{uuid4().int % 1_000_000:06d}"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A persisted line: a product, an offer, a combo header, or one combo constituent.

    Combo headers carry the combo price; their constituent rows carry a zero
    price so that line totals add up the same with or without expansion.
    """

    line_kind = String(required=True, max_length=20, choices=LineKind)
    product_id = Identifier()
    combo_id = Identifier()
    offer_id = Identifier()
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    shade = String(max_length=255)
    cashback_amount = Float(default=0.0)
    commission_rate = Float(default=0.0)
    commission_amount = Float(default=0.0)

    @property
    def line_total(self) -> float:
        return (self.price or 0.0) * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=30, unique=True)
    user_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    customer_phone = String(max_length=30)
    total_amount = Float(required=True, min_value=0.0)
    shipping_charge = Float(default=0.0)
    status = String(max_length=20, choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_method = String(max_length=50)
    payment_order_id = String(max_length=100)
    shipping_address = Text()  # JSON list of normalized recipients
    delivery_partner = String(max_length=20, choices=DeliveryPartner, default=DeliveryPartner.COURIER.value)
    delivery_type = String(max_length=20, choices=DeliveryType, default=DeliveryType.STANDARD.value)
    courier_order_id = String(max_length=100)
    shipment_id = String(max_length=100)
    tracking_number = String(max_length=100)
    courier_company = String(max_length=100)
    redeem_amount = Float(default=0.0)
    affiliate_code = String(max_length=50)
    affiliate_wallet_amount = Float(default=0.0)
    promo_code = String(max_length=50)
    notes = Text()  # JSON list of {at, message}
    items = HasMany(OrderItem)
    created_at = DateTime()
    updated_at = DateTime()
    delivered_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id: str,
        items_data: list[dict],
        total_amount: float,
        recipients: list[dict],
        payment_method: str | None = None,
        shipping_charge: float = 0.0,
        delivery_partner: str = DeliveryPartner.COURIER.value,
        delivery_type: str | None = None,
        redeem_amount: float = 0.0,
        affiliate_code: str | None = None,
        affiliate_wallet_amount: float = 0.0,
        promo_code: str | None = None,
        payment_order_id: str | None = None,
        customer: dict | None = None,
        note: str | None = None,
    ):
        """Create an order with its line items. At least one item is required."""
        if not items_data:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        customer = customer or {}
        if delivery_type is None:
            delivery_type = (
                DeliveryType.MANUAL.value
                if delivery_partner == DeliveryPartner.MANUAL.value
                else DeliveryType.STANDARD.value
            )
        now = datetime.now(UTC)
        order = cls(
            order_number=new_order_number(now),
            user_id=str(user_id),
            customer_name=customer.get("name"),
            customer_email=customer.get("email"),
            customer_phone=customer.get("phone"),
            total_amount=total_amount,
            shipping_charge=shipping_charge,
            status=OrderStatus.PENDING.value,
            payment_method=payment_method,
            payment_order_id=payment_order_id,
            shipping_address=json.dumps(recipients),
            delivery_partner=delivery_partner,
            delivery_type=delivery_type,
            redeem_amount=redeem_amount,
            affiliate_code=affiliate_code,
            affiliate_wallet_amount=affiliate_wallet_amount,
            promo_code=promo_code,
            notes=json.dumps([]),
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))
        if note:
            order.add_note(note, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                user_id=str(user_id),
                total_amount=total_amount,
                shipping_charge=shipping_charge,
                payment_method=payment_method,
                delivery_partner=delivery_partner,
                delivery_type=delivery_type,
                item_count=len(items_data),
                redeem_amount=redeem_amount,
                affiliate_code=affiliate_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def recipients(self) -> list[dict]:
        return json.loads(self.shipping_address) if self.shipping_address else []

    @property
    def note_list(self) -> list[dict]:
        return json.loads(self.notes) if self.notes else []

    @property
    def items_total(self) -> float:
        return sum(item.line_total for item in self.items or [])

    @property
    def is_cod(self) -> bool:
        return is_cash_on_delivery(self.payment_method)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def transition_to(
        self,
        target_status: OrderStatus,
        source: StatusSource = StatusSource.ADMIN,
    ) -> bool:
        """Move to ``target_status``. Returns False when the order is already there."""
        if OrderStatus(self.status) == target_status:
            return False
        self._assert_can_transition(target_status)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        if target_status == OrderStatus.DELIVERED:
            self.delivered_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=previous,
                new_status=target_status.value,
                source=source.value,
                tracking_number=self.tracking_number,
                changed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Courier integration
    # -------------------------------------------------------------------
    def record_courier_shipment(
        self,
        courier_order_id: str | None,
        shipment_id: str | None,
        tracking_number: str | None = None,
        courier_company: str | None = None,
    ) -> None:
        """Capture the courier's references. Existing references are kept."""
        if self.delivery_partner != DeliveryPartner.COURIER.value:
            raise ValidationError({"delivery_partner": ["Order is not shipped through the courier"]})

        now = datetime.now(UTC)
        self.courier_order_id = self.courier_order_id or courier_order_id
        self.shipment_id = self.shipment_id or shipment_id
        if courier_company and not self.courier_company:
            self.courier_company = courier_company
        self.updated_at = now
        self.raise_(
            CourierShipmentRecorded(
                order_id=str(self.id),
                courier_order_id=self.courier_order_id,
                shipment_id=self.shipment_id,
                tracking_number=tracking_number,
                recorded_at=now,
            )
        )
        if tracking_number and not self.tracking_number:
            self.assign_tracking_number(tracking_number, courier_company)

    def assign_tracking_number(
        self,
        tracking_number: str,
        courier_company: str | None = None,
        regenerate: bool = False,
    ) -> bool:
        """Attach an AWB. Replacing a different existing AWB needs ``regenerate``.

        Returns False when the same AWB is already attached.
        """
        if not tracking_number:
            raise ValidationError({"tracking_number": ["Tracking number is required"]})
        if self.tracking_number == tracking_number:
            return False
        if self.tracking_number and not regenerate:
            raise ValidationError({"tracking_number": ["Tracking number is already assigned"]})

        previous = self.tracking_number
        now = datetime.now(UTC)
        self.tracking_number = tracking_number
        if courier_company:
            self.courier_company = courier_company
        self.updated_at = now
        self.raise_(
            TrackingNumberAssigned(
                order_id=str(self.id),
                tracking_number=tracking_number,
                previous_tracking_number=previous,
                courier_company=courier_company,
                assigned_at=now,
            )
        )
        return True

    def record_courier_failure(self, error: str) -> None:
        """Note a courier failure on the order. Nothing else changes."""
        now = datetime.now(UTC)
        self.add_note(f"Courier integration failed: {error}", now)
        self.raise_(CourierDispatchFailed(order_id=str(self.id), error=error, failed_at=now))

    def add_note(self, message: str, at: datetime | None = None) -> None:
        at = at or datetime.now(UTC)
        notes = self.note_list
        notes.append({"at": at.isoformat(), "message": message})
        self.notes = json.dumps(notes)
        self.updated_at = at


def is_cash_on_delivery(payment_method: str | None) -> bool:
    normalized = (payment_method or "").strip().lower()
    return normalized in {"cod", "cash on delivery", "cash_on_delivery"}


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_reference(self, reference: str | None) -> Order | None:
        """Resolve an order by internal id, courier order id, or order number."""
        if not reference:
            return None
        reference = str(reference).strip()
        for field in ("courier_order_id", "order_number"):
            matches = self._dao.query.filter(**{field: reference}).all().items
            if matches:
                return matches[0]
        if not reference.upper().startswith("ORD-") and reference.isdigit():
            matches = self._dao.query.filter(order_number=f"ORD-{reference}").all().items
            if matches:
                return matches[0]
        matches = self._dao.query.filter(id=reference).all().items
        return matches[0] if matches else None

    def find_by_tracking_number(self, tracking_number: str | None) -> Order | None:
        if not tracking_number:
            return None
        matches = self._dao.query.filter(tracking_number=str(tracking_number).strip()).all().items
        return matches[0] if matches else None
