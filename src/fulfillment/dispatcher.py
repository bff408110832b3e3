"""Shipping dispatcher — books courier shipments for placed orders.

Runs after the order has been committed. A courier failure never undoes the
order: it is recorded as a note on the order and the tracking fields stay
empty until an AWB is generated later (by an admin, or a retry).
"""

from dataclasses import asdict, dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.courier import get_courier, pickup_pincode
from fulfillment.courier.port import (
    DEFAULT_UNIT_WEIGHT_KG,
    AwbNotReady,
    CourierError,
    CourierPort,
    ShipmentLine,
    ShipmentRequest,
)
from ordering.order.order import DeliveryPartner, LineKind, Order, StatusSource
from ordering.order.shipping import AssignTrackingNumber, RecordCourierFailure, RecordCourierShipment
from ordering.order.status import ChangeOrderStatus
from ordering.settlement.status_mapping import map_courier_status

logger = structlog.get_logger(__name__)


@dataclass
class DispatchOutcome:
    status: str  # dispatched | already_dispatched | manual | failed
    tracking_number: str | None = None
    shipment_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class AwbOutcome:
    status: str  # assigned | existing | retry_later | failed
    tracking_number: str | None = None
    courier_company: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def parcel_weight(order: Order) -> float:
    """Half a kilo per shipped unit; combo constituents ride inside their header."""
    units = sum(
        max(item.quantity, 1) for item in order.items or [] if item.line_kind != LineKind.COMBO_COMPONENT.value
    )
    return max(units, 1) * DEFAULT_UNIT_WEIGHT_KG


def _primary_recipient(order: Order) -> dict:
    recipients = order.recipients
    with_pincode = [r for r in recipients if r.get("pincode")]
    if with_pincode:
        return with_pincode[0]
    return recipients[0] if recipients else {}


def build_shipment_request(order: Order) -> ShipmentRequest:
    recipient = _primary_recipient(order)
    lines = tuple(
        ShipmentLine(
            name=item.name or "Product",
            quantity=item.quantity,
            price=item.price,
            sku=str(item.product_id or item.combo_id or item.offer_id or ""),
        )
        for item in order.items or []
        if item.line_kind != LineKind.COMBO_COMPONENT.value
    )
    return ShipmentRequest(
        order_number=order.order_number,
        order_date=order.created_at,
        name=recipient.get("name") or order.customer_name or "Customer",
        phone=recipient.get("phone") or order.customer_phone or "",
        address=recipient.get("address") or "",
        city=recipient.get("city") or "",
        state=recipient.get("state") or "",
        pincode=recipient.get("pincode") or "",
        lines=lines,
        cod=order.is_cod,
        total_amount=order.total_amount,
        shipping_charge=order.shipping_charge or 0.0,
        weight_kg=parcel_weight(order),
    )


class ShippingDispatcher:
    def __init__(self, courier: CourierPort | None = None):
        self._courier = courier

    @property
    def courier(self) -> CourierPort:
        return self._courier or get_courier()

    @staticmethod
    def _load(order_id: str) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    def _record_failure(self, order_id: str, error: str) -> None:
        current_domain.process(RecordCourierFailure(order_id=order_id, error=error), asynchronous=False)

    # -------------------------------------------------------------------
    # Shipment booking
    # -------------------------------------------------------------------
    async def dispatch(self, order_id: str) -> DispatchOutcome:
        order = self._load(order_id)
        if order.delivery_partner != DeliveryPartner.COURIER.value:
            return DispatchOutcome(status="manual")
        if order.courier_order_id:
            return DispatchOutcome(
                status="already_dispatched",
                tracking_number=order.tracking_number,
                shipment_id=order.shipment_id,
            )

        courier = self.courier
        if not courier.is_configured:
            error = "Courier credentials are not configured"
            self._record_failure(order_id, error)
            logger.warning("Courier dispatch skipped", order_id=order_id, reason=error)
            return DispatchOutcome(status="failed", error=error)

        try:
            result = await courier.create_shipment(build_shipment_request(order))
        except CourierError as exc:
            self._record_failure(order_id, str(exc))
            logger.warning("Courier dispatch failed", order_id=order_id, error=str(exc))
            return DispatchOutcome(status="failed", error=str(exc))
        except Exception as exc:
            # The order is already committed; a broken courier client only leaves tracking empty
            error = f"Unexpected courier error: {exc}"
            self._record_failure(order_id, error)
            logger.error("Courier dispatch crashed", order_id=order_id, error=str(exc), exc_info=True)
            return DispatchOutcome(status="failed", error=error)

        current_domain.process(
            RecordCourierShipment(
                order_id=order_id,
                courier_order_id=result.courier_order_id,
                shipment_id=result.shipment_id,
                tracking_number=result.tracking_number,
                courier_company=result.courier_company,
            ),
            asynchronous=False,
        )
        logger.info(
            "Courier shipment booked",
            order_id=order_id,
            courier_order_id=result.courier_order_id,
            tracking_number=result.tracking_number,
        )
        return DispatchOutcome(
            status="dispatched",
            tracking_number=result.tracking_number,
            shipment_id=result.shipment_id,
        )

    # -------------------------------------------------------------------
    # Deferred AWB generation
    # -------------------------------------------------------------------
    async def generate_awb(self, order_id: str) -> AwbOutcome:
        """Attach an AWB to the order exactly once; an existing one is reused."""
        order = self._load(order_id)
        if order.tracking_number:
            return AwbOutcome(
                status="existing",
                tracking_number=order.tracking_number,
                courier_company=order.courier_company,
            )
        if order.delivery_partner != DeliveryPartner.COURIER.value:
            raise ValidationError({"delivery_partner": ["AWB generation requires courier delivery"]})

        courier = self.courier
        if not courier.is_configured:
            return AwbOutcome(status="failed", error="Courier credentials are not configured")

        try:
            recipient = _primary_recipient(order)
            serviceability = await courier.check_serviceability(
                recipient.get("pincode") or "",
                parcel_weight(order),
                order.is_cod,
                pickup_pincode=pickup_pincode(),
            )
            courier_company = serviceability.couriers[0] if serviceability.couriers else order.courier_company

            if not order.courier_order_id:
                result = await courier.create_shipment(build_shipment_request(order))
                current_domain.process(
                    RecordCourierShipment(
                        order_id=order_id,
                        courier_order_id=result.courier_order_id,
                        shipment_id=result.shipment_id,
                        courier_company=result.courier_company or courier_company,
                    ),
                    asynchronous=False,
                )
                tracking_number = result.tracking_number or await courier.generate_awb(order.order_number)
            else:
                tracking_number = await courier.generate_awb(order.courier_order_id)
        except AwbNotReady as exc:
            logger.info("AWB not ready yet", order_id=order_id)
            return AwbOutcome(status="retry_later", error=str(exc))
        except CourierError as exc:
            logger.warning("AWB generation failed", order_id=order_id, error=str(exc))
            return AwbOutcome(status="failed", error=str(exc))
        except ValidationError:
            raise
        except Exception as exc:
            logger.error("AWB generation crashed", order_id=order_id, error=str(exc), exc_info=True)
            return AwbOutcome(status="failed", error=f"Unexpected courier error: {exc}")

        current_domain.process(
            AssignTrackingNumber(order_id=order_id, tracking_number=tracking_number, courier_company=courier_company),
            asynchronous=False,
        )
        logger.info("AWB assigned", order_id=order_id, tracking_number=tracking_number)
        return AwbOutcome(status="assigned", tracking_number=tracking_number, courier_company=courier_company)

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    async def refresh_tracking(self, order_id: str) -> dict:
        """Pull the courier's current status and apply it like a webhook would."""
        order = self._load(order_id)
        if not order.tracking_number:
            raise ValidationError({"tracking_number": ["Order has no tracking number yet"]})

        result = await self.courier.track_shipment(order.tracking_number)
        target = map_courier_status(result.status_text)
        response = {
            "order_id": order_id,
            "tracking_number": order.tracking_number,
            "courier_status": result.status_text,
            "mapped_status": target.value if target else None,
            "applied": False,
        }
        if target is None:
            return response

        try:
            outcome = current_domain.process(
                ChangeOrderStatus(order_id=order_id, status=target.value, source=StatusSource.TRACKING.value),
                asynchronous=False,
            )
        except ValidationError as exc:
            logger.info("Tracked status not applicable", order_id=order_id, status=target.value, error=exc.messages)
            return response

        response["applied"] = outcome["changed"]
        response["settlement"] = outcome
        return response
