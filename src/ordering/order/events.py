"""Domain events for the Order aggregate.

Events are versioned, immutable facts. They feed the admin projections and
record the order's audit trail (status changes, courier assignments).
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A checkout was accepted and the order persisted with its line items."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    total_amount = Float(required=True)
    shipping_charge = Float()
    payment_method = String()
    delivery_partner = String(required=True)
    delivery_type = String()
    item_count = Integer(required=True)
    redeem_amount = Float()
    affiliate_code = String()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved to a new lifecycle status."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    source = String(required=True)  # admin | webhook | tracking
    tracking_number = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class CourierShipmentRecorded:
    """The courier accepted the shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_order_id = String()
    shipment_id = String()
    tracking_number = String()
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingNumberAssigned:
    """An AWB was attached to the order, either first time or by re-generation."""

    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    previous_tracking_number = String()
    courier_company = String()
    assigned_at = DateTime(required=True)


@ordering.event(part_of="Order")
class CourierDispatchFailed:
    """The courier could not take the shipment; the order stands without tracking."""

    __version__ = 1

    order_id = Identifier(required=True)
    error = Text(required=True)
    failed_at = DateTime(required=True)
