"""Orders by status — admin dashboard view for filtering orders and tracking state."""

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.events import (
    CourierDispatchFailed,
    OrderPlaced,
    OrderStatusChanged,
    TrackingNumberAssigned,
)
from ordering.order.order import Order


@ordering.projection
class OrdersByStatus:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    status = String(required=True)
    delivery_partner = String()
    tracking_number = String()
    courier_error = String(max_length=1000)
    total_amount = Float()
    created_at = DateTime()
    updated_at = DateTime()


@ordering.projector(projector_for=OrdersByStatus, aggregates=[Order])
class OrdersByStatusProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        current_domain.repository_for(OrdersByStatus).add(
            OrdersByStatus(
                order_id=event.order_id,
                order_number=event.order_number,
                user_id=event.user_id,
                status="pending",
                delivery_partner=event.delivery_partner,
                total_amount=event.total_amount,
                created_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        repo = current_domain.repository_for(OrdersByStatus)
        record = repo.get(event.order_id)
        record.status = event.new_status
        record.updated_at = event.changed_at
        repo.add(record)

    @on(TrackingNumberAssigned)
    def on_tracking_number_assigned(self, event):
        repo = current_domain.repository_for(OrdersByStatus)
        record = repo.get(event.order_id)
        record.tracking_number = event.tracking_number
        record.courier_error = None
        record.updated_at = event.assigned_at
        repo.add(record)

    @on(CourierDispatchFailed)
    def on_courier_dispatch_failed(self, event):
        repo = current_domain.repository_for(OrdersByStatus)
        record = repo.get(event.order_id)
        record.courier_error = event.error[:1000]
        record.updated_at = event.failed_at
        repo.add(record)
