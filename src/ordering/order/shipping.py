"""Courier outcome commands — persist what the shipping dispatcher learned."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class RecordCourierShipment:
    order_id = Identifier(required=True)
    courier_order_id = String(max_length=100)
    shipment_id = String(max_length=100)
    tracking_number = String(max_length=100)
    courier_company = String(max_length=100)


@ordering.command(part_of="Order")
class RecordCourierFailure:
    order_id = Identifier(required=True)
    error = Text(required=True)


@ordering.command(part_of="Order")
class AssignTrackingNumber:
    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    courier_company = String(max_length=100)


@ordering.command_handler(part_of=Order)
class CourierOutcomeHandler:
    @handle(RecordCourierShipment)
    def record_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_courier_shipment(
            courier_order_id=command.courier_order_id,
            shipment_id=command.shipment_id,
            tracking_number=command.tracking_number,
            courier_company=command.courier_company,
        )
        repo.add(order)

    @handle(RecordCourierFailure)
    def record_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_courier_failure(command.error)
        repo.add(order)

    @handle(AssignTrackingNumber)
    def assign_tracking_number(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assigned = order.assign_tracking_number(command.tracking_number, command.courier_company)
        repo.add(order)
        return order.tracking_number if assigned else None
