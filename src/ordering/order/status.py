"""ChangeOrderStatus — drive an order transition and settle or reverse its ledger.

The status change and the wallet mutations it triggers commit in the same
Unit of Work, so a delivered order is never left with unsettled cashback.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import (
    REVERSING_STATUSES,
    SETTLING_STATUSES,
    Order,
    OrderStatus,
    StatusSource,
)
from ordering.settlement.engine import reverse_order_obligations, settle_order_obligations

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ChangeOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    source = String(max_length=20, choices=StatusSource, default=StatusSource.ADMIN.value)
    tracking_number = String(max_length=100)


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {value}"]}) from None


@ordering.command_handler(part_of=Order)
class ChangeOrderStatusHandler:
    @handle(ChangeOrderStatus)
    def change_status(self, command):
        target = parse_status(command.status)
        source = StatusSource(command.source or StatusSource.ADMIN.value)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if command.tracking_number:
            order.assign_tracking_number(command.tracking_number, regenerate=True)
        changed = order.transition_to(target, source=source)
        repo.add(order)

        result = {"order_id": str(order.id), "status": order.status, "changed": changed, "settled": 0, "voided": 0}
        if target in SETTLING_STATUSES:
            result.update(settle_order_obligations(order).as_dict())
        elif target in REVERSING_STATUSES:
            result.update(reverse_order_obligations(order, reason=f"Order {target.value}").as_dict())

        logger.info(
            "Order status changed" if changed else "Order status unchanged",
            order_id=str(order.id),
            status=order.status,
            source=source.value,
        )
        return result
