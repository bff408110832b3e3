"""Customer emails for order events, queued on the outbox after commit."""

from notifications.kinds import NotificationType
from notifications.outbox import get_outbox
from notifications.templates import notification_for_status

from ordering.order.order import LineKind, Order


def order_email_context(order: Order, **extra) -> dict:
    context = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "total_amount": f"{order.total_amount:.2f}",
        "delivery_partner": order.delivery_partner,
        "tracking_number": order.tracking_number,
        "courier_company": order.courier_company,
        "items": [
            {"name": item.name, "quantity": item.quantity, "price": item.price}
            for item in order.items or []
            if item.line_kind != LineKind.COMBO_COMPONENT.value
        ],
    }
    context.update(extra)
    return context


def send_order_confirmation(order: Order) -> None:
    get_outbox().enqueue(NotificationType.ORDER_CONFIRMATION.value, order.customer_email, order_email_context(order))


def send_status_update(order: Order, **extra) -> None:
    notification_type = notification_for_status(order.status)
    if notification_type is not None:
        get_outbox().enqueue(notification_type, order.customer_email, order_email_context(order, **extra))
