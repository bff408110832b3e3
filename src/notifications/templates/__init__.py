"""Template registry — maps NotificationType to template classes.

Each template knows its default channels and how to render content
from order context data.
"""

from notifications.kinds import NotificationType
from notifications.templates.delivery_confirmation import DeliveryConfirmationTemplate
from notifications.templates.order_cancellation import OrderCancellationTemplate
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.refund_notification import RefundNotificationTemplate
from notifications.templates.return_notification import ReturnNotificationTemplate
from notifications.templates.shipping_update import ShippingUpdateTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    NotificationType.ORDER_CONFIRMATION.value: OrderConfirmationTemplate,
    NotificationType.SHIPPING_UPDATE.value: ShippingUpdateTemplate,
    NotificationType.DELIVERY_CONFIRMATION.value: DeliveryConfirmationTemplate,
    NotificationType.ORDER_CANCELLATION.value: OrderCancellationTemplate,
    NotificationType.RETURN_NOTIFICATION.value: ReturnNotificationTemplate,
    NotificationType.REFUND_NOTIFICATION.value: RefundNotificationTemplate,
}

# Order statuses that send the customer an email
STATUS_NOTIFICATIONS: dict[str, str] = {
    "shipped": NotificationType.SHIPPING_UPDATE.value,
    "delivered": NotificationType.DELIVERY_CONFIRMATION.value,
    "cancelled": NotificationType.ORDER_CANCELLATION.value,
    "returned": NotificationType.RETURN_NOTIFICATION.value,
    "refunded": NotificationType.REFUND_NOTIFICATION.value,
}


def get_template(notification_type: str):
    """Look up a template class by notification type string."""
    template_cls = TEMPLATE_REGISTRY.get(notification_type)
    if template_cls is None:
        raise ValueError(f"No template registered for notification type: {notification_type}")
    return template_cls


def notification_for_status(status: str) -> str | None:
    return STATUS_NOTIFICATIONS.get(status)
