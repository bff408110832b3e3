"""Order cancellation template — sent when an order is cancelled."""

from notifications.kinds import NotificationChannel, NotificationType


class OrderCancellationTemplate:
    notification_type = NotificationType.ORDER_CANCELLATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {order_number} Cancelled",
            "body": (
                f"Your order {order_number} has been cancelled.\n\n"
                "Any cashback pending on this order has been withdrawn. "
                "If payment was captured, a refund will be processed.\n\n"
                "If you have questions, please contact our support team."
            ),
        }
