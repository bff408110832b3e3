"""Return notification template — sent when an order comes back (return or RTO)."""

from notifications.kinds import NotificationChannel, NotificationType


class ReturnNotificationTemplate:
    notification_type = NotificationType.RETURN_NOTIFICATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {order_number} Returned",
            "body": (
                f"Your order {order_number} has been marked as returned.\n\n"
                "Once we receive and inspect the package, any refund due "
                "will be processed to your original payment method."
            ),
        }
