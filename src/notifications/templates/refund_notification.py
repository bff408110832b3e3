"""Refund notification template — sent when an order is refunded."""

from notifications.kinds import NotificationChannel, NotificationType


class RefundNotificationTemplate:
    notification_type = NotificationType.REFUND_NOTIFICATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        amount = context.get("total_amount", "0.00")
        return {
            "subject": f"Refund Processed - ₹{amount}",
            "body": (
                f"A refund of ₹{amount} has been processed for order {order_number}.\n\n"
                "The refund should appear in your account within 5-7 "
                "business days, depending on your payment provider.\n\n"
                "Thank you for your patience."
            ),
        }
