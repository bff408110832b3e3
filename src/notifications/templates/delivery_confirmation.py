"""Delivery confirmation template — sent when the order is delivered."""

from notifications.kinds import NotificationChannel, NotificationType


class DeliveryConfirmationTemplate:
    notification_type = NotificationType.DELIVERY_CONFIRMATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        cashback = context.get("cashback_credited") or 0
        credited = f"₹{cashback} cashback has been credited to your wallet.\n\n" if cashback else ""
        return {
            "subject": "Your Order Has Been Delivered",
            "body": (
                f"Your order {order_number} has been delivered.\n\n"
                f"{credited}"
                "We hope you enjoy your purchase! If you have any issues, "
                "please don't hesitate to reach out to our support team."
            ),
        }
