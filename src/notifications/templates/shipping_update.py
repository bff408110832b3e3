"""Shipping update template — sent when the order is handed off to the courier."""

from notifications.kinds import NotificationChannel, NotificationType


class ShippingUpdateTemplate:
    notification_type = NotificationType.SHIPPING_UPDATE.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        courier = context.get("courier_company") or "our courier partner"
        tracking_number = context.get("tracking_number") or "to be shared soon"
        return {
            "subject": "Your Order Has Shipped!",
            "body": (
                f"Great news! Your order {order_number} has shipped.\n\n"
                f"Courier: {courier}\n"
                f"AWB / Tracking Number: {tracking_number}\n\n"
                "You can track your package using the tracking number above."
            ),
        }
