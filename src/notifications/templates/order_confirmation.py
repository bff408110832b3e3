"""Order confirmation template — sent when an order is placed."""

from notifications.kinds import NotificationChannel, NotificationType


class OrderConfirmationTemplate:
    notification_type = NotificationType.ORDER_CONFIRMATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_number = context.get("order_number", "N/A")
        total = context.get("total_amount", "0.00")
        lines = "\n".join(
            f"  - {item.get('name', 'Item')} x {item.get('quantity', 1)}: ₹{item.get('price', 0)}"
            for item in context.get("items", [])
        )
        if context.get("delivery_partner") == "MANUAL":
            delivery = "Your order will be shipped by post. We'll share tracking details once dispatched."
        else:
            delivery = "We'll notify you once your order ships."
        return {
            "subject": f"Order {order_number} Confirmed",
            "body": (
                f"Hi {context.get('customer_name') or 'there'},\n\n"
                f"Your order {order_number} has been placed.\n\n"
                f"{lines}\n\n"
                f"Order Total: ₹{total}\n\n"
                f"{delivery}\n\n"
                "Thank you for shopping with us!"
            ),
        }
