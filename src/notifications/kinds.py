from enum import Enum


class NotificationType(Enum):
    ORDER_CONFIRMATION = "OrderConfirmation"
    SHIPPING_UPDATE = "ShippingUpdate"
    DELIVERY_CONFIRMATION = "DeliveryConfirmation"
    ORDER_CANCELLATION = "OrderCancellation"
    RETURN_NOTIFICATION = "ReturnNotification"
    REFUND_NOTIFICATION = "RefundNotification"


class NotificationChannel(Enum):
    EMAIL = "Email"
