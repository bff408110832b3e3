"""Pydantic request/response schemas for the Payments API."""

from pydantic import BaseModel, Field


class CustomerDetailsSchema(BaseModel):
    customer_id: str
    customer_name: str
    customer_email: str
    customer_phone: str = "9999999999"


class CreatePaymentOrderRequest(BaseModel):
    order_id: str
    amount: float = Field(gt=0)
    currency: str = "INR"
    customer_details: CustomerDetailsSchema
    order_note: str | None = None

    model_config = {
        "allow_inf_nan": False,
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "pay-1718000000",
                    "amount": 799.0,
                    "currency": "INR",
                    "customer_details": {
                        "customer_id": "user-001",
                        "customer_name": "Asha Rao",
                        "customer_email": "asha@example.com",
                        "customer_phone": "9876543210",
                    },
                }
            ]
        }
    }


class PaymentOrderResponse(BaseModel):
    order_id: str
    amount: float
    currency: str
    payment_session_id: str | None = None
    gateway_order_id: str | None = None


class VerifyPaymentRequest(BaseModel):
    order_id: str


class PaymentVerificationResponse(BaseModel):
    order_id: str
    verified: bool
    gateway_status: str | None = None
    gateway_order_id: str | None = None
    amount: float | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Payment declined"


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
