"""Tests for the Cashfree gateway adapter against a mock transport."""

import asyncio
import json

import httpx
import pytest
from payments.gateway.cashfree_adapter import API_VERSION, CashfreeGateway
from payments.gateway.port import CustomerDetails, PaymentGatewayError

CUSTOMER = CustomerDetails(customer_id="user-001", name="Asha Rao", email="asha@example.com", phone="9876543210")


class _Cashfree:
    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def _gateway(handler, **kwargs):
    api = _Cashfree(handler)
    return CashfreeGateway(app_id="app-1", secret_key="secret-1", transport=httpx.MockTransport(api), **kwargs), api


class TestCreateOrder:
    def test_order_created(self):
        gateway, api = _gateway(
            lambda request: httpx.Response(200, json={"cf_order_id": 2149, "payment_session_id": "session_abc"}),
            return_url="https://shop.example/return",
        )
        order = asyncio.run(gateway.create_order("pay-001", 799.0, "INR", CUSTOMER, note="Glow order"))
        assert order.payment_session_id == "session_abc"
        assert order.gateway_order_id == "2149"

        [request] = api.requests
        assert request.method == "POST"
        assert str(request.url) == "https://sandbox.cashfree.com/pg/orders"
        assert request.headers["x-api-version"] == API_VERSION
        assert request.headers["x-client-id"] == "app-1"
        assert request.headers["x-client-secret"] == "secret-1"

        payload = json.loads(request.content)
        assert payload["order_amount"] == 799.0
        assert payload["customer_details"]["customer_phone"] == "9876543210"
        assert payload["order_meta"] == {"return_url": "https://shop.example/return"}

    def test_production_url(self):
        gateway, api = _gateway(lambda request: httpx.Response(200, json={}), production=True)
        asyncio.run(gateway.create_order("pay-001", 799.0, "INR", CUSTOMER))
        assert api.requests[0].url.host == "api.cashfree.com"
        assert "order_meta" not in json.loads(api.requests[0].content)

    def test_api_error_message(self):
        gateway, _ = _gateway(lambda request: httpx.Response(400, json={"message": "order_amount is invalid"}))
        with pytest.raises(PaymentGatewayError, match="order_amount is invalid"):
            asyncio.run(gateway.create_order("pay-001", 799.0, "INR", CUSTOMER))

    def test_network_failure(self):
        def unreachable(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        gateway, _ = _gateway(unreachable)
        with pytest.raises(PaymentGatewayError, match="request failed"):
            asyncio.run(gateway.create_order("pay-001", 799.0, "INR", CUSTOMER))


class TestVerifyPayment:
    def test_paid(self):
        gateway, api = _gateway(
            lambda request: httpx.Response(200, json={"order_status": "PAID", "cf_order_id": 2149, "order_amount": 799})
        )
        verification = asyncio.run(gateway.verify_payment("pay-001"))
        assert verification.paid is True
        assert verification.gateway_status == "PAID"
        assert verification.amount == 799
        assert api.requests[0].method == "GET"
        assert api.requests[0].url.path == "/pg/orders/pay-001"

    def test_unpaid(self):
        gateway, _ = _gateway(lambda request: httpx.Response(200, json={"order_status": "ACTIVE"}))
        verification = asyncio.run(gateway.verify_payment("pay-001"))
        assert verification.paid is False
        assert verification.gateway_order_id is None

    def test_non_json_response(self):
        gateway, _ = _gateway(lambda request: httpx.Response(503, text="Service Unavailable"))
        with pytest.raises(PaymentGatewayError, match="HTTP 503"):
            asyncio.run(gateway.verify_payment("pay-001"))
