"""Tests for the fake courier adapter."""

import asyncio
from datetime import UTC, datetime

import pytest
from fulfillment.courier.fake_adapter import FakeCourier
from fulfillment.courier.port import AwbNotReady, CourierError, ShipmentLine, ShipmentRequest, coerce_order_number


def _request(order_number="ORD-100001", cod=False):
    return ShipmentRequest(
        order_number=order_number,
        order_date=datetime(2026, 1, 5, 10, 30, tzinfo=UTC),
        name="Asha Rao",
        phone="9876543210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode="560001",
        lines=(ShipmentLine(name="Lipstick", quantity=1, price=500.0),),
        cod=cod,
        total_amount=500.0,
    )


class TestFakeCourier:
    def setup_method(self):
        self.courier = FakeCourier()

    def test_create_shipment_allocates_awb(self):
        result = asyncio.run(self.courier.create_shipment(_request()))
        assert result.courier_order_id == "ORD-100001"
        assert result.tracking_number.startswith("FAKE")
        assert result.courier_company == "FakeExpress"

    def test_generate_awb_returns_booked_awb(self):
        result = asyncio.run(self.courier.create_shipment(_request()))
        assert asyncio.run(self.courier.generate_awb("ORD-100001")) == result.tracking_number

    def test_delayed_awb(self):
        self.courier.configure(awb_ready=False)
        result = asyncio.run(self.courier.create_shipment(_request()))
        assert result.tracking_number is None
        with pytest.raises(AwbNotReady):
            asyncio.run(self.courier.generate_awb("ORD-100001"))

    def test_failure(self):
        self.courier.configure(should_succeed=False, failure_reason="Service unavailable")
        with pytest.raises(CourierError, match="Service unavailable"):
            asyncio.run(self.courier.create_shipment(_request()))

    def test_unserviceable_pincode(self):
        self.courier.configure(unserviceable=["560001"])
        result = asyncio.run(self.courier.check_serviceability("560001", 0.5, cod=True))
        assert result.serviceable is False
        assert asyncio.run(self.courier.check_serviceability("110001", 0.5, cod=True)).serviceable is True

    def test_tracking_status(self):
        self.courier.configure(tracking_status="Delivered")
        result = asyncio.run(self.courier.track_shipment("FAKE123"))
        assert result.status_text == "Delivered"
        assert result.events[0]["status"] == "Delivered"

    def test_calls_recorded(self):
        asyncio.run(self.courier.create_shipment(_request(cod=True)))
        assert self.courier.calls == [{"method": "create_shipment", "order_number": "ORD-100001", "cod": True}]


class TestOrderNumberCoercion:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("ORD-123456", "ORD-123456"),
            ("ord-123456", "ord-123456"),
            ("123456", "ORD-123456"),
            (123456, "ORD-123456"),
            ("A-12-34", "ORD-1234"),
            ("abc", "abc"),
            ("", "ORD-0"),
            (None, "ORD-0"),
        ],
    )
    def test_coerce(self, value, expected):
        assert coerce_order_number(value) == expected
