"""Fake courier adapter — deterministic courier for testing and development.

Generates mock AWBs and tracking statuses. Configurable success/failure
behavior, unserviceable pincodes, and delayed AWB allocation.
"""

from uuid import uuid4

from fulfillment.courier.port import (
    AwbNotReady,
    CourierError,
    CourierPort,
    ServiceabilityResult,
    ShipmentRequest,
    ShipmentResult,
    TrackingResult,
)


class FakeCourier(CourierPort):
    """Fake courier that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Courier unavailable"
        self.awb_ready = True
        self.configured = True
        self.tracking_status = "In Transit"
        self.unserviceable: set[str] = set()
        self.calls: list[dict] = []
        self._awbs: dict[str, str] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Courier unavailable",
        awb_ready: bool = True,
        unserviceable: list[str] | None = None,
        tracking_status: str | None = None,
    ):
        """Configure the fake courier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.awb_ready = awb_ready
        if unserviceable is not None:
            self.unserviceable = set(unserviceable)
        if tracking_status is not None:
            self.tracking_status = tracking_status

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def check_serviceability(self, pincode, weight_kg, cod, pickup_pincode=None) -> ServiceabilityResult:
        self.calls.append({"method": "check_serviceability", "pincode": pincode, "weight_kg": weight_kg, "cod": cod})
        if not self.should_succeed:
            raise CourierError(self.failure_reason)
        if pincode in self.unserviceable:
            return ServiceabilityResult(pincode=pincode, serviceable=False)
        return ServiceabilityResult(pincode=pincode, serviceable=True, couriers=("FakeExpress",))

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        self.calls.append({"method": "create_shipment", "order_number": request.order_number, "cod": request.cod})
        if not self.should_succeed:
            raise CourierError(self.failure_reason)

        awb = f"FAKE{uuid4().hex[:10].upper()}"
        self._awbs[request.order_number] = awb
        return ShipmentResult(
            courier_order_id=request.order_number,
            shipment_id=f"ship-{uuid4().hex[:8]}",
            tracking_number=awb if self.awb_ready else None,
            courier_company="FakeExpress",
        )

    async def generate_awb(self, order_number: str) -> str:
        self.calls.append({"method": "generate_awb", "order_number": order_number})
        if not self.should_succeed:
            raise CourierError(self.failure_reason)
        if not self.awb_ready:
            raise AwbNotReady("AWB not available for this order yet")
        return self._awbs.setdefault(order_number, f"FAKE{uuid4().hex[:10].upper()}")

    async def track_shipment(self, tracking_number: str) -> TrackingResult:
        self.calls.append({"method": "track_shipment", "tracking_number": tracking_number})
        if not self.should_succeed:
            raise CourierError(self.failure_reason)
        return TrackingResult(
            tracking_number=tracking_number,
            status_text=self.tracking_status,
            events=[{"status": self.tracking_status, "location": "Hub, Mumbai"}],
        )
