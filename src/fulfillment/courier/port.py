"""Courier port — abstract interface for courier (logistics) integrations.

All courier adapters must implement this interface. The dispatcher and the
checkout program against the port; adapters are swapped via configuration.
Every operation is a remote call, so the port is async.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_PARCEL_CM = (22, 12, 12)
DEFAULT_UNIT_WEIGHT_KG = 0.5


def coerce_order_number(value) -> str:
    """Courier order numbers are always `ORD-<digits>`."""
    raw = str(value or "").strip()
    if raw.upper().startswith("ORD-"):
        return raw
    digits = "".join(ch for ch in raw if ch.isdigit())
    return f"ORD-{digits}" if digits else (raw or "ORD-0")


class CourierError(Exception):
    """The courier rejected a request or could not be reached."""

    def __init__(self, message: str, response: dict | None = None):
        super().__init__(message)
        self.response = response


class AwbNotReady(CourierError):
    """The courier accepted the order but has not allocated an AWB yet."""


@dataclass(frozen=True)
class ServiceabilityResult:
    pincode: str
    serviceable: bool
    couriers: tuple[str, ...] = ()


@dataclass(frozen=True)
class ShipmentLine:
    name: str
    quantity: int
    price: float
    sku: str = ""


@dataclass(frozen=True)
class ShipmentRequest:
    """Everything the courier needs to book one parcel."""

    order_number: str
    order_date: datetime
    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    lines: tuple[ShipmentLine, ...]
    cod: bool = False
    total_amount: float = 0.0
    shipping_charge: float = 0.0
    weight_kg: float = DEFAULT_UNIT_WEIGHT_KG
    dimensions_cm: tuple[int, int, int] = DEFAULT_PARCEL_CM


@dataclass(frozen=True)
class ShipmentResult:
    courier_order_id: str
    shipment_id: str | None = None
    tracking_number: str | None = None
    courier_company: str | None = None


@dataclass(frozen=True)
class TrackingResult:
    tracking_number: str
    status_text: str
    events: list[dict] = field(default_factory=list)


class CourierPort(ABC):
    """Abstract interface for courier adapters."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """False when credentials are missing; callers then skip the courier."""
        ...

    @abstractmethod
    async def check_serviceability(
        self,
        pincode: str,
        weight_kg: float,
        cod: bool,
        pickup_pincode: str | None = None,
    ) -> ServiceabilityResult:
        """Can any courier pick up and deliver to ``pincode`` for this payment mode?"""
        ...

    @abstractmethod
    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        """Book a shipment. The AWB may or may not be available immediately.

        Raises:
            CourierError: the courier refused the booking.
        """
        ...

    @abstractmethod
    async def generate_awb(self, order_number: str) -> str:
        """Return the AWB allocated to a booked order.

        Raises:
            AwbNotReady: the AWB has not been allocated yet; retry later.
            CourierError: any other failure.
        """
        ...

    @abstractmethod
    async def track_shipment(self, tracking_number: str) -> TrackingResult:
        """Fetch the courier's current free-text status for an AWB."""
        ...
