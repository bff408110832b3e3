"""Pincode validation against government and postal data sources.

Lookup order: format check, cache, primary data.gov.in API, then the public
postalpincode.in API as fallback. The primary is skipped while its API key is
unset or during a rate-limit cooldown learned from a 429 ``Retry-After``.
Concurrent validations of the same pincode share one in-flight lookup.

``error`` means both sources failed and the pincode is unknown; callers must
not reject an address on it. ``invalid`` is an authoritative rejection.
"""

import asyncio
import re
import time
from dataclasses import asdict, dataclass
from email.utils import parsedate_to_datetime
from enum import Enum

import httpx
import structlog

from serviceability.cache import InMemoryTTLCache, PincodeCache

logger = structlog.get_logger(__name__)

PINCODE_FORMAT = re.compile(r"^\d{6}$")

DATA_GOV_URL = "https://api.data.gov.in/resource/5c2f62fe-5afa-4119-a499-fec9d604d5bd"
POSTAL_PINCODE_URL = "https://api.postalpincode.in/pincode"

POSITIVE_TTL_SECONDS = 24 * 60 * 60
NEGATIVE_TTL_SECONDS = 6 * 60 * 60
DEFAULT_COOLDOWN_SECONDS = 5 * 60
REQUEST_TIMEOUT_SECONDS = 10.0


class PincodeStatus(Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True)
class PincodeValidation:
    pincode: str
    status: str
    valid: bool
    message: str = ""
    source: str | None = None  # cache | primary | fallback

    def as_dict(self) -> dict:
        return asdict(self)


class PrimaryUnavailable(Exception):
    """The primary source cannot answer right now (no key, cooldown, failure)."""


def parse_retry_after(value: str | None, now: float) -> float:
    """Seconds to wait from a ``Retry-After`` header (delta or HTTP date)."""
    if not value:
        return DEFAULT_COOLDOWN_SECONDS
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        return max(0.0, parsedate_to_datetime(value).timestamp() - now)
    except (TypeError, ValueError):
        return DEFAULT_COOLDOWN_SECONDS


class PincodeChecker:
    def __init__(
        self,
        cache: PincodeCache | None = None,
        api_key: str | None = None,
        primary_url: str = DATA_GOV_URL,
        fallback_url: str = POSTAL_PINCODE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        clock=time.time,
    ):
        self.cache = cache if cache is not None else InMemoryTTLCache()
        self.api_key = api_key
        self.primary_url = primary_url
        self.fallback_url = fallback_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._in_flight: dict[str, asyncio.Future] = {}
        self.cooldown_until = 0.0
        self.stats = {"cache_hits": 0, "primary_calls": 0, "fallback_calls": 0, "coalesced": 0}

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def validate(self, code) -> PincodeValidation:
        pincode = str(code or "").strip()
        if not PINCODE_FORMAT.match(pincode):
            return PincodeValidation(
                pincode=pincode,
                status=PincodeStatus.INVALID.value,
                valid=False,
                message="Pincode must be exactly 6 digits",
            )

        cached = self.cache.get(pincode)
        if cached is not None:
            self.stats["cache_hits"] += 1
            return self._result(pincode, cached, source="cache")

        task = self._in_flight.get(pincode)
        if task is None:
            task = asyncio.ensure_future(self._lookup(pincode))
            self._in_flight[pincode] = task
            task.add_done_callback(lambda _: self._in_flight.pop(pincode, None))
        else:
            self.stats["coalesced"] += 1

        exists, source = await asyncio.shield(task)
        if exists is None:
            return PincodeValidation(
                pincode=pincode,
                status=PincodeStatus.ERROR.value,
                valid=False,
                message="Pincode service unavailable",
            )
        return self._result(pincode, exists, source=source)

    @property
    def in_cooldown(self) -> bool:
        return self._clock() < self.cooldown_until

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    @staticmethod
    def _result(pincode: str, exists: bool, source: str) -> PincodeValidation:
        if exists:
            return PincodeValidation(pincode=pincode, status=PincodeStatus.SUCCESS.value, valid=True, source=source)
        return PincodeValidation(
            pincode=pincode,
            status=PincodeStatus.INVALID.value,
            valid=False,
            message="Pincode does not exist",
            source=source,
        )

    async def _lookup(self, pincode: str) -> tuple[bool | None, str | None]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                exists, source = await self._query_primary(client, pincode), "primary"
            except PrimaryUnavailable as exc:
                logger.info("Pincode primary source skipped", pincode=pincode, reason=str(exc))
                try:
                    exists, source = await self._query_fallback(client, pincode), "fallback"
                except (httpx.HTTPError, ValueError, KeyError, TypeError) as fallback_exc:
                    logger.warning("Pincode fallback source failed", pincode=pincode, error=str(fallback_exc))
                    return None, None

        ttl = POSITIVE_TTL_SECONDS if exists else NEGATIVE_TTL_SECONDS
        self.cache.set(pincode, exists, ttl)
        return exists, source

    async def _query_primary(self, client: httpx.AsyncClient, pincode: str) -> bool:
        if not self.api_key:
            raise PrimaryUnavailable("API key not configured")
        if self.in_cooldown:
            raise PrimaryUnavailable("rate-limit cooldown active")

        self.stats["primary_calls"] += 1
        try:
            response = await client.get(
                self.primary_url,
                params={
                    "api-key": self.api_key,
                    "format": "json",
                    "filters[pincode]": pincode,
                    "limit": 1,
                },
            )
        except httpx.HTTPError as exc:
            raise PrimaryUnavailable(f"request failed: {exc}") from exc

        if response.status_code == 429:
            wait = parse_retry_after(response.headers.get("Retry-After"), self._clock())
            self.cooldown_until = self._clock() + wait
            logger.warning("Pincode primary source rate limited", cooldown_seconds=wait)
            raise PrimaryUnavailable("rate limited")
        if response.status_code != 200:
            raise PrimaryUnavailable(f"HTTP {response.status_code}")

        try:
            records = response.json().get("records")
        except (ValueError, AttributeError) as exc:
            raise PrimaryUnavailable("malformed response") from exc
        if not isinstance(records, list):
            raise PrimaryUnavailable("malformed response")
        return len(records) > 0

    async def _query_fallback(self, client: httpx.AsyncClient, pincode: str) -> bool:
        self.stats["fallback_calls"] += 1
        response = await client.get(f"{self.fallback_url}/{pincode}")
        response.raise_for_status()
        payload = response.json()
        entry = payload[0] if isinstance(payload, list) and payload else payload
        if not isinstance(entry, dict):
            raise ValueError("Unexpected fallback response shape")
        offices = entry.get("PostOffice") or []
        return str(entry.get("Status", "")).lower() == "success" and len(offices) > 0
