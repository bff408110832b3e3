"""Tests for pincode validation: format, sources, caching, cooldown and coalescing."""

import asyncio
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime

import httpx
import pytest
from serviceability.cache import InMemoryTTLCache
from serviceability.pincode import (
    DEFAULT_COOLDOWN_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    PincodeChecker,
    PincodeStatus,
    parse_retry_after,
)


def _postal_response(exists=True):
    if exists:
        return httpx.Response(200, json=[{"Status": "Success", "PostOffice": [{"Name": "Head Office"}]}])
    return httpx.Response(200, json=[{"Status": "Error", "PostOffice": None}])


class _Sources:
    """Mock transport routing requests to the primary or the fallback source."""

    def __init__(self, primary=None, fallback=None, delay=0.0):
        self.primary = primary or (lambda request: httpx.Response(200, json={"records": [{"pincode": "560001"}]}))
        self.fallback = fallback or (lambda request: _postal_response())
        self.delay = delay
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if request.url.host == "api.data.gov.in":
            return self.primary(request)
        return self.fallback(request)

    def hosts(self):
        return [request.url.host for request in self.requests]


def _checker(sources, api_key=None, clock=None):
    kwargs = {"api_key": api_key, "transport": httpx.MockTransport(sources)}
    if clock is not None:
        kwargs["clock"] = clock
    return PincodeChecker(**kwargs)


def _validate(checker, code):
    return asyncio.run(checker.validate(code))


class TestFormat:
    @pytest.mark.parametrize("code", ["", "12345", "1234567", "56000a", None, " 56 001"])
    def test_bad_format_rejected_without_lookup(self, code):
        sources = _Sources()
        result = _validate(_checker(sources), code)
        assert result.status == PincodeStatus.INVALID.value
        assert result.valid is False
        assert sources.requests == []

    def test_surrounding_whitespace_ignored(self):
        assert _validate(_checker(_Sources()), " 560001 ").valid is True


class TestFallbackSource:
    def test_existing_pincode(self):
        sources = _Sources()
        result = _validate(_checker(sources), "560001")
        assert result.status == PincodeStatus.SUCCESS.value
        assert result.source == "fallback"
        assert sources.hosts() == ["api.postalpincode.in"]
        assert sources.requests[0].url.path == "/pincode/560001"

    def test_unknown_pincode(self):
        result = _validate(_checker(_Sources(fallback=lambda r: _postal_response(False))), "999999")
        assert result.status == PincodeStatus.INVALID.value
        assert result.message == "Pincode does not exist"

    def test_result_cached(self):
        sources = _Sources()
        checker = _checker(sources)
        _validate(checker, "560001")
        second = _validate(checker, "560001")
        assert second.source == "cache"
        assert len(sources.requests) == 1
        assert checker.stats["cache_hits"] == 1

    def test_negative_result_cached(self):
        sources = _Sources(fallback=lambda r: _postal_response(False))
        checker = _checker(sources)
        _validate(checker, "999999")
        assert _validate(checker, "999999").status == PincodeStatus.INVALID.value
        assert len(sources.requests) == 1


class TestPrimarySource:
    def test_primary_used_with_key(self):
        sources = _Sources()
        result = _validate(_checker(sources, api_key="key-123"), "560001")
        assert result.source == "primary"
        assert sources.hosts() == ["api.data.gov.in"]
        params = sources.requests[0].url.params
        assert params["api-key"] == "key-123"
        assert params["filters[pincode]"] == "560001"

    def test_empty_records_mean_invalid(self):
        sources = _Sources(primary=lambda r: httpx.Response(200, json={"records": []}))
        assert _validate(_checker(sources, api_key="key"), "999999").status == PincodeStatus.INVALID.value

    def test_primary_failure_falls_back(self):
        sources = _Sources(primary=lambda r: httpx.Response(500, json={}))
        result = _validate(_checker(sources, api_key="key"), "560001")
        assert result.source == "fallback"
        assert sources.hosts() == ["api.data.gov.in", "api.postalpincode.in"]

    def test_malformed_primary_falls_back(self):
        sources = _Sources(primary=lambda r: httpx.Response(200, json={"unexpected": True}))
        assert _validate(_checker(sources, api_key="key"), "560001").source == "fallback"


class TestRateLimitCooldown:
    def test_429_starts_cooldown(self):
        now = [1_000.0]
        sources = _Sources(primary=lambda r: httpx.Response(429, headers={"Retry-After": "120"}))
        checker = _checker(sources, api_key="key", clock=lambda: now[0])

        assert _validate(checker, "560001").source == "fallback"
        assert checker.cooldown_until == 1_120.0
        assert checker.in_cooldown is True

        _validate(checker, "110001")
        assert sources.hosts().count("api.data.gov.in") == 1

        now[0] = 1_121.0
        assert checker.in_cooldown is False
        _validate(checker, "700016")
        assert sources.hosts().count("api.data.gov.in") == 2


class TestBothSourcesDown:
    def test_error_status_not_cached(self):
        def broken(request):
            raise httpx.ConnectError("unreachable", request=request)

        sources = _Sources(fallback=broken)
        checker = _checker(sources)
        result = _validate(checker, "560001")
        assert result.status == PincodeStatus.ERROR.value
        assert result.valid is False
        assert len(checker.cache) == 0

        sources.fallback = lambda r: _postal_response()
        assert _validate(checker, "560001").status == PincodeStatus.SUCCESS.value

    def test_unexpected_fallback_shape_is_an_error(self):
        sources = _Sources(fallback=lambda r: httpx.Response(200, json="nope"))
        assert _validate(_checker(sources), "560001").status == PincodeStatus.ERROR.value


class TestTimeouts:
    def test_requests_carry_configured_timeout(self):
        sources = _Sources()
        _validate(_checker(sources), "560001")
        assert sources.requests[0].extensions["timeout"]["read"] == REQUEST_TIMEOUT_SECONDS

    def test_primary_timeout_falls_back(self):
        def stalled(request):
            raise httpx.ReadTimeout("timed out", request=request)

        sources = _Sources(primary=stalled)
        result = _validate(_checker(sources, api_key="key"), "560001")
        assert result.status == PincodeStatus.SUCCESS.value
        assert result.source == "fallback"
        assert sources.hosts() == ["api.data.gov.in", "api.postalpincode.in"]

    def test_fallback_timeout_is_an_uncached_error(self):
        def stalled(request):
            raise httpx.ReadTimeout("timed out", request=request)

        checker = _checker(_Sources(fallback=stalled))
        result = _validate(checker, "560001")
        assert result.status == PincodeStatus.ERROR.value
        assert result.valid is False
        assert len(checker.cache) == 0


class TestCoalescing:
    def test_concurrent_validations_share_one_lookup(self):
        sources = _Sources(delay=0.01)
        checker = _checker(sources)

        async def _run():
            return await asyncio.gather(*(checker.validate("560001") for _ in range(5)))

        results = asyncio.run(_run())
        assert {result.status for result in results} == {PincodeStatus.SUCCESS.value}
        assert len(sources.requests) == 1
        assert checker.stats["coalesced"] == 4


class TestRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("30", now=0.0) == 30.0

    def test_http_date(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        header = format_datetime(now + timedelta(seconds=90), usegmt=True)
        assert parse_retry_after(header, now=now.timestamp()) == pytest.approx(90.0)

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_default(self, value):
        assert parse_retry_after(value, now=0.0) == DEFAULT_COOLDOWN_SECONDS


class TestCacheInjection:
    def test_shared_cache_answers_without_lookup(self):
        cache = InMemoryTTLCache()
        cache.set("560001", True, ttl_seconds=60)
        sources = _Sources()
        result = _validate(PincodeChecker(cache=cache, transport=httpx.MockTransport(sources)), "560001")
        assert result.source == "cache"
        assert sources.requests == []
