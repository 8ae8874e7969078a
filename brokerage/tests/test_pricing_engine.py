"""
Pricing engine and geo collaborator tests.

The HTTP collaborators run against httpx.MockTransport; the engine itself
runs against the in-memory fakes from conftest.
"""

import json

import httpx
import pytest

from brokerage.app.core.exceptions import GeocodeError, RouteError
from brokerage.app.core.reliability import CircuitBreaker
from brokerage.app.domain.pricing.pricing_engine import GeoPoint, PackageDimensions
from brokerage.app.domain.pricing.tariffs import Advisory, Lane
from brokerage.app.services.geo_clients import NominatimGeocoder, OsrmRouter

from conftest import LISBON, MADRID, PARIS, PORTO, ZURICH

CUBE = PackageDimensions(height_cm=100, width_cm=100, depth_cm=100)


def nominatim_transport(calls, results=None, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "unavailable"})
        body = results if results is not None else [
            {"lat": "38.7103", "lon": "-9.1366", "address": {"country_code": "pt"}}
        ]
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


class BrokenCache:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis down")


# Pricing engine

@pytest.mark.asyncio
async def test_domestic_estimate(pricing_engine):
    estimate = await pricing_engine.estimate(LISBON, PORTO, CUBE, 100)

    assert estimate.distance_km == 313
    assert estimate.volume_m3 == 1.0
    assert estimate.lane is Lane.PT_PT
    assert estimate.price == 125
    assert estimate.approx_flag is False
    assert estimate.note is None
    assert estimate.pickup.country_code == "PT"


@pytest.mark.asyncio
async def test_cross_border_estimates(pricing_engine, router):
    router.meters = 1_740_000
    to_paris = await pricing_engine.estimate(LISBON, PARIS, CUBE, 200)
    to_zurich = await pricing_engine.estimate(LISBON, ZURICH, CUBE, 200)

    assert (to_paris.lane, to_paris.price) == (Lane.PT_FR, 220)
    assert (to_zurich.lane, to_zurich.price) == (Lane.PT_CH, 300)
    assert to_paris.advisories == (Advisory.CROSS_BORDER_CUSTOMS,)


@pytest.mark.asyncio
async def test_generic_estimate(pricing_engine, router):
    router.meters = 100_000
    estimate = await pricing_engine.estimate(MADRID, LISBON, CUBE, 50)

    assert estimate.lane is Lane.GENERIC
    assert estimate.price == 270.00
    assert estimate.note


@pytest.mark.asyncio
async def test_heavy_package_is_approximate(pricing_engine):
    estimate = await pricing_engine.estimate(LISBON, PORTO, CUBE, 1800)

    assert estimate.approx_flag is True
    assert estimate.price == 235
    assert Advisory.HEAVY_APPROXIMATION in estimate.advisories


@pytest.mark.asyncio
async def test_unknown_address_raises_geocode_error(pricing_engine):
    with pytest.raises(GeocodeError) as exc_info:
        await pricing_engine.estimate("Nowhere 0, Atlantis", PORTO, CUBE, 10)
    assert exc_info.value.error_code == "ERR_GEOCODE"


@pytest.mark.asyncio
async def test_router_failure_is_not_retried(pricing_engine, router, geocoder):
    router.fail = True
    with pytest.raises(RouteError):
        await pricing_engine.estimate(LISBON, PORTO, CUBE, 10)
    assert len(geocoder.calls) == 2


# Nominatim geocoder

@pytest.mark.asyncio
async def test_geocoder_parses_and_caches(redis_client_session):
    calls = []
    async with httpx.AsyncClient(transport=nominatim_transport(calls)) as http:
        geocoder = NominatimGeocoder(
            base_url="https://geo.test",
            client=http,
            breaker=CircuitBreaker(failure_threshold=2, name="test-geocoder"),
            cache=redis_client_session,
        )
        first = await geocoder.geocode(" Rua Augusta 100, Lisboa ")
        second = await geocoder.geocode("Rua Augusta 100, Lisboa")

    assert first == GeoPoint(latitude=38.7103, longitude=-9.1366, country_code="PT")
    assert second == first
    assert len(calls) == 1

    request = calls[0]
    assert request.url.path == "/search"
    assert request.url.params["format"] == "json"
    assert request.url.params["limit"] == "1"
    assert request.url.params["q"] == "Rua Augusta 100, Lisboa"

    key = "geocode:rua augusta 100, lisboa"
    assert json.loads(redis_client_session.store[key])["country_code"] == "PT"
    assert redis_client_session.ttls[key] > 0


@pytest.mark.asyncio
async def test_geocoder_no_match_does_not_trip_breaker(redis_client_session):
    calls = []
    breaker = CircuitBreaker(failure_threshold=1, name="test-geocoder")
    async with httpx.AsyncClient(transport=nominatim_transport(calls, results=[])) as http:
        geocoder = NominatimGeocoder(client=http, breaker=breaker, cache=redis_client_session)
        with pytest.raises(GeocodeError):
            await geocoder.geocode("Atlantis")

    assert breaker.state == "CLOSED"
    assert redis_client_session.store == {}


@pytest.mark.asyncio
async def test_geocoder_outage_opens_circuit(redis_client_session):
    calls = []
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=60, name="test-geocoder")
    async with httpx.AsyncClient(transport=nominatim_transport(calls, status_code=503)) as http:
        geocoder = NominatimGeocoder(client=http, breaker=breaker, use_cache=False)
        for _ in range(2):
            with pytest.raises(GeocodeError):
                await geocoder.geocode(LISBON)

        with pytest.raises(GeocodeError) as exc_info:
            await geocoder.geocode(LISBON)

    assert breaker.state == "OPEN"
    assert len(calls) == 2
    assert "OPEN" in exc_info.value.details["reason"]


@pytest.mark.asyncio
async def test_geocoder_bypasses_broken_cache():
    calls = []
    async with httpx.AsyncClient(transport=nominatim_transport(calls)) as http:
        geocoder = NominatimGeocoder(
            client=http,
            breaker=CircuitBreaker(name="test-geocoder"),
            cache=BrokenCache(),
        )
        point = await geocoder.geocode(LISBON)

    assert point.country_code == "PT"
    assert len(calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("entry", ["not json", json.dumps({"lat": 1.0, "lon": 2.0})])
async def test_geocoder_ignores_unreadable_cache_entry(redis_client_session, entry):
    calls = []
    redis_client_session.store["geocode:rua augusta 100, lisboa"] = entry
    async with httpx.AsyncClient(transport=nominatim_transport(calls)) as http:
        geocoder = NominatimGeocoder(
            client=http,
            breaker=CircuitBreaker(name="test-geocoder"),
            cache=redis_client_session,
        )
        point = await geocoder.geocode("Rua Augusta 100, Lisboa")

    assert point.country_code == "PT"
    assert len(calls) == 1
    key = "geocode:rua augusta 100, lisboa"
    assert json.loads(redis_client_session.store[key])["latitude"] == 38.7103


# OSRM router

@pytest.mark.asyncio
async def test_router_reads_first_route_distance():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": "Ok", "routes": [{"distance": 313412.7}, {"distance": 1.0}]})

    origin = GeoPoint(38.7103, -9.1366, "PT")
    destination = GeoPoint(41.1469, -8.611, "PT")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        router = OsrmRouter(base_url="https://osrm.test", client=http, breaker=CircuitBreaker(name="test-router"))
        meters = await router.distance_meters(origin, destination)

    assert meters == 313412.7
    assert seen[0].url.path == "/route/v1/driving/-9.1366,38.7103;-8.611,41.1469"
    assert seen[0].url.params["overview"] == "false"


@pytest.mark.asyncio
async def test_router_without_route_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "message": "Impossible route", "routes": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        router = OsrmRouter(client=http, breaker=CircuitBreaker(name="test-router"))
        with pytest.raises(RouteError) as exc_info:
            await router.distance_meters(GeoPoint(0, 0, None), GeoPoint(1, 1, None))

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_router_no_route_does_not_trip_breaker():
    breaker = CircuitBreaker(failure_threshold=1, name="test-router")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "routes": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        router = OsrmRouter(client=http, breaker=breaker)
        for _ in range(2):
            with pytest.raises(RouteError):
                await router.distance_meters(GeoPoint(0, 0, None), GeoPoint(1, 1, None))

    assert breaker.state == "CLOSED"


@pytest.mark.asyncio
async def test_router_route_without_distance_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 12.5}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        router = OsrmRouter(client=http, breaker=CircuitBreaker(name="test-router"))
        with pytest.raises(RouteError) as exc_info:
            await router.distance_meters(GeoPoint(0, 0, None), GeoPoint(1, 1, None))

    assert exc_info.value.status_code == 502
    assert "Malformed" in exc_info.value.message
