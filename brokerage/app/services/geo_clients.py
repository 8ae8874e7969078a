"""
Geocoding and routing collaborators.

Nominatim-compatible geocoder and OSRM-compatible router over httpx,
each guarded by its circuit breaker. Geocode results are cached in Redis;
a cache outage only costs a lookup.
"""

import json
import logging
from typing import Optional

import httpx

from brokerage.app.core.config import settings
from brokerage.app.core.exceptions import GeocodeError, RouteError
from brokerage.app.core.reliability import (
    CircuitBreaker, CircuitOpenError, geocoder_circuit_breaker, router_circuit_breaker
)
from brokerage.app.core import redis_client as redis_client_module
from brokerage.app.domain.pricing.pricing_engine import GeoPoint

logger = logging.getLogger(__name__)

GEOCODE_CACHE_PREFIX = "geocode:"


def _http_client(client: Optional[httpx.AsyncClient]) -> httpx.AsyncClient:
    if client is not None:
        return client
    return httpx.AsyncClient(
        timeout=settings.geo_timeout_seconds,
        headers={"User-Agent": settings.geo_user_agent},
    )


class NominatimGeocoder:

    def __init__(
        self,
        base_url: str = None,
        client: Optional[httpx.AsyncClient] = None,
        breaker: CircuitBreaker = None,
        cache=None,
        use_cache: bool = True,
    ):
        self.base_url = (base_url or settings.geocoder_base_url).rstrip("/")
        self._client = client
        self.breaker = breaker or geocoder_circuit_breaker
        self._cache = cache
        self.use_cache = use_cache

    @property
    def cache(self):
        # Resolved lazily so tests can swap the shared client
        return self._cache if self._cache is not None else redis_client_module.redis_client

    async def geocode(self, address: str) -> GeoPoint:
        address = address.strip()
        if not address:
            raise GeocodeError(address, "Empty address")

        cached = await self._cache_get(address)
        if cached is not None:
            return cached

        try:
            point = await self.breaker.call(self._lookup, address)
        except CircuitOpenError as e:
            raise GeocodeError(address, str(e))

        if point is None:
            raise GeocodeError(address, "No match")

        await self._cache_set(address, point)
        return point

    async def _lookup(self, address: str) -> Optional[GeoPoint]:
        params = {"format": "json", "limit": 1, "addressdetails": 1, "q": address}
        client = _http_client(self._client)
        try:
            response = await client.get(f"{self.base_url}/search", params=params)
            response.raise_for_status()
            results = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Geocoding request failed for %r: %s", address, e)
            raise GeocodeError(address, f"Geocoder unavailable: {e}")
        finally:
            if self._client is None:
                await client.aclose()

        if not results:
            # A "no match" answer is not a collaborator failure
            return None

        first = results[0]
        try:
            country = (first.get("address") or {}).get("country_code")
            return GeoPoint(
                latitude=float(first["lat"]),
                longitude=float(first["lon"]),
                country_code=country.upper() if country else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeError(address, f"Malformed geocoder response: {e}")

    async def _cache_get(self, address: str) -> Optional[GeoPoint]:
        if not self.use_cache:
            return None
        try:
            raw = await self.cache.get(_cache_key(address))
        except Exception as e:
            logger.warning("Geocode cache read failed: %s", e)
            return None
        if not raw:
            return None
        try:
            return GeoPoint(**json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable geocode cache entry for %r: %s", address, e)
            return None

    async def _cache_set(self, address: str, point: GeoPoint) -> None:
        if not self.use_cache:
            return
        payload = json.dumps({
            "latitude": point.latitude,
            "longitude": point.longitude,
            "country_code": point.country_code,
        })
        try:
            await self.cache.set(
                _cache_key(address), payload, ex=settings.geocode_cache_ttl_seconds
            )
        except Exception as e:
            logger.warning("Geocode cache write failed: %s", e)


class OsrmRouter:

    def __init__(
        self,
        base_url: str = None,
        client: Optional[httpx.AsyncClient] = None,
        breaker: CircuitBreaker = None,
    ):
        self.base_url = (base_url or settings.router_base_url).rstrip("/")
        self._client = client
        self.breaker = breaker or router_circuit_breaker

    async def distance_meters(self, origin: GeoPoint, destination: GeoPoint) -> float:
        try:
            route = await self.breaker.call(self._route, origin, destination)
        except CircuitOpenError as e:
            raise RouteError(str(e))

        if route is None:
            raise RouteError("No route found")
        try:
            return float(route["distance"])
        except (KeyError, TypeError, ValueError) as e:
            raise RouteError(f"Malformed router response: {e}")

    async def _route(self, origin: GeoPoint, destination: GeoPoint) -> Optional[dict]:
        coordinates = (
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )
        client = _http_client(self._client)
        try:
            response = await client.get(
                f"{self.base_url}/route/v1/driving/{coordinates}",
                params={"overview": "false"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Routing request failed: %s", e)
            raise RouteError(f"Router unavailable: {e}")
        finally:
            if self._client is None:
                await client.aclose()

        if not isinstance(data, dict):
            raise RouteError("Malformed router response")
        routes = data.get("routes") or []
        if data.get("code", "Ok") != "Ok" or not routes:
            # An unroutable pair is not a collaborator failure
            logger.info("No route: %s", data.get("message") or data.get("code"))
            return None
        return routes[0]


def _cache_key(address: str) -> str:
    return f"{GEOCODE_CACHE_PREFIX}{address.lower()}"
