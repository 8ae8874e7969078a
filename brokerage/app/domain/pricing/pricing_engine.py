"""
Pricing Engine.

Resolves both addresses and the road distance through the injected
collaborators, then delegates to the tariff tables. Failures of either
lookup propagate as GeocodeError / RouteError; nothing is retried here,
the caller re-invokes explicitly.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol, Tuple

from brokerage.app.domain.pricing import tariffs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float
    country_code: str | None


@dataclass(frozen=True)
class PackageDimensions:
    height_cm: float
    width_cm: float
    depth_cm: float


@dataclass(frozen=True)
class PriceEstimate:
    distance_km: int
    volume_m3: float
    price: float
    lane: tariffs.Lane
    approx_flag: bool
    note: str | None
    pickup: GeoPoint
    destination: GeoPoint
    advisories: Tuple[tariffs.Advisory, ...] = field(default_factory=tuple)


class Geocoder(Protocol):
    async def geocode(self, address: str) -> GeoPoint:
        """Resolve an address or raise GeocodeError."""
        ...


class Router(Protocol):
    async def distance_meters(self, origin: GeoPoint, destination: GeoPoint) -> float:
        """Road distance in meters or raise RouteError."""
        ...


class PricingEngine:

    def __init__(self, geocoder: Geocoder, router: Router):
        self.geocoder = geocoder
        self.router = router

    async def estimate(
        self,
        pickup: str,
        destination: str,
        dims: PackageDimensions,
        weight_kg: float,
    ) -> PriceEstimate:
        """
        Estimate the price of moving a package between two addresses.

        Raises:
            GeocodeError: an address has no match
            RouteError: no road distance between the points
        """
        pickup_point, destination_point = await asyncio.gather(
            self.geocoder.geocode(pickup),
            self.geocoder.geocode(destination),
        )
        meters = await self.router.distance_meters(pickup_point, destination_point)
        distance_km = tariffs.meters_to_km(meters)

        volume = tariffs.volume_m3(dims.height_cm, dims.width_cm, dims.depth_cm)
        tariff = tariffs.quote(
            pickup_point.country_code,
            destination_point.country_code,
            distance_km,
            volume,
            weight_kg,
        )
        logger.debug(
            "Estimated %s lane=%s km=%s band=%s price=%s",
            (pickup, destination), tariff.lane.value, distance_km, tariff.weight_band, tariff.price,
        )

        return PriceEstimate(
            distance_km=distance_km,
            volume_m3=volume,
            price=tariff.price,
            lane=tariff.lane,
            approx_flag=tariff.approximate,
            note=tariff.note,
            pickup=pickup_point,
            destination=destination_point,
            advisories=tariff.advisories,
        )
