"""
Tariff tables and the pure price computation.

Given the two country codes, the road distance, the package volume and its
weight, `quote` selects a corridor and returns a deterministic price. No
I/O happens here.
"""

import enum
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

# Upper bounds (inclusive) of weight bands 0..3. Above the last bound the
# band-3 price is used as an approximation.
WEIGHT_BAND_LIMITS_KG: Tuple[int, ...] = (150, 300, 600, 1000)

# Upper bounds (inclusive) of the domestic distance brackets; a fifth
# bracket covers everything beyond the last bound.
PT_DISTANCE_BRACKETS_KM: Tuple[int, ...] = (50, 150, 300, 600)

# Rows: distance bracket, columns: weight band (EUR)
PT_DOMESTIC_TABLE: Tuple[Tuple[int, int, int, int], ...] = (
    (45, 60, 80, 100),     # <= 50 km
    (65, 85, 110, 135),    # <= 150 km
    (90, 115, 145, 180),   # <= 300 km
    (125, 150, 190, 235),  # <= 600 km
    (160, 190, 230, 280),  # > 600 km
)

# Generic lane formula coefficients
GENERIC_BASE_PRICE = Decimal("50")
GENERIC_PRICE_PER_KM = Decimal("1.2")
GENERIC_PRICE_PER_M3 = Decimal("100")
GENERIC_PRICE_PER_KG = Decimal("2")


class Lane(str, enum.Enum):
    PT_PT = "PT→PT"
    PT_FR = "PT→FR"
    PT_CH = "PT→CH"
    GENERIC = "GENERIC"


# Weight-band-only tables, distance ignored
CROSS_BORDER_TABLES = {
    Lane.PT_FR: (180, 220, 280, 340),
    Lane.PT_CH: (250, 300, 380, 450),
}


class Advisory(str, enum.Enum):
    """Language-neutral advisory codes attached to an estimate."""
    HEAVY_APPROXIMATION = "HEAVY_APPROXIMATION"
    CROSS_BORDER_CUSTOMS = "CROSS_BORDER_CUSTOMS"
    GENERIC_LANE = "GENERIC_LANE"


# Default English wording; the presentation layer localizes the codes.
ADVISORY_TEXT = {
    Advisory.HEAVY_APPROXIMATION: "Weight exceeds 1000 kg; price is an approximation based on the heaviest band.",
    Advisory.CROSS_BORDER_CUSTOMS: "Cross-border transport; customs documents may be required.",
    Advisory.GENERIC_LANE: "No fixed tariff for this corridor; price computed from distance, volume and weight.",
}


@dataclass(frozen=True)
class TariffQuote:
    price: float
    lane: Lane
    weight_band: int
    approximate: bool = False
    advisories: Tuple[Advisory, ...] = field(default_factory=tuple)

    @property
    def note(self) -> str | None:
        if not self.advisories:
            return None
        return " ".join(ADVISORY_TEXT[code] for code in self.advisories)


def round2(value) -> float:
    """Round half-up to cents."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def meters_to_km(meters: float) -> int:
    """Convert a routed distance to whole kilometers, half-up."""
    return int((Decimal(str(meters)) / 1000).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def volume_m3(height_cm: float, width_cm: float, depth_cm: float) -> float:
    return (height_cm / 100) * (width_cm / 100) * (depth_cm / 100)


def weight_band(weight_kg: float) -> Tuple[int, bool]:
    """
    Classify a weight into a band.

    Returns:
        (band index 0..3, approximate) where approximate is True when the
        weight is beyond the table's designed range.
    """
    if weight_kg < 0:
        raise ValueError(f"weight must be non-negative, got {weight_kg}")
    for index, limit in enumerate(WEIGHT_BAND_LIMITS_KG):
        if weight_kg <= limit:
            return index, False
    return len(WEIGHT_BAND_LIMITS_KG) - 1, True


def distance_bracket(distance_km: float) -> int:
    if distance_km < 0:
        raise ValueError(f"distance must be non-negative, got {distance_km}")
    for index, limit in enumerate(PT_DISTANCE_BRACKETS_KM):
        if distance_km <= limit:
            return index
    return len(PT_DISTANCE_BRACKETS_KM)


def generic_price(distance_km: float, volume: float, weight_kg: float) -> float:
    """round2(50 + 1.2 * km + max(100 * m3, 2 * kg))"""
    distance = Decimal(str(distance_km))
    by_volume = GENERIC_PRICE_PER_M3 * Decimal(str(volume))
    by_weight = GENERIC_PRICE_PER_KG * Decimal(str(weight_kg))
    return round2(GENERIC_BASE_PRICE + GENERIC_PRICE_PER_KM * distance + max(by_volume, by_weight))


def select_lane(origin_country: str | None, destination_country: str | None) -> Lane:
    origin = (origin_country or "").upper()
    destination = (destination_country or "").upper()
    if origin == "PT" and destination == "PT":
        return Lane.PT_PT
    if (origin, destination) == ("PT", "FR"):
        return Lane.PT_FR
    if (origin, destination) == ("PT", "CH"):
        return Lane.PT_CH
    return Lane.GENERIC


def quote(
    origin_country: str | None,
    destination_country: str | None,
    distance_km: float,
    volume: float,
    weight_kg: float,
) -> TariffQuote:
    """
    Price a shipment on its corridor.

    PT→PT uses the distance bracket × weight band table, PT→FR and PT→CH
    use weight-band-only tables, every other corridor uses the generic
    formula.
    """
    band, approximate = weight_band(weight_kg)
    lane = select_lane(origin_country, destination_country)
    advisories = []
    if approximate:
        advisories.append(Advisory.HEAVY_APPROXIMATION)

    if lane is Lane.PT_PT:
        price = PT_DOMESTIC_TABLE[distance_bracket(distance_km)][band]
    elif lane in CROSS_BORDER_TABLES:
        price = CROSS_BORDER_TABLES[lane][band]
        advisories.append(Advisory.CROSS_BORDER_CUSTOMS)
    else:
        price = generic_price(distance_km, volume, weight_kg)
        advisories.append(Advisory.GENERIC_LANE)

    return TariffQuote(
        price=round2(price),
        lane=lane,
        weight_band=band,
        approximate=approximate,
        advisories=tuple(advisories),
    )
