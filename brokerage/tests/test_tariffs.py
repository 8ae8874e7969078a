"""
Tariff table tests.

The price computation is pure, so it is checked over the whole band and
bracket grid.
"""

import pytest

from brokerage.app.domain.pricing import tariffs
from brokerage.app.domain.pricing.tariffs import Advisory, Lane


@pytest.mark.parametrize("weight,expected", [
    (0, (0, False)),
    (150, (0, False)),
    (150.01, (1, False)),
    (300, (1, False)),
    (600, (2, False)),
    (1000, (3, False)),
    (1000.5, (3, True)),
    (25000, (3, True)),
])
def test_weight_band_boundaries(weight, expected):
    assert tariffs.weight_band(weight) == expected


def test_negative_weight_is_rejected():
    with pytest.raises(ValueError):
        tariffs.weight_band(-1)


@pytest.mark.parametrize("km,bracket", [
    (0, 0), (50, 0), (51, 1), (150, 1), (151, 2), (300, 2), (301, 3), (600, 3), (601, 4), (2500, 4),
])
def test_distance_brackets(km, bracket):
    assert tariffs.distance_bracket(km) == bracket


@pytest.mark.parametrize("bracket_km", [0, 10, 50])
@pytest.mark.parametrize("weight", [1, 75, 150])
def test_short_light_domestic_is_45(bracket_km, weight):
    quote = tariffs.quote("PT", "PT", bracket_km, 0.5, weight)
    assert quote.price == 45
    assert quote.lane is Lane.PT_PT
    assert quote.note is None


def test_domestic_grid_matches_table():
    distances = (25, 100, 200, 450, 900)
    weights = (100, 250, 500, 900)
    for row, km in enumerate(distances):
        for band, kg in enumerate(weights):
            quote = tariffs.quote("PT", "PT", km, 1.0, kg)
            assert quote.price == tariffs.PT_DOMESTIC_TABLE[row][band]
            assert quote.weight_band == band


def test_long_domestic_row():
    prices = [tariffs.quote("PT", "PT", 700, 1.0, kg).price for kg in (100, 250, 500, 900)]
    assert prices == [160, 190, 230, 280]


@pytest.mark.parametrize("km", [1, 300, 1800])
def test_france_ignores_distance(km):
    assert tariffs.quote("PT", "FR", km, 2.0, 200).price == 220


def test_france_and_switzerland_tables():
    weights = (100, 250, 500, 900)
    assert [tariffs.quote("PT", "FR", 1500, 1, kg).price for kg in weights] == [180, 220, 280, 340]
    assert [tariffs.quote("PT", "CH", 1500, 1, kg).price for kg in weights] == [250, 300, 380, 450]


def test_switzerland_band_one_is_300():
    quote = tariffs.quote("pt", "ch", 1700, 1.0, 299)
    assert quote.price == 300
    assert quote.lane is Lane.PT_CH
    assert Advisory.CROSS_BORDER_CUSTOMS in quote.advisories


def test_generic_formula_example():
    # 50 + 1.2 * 100 + max(100 * 1, 2 * 50)
    quote = tariffs.quote("ES", "PT", 100, 1.0, 50)
    assert quote.lane is Lane.GENERIC
    assert quote.price == 270.00
    assert quote.advisories == (Advisory.GENERIC_LANE,)


def test_generic_uses_larger_of_volume_and_weight():
    by_weight = tariffs.generic_price(10, 0.1, 400)
    by_volume = tariffs.generic_price(10, 9.0, 1)
    assert by_weight == 50 + 12 + 800
    assert by_volume == 50 + 12 + 900


def test_generic_rounds_half_up_to_cents():
    # 50 + 1.2 * 7 + 2 * 0.125 = 58.65
    assert tariffs.generic_price(7, 0.0, 0.125) == 58.65
    assert tariffs.round2(2.675) == 2.68


def test_reverse_corridor_is_generic():
    assert tariffs.select_lane("FR", "PT") is Lane.GENERIC
    assert tariffs.select_lane(None, "PT") is Lane.GENERIC


@pytest.mark.parametrize("origin,destination", [("PT", "PT"), ("PT", "FR"), ("PT", "CH"), ("DE", "IT")])
def test_heavy_weight_is_approximate_band_three(origin, destination):
    heavy = tariffs.quote(origin, destination, 120, 1.0, 1500)
    assert heavy.approximate is True
    assert heavy.weight_band == 3
    assert Advisory.HEAVY_APPROXIMATION in heavy.advisories
    if origin == "PT" and destination in ("PT", "FR", "CH"):
        assert heavy.price == tariffs.quote(origin, destination, 120, 1.0, 1000).price


def test_volume_from_centimeters():
    assert tariffs.volume_m3(100, 100, 100) == 1.0
    assert tariffs.volume_m3(50, 40, 30) == pytest.approx(0.06)


def test_meters_round_half_up_to_km():
    assert tariffs.meters_to_km(313_400) == 313
    assert tariffs.meters_to_km(49_500) == 50
    assert tariffs.meters_to_km(499) == 0


def test_note_joins_advisory_text():
    quote = tariffs.quote("PT", "FR", 10, 1.0, 5000)
    assert quote.note == " ".join(
        tariffs.ADVISORY_TEXT[code]
        for code in (Advisory.HEAVY_APPROXIMATION, Advisory.CROSS_BORDER_CUSTOMS)
    )
