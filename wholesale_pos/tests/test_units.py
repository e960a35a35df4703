import math

import pytest

from wholesale_pos.utils.units import (
    describe_sale_mode,
    from_base_units,
    parse_multiplier,
    to_base_units,
    to_fraction,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1/2", 0.5),
        ("1/4", 0.25),
        (" 3/4 ", 0.75),
        ("0.5", 0.5),
        ("2", 2.0),
        (2, 2.0),
        (0.125, 0.125),
        ("1 1/2", 1.5),
        ("12 pieces", 12.0),
    ],
)
def test_parse_multiplier_values(raw, expected):
    assert parse_multiplier(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "abc", None, 0, -3, "-1/2", "1/0", "0", float("nan"), float("inf"), "/", True],
)
def test_parse_multiplier_falls_back_to_one(raw):
    assert parse_multiplier(raw) == 1


def test_parse_multiplier_is_always_finite_and_positive():
    samples = ["1/3", "x/y", "5/", "/5", "1e3", ".5", "++1", "7/2/3", " 2 / 8 ", "NaN", "-0"]
    for s in samples:
        v = parse_multiplier(s)
        assert math.isfinite(v) and v > 0, s


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.5, "1/2"),
        (0.3333333, "1/3"),
        (0.25, "1/4"),
        (1.5, "1 1/2"),
        (3, "3"),
        (1.0, "1"),
        (-1, "0"),
        (0, "0"),
        (float("nan"), "0"),
        ("junk", "0"),
    ],
)
def test_to_fraction(value, expected):
    assert to_fraction(value) == expected


def test_to_fraction_without_small_denominator_uses_two_decimals():
    assert to_fraction(0.0071) == "0.01"


def test_fraction_round_trips_for_denominators_up_to_64():
    for den in range(1, 65):
        for num in range(1, 2 * den + 1):
            value = num / den
            assert abs(parse_multiplier(to_fraction(value)) - value) < 1e-6, (num, den)


def test_base_unit_conversions():
    assert to_base_units(3, 0.5) == 1.5
    assert from_base_units(1.5, 0.5) == 3
    assert from_base_units(4, "1/4") == 16
    assert to_base_units(3, 1 / 3) == 1.0


def test_describe_sale_mode():
    assert describe_sale_mode(" Half Carton ", 0.5) == "Half Carton (1/2)"
    assert describe_sale_mode("Carton", 1) == "Carton (1)"
