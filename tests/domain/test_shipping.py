"""Tests for shipping cost resolution."""

import pytest

from storeprofit.domain.schemas import LineItem
from storeprofit.domain.shipping import (
    CANADA,
    EU,
    EXPRESS,
    STANDARD,
    USA,
    ShippingMatrix,
    compute_shipping_for_line_item,
    normalize_method,
    normalize_region,
    tier_cost,
)

TIERS = {1: 5.0, 2: 8.0, 3: 11.0}


def test_greedy_decomposition_above_max_tier():
    """5 units -> tiers 3 + 2 -> 11 + 8."""
    assert tier_cost(TIERS, 5) == 19.0


def test_exact_lookup_within_range():
    assert tier_cost(TIERS, 2) == 8.0
    assert tier_cost({1: 5.0, 3: 11.0}, 2) == 0.0  # never interpolated


def test_greedy_uses_largest_fitting_tier_repeatedly():
    assert tier_cost(TIERS, 7) == 11.0 + 11.0 + 5.0


def test_zero_quantity_or_empty_table():
    assert tier_cost(TIERS, 0) == 0.0
    assert tier_cost({}, 3) == 0.0


@pytest.mark.parametrize(
    "country,expected",
    [
        ("US", USA),
        ("usa", USA),
        ("United States", USA),
        ("United States of America", USA),
        ("CA", CANADA),
        ("Canada", CANADA),
        ("DE", EU),
        ("Greece", EU),
        ("AU", EU),
        (None, None),
        ("  ", None),
    ],
)
def test_normalize_region(country, expected):
    assert normalize_region(country) == expected


@pytest.mark.parametrize(
    "label,expected",
    [
        ("Express Shipping", EXPRESS),
        ("DHL Expedited", EXPRESS),
        ("Priority Mail", EXPRESS),
        ("Free Shipping", STANDARD),
        ("Standard", STANDARD),
        (None, STANDARD),
    ],
)
def test_normalize_method(label, expected):
    assert normalize_method(label) == expected


def test_matrix_shapes_and_key_aliases():
    legacy = ShippingMatrix.from_config({"US": {"Standard": {"1": 5, "2": 8}}})
    wrapped = ShippingMatrix.from_config(
        {"currency": "EUR", "rates": {"USA": {"free": {"1": 4}}, "EU": {"express": {"1": 9}}}}
    )

    assert legacy.currency == "USD"
    assert legacy.tiers(USA, STANDARD) == {1: 5.0, 2: 8.0}
    assert wrapped.currency == "EUR"
    assert wrapped.tiers(USA, STANDARD) == {1: 4.0}
    assert wrapped.tiers(EU, EXPRESS) == {1: 9.0}
    assert wrapped.tiers(CANADA, STANDARD) == {}


def test_matrix_from_invalid_config():
    assert ShippingMatrix.from_config(None) is None
    assert ShippingMatrix.from_config({}) is None
    assert ShippingMatrix.from_config(["US"]) is None


def test_non_numeric_tier_cost_is_zero():
    matrix = ShippingMatrix.from_config({"US": {"Standard": {"1": "n/a", "x": 3}}})
    assert matrix.tiers(USA, STANDARD) == {1: 0.0}


def test_eur_matrix_converted_with_rate():
    rate = 1.1
    item = LineItem(variant_id="1", quantity=2)
    matrix = ShippingMatrix.from_config({"currency": "EUR", "rates": {"EU": {"Standard": {"2": 7}}}})

    usd = compute_shipping_for_line_item(item, EU, STANDARD, matrix, rate)

    assert usd == pytest.approx(7 * rate)
    assert usd / rate == pytest.approx(7)


def test_missing_region_or_matrix_costs_nothing():
    item = LineItem(variant_id="1", quantity=2)
    matrix = ShippingMatrix.from_config({"US": {"Standard": {"2": 8}}})

    assert compute_shipping_for_line_item(item, None, STANDARD, matrix, 1.1) == 0.0
    assert compute_shipping_for_line_item(item, USA, STANDARD, None, 1.1) == 0.0
    assert compute_shipping_for_line_item(item, USA, STANDARD, matrix, 1.1) == 8.0
