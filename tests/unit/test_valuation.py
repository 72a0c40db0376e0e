"""Unit tests for collateral valuation and price feeds"""

import random
import pytest
from decimal import Decimal
from types import SimpleNamespace
from lamf_servicing.domain.exceptions import PriceUnavailableError, ValidationError
from lamf_servicing.domain.valuation import collateral_value, fluctuate_nav
from lamf_servicing.services.price_feeds import RandomWalkPriceFeed, StaticPriceFeed


def test_value_is_units_times_nav():
    assert collateral_value(Decimal("1234.5678"), Decimal("45.25")) == Decimal("1234.5678") * Decimal("45.25")


@pytest.mark.parametrize("nav", [Decimal("0"), Decimal("-12.5")])
def test_non_positive_nav_rejected(nav):
    with pytest.raises(ValidationError):
        collateral_value(Decimal("100"), nav)


def test_fluctuation_stays_within_band():
    """Test simulated NAV moves at most ±2%"""
    rng = random.Random(42)
    for _ in range(200):
        nav = fluctuate_nav(Decimal("100"), Decimal("2"), rng)
        assert Decimal("98") <= nav <= Decimal("102")
        assert nav == nav.quantize(Decimal("0.0001"))


def test_random_walk_feed_is_reproducible_with_seed():
    position = SimpleNamespace(id="c1", scheme_code="INF-EQ-001", current_nav=Decimal("250"))

    first = RandomWalkPriceFeed(Decimal("2"), seed=7).price_for(position)
    second = RandomWalkPriceFeed(Decimal("2"), seed=7).price_for(position)

    assert first == second


def test_static_feed_by_scheme_code():
    position = SimpleNamespace(id="c1", scheme_code="INF-EQ-001", current_nav=Decimal("250"))
    feed = StaticPriceFeed({"INF-EQ-001": Decimal("240.5")})

    assert feed.price_for(position) == Decimal("240.5")


def test_static_feed_missing_price():
    position = SimpleNamespace(id="c1", scheme_code="INF-EQ-002", current_nav=Decimal("250"))

    with pytest.raises(PriceUnavailableError):
        StaticPriceFeed({}).price_for(position)
