"""Collateral valuation math"""

import random
from decimal import Decimal

from lamf_servicing.domain.exceptions import ValidationError
from lamf_servicing.utils.money import HUNDRED, as_decimal

NAV_PRECISION = Decimal("0.0001")


def collateral_value(units: Decimal, nav: Decimal) -> Decimal:
    """Market value of a position: units × NAV"""
    nav = as_decimal(nav)
    if nav <= 0:
        raise ValidationError(f"NAV must be positive, got {nav}")
    return as_decimal(units) * nav


def fluctuate_nav(nav: Decimal, max_fluctuation_percent: Decimal, rng: random.Random) -> Decimal:
    """
    Simulated daily NAV move, uniform within ±max_fluctuation_percent.

    Used by the daily NAV job when no market feed is wired in.
    """
    spread = as_decimal(max_fluctuation_percent)
    move = Decimal(str(rng.uniform(-1.0, 1.0))) * spread / HUNDRED
    return (as_decimal(nav) * (1 + move)).quantize(NAV_PRECISION)
