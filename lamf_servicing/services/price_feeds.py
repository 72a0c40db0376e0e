"""NAV sources for the valuation batch"""

import random
from decimal import Decimal
from typing import Mapping, Optional, Protocol

from lamf_servicing.domain.exceptions import PriceUnavailableError
from lamf_servicing.domain.valuation import fluctuate_nav
from lamf_servicing.infrastructure.database.models import Collateral
from lamf_servicing.utils.money import as_decimal


class PriceFeed(Protocol):
    def price_for(self, collateral: Collateral) -> Decimal: ...


class RandomWalkPriceFeed:
    """Simulated market: each NAV moves uniformly within ±max_fluctuation_percent"""

    def __init__(self, max_fluctuation_percent: Decimal, seed: Optional[int] = None):
        self.max_fluctuation_percent = as_decimal(max_fluctuation_percent)
        self.rng = random.Random(seed)

    def price_for(self, collateral: Collateral) -> Decimal:
        return fluctuate_nav(collateral.current_nav, self.max_fluctuation_percent, self.rng)


class StaticPriceFeed:
    """Published NAVs keyed by scheme code, or by collateral id for one-off overrides"""

    def __init__(self, prices: Mapping[str, Decimal]):
        self.prices = {key: as_decimal(nav) for key, nav in prices.items()}

    def price_for(self, collateral: Collateral) -> Decimal:
        for key in (str(collateral.id), collateral.scheme_code):
            if key is not None and key in self.prices:
                return self.prices[key]
        raise PriceUnavailableError(f"No NAV published for collateral {collateral.id} ({collateral.scheme_code})")
