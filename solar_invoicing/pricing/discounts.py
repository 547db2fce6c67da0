from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..catalog.schema import PortfolioDiscountTier
from .tiers import match_tier

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioDiscount:
    fraction: float = 0.0
    exact: bool = True  # False when a fallback tier was used

    def apply(self, base_rate_per_mw: float) -> float:
        return base_rate_per_mw * (1.0 - self.fraction)


def portfolio_discount_for(total_mw: float, tiers: Sequence[PortfolioDiscountTier]) -> PortfolioDiscount:
    match = match_tier(total_mw, tiers)
    if match is None:
        return PortfolioDiscount()
    if match.tier.discount_percent:
        _LOGGER.debug("Portfolio of %s MW gets a %.1f%% discount", total_mw, match.tier.discount_percent * 100)
    return PortfolioDiscount(fraction=match.tier.discount_percent, exact=match.exact)


def discount_fraction_for(total_mw: float, tiers: Sequence[PortfolioDiscountTier]) -> float:
    """Single portfolio-wide discount for ``total_mw`` (not marginal)."""

    return portfolio_discount_for(total_mw, tiers).fraction


def apply_portfolio_discount(
    base_rate_per_mw: float, total_mw: float, tiers: Sequence[PortfolioDiscountTier]
) -> float:
    return portfolio_discount_for(total_mw, tiers).apply(base_rate_per_mw)
