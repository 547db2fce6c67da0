from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

from ..catalog.schema import MinimumChargeTier
from .frequency import charges_per_year
from .tiers import match_tier

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinimumChargeResult:
    final_amount: float
    applied: bool
    minimum_amount: float = 0.0
    exact: bool = True  # False when the minimum came from a fallback tier


def _minimum(
    total_mw: float,
    frequency: str,
    tiers: Sequence[MinimumChargeTier],
    site_count: int,
    period_multiplier: float,
    minimum_annual_value: float,
) -> Tuple[float, bool]:
    match = match_tier(total_mw, tiers)
    if match is None:
        return minimum_annual_value * period_multiplier, True
    per_year = match.tier.charge_per_site * max(site_count, 0) * charges_per_year(frequency)
    return per_year * period_multiplier, match.exact


def minimum_for(
    total_mw: float,
    frequency: str,
    tiers: Sequence[MinimumChargeTier],
    site_count: int,
    *,
    period_multiplier: float = 1.0,
    minimum_annual_value: float = 0.0,
) -> float:
    """Floor for one invoice.

    With tiers: ``charge_per_site * site_count``, times 12 for monthly site
    charges, scaled to the invoice period. Without tiers: the flat minimum
    annual value scaled to the period.
    """

    return _minimum(total_mw, frequency, tiers, site_count, period_multiplier, minimum_annual_value)[0]


def enforce_minimum(
    computed_subtotal: float,
    total_mw: float,
    frequency: str,
    tiers: Sequence[MinimumChargeTier],
    site_count: int,
    *,
    period_multiplier: float = 1.0,
    minimum_annual_value: float = 0.0,
) -> MinimumChargeResult:
    minimum, exact = _minimum(total_mw, frequency, tiers, site_count, period_multiplier, minimum_annual_value)
    if minimum > computed_subtotal:
        _LOGGER.debug("Minimum charge %.2f replaces subtotal %.2f", minimum, computed_subtotal)
        return MinimumChargeResult(final_amount=minimum, applied=True, minimum_amount=minimum, exact=exact)
    return MinimumChargeResult(final_amount=computed_subtotal, applied=False, minimum_amount=minimum, exact=exact)
