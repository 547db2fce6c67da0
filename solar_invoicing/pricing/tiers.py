"""Tier matching and tiered cost.

Two billing policies live here and are deliberately kept apart:

- ``resolve_tier``: non-graduated. The matched bracket's unit price applies to
  the whole quantity (addon quantity tiers, discount and minimum brackets).
- ``graduated_cost``: marginal. Each bracket bills only the slice of the
  quantity that falls inside it (MW-graduated packages).

Neither function raises on a malformed table. Tables are validated when they
are loaded (``catalog.validation``); at invoice time a gap falls back to the
last tier and is logged, except for the narrow gaps the loader accepts.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from ..catalog.schema import PricingTier
from ..catalog.validation import MAX_TIER_GAP, sort_tiers, validate_tiers

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "BracketCost",
    "GraduatedCost",
    "TierMatch",
    "TierResolution",
    "graduated_cost",
    "match_tier",
    "resolve_tier",
    "tier_contains",
    "validate_tiers",
]


@dataclass(frozen=True)
class TierMatch:
    tier: Any
    exact: bool = True  # False when a fallback tier was used


@dataclass(frozen=True)
class TierResolution:
    tier: Optional[PricingTier]
    unit_price: float
    used_fallback: bool = False  # True when no tier table was available
    exact: bool = True


@dataclass(frozen=True)
class BracketCost:
    tier: PricingTier
    quantity: float
    cost: float


@dataclass(frozen=True)
class GraduatedCost:
    total: float
    breakdown: Tuple[BracketCost, ...] = ()
    exact: bool = True


def tier_contains(tier: Any, quantity: float) -> bool:
    upper = tier.upper if tier.upper is not None else math.inf
    return tier.lower <= quantity <= upper


def match_tier(quantity: float, tiers: Sequence[Any]) -> Optional[TierMatch]:
    """Return the tier whose bracket contains ``quantity``.

    Works on any tier shape exposing ``lower``/``upper``. The input does not
    need to be sorted. A quantity inside a gap the loader accepts (at most
    ``MAX_TIER_GAP`` wide, e.g. 49.995 between ``0-49.99`` and ``50+``) belongs
    to the preceding tier. Wider gaps fall back to the last tier.
    """

    if not tiers:
        return None

    ordered = sort_tiers(tiers)
    for tier in ordered:
        if tier_contains(tier, quantity):
            return TierMatch(tier=tier, exact=True)

    if quantity < ordered[0].lower:
        _LOGGER.warning(
            "Quantity %s is below the first tier (starts at %s); using the first tier",
            quantity,
            ordered[0].lower,
        )
        return TierMatch(tier=ordered[0], exact=False)

    for prev, nxt in zip(ordered, ordered[1:]):
        if prev.upper is not None and prev.upper < quantity < nxt.lower:
            if nxt.lower - prev.upper <= MAX_TIER_GAP:
                return TierMatch(tier=prev, exact=True)
            break

    _LOGGER.warning(
        "No tier covers quantity %s (tier table has a gap); falling back to last tier %s",
        quantity,
        ordered[-1].label or f"[{ordered[-1].lower}, {ordered[-1].upper}]",
    )
    return TierMatch(tier=ordered[-1], exact=False)


def resolve_tier(quantity: float, tiers: Sequence[PricingTier], fallback_price: float = 0.0) -> TierResolution:
    match = match_tier(quantity, tiers)
    if match is None:
        return TierResolution(tier=None, unit_price=float(fallback_price), used_fallback=True)
    return TierResolution(tier=match.tier, unit_price=match.tier.price_per_unit, exact=match.exact)


def graduated_cost(quantity: float, tiers: Sequence[PricingTier]) -> GraduatedCost:
    """Bracket-by-bracket cost of ``quantity``.

    A bracket runs from its lower bound to the next tier's lower bound, so
    ``0-10 / 11-20 / 21+`` holds 11, 10 and the rest. With tiers ``0-5 @ 1000``
    and ``5+ @ 800``, 8 units cost ``5 * 1000 + 3 * 800 = 7400``.
    """

    if not tiers or quantity <= 0:
        return GraduatedCost(total=0.0, exact=bool(tiers))

    ordered = sort_tiers(tiers)
    exact = ordered[0].lower == 0

    remaining = float(quantity)
    total = 0.0
    breakdown = []
    for i, tier in enumerate(ordered):
        if remaining <= 0:
            break
        if i + 1 < len(ordered):
            nxt = ordered[i + 1]
            capacity = nxt.lower - tier.lower
            wide_gap = tier.upper is not None and nxt.lower - tier.upper > MAX_TIER_GAP
            if wide_gap and remaining > tier.upper - tier.lower:
                exact = False
        else:
            capacity = math.inf if tier.upper is None else tier.upper - tier.lower
        take = min(remaining, capacity)
        if take <= 0:
            continue
        cost = take * tier.price_per_unit
        breakdown.append(BracketCost(tier=tier, quantity=take, cost=cost))
        total += cost
        remaining -= take

    if remaining > 0:
        # Bounded last tier: bill the overflow at the last rate.
        last = ordered[-1]
        _LOGGER.warning(
            "Graduated tiers end at %s but quantity is %s; billing the remainder at the last tier rate",
            last.upper,
            quantity,
        )
        cost = remaining * last.price_per_unit
        breakdown.append(BracketCost(tier=last, quantity=remaining, cost=cost))
        total += cost
        exact = False

    return GraduatedCost(total=total, breakdown=tuple(breakdown), exact=exact)
