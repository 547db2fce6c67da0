"""Load-time checks for tier tables.

Tables are validated once, when the catalog or a contract is loaded. The
resolver in ``pricing.tiers`` never raises for a bad table; it falls back and
logs instead, so anything that must halt invoicing has to be caught here.
"""

from __future__ import annotations

from typing import Sequence

from ..errors import ConfigurationError
from .schema import PortfolioDiscountTier

# Consecutive brackets may leave at most one unit uncovered: integer quantity
# tables are written 0-10 / 11-20 and MW tables 0-49.99 / 50-99.99.
MAX_TIER_GAP = 1.0


def sort_tiers(tiers: Sequence) -> list:
    return sorted(tiers, key=lambda t: t.lower)


def validate_tiers(tiers: Sequence, *, ctx: str) -> None:
    """Raise ConfigurationError unless ``tiers`` is contiguous with an open tail."""

    if not tiers:
        return

    ordered = sort_tiers(tiers)
    for i, tier in enumerate(ordered):
        if tier.lower < 0:
            raise ConfigurationError(f"Negative tier lower bound {tier.lower} in {ctx}[{i}]")
        if tier.upper is not None and tier.upper < tier.lower:
            raise ConfigurationError(
                f"Tier upper bound {tier.upper} below lower bound {tier.lower} in {ctx}[{i}]"
            )

    for i, (prev, cur) in enumerate(zip(ordered, ordered[1:]), start=1):
        if prev.upper is None:
            raise ConfigurationError(f"Only the last tier may be unbounded in {ctx} (tier {i - 1})")
        if cur.lower < prev.upper:
            raise ConfigurationError(
                f"Overlapping tiers in {ctx}: [{prev.lower}, {prev.upper}] and starting at {cur.lower}"
            )
        if cur.lower - prev.upper > MAX_TIER_GAP:
            raise ConfigurationError(
                f"Non-contiguous tiers in {ctx}: gap between {prev.upper} and {cur.lower}"
            )

    if ordered[-1].upper is not None:
        raise ConfigurationError(f"Last tier must be unbounded (max = null) in {ctx}")


def validate_discount_tiers(tiers: Sequence[PortfolioDiscountTier], *, ctx: str) -> None:
    validate_tiers(tiers, ctx=ctx)
    for i, tier in enumerate(tiers):
        if not 0.0 <= tier.discount_percent < 1.0:
            raise ConfigurationError(
                f"discount_percent must be a fraction in [0, 1) in {ctx}[{i}], got {tier.discount_percent}"
            )
