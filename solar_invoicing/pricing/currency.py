"""EUR normalization for reporting.

Rates are expressed as units of the source currency per EUR, the way the
accounting platform reports ``CurrencyRate`` for a EUR-based organisation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

_LOGGER = logging.getLogger(__name__)

# Approximate units per EUR. Degraded mode only; never authoritative.
FALLBACK_RATES_PER_EUR: Dict[str, float] = {
    "USD": 1.09,
    "GBP": 0.86,
    "NGN": 1600.0,
}

SOURCE_IDENTITY = "identity"
SOURCE_LIVE = "live"
SOURCE_FALLBACK = "fallback"
SOURCE_UNCONVERTED = "unconverted"


@dataclass(frozen=True)
class CurrencyConversion:
    amount_eur: float
    rate: Optional[float]
    source: str  # identity | live | fallback | unconverted

    @property
    def degraded(self) -> bool:
        return self.source in (SOURCE_FALLBACK, SOURCE_UNCONVERTED)


def _code(currency_code: Optional[str]) -> str:
    return (currency_code or "EUR").strip().upper()


def _resolve_rate(code: str, currency_rate: Optional[float]):
    if currency_rate is not None and currency_rate > 0:
        return currency_rate, SOURCE_LIVE
    fallback = FALLBACK_RATES_PER_EUR.get(code)
    if fallback:
        _LOGGER.warning("No live %s rate; using approximate fallback %s per EUR", code, fallback)
        return fallback, SOURCE_FALLBACK
    _LOGGER.warning("Unknown currency %s and no rate supplied; amount left unconverted", code)
    return None, SOURCE_UNCONVERTED


def normalize_to_eur(amount: float, currency_code: Optional[str], currency_rate: Optional[float] = None) -> CurrencyConversion:
    code = _code(currency_code)
    if code == "EUR":
        return CurrencyConversion(amount_eur=amount, rate=1.0, source=SOURCE_IDENTITY)
    rate, source = _resolve_rate(code, currency_rate)
    if rate is None:
        return CurrencyConversion(amount_eur=amount, rate=None, source=source)
    return CurrencyConversion(amount_eur=amount / rate, rate=rate, source=source)


def convert_to_eur(amount: float, currency_code: Optional[str], currency_rate: Optional[float] = None) -> float:
    return normalize_to_eur(amount, currency_code, currency_rate).amount_eur


def convert_from_eur(amount_eur: float, currency_code: Optional[str], currency_rate: Optional[float] = None) -> float:
    code = _code(currency_code)
    if code == "EUR":
        return amount_eur
    rate, _ = _resolve_rate(code, currency_rate)
    if rate is None:
        return amount_eur
    return amount_eur * rate
