"""Billing frequency tables.

Catalog prices are annual. A per-invoice amount is ``annual * multiplier``;
annualizing a per-invoice amount for ARR reporting divides by it.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Dict

from ..errors import ConfigurationError

BILLING_FREQUENCIES = ("monthly", "quarterly", "biannual", "annual")
SITE_CHARGE_FREQUENCIES = ("monthly", "annual")

_MULTIPLIERS: Dict[str, float] = {
    "monthly": 1.0 / 12.0,
    "quarterly": 0.25,
    "biannual": 0.5,
    "annual": 1.0,
}

_MONTHS: Dict[str, int] = {
    "monthly": 1,
    "quarterly": 3,
    "biannual": 6,
    "annual": 12,
}

# Standard period length used to prorate partial periods.
_PERIOD_DAYS: Dict[str, int] = {
    "monthly": 30,
    "quarterly": 91,
    "biannual": 182,
    "annual": 365,
}


def normalize_frequency(freq: str, *, allowed=BILLING_FREQUENCIES) -> str:
    value = (freq or "").strip().lower()
    if value not in allowed:
        raise ConfigurationError(f"Unknown frequency {freq!r} (allowed: {', '.join(allowed)})")
    return value


def frequency_multiplier(freq: str) -> float:
    return _MULTIPLIERS[normalize_frequency(freq)]


def months_in_period(freq: str) -> int:
    return _MONTHS[normalize_frequency(freq)]


def period_days(freq: str) -> int:
    return _PERIOD_DAYS[normalize_frequency(freq)]


def per_invoice_amount(annual_amount: float, freq: str) -> float:
    return annual_amount * frequency_multiplier(freq)


def annualize(per_invoice: float, freq: str) -> float:
    return per_invoice / frequency_multiplier(freq)


def charges_per_year(site_charge_frequency: str) -> int:
    freq = normalize_frequency(site_charge_frequency, allowed=SITE_CHARGE_FREQUENCIES)
    return 12 if freq == "monthly" else 1


def proration_multiplier(start: date, end: date, freq: str) -> float:
    """Fraction of a standard ``freq`` period covered by ``start``..``end``.

    Replaces the frequency multiplier for a partial first or last invoice.
    """

    days = abs((end - start).days)
    return days / period_days(freq)


def add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_period_end(start: date, freq: str) -> date:
    """Last day of the billing period that starts on ``start``."""

    return add_months(start, months_in_period(freq)) - timedelta(days=1)
