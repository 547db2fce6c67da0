"""Revenue projection across upcoming invoice dates.

Calls the composer once per contract per projected invoice, sequentially, and
accumulates totals into a ``{"YYYY-MM": amount}`` map in EUR.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Mapping, Optional

from .composer import InvoiceComposer
from .currency import convert_to_eur
from .frequency import add_months, months_in_period
from .types import ContractPricingConfig

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledContract:
    config: ContractPricingConfig
    next_invoice_date: date
    end_date: Optional[date] = None  # contract end; no invoices after it


def invoice_dates(first: date, frequency: str, until: date, *, stop: Optional[date] = None) -> Iterable[date]:
    step = months_in_period(frequency)
    limit = min(until, stop) if stop else until
    n = 0
    current = first
    while current <= limit:
        yield current
        n += 1
        current = add_months(first, step * n)


def project_monthly_revenue(
    contracts: Iterable[ScheduledContract],
    composer: InvoiceComposer,
    start: date,
    end: date,
    *,
    currency_rates: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """Projected invoice totals per month between ``start`` and ``end`` inclusive.

    ``currency_rates`` maps a currency code to units per EUR; currencies not in
    it use the fallback table.
    """

    rates = currency_rates or {}
    monthly: Dict[str, float] = {}
    for contract in contracts:
        cfg = contract.config
        # A prorated period covers only the contract's next invoice.
        full_period = cfg.with_changes(period_multiplier=None)
        invoiced = 0
        dates = invoice_dates(contract.next_invoice_date, cfg.billing_frequency, end, stop=contract.end_date)
        for n, when in enumerate(dates):
            if when < start:
                continue
            result = composer.calculate_invoice(cfg if n == 0 else full_period)
            invoiced += 1
            amount = convert_to_eur(result.total_price, result.currency, rates.get(result.currency.upper()))
            key = when.strftime("%Y-%m")
            monthly[key] = monthly.get(key, 0.0) + amount
        if not invoiced:
            _LOGGER.debug("Contract %s has no invoices between %s and %s", cfg.contract_id or cfg.package_id, start, end)
    return dict(sorted(monthly.items()))
