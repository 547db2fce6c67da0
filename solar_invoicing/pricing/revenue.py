"""ARR/NRR allocation.

External invoices (synced from the accounting platform) carry line items with
an account code; the catalog's account mapping decides whether an account is
recurring. Unmapped accounts count as non-recurring so ARR is never
overstated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from ..catalog.schema import RevenueType
from ..errors import DataGapWarning
from .currency import normalize_to_eur
from .frequency import annualize, frequency_multiplier, months_in_period, per_invoice_amount, proration_multiplier
from .types import InvoiceLineItem, InvoiceResult, RevenueSplit

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "ExternalInvoiceRevenue",
    "allocate_revenue",
    "annualize",
    "apply_credit_note",
    "frequency_multiplier",
    "months_in_period",
    "per_invoice_amount",
    "proration_multiplier",
    "revenue_from_external_invoice",
    "split_invoice_result",
]


def _line_fields(item: Any):
    if isinstance(item, InvoiceLineItem):
        return item.code, item.line_total
    code = item.get("AccountCode", item.get("account_code", ""))
    amount = item.get("LineAmount", item.get("amount", 0))
    return str(code or ""), float(amount or 0)


def _revenue_type(mapping: Union[RevenueType, str, None]) -> Optional[RevenueType]:
    """Mapped revenue type, or None when the mapping is missing or unrecognised."""

    if mapping is None or isinstance(mapping, RevenueType):
        return mapping
    try:
        return RevenueType(str(mapping).strip().lower())
    except ValueError:
        return None


def allocate_revenue(
    line_items: Iterable[Any],
    account_mapping: Mapping[str, Union[RevenueType, str]],
    warnings: Optional[List[DataGapWarning]] = None,
) -> RevenueSplit:
    """Sum line amounts into ARR/NRR by account code.

    Unmapped codes, and codes mapped to an unrecognised revenue type, go to
    NRR and, when ``warnings`` is given, are recorded there once per code.
    """

    arr = 0.0
    nrr = 0.0
    unmapped = set()
    for item in line_items or []:
        code, amount = _line_fields(item)
        mapping = account_mapping.get(code)
        revenue_type = _revenue_type(mapping)
        if revenue_type is RevenueType.RECURRING:
            arr += amount
            continue
        nrr += amount
        if revenue_type is None and code not in unmapped:
            unmapped.add(code)
            if mapping is None:
                message = f"Unmapped account code {code!r}"
            else:
                message = f"Account code {code!r} has unknown revenue type {mapping!r}"
            _LOGGER.warning("%s; counted as non-recurring", message)
            if warnings is not None:
                warnings.append(DataGapWarning(key=f"account_mappings.{code}", message=message))
    return RevenueSplit(arr_amount=arr, nrr_amount=nrr)


def apply_credit_note(split: RevenueSplit, credit_amount: float, invoice_total: float) -> RevenueSplit:
    """Net a partial credit proportionally across ARR and NRR."""

    if not credit_amount or invoice_total <= 0:
        return split
    remaining = 1.0 - credit_amount / invoice_total
    return split.scaled(min(max(remaining, 0.0), 1.0))


def split_invoice_result(result: InvoiceResult) -> RevenueSplit:
    arr = sum(li.line_total for li in result.line_items if li.revenue_type is RevenueType.RECURRING)
    nrr = sum(li.line_total for li in result.line_items if li.revenue_type is RevenueType.NON_RECURRING)
    return RevenueSplit(arr_amount=arr, nrr_amount=nrr)


@dataclass(frozen=True)
class ExternalInvoiceRevenue:
    currency: str
    invoice_total: float
    amount_credited: float
    raw: RevenueSplit
    eur: RevenueSplit
    net_eur: RevenueSplit
    invoice_total_eur: float
    amount_credited_eur: float
    conversion_source: str
    warnings: tuple = ()


def revenue_from_external_invoice(
    invoice: Mapping[str, Any],
    account_mapping: Mapping[str, Union[RevenueType, str]],
    *,
    live_rate: Optional[float] = None,
) -> ExternalInvoiceRevenue:
    """ARR/NRR of one accounting-platform invoice, in EUR, net of credits.

    ``live_rate`` (units per EUR) is used when the invoice itself carries no
    ``CurrencyRate``.
    """

    currency = str(invoice.get("CurrencyCode") or "EUR").upper()
    rate = invoice.get("CurrencyRate") or live_rate
    total = float(invoice.get("Total") or 0)
    credited = float(invoice.get("AmountCredited") or 0)

    warnings: List[DataGapWarning] = []
    raw = allocate_revenue(invoice.get("LineItems") or [], account_mapping, warnings)

    total_conv = normalize_to_eur(total, currency, rate)
    factor = total_conv.amount_eur / total if total else None

    def _eur(amount: float) -> float:
        if factor is not None:
            return amount * factor
        return normalize_to_eur(amount, currency, rate).amount_eur

    eur = RevenueSplit(arr_amount=_eur(raw.arr_amount), nrr_amount=_eur(raw.nrr_amount))
    return ExternalInvoiceRevenue(
        currency=currency,
        invoice_total=total,
        amount_credited=credited,
        raw=raw,
        eur=eur,
        net_eur=apply_credit_note(eur, credited, total),
        invoice_total_eur=total_conv.amount_eur,
        amount_credited_eur=_eur(credited),
        conversion_source=total_conv.source,
        warnings=tuple(warnings),
    )
