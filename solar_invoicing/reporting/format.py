from typing import Dict, List, Optional

from ..catalog.schema import RevenueType
from ..pricing.revenue import ExternalInvoiceRevenue, split_invoice_result
from ..pricing.types import InvoiceResult, RevenueSplit


def _format_currency(value: float, currency: str) -> str:
    return f"{value:,.2f} {currency}"


def _format_quantity(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def render_line_items_table(result: InvoiceResult) -> str:
    currency = result.currency
    rows = [
        "| Item | Quantity | Unit price | Line total | Revenue |",
        "|---|---|---|---|---|",
    ]
    for item in result.line_items:
        rows.append(
            "| {label} | {qty} | {unit} | {total} | {rev} |".format(
                label=item.label,
                qty=_format_quantity(item.quantity),
                unit=_format_currency(item.unit_price, currency),
                total=_format_currency(item.line_total, currency),
                rev="ARR" if item.revenue_type is RevenueType.RECURRING else "NRR",
            )
        )
    return "\n".join(rows)


def render_totals_table(result: InvoiceResult) -> str:
    currency = result.currency
    minimum = "yes" if result.minimum_charge_applied else "no"
    rows = [
        "| Subtotal | Portfolio discount | Minimum applied | Total |",
        "|---|---|---|---|",
        "| {sub} | {disc} | {minimum} | {total} |".format(
            sub=_format_currency(result.subtotal, currency),
            disc=_format_currency(result.discount_applied, currency),
            minimum=minimum,
            total=_format_currency(result.total_price, currency),
        ),
    ]
    return "\n".join(rows)


def render_revenue_split(split: RevenueSplit, currency: str) -> str:
    rows = [
        "| ARR | NRR | Total |",
        "|---|---|---|",
        "| {arr} | {nrr} | {total} |".format(
            arr=_format_currency(split.arr_amount, currency),
            nrr=_format_currency(split.nrr_amount, currency),
            total=_format_currency(split.total, currency),
        ),
    ]
    return "\n".join(rows)


def render_warnings(result: InvoiceResult) -> str:
    if not result.warnings:
        return ""
    return "\n".join(f"- [{w.kind}] {w.key}: {w.message}" for w in result.warnings)


def render_invoice(result: InvoiceResult, title: Optional[str] = None) -> str:
    # Sum first, then round: each figure is rounded only when it is printed.
    sections: List[str] = []
    if title:
        sections.extend([f"# {title}", ""])
    sections.extend(
        [
            "## Line items",
            render_line_items_table(result),
            "",
            "## Totals",
            render_totals_table(result),
            "",
            "## Revenue split",
            render_revenue_split(split_invoice_result(result), result.currency),
        ]
    )
    warnings = render_warnings(result)
    if warnings:
        sections.extend(["", "## Warnings", warnings])
    return "\n".join(sections).strip()


def render_projection(monthly: Dict[str, float], currency: str = "EUR") -> str:
    rows = ["| Month | Projected |", "|---|---|"]
    for month, amount in sorted(monthly.items()):
        rows.append(f"| {month} | {_format_currency(amount, currency)} |")
    rows.append(f"| **Total** | **{_format_currency(sum(monthly.values()), currency)}** |")
    return "\n".join(rows)


def render_external_revenue(revenue: ExternalInvoiceRevenue) -> str:
    sections = [
        "## Invoice",
        "| Currency | Total | Credited | Total (EUR) | Credited (EUR) | Conversion |",
        "|---|---|---|---|---|---|",
        "| {cur} | {total} | {cred} | {total_eur} | {cred_eur} | {src} |".format(
            cur=revenue.currency,
            total=_format_currency(revenue.invoice_total, revenue.currency),
            cred=_format_currency(revenue.amount_credited, revenue.currency),
            total_eur=_format_currency(revenue.invoice_total_eur, "EUR"),
            cred_eur=_format_currency(revenue.amount_credited_eur, "EUR"),
            src=revenue.conversion_source,
        ),
        "",
        "## Revenue split (EUR, before credits)",
        render_revenue_split(revenue.eur, "EUR"),
        "",
        "## Revenue split (EUR, net of credits)",
        render_revenue_split(revenue.net_eur, "EUR"),
    ]
    if revenue.warnings:
        sections.extend(["", "## Warnings"])
        sections.extend(f"- [{w.kind}] {w.key}: {w.message}" for w in revenue.warnings)
    return "\n".join(sections).strip()
