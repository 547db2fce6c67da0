#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Solar invoicing – CLI

Commands:
- invoice:  price a contract file (YAML/JSON) against the catalog and print a
            Markdown breakdown or the JSON result.
- revenue:  split an accounting-platform invoice (JSON) into ARR/NRR in EUR,
            netting credit notes.
- project:  project invoice totals per month for one or more contract files.
- rate:     fetch the live USD→EUR rate (falls back to the configured rate).
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from .catalog.loader import load_catalog, load_document
from .catalog.schema import PricingCatalog
from .config import CATALOG_FILE, DEFAULT_LOG_LEVEL
from .errors import ConfigurationError
from .pricing.composer import InvoiceComposer
from .pricing.contracts import contract_from_dict, load_contract_config, parse_date
from .pricing.exchange_rates import fetch_usd_eur_rate
from .pricing.projection import ScheduledContract, project_monthly_revenue
from .pricing.revenue import revenue_from_external_invoice
from .pricing.selection import validate_selection
from .reporting.format import render_external_revenue, render_invoice, render_projection

console = Console()
_LOGGER = logging.getLogger("solar_invoicing")


# --------------------------------------------------------------------
# Argument parsing
# --------------------------------------------------------------------
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="solar-invoicing",
        description="Tiered invoice pricing and ARR/NRR reporting for solar asset-management contracts.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--catalog",
        type=str,
        default=CATALOG_FILE,
        help="Pricing catalog (YAML/JSON). Empty uses the packaged default catalog.",
    )
    parser.add_argument(
        "--log-level",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        default=DEFAULT_LOG_LEVEL.upper(),
        help="Logging level for internal messages (DEBUG is verbose).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_invoice = sub.add_parser("invoice", help="Price a contract file.")
    p_invoice.add_argument("contract", type=str, help="Contract file (YAML/JSON).")
    p_invoice.add_argument(
        "--output-format",
        choices=["markdown", "json"],
        default="markdown",
        help="Markdown breakdown or the raw JSON result (unrounded).",
    )
    p_invoice.add_argument("--output", type=str, default="", help="Write the output to this file as well.")

    p_revenue = sub.add_parser("revenue", help="ARR/NRR split of an accounting-platform invoice.")
    p_revenue.add_argument("invoice", type=str, help="Invoice JSON (CurrencyCode, Total, LineItems, ...).")
    p_revenue.add_argument(
        "--live-rate",
        action="store_true",
        help="Fetch the live USD→EUR rate for USD invoices that carry no CurrencyRate.",
    )

    p_project = sub.add_parser("project", help="Monthly revenue projection for contract files.")
    p_project.add_argument("contracts", nargs="+", help="Contract files; 'next_invoice_date' defaults to --start.")
    p_project.add_argument("--start", type=date.fromisoformat, required=True, help="First month (YYYY-MM-DD).")
    p_project.add_argument("--end", type=date.fromisoformat, required=True, help="Last day (YYYY-MM-DD).")

    sub.add_parser("rate", help="Fetch the live USD→EUR exchange rate.")

    return parser.parse_args(argv)


# --------------------------------------------------------------------
# Commands
# --------------------------------------------------------------------
def _emit(text: str, output: str = "") -> None:
    console.print(text, markup=False, highlight=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        console.print(f"[green]Saved to {escape(output)}[/green]")


def cmd_invoice(args: argparse.Namespace, catalog: PricingCatalog) -> int:
    config = load_contract_config(args.contract)
    for issue in validate_selection(config, catalog):
        console.print(f"[yellow]Selection issue ({issue.issue}) {escape(issue.key)}: {escape(issue.message)}[/yellow]")

    result = InvoiceComposer(catalog).calculate_invoice(config)
    if args.output_format == "json":
        _emit(json.dumps(result.to_dict(), indent=2), args.output)
    else:
        title = f"Invoice – {config.contract_id or Path(args.contract).stem}"
        _emit(render_invoice(result, title=title), args.output)
    return 0


def cmd_revenue(args: argparse.Namespace, catalog: PricingCatalog) -> int:
    invoice = json.loads(Path(args.invoice).read_text(encoding="utf-8"))
    if not isinstance(invoice, dict):
        raise ConfigurationError(f"Invoice JSON must be an object: {args.invoice}")

    live_rate = None
    currency = str(invoice.get("CurrencyCode") or "EUR").upper()
    if args.live_rate and currency == "USD" and not invoice.get("CurrencyRate"):
        rate = fetch_usd_eur_rate()
        if rate.fallback:
            console.print(f"[yellow]Live rate unavailable; using fallback {rate.rate} EUR per USD[/yellow]")
        live_rate = rate.units_per_eur

    revenue = revenue_from_external_invoice(invoice, catalog.account_mapping_table(), live_rate=live_rate)
    _emit(render_external_revenue(revenue))
    return 0


def cmd_project(args: argparse.Namespace, catalog: PricingCatalog) -> int:
    scheduled = []
    for path in args.contracts:
        doc = load_document(Path(path))
        ctx = f"contract({Path(path).name})"
        end_date = doc.get("end_date")
        scheduled.append(
            ScheduledContract(
                config=contract_from_dict(doc, source=Path(path).name),
                next_invoice_date=parse_date(doc.get("next_invoice_date") or args.start, ctx=ctx),
                end_date=parse_date(end_date, ctx=ctx) if end_date else None,
            )
        )
    monthly = project_monthly_revenue(scheduled, InvoiceComposer(catalog), args.start, args.end)
    _emit(render_projection(monthly, "EUR"))
    return 0


def cmd_rate(args: argparse.Namespace) -> int:
    rate = fetch_usd_eur_rate()
    status = "[yellow]fallback[/yellow]" if rate.fallback else "[green]live[/green]"
    console.print(f"1 USD = {rate.rate} EUR ({status}, date={rate.date or '-'})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        if args.command == "rate":
            return cmd_rate(args)
        catalog = load_catalog(args.catalog or None)
        _LOGGER.debug("Loaded catalog %s", catalog.source_file)
        if args.command == "invoice":
            return cmd_invoice(args, catalog)
        if args.command == "revenue":
            return cmd_revenue(args, catalog)
        if args.command == "project":
            return cmd_project(args, catalog)
    except ConfigurationError as ex:
        console.print(f"[red]Configuration error: {escape(str(ex))}[/red]")
        return 2
    except (OSError, json.JSONDecodeError) as ex:
        console.print(f"[red]Could not read input: {escape(str(ex))}[/red]")
        return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
