"""Contract configuration files.

A contract file is YAML or JSON describing one ``ContractPricingConfig``::

    package: pro
    total_mw: 120
    billing_frequency: quarterly
    modules:
      - technicalMonitoring
      - {id: control, custom_price: 400}
    addons:
      - {id: customKPIs, complexity: medium}
      - {id: satelliteDataAPI, quantity: 40}

Tier tables use the same keys as the catalog. Structural problems raise
ConfigurationError; missing optional values are left for the composer to
report as data gaps.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..catalog.loader import (
    as_list,
    first_key,
    to_number,
    require_key,
    load_document,
    parse_discount_tiers,
    parse_minimum_charge_tiers,
    parse_pricing_tiers,
)
from ..config import DEFAULT_CURRENCY, SUPPORTED_INVOICE_CURRENCIES
from ..errors import ConfigurationError
from .frequency import SITE_CHARGE_FREQUENCIES, normalize_frequency, proration_multiplier
from .types import AddonSelection, AmmpCapabilities, ContractPricingConfig, ModuleSelection


def _module_selection(item: Any, *, ctx: str) -> ModuleSelection:
    if isinstance(item, str):
        return ModuleSelection(module_id=item)
    if not isinstance(item, dict):
        raise ConfigurationError(f"module selection must be an id or an object in {ctx}")
    price = first_key(item, "custom_price", "customPrice")
    return ModuleSelection(
        module_id=str(require_key(item, "id", ctx=ctx)),
        custom_price=to_number(price, ctx=ctx, allow_none=True),
        in_trial=bool(first_key(item, "in_trial", "inTrial", default=False)),
    )


def _addon_selection(item: Any, *, ctx: str) -> AddonSelection:
    if isinstance(item, str):
        return AddonSelection(addon_id=item)
    if not isinstance(item, dict):
        raise ConfigurationError(f"addon selection must be an id or an object in {ctx}")
    raw_tiers = first_key(item, "custom_tiers", "customTiers", "tiers")
    complexity = item.get("complexity")
    return AddonSelection(
        addon_id=str(require_key(item, "id", ctx=ctx)),
        quantity=to_number(item.get("quantity"), ctx=ctx, allow_none=True),
        complexity=str(complexity).strip().lower() if complexity else None,
        custom_price=to_number(first_key(item, "custom_price", "customPrice"), ctx=ctx, allow_none=True),
        custom_tiers=parse_pricing_tiers(as_list(raw_tiers), ctx=f"{ctx}.tiers") if raw_tiers else None,
    )


def _ammp(obj: Any, *, ctx: str) -> Optional[AmmpCapabilities]:
    if obj is None:
        return None
    if not isinstance(obj, dict):
        raise ConfigurationError(f"ammp_capabilities must be a mapping in {ctx}")
    sites = first_key(obj, "site_count", "totalSites")
    return AmmpCapabilities(
        ongrid_mw=to_number(first_key(obj, "ongrid_mw", "ongridTotalMW"), ctx=ctx, allow_none=True),
        hybrid_mw=to_number(first_key(obj, "hybrid_mw", "hybridTotalMW"), ctx=ctx, allow_none=True),
        site_count=int(sites) if sites is not None else None,
    )


def parse_date(value: Any, *, ctx: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ConfigurationError(f"Invalid date {value!r} in {ctx}") from None


def _optional_tiers(data: Mapping[str, Any], key: str, parser, *, ctx: str):
    if key not in data or data[key] is None:
        return None
    return parser(as_list(data[key]), ctx=f"{ctx}.{key}")


def contract_from_dict(data: Mapping[str, Any], *, source: str = "<dict>") -> ContractPricingConfig:
    ctx = f"contract({source})"
    package_id = str(first_key(data, "package", "package_id", "packageType", default="")).strip()
    if not package_id:
        raise ConfigurationError(f"Missing required key 'package' in {ctx}")

    billing_frequency = normalize_frequency(str(first_key(data, "billing_frequency", "billingFrequency", default="annual")))
    site_charge_frequency = normalize_frequency(
        str(first_key(data, "site_charge_frequency", "siteChargeFrequency", default="annual")),
        allowed=SITE_CHARGE_FREQUENCIES,
    )

    currency = str(data.get("currency") or DEFAULT_CURRENCY).upper()
    if currency not in SUPPORTED_INVOICE_CURRENCIES:
        raise ConfigurationError(
            f"Unsupported invoice currency {currency!r} in {ctx} (allowed: {', '.join(SUPPORTED_INVOICE_CURRENCIES)})"
        )

    custom_pricing: Dict[str, float] = {}
    raw_custom = first_key(data, "custom_pricing", "customPricing", default={})
    if not isinstance(raw_custom, dict):
        raise ConfigurationError(f"custom_pricing must be a mapping in {ctx}")
    for key, value in raw_custom.items():
        custom_pricing[str(key)] = to_number(value, ctx=f"{ctx}.custom_pricing.{key}")

    period_multiplier = to_number(data.get("period_multiplier"), ctx=ctx, allow_none=True)
    period = data.get("period")
    if period is not None:
        if not isinstance(period, dict):
            raise ConfigurationError(f"period must be a mapping with start/end in {ctx}")
        start = parse_date(require_key(period, "start", ctx=f"{ctx}.period"), ctx=f"{ctx}.period")
        end = parse_date(require_key(period, "end", ctx=f"{ctx}.period"), ctx=f"{ctx}.period")
        period_multiplier = proration_multiplier(start, end, billing_frequency)

    return ContractPricingConfig(
        package_id=package_id,
        total_mw=to_number(first_key(data, "total_mw", "totalMW"), ctx=ctx, allow_none=True),
        modules=tuple(
            _module_selection(m, ctx=f"{ctx}.modules[{i}]") for i, m in enumerate(as_list(data.get("modules")))
        ),
        addons=tuple(
            _addon_selection(a, ctx=f"{ctx}.addons[{i}]") for i, a in enumerate(as_list(data.get("addons")))
        ),
        billing_frequency=billing_frequency,
        site_charge_frequency=site_charge_frequency,
        minimum_annual_value=to_number(
            first_key(data, "minimum_annual_value", "minimumAnnualValue"), ctx=ctx, allow_none=True
        ),
        currency=currency,
        custom_pricing=custom_pricing,
        base_monthly_price=to_number(
            first_key(data, "base_monthly_price", "baseMonthlyPrice"), ctx=ctx, allow_none=True
        ),
        portfolio_discount_tiers=_optional_tiers(data, "portfolio_discount_tiers", parse_discount_tiers, ctx=ctx),
        minimum_charge_tiers=_optional_tiers(data, "minimum_charge_tiers", parse_minimum_charge_tiers, ctx=ctx),
        graduated_mw_tiers=_optional_tiers(data, "graduated_mw_tiers", parse_pricing_tiers, ctx=ctx),
        site_count=int(first_key(data, "site_count", "siteCount", default=0)),
        ammp_capabilities=_ammp(first_key(data, "ammp_capabilities", "ammpCapabilities"), ctx=f"{ctx}.ammp_capabilities"),
        period_multiplier=period_multiplier,
        contract_id=str(first_key(data, "id", "contract_id", default="")),
    )


def load_contract_config(path: Path | str) -> ContractPricingConfig:
    contract_path = Path(path)
    if not contract_path.exists():
        raise ConfigurationError(f"Contract file not found: {contract_path}")
    return contract_from_dict(load_document(contract_path), source=contract_path.name)
