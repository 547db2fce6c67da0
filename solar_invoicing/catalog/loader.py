"""Catalog loader.

Loads the pricing catalog from YAML/JSON (by default the file shipped in
``solar_invoicing/catalog/definitions``) and normalizes it into the frozen
dataclasses of ``schema.py``.

The loader is strict: a malformed tier table or an unknown pricing mode raises
ConfigurationError with a readable context, so a bad catalog never reaches
invoice time.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from ..errors import ConfigurationError
from .schema import (
    COMPLEXITY_LEVELS,
    AddonDefinition,
    MinimumChargeTier,
    ModuleDefinition,
    PackageDefinition,
    PackageKind,
    PortfolioDiscountTier,
    PricingCatalog,
    PricingMode,
    PricingTier,
    RevenueType,
)
from .validation import sort_tiers, validate_discount_tiers, validate_tiers

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "definitions" / "default.yaml"


def as_list(x: Any) -> List[Any]:
    if x is None:
        return []
    if isinstance(x, list):
        return x
    return [x]


def require_key(obj: Mapping[str, Any], key: str, *, ctx: str) -> Any:
    if key not in obj:
        raise ConfigurationError(f"Missing required key '{key}' in {ctx}")
    return obj[key]


def first_key(obj: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in obj and obj[k] is not None:
            return obj[k]
    return default


def to_number(value: Any, *, ctx: str, allow_none: bool = False) -> Optional[float]:
    if value is None:
        if allow_none:
            return None
        raise ConfigurationError(f"Expected a number in {ctx}, got null")
    if isinstance(value, bool):
        raise ConfigurationError(f"Expected a number in {ctx}, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Expected a number in {ctx}, got {value!r}") from None


def _non_negative(value: Any, *, ctx: str) -> float:
    num = to_number(value, ctx=ctx)
    if num < 0:
        raise ConfigurationError(f"Negative value {num} in {ctx}")
    return num


def load_document(path: Path) -> Dict[str, Any]:
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(raw) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top-level YAML must be a mapping in {path}")
        return data
    if path.suffix.lower() == ".json":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top-level JSON must be an object in {path}")
        return data
    raise ConfigurationError(f"Unsupported catalog file type: {path}")


# ---------------------------------------------------------------------------
# Tier tables (shared with contract parsing)
# ---------------------------------------------------------------------------


def parse_pricing_tiers(items: Iterable[Any], *, ctx: str) -> Tuple[PricingTier, ...]:
    out: List[PricingTier] = []
    for i, it in enumerate(items):
        tctx = f"{ctx}[{i}]"
        if not isinstance(it, dict):
            raise ConfigurationError(f"tier must be an object in {tctx}")
        lower = first_key(it, "min_quantity", "minQuantity", "min_mw", "minMW")
        upper = first_key(it, "max_quantity", "maxQuantity", "max_mw", "maxMW")
        price = first_key(it, "price_per_unit", "pricePerUnit", "price_per_mw", "pricePerMW")
        if lower is None:
            raise ConfigurationError(f"Missing tier lower bound (min_quantity/minMW) in {tctx}")
        if price is None:
            raise ConfigurationError(f"Missing tier price (price_per_unit/pricePerMW) in {tctx}")
        out.append(
            PricingTier(
                min_quantity=to_number(lower, ctx=tctx),
                max_quantity=to_number(upper, ctx=tctx, allow_none=True),
                price_per_unit=_non_negative(price, ctx=tctx),
                label=str(it.get("label") or ""),
            )
        )
    validate_tiers(out, ctx=ctx)
    return tuple(sort_tiers(out))


def parse_minimum_charge_tiers(items: Iterable[Any], *, ctx: str) -> Tuple[MinimumChargeTier, ...]:
    out: List[MinimumChargeTier] = []
    for i, it in enumerate(items):
        tctx = f"{ctx}[{i}]"
        if not isinstance(it, dict):
            raise ConfigurationError(f"minimum charge tier must be an object in {tctx}")
        charge = first_key(it, "charge_per_site", "chargePerSite")
        if charge is None:
            raise ConfigurationError(f"Missing required key 'charge_per_site' in {tctx}")
        out.append(
            MinimumChargeTier(
                min_mw=to_number(first_key(it, "min_mw", "minMW", default=0), ctx=tctx),
                max_mw=to_number(first_key(it, "max_mw", "maxMW"), ctx=tctx, allow_none=True),
                charge_per_site=_non_negative(charge, ctx=tctx),
                label=str(it.get("label") or ""),
            )
        )
    validate_tiers(out, ctx=ctx)
    return tuple(sort_tiers(out))


def parse_discount_tiers(items: Iterable[Any], *, ctx: str) -> Tuple[PortfolioDiscountTier, ...]:
    out: List[PortfolioDiscountTier] = []
    for i, it in enumerate(items):
        tctx = f"{ctx}[{i}]"
        if not isinstance(it, dict):
            raise ConfigurationError(f"discount tier must be an object in {tctx}")
        pct = first_key(it, "discount_percent", "discountPercent")
        if pct is None:
            raise ConfigurationError(f"Missing required key 'discount_percent' in {tctx}")
        out.append(
            PortfolioDiscountTier(
                min_mw=to_number(first_key(it, "min_mw", "minMW", default=0), ctx=tctx),
                max_mw=to_number(first_key(it, "max_mw", "maxMW"), ctx=tctx, allow_none=True),
                discount_percent=to_number(pct, ctx=tctx),
                label=str(it.get("label") or ""),
            )
        )
    validate_discount_tiers(out, ctx=ctx)
    return tuple(sort_tiers(out))


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------


def _parse_modules(items: Iterable[Any], *, ctx: str) -> Dict[str, ModuleDefinition]:
    out: Dict[str, ModuleDefinition] = {}
    for i, it in enumerate(items):
        mctx = f"{ctx}.modules[{i}]"
        if not isinstance(it, dict):
            raise ConfigurationError(f"module must be an object in {mctx}")
        module_id = str(require_key(it, "id", ctx=mctx)).strip()
        if not module_id:
            raise ConfigurationError(f"module id cannot be empty in {mctx}")
        if module_id in out:
            raise ConfigurationError(f"Duplicate module id '{module_id}' in {mctx}")
        out[module_id] = ModuleDefinition(
            id=module_id,
            name=str(it.get("name") or module_id),
            price_per_mw=_non_negative(first_key(it, "price_per_mw", "price", default=0), ctx=mctx),
            trial=bool(it.get("trial", False)),
            available=bool(it.get("available", True)),
        )
    return out


def _parse_pricing_mode(value: Any, *, ctx: str) -> PricingMode:
    try:
        return PricingMode(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in PricingMode)
        raise ConfigurationError(f"Unknown pricing_mode {value!r} in {ctx} (allowed: {allowed})") from None


def _parse_addons(items: Iterable[Any], *, ctx: str) -> Dict[str, AddonDefinition]:
    out: Dict[str, AddonDefinition] = {}
    for i, it in enumerate(items):
        actx = f"{ctx}.addons[{i}]"
        if not isinstance(it, dict):
            raise ConfigurationError(f"addon must be an object in {actx}")
        addon_id = str(require_key(it, "id", ctx=actx)).strip()
        if not addon_id:
            raise ConfigurationError(f"addon id cannot be empty in {actx}")
        if addon_id in out:
            raise ConfigurationError(f"Duplicate addon id '{addon_id}' in {actx}")

        mode = _parse_pricing_mode(it.get("pricing_mode") or "flat", ctx=actx)
        price = first_key(it, "price")
        price = _non_negative(price, ctx=actx) if price is not None else None

        complexity_prices: Dict[str, float] = {}
        raw_complexity = it.get("complexity_prices") or {}
        if not isinstance(raw_complexity, dict):
            raise ConfigurationError(f"complexity_prices must be a mapping in {actx}")
        for level, value in raw_complexity.items():
            level = str(level).strip().lower()
            if level not in COMPLEXITY_LEVELS:
                raise ConfigurationError(f"Unknown complexity level {level!r} in {actx}")
            complexity_prices[level] = _non_negative(value, ctx=f"{actx}.complexity_prices.{level}")
        if mode is PricingMode.COMPLEXITY_TIERED and not complexity_prices:
            raise ConfigurationError(f"complexity_tiered addon needs complexity_prices in {actx}")

        tiers = parse_pricing_tiers(as_list(it.get("tiers")), ctx=f"{actx}.tiers")
        if mode in (PricingMode.QUANTITY_TIERED_FLAT, PricingMode.QUANTITY_TIERED_GRADUATED):
            if not tiers and price is None:
                raise ConfigurationError(f"quantity-tiered addon needs tiers or a flat price in {actx}")

        out[addon_id] = AddonDefinition(
            id=addon_id,
            name=str(it.get("name") or addon_id),
            pricing_mode=mode,
            price=price,
            complexity_prices=complexity_prices,
            tiers=tiers,
            requires_pro=bool(it.get("requires_pro", False)),
            recurring=bool(it.get("recurring", False)),
        )
    return out


def _parse_packages(
    items: Iterable[Any], *, ctx: str, modules: Mapping[str, ModuleDefinition]
) -> Dict[str, PackageDefinition]:
    out: Dict[str, PackageDefinition] = {}
    for i, it in enumerate(items):
        pctx = f"{ctx}.packages[{i}]"
        if not isinstance(it, dict):
            raise ConfigurationError(f"package must be an object in {pctx}")
        package_id = str(require_key(it, "id", ctx=pctx)).strip()
        raw_kind = str(require_key(it, "kind", ctx=pctx)).strip().lower()
        try:
            kind = PackageKind(raw_kind)
        except ValueError:
            allowed = ", ".join(k.value for k in PackageKind)
            raise ConfigurationError(f"Unknown package kind {raw_kind!r} in {pctx} (allowed: {allowed})") from None

        permitted = it.get("permitted_modules")
        excluded = [str(x) for x in as_list(it.get("excluded_modules"))]
        for mid in excluded + [str(x) for x in as_list(permitted)]:
            if mid not in modules:
                raise ConfigurationError(f"Unknown module '{mid}' referenced in {pctx}")

        out[package_id] = PackageDefinition(
            id=package_id,
            name=str(it.get("name") or package_id),
            kind=kind,
            base_rate_per_mw=_non_negative(it.get("base_rate_per_mw", 0), ctx=pctx),
            base_monthly_price=_non_negative(it.get("base_monthly_price", 0), ctx=pctx),
            default_minimum_annual_value=_non_negative(it.get("default_minimum_annual_value", 0), ctx=pctx),
            permitted_modules=frozenset(str(x) for x in as_list(permitted)) if permitted is not None else None,
            excluded_modules=frozenset(excluded),
            pro_features=bool(it.get("pro_features", False)),
            graduated_mw_tiers=parse_pricing_tiers(
                as_list(it.get("graduated_mw_tiers")), ctx=f"{pctx}.graduated_mw_tiers"
            ),
        )
    return out


def _parse_exclusive_groups(
    items: Iterable[Any], *, ctx: str, modules: Mapping[str, ModuleDefinition]
) -> Tuple[frozenset, ...]:
    out = []
    for i, group in enumerate(items):
        gctx = f"{ctx}.mutually_exclusive_modules[{i}]"
        ids = [str(x) for x in as_list(group)]
        if len(ids) < 2:
            raise ConfigurationError(f"exclusivity group needs at least two modules in {gctx}")
        for mid in ids:
            if mid not in modules:
                raise ConfigurationError(f"Unknown module '{mid}' in {gctx}")
        out.append(frozenset(ids))
    return tuple(out)


def _parse_account_mappings(obj: Any, *, ctx: str) -> Dict[str, RevenueType]:
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ConfigurationError(f"account_mappings must be a mapping in {ctx}")
    out: Dict[str, RevenueType] = {}
    for code, kind in obj.items():
        try:
            out[str(code)] = RevenueType(str(kind).strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown revenue type {kind!r} for account {code} in {ctx}") from None
    return out


def catalog_from_dict(data: Mapping[str, Any], *, source: str = "<dict>") -> PricingCatalog:
    ctx = f"definition({source})"
    modules = _parse_modules(as_list(data.get("modules")), ctx=ctx)
    addons = _parse_addons(as_list(data.get("addons")), ctx=ctx)
    packages = _parse_packages(as_list(data.get("packages")), ctx=ctx, modules=modules)
    if not packages:
        raise ConfigurationError(f"Catalog defines no packages in {ctx}")

    return PricingCatalog(
        packages=packages,
        modules=modules,
        addons=addons,
        portfolio_discount_tiers=parse_discount_tiers(
            as_list(data.get("portfolio_discount_tiers")), ctx=f"{ctx}.portfolio_discount_tiers"
        ),
        minimum_charge_tiers=parse_minimum_charge_tiers(
            as_list(data.get("minimum_charge_tiers")), ctx=f"{ctx}.minimum_charge_tiers"
        ),
        mutually_exclusive_modules=_parse_exclusive_groups(
            as_list(data.get("mutually_exclusive_modules")), ctx=ctx, modules=modules
        ),
        account_mappings=_parse_account_mappings(data.get("account_mappings"), ctx=ctx),
        source_file=source,
    )


def load_catalog(path: Path | str | None = None) -> PricingCatalog:
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    if not catalog_path.exists():
        raise ConfigurationError(f"Catalog file not found: {catalog_path}")
    return catalog_from_dict(load_document(catalog_path), source=catalog_path.name)
