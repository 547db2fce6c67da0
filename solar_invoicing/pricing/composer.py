"""Invoice composer.

Turns a ``ContractPricingConfig`` into an ``InvoiceResult`` against an injected
``PricingCatalog``. Steps run in a fixed order because later ones depend on
earlier totals:

1. fixed (starter) packages: minimum annual value for the period plus the base
   monthly fee, nothing else;
2. every other package:
   a. base per-MW rate, discounted by portfolio size;
   b. base line = rate * MW * frequency multiplier (hybrid-tiered and
      graduated packages build their base line their own way);
   c. one line per selected module, skipping package-excluded and trial ones;
   d. one line per selected addon, priced by its pricing mode; only recurring
      addons are frequency-scaled;
   e. subtotal;
   f. minimum charge floor.

The composer is pure. It raises ConfigurationError for an unknown package or
billing frequency and degrades everything else into warnings on the result.
Amounts are never rounded here.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional, Tuple

from .. import config as app_config
from ..catalog.loader import load_catalog
from ..catalog.schema import (
    AddonDefinition,
    PackageDefinition,
    PackageKind,
    PricingCatalog,
    PricingMode,
    RevenueType,
)
from ..errors import ConfigurationError, DataGapWarning, PrecisionWarning
from .discounts import PortfolioDiscount, portfolio_discount_for
from .frequency import frequency_multiplier, months_in_period
from .minimums import enforce_minimum
from .tiers import graduated_cost, resolve_tier
from .types import (
    AddonSelection,
    ContractPricingConfig,
    InvoiceLineItem,
    InvoiceResult,
    PricingWarning,
)

_LOGGER = logging.getLogger(__name__)

MINIMUM_CHARGE_CODE = "minimum_charge"


class InvoiceComposer:
    def __init__(self, catalog: PricingCatalog):
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def calculate_invoice(self, config: ContractPricingConfig) -> InvoiceResult:
        package = self.catalog.get_package(config.package_id)
        if package is None:
            known = ", ".join(sorted(self.catalog.packages))
            raise ConfigurationError(f"Unknown package '{config.package_id}' (known: {known})")

        freq_mult = frequency_multiplier(config.billing_frequency)
        multiplier = config.period_multiplier if config.period_multiplier is not None else freq_mult
        warnings: List[PricingWarning] = []

        if package.kind is PackageKind.FIXED:
            return self._fixed_package(package, config, multiplier, freq_mult)

        items: List[InvoiceLineItem] = []
        total_mw = self._total_mw(config, warnings)

        discount = 0.0
        if package.kind is PackageKind.PER_MW:
            discount = self._per_mw_base(package, config, total_mw, multiplier, items, warnings)
        elif package.kind is PackageKind.HYBRID_TIERED:
            discount = self._hybrid_base(package, config, total_mw, multiplier, items, warnings)
        elif package.kind is PackageKind.GRADUATED_MW:
            self._graduated_base(package, config, total_mw, multiplier, items, warnings)

        items.extend(self._module_lines(package, config, total_mw, multiplier, warnings))
        items.extend(self._addon_lines(config, multiplier, warnings))

        subtotal = sum(item.line_total for item in items)

        minimum_tiers = (
            config.minimum_charge_tiers
            if config.minimum_charge_tiers is not None
            else self.catalog.minimum_charge_tiers
        )
        site_count = config.site_count
        if not site_count and config.ammp_capabilities and config.ammp_capabilities.site_count:
            site_count = config.ammp_capabilities.site_count
        floor = enforce_minimum(
            subtotal,
            total_mw,
            config.site_charge_frequency,
            minimum_tiers,
            site_count,
            period_multiplier=multiplier,
            minimum_annual_value=self._minimum_annual_value(package, config),
        )
        if not floor.exact:
            warnings.append(
                PrecisionWarning(
                    key="minimum_charge_tiers",
                    message=f"No minimum charge tier covers {total_mw} MW; fallback tier used",
                )
            )
        if floor.applied:
            adjustment = floor.final_amount - subtotal
            items.append(
                InvoiceLineItem(
                    label="Minimum charge adjustment",
                    quantity=1,
                    unit_price=adjustment,
                    line_total=adjustment,
                    revenue_type=RevenueType.RECURRING,
                    code=MINIMUM_CHARGE_CODE,
                )
            )

        return InvoiceResult(
            line_items=tuple(items),
            subtotal=subtotal,
            minimum_charge_applied=floor.applied,
            discount_applied=discount,
            total_price=floor.final_amount,
            currency=config.currency,
            warnings=tuple(warnings),
        )

    # ------------------------------------------------------------------
    # Step 1: fixed-fee packages
    # ------------------------------------------------------------------
    def _fixed_package(
        self,
        package: PackageDefinition,
        config: ContractPricingConfig,
        multiplier: float,
        freq_mult: float,
    ) -> InvoiceResult:
        annual = self._minimum_annual_value(package, config)
        items = [
            InvoiceLineItem(
                label=f"{package.name} package",
                quantity=1,
                unit_price=annual * multiplier,
                line_total=annual * multiplier,
                revenue_type=RevenueType.RECURRING,
                code=package.id,
            )
        ]

        monthly = config.base_monthly_price if config.base_monthly_price is not None else package.base_monthly_price
        if monthly:
            # Prorated periods bill the same share of the period's months.
            months = months_in_period(config.billing_frequency) * (multiplier / freq_mult)
            items.append(
                InvoiceLineItem(
                    label="Base monthly fee",
                    quantity=months,
                    unit_price=monthly,
                    line_total=monthly * months,
                    revenue_type=RevenueType.RECURRING,
                    code=f"{package.id}.base_monthly",
                )
            )

        total = sum(item.line_total for item in items)
        return InvoiceResult(
            line_items=tuple(items),
            subtotal=total,
            minimum_charge_applied=False,
            discount_applied=0.0,
            total_price=total,
            currency=config.currency,
        )

    # ------------------------------------------------------------------
    # Step 2a/2b: base lines
    # ------------------------------------------------------------------
    def _per_mw_base(
        self,
        package: PackageDefinition,
        config: ContractPricingConfig,
        total_mw: float,
        multiplier: float,
        items: List[InvoiceLineItem],
        warnings: List[PricingWarning],
    ) -> float:
        base_rate = float(config.custom_pricing.get("base_rate_per_mw", package.base_rate_per_mw))
        if base_rate <= 0 or total_mw <= 0:
            return 0.0

        rate = self._portfolio_discount(config, total_mw, warnings).apply(base_rate)
        items.append(
            InvoiceLineItem(
                label=f"{package.name} base fee",
                quantity=total_mw,
                unit_price=rate * multiplier,
                line_total=rate * total_mw * multiplier,
                revenue_type=RevenueType.RECURRING,
                code=package.id,
            )
        )
        return (base_rate - rate) * total_mw * multiplier

    def _hybrid_base(
        self,
        package: PackageDefinition,
        config: ContractPricingConfig,
        total_mw: float,
        multiplier: float,
        items: List[InvoiceLineItem],
        warnings: List[PricingWarning],
    ) -> float:
        ongrid_rate = float(config.custom_pricing.get("ongrid_per_mwp", 0.0))
        hybrid_rate = float(config.custom_pricing.get("hybrid_per_mwp", 0.0))
        if not ongrid_rate and not hybrid_rate:
            _gap(warnings, "custom_pricing.ongrid_per_mwp", "Hybrid-tiered contract has no on-grid or hybrid rate")
            return 0.0

        caps = config.ammp_capabilities
        if caps is not None and caps.has_breakdown:
            ongrid_mw, hybrid_mw = float(caps.ongrid_mw), float(caps.hybrid_mw)
        else:
            _gap(
                warnings,
                "ammp_capabilities",
                "No on-grid/hybrid MW breakdown; billing all capacity at the on-grid rate",
            )
            ongrid_mw, hybrid_mw = total_mw, 0.0

        portfolio = self._portfolio_discount(config, total_mw, warnings)
        discount = 0.0
        for label, mw, rate, code in (
            ("On-grid capacity", ongrid_mw, ongrid_rate, "ongrid"),
            ("Hybrid capacity", hybrid_mw, hybrid_rate, "hybrid"),
        ):
            if mw <= 0 or rate <= 0:
                continue
            discounted = portfolio.apply(rate)
            items.append(
                InvoiceLineItem(
                    label=label,
                    quantity=mw,
                    unit_price=discounted * multiplier,
                    line_total=discounted * mw * multiplier,
                    revenue_type=RevenueType.RECURRING,
                    code=f"{package.id}.{code}",
                )
            )
            discount += (rate - discounted) * mw * multiplier
        return discount

    def _graduated_base(
        self,
        package: PackageDefinition,
        config: ContractPricingConfig,
        total_mw: float,
        multiplier: float,
        items: List[InvoiceLineItem],
        warnings: List[PricingWarning],
    ) -> None:
        tiers = config.graduated_mw_tiers or package.graduated_mw_tiers
        if not tiers:
            _gap(warnings, "graduated_mw_tiers", f"Package '{package.id}' has no graduated MW tiers")
            return
        if total_mw <= 0:
            return

        cost = graduated_cost(total_mw, tiers)
        if not cost.exact:
            warnings.append(
                PrecisionWarning(
                    key="graduated_mw_tiers",
                    message=f"Graduated MW tiers do not cleanly cover {total_mw} MW; fallback rate used",
                )
            )
        items.append(
            InvoiceLineItem(
                label=f"{package.name} capacity fee",
                quantity=total_mw,
                unit_price=cost.total / total_mw * multiplier,
                line_total=cost.total * multiplier,
                revenue_type=RevenueType.RECURRING,
                code=package.id,
            )
        )

    # ------------------------------------------------------------------
    # Step 2c: modules
    # ------------------------------------------------------------------
    def _module_lines(
        self,
        package: PackageDefinition,
        config: ContractPricingConfig,
        total_mw: float,
        multiplier: float,
        warnings: List[PricingWarning],
    ) -> List[InvoiceLineItem]:
        out: List[InvoiceLineItem] = []
        for selection in config.modules:
            module = self.catalog.get_module(selection.module_id)
            if module is None:
                _gap(warnings, f"modules.{selection.module_id}", f"Unknown module '{selection.module_id}' skipped")
                continue
            if not package.allows_module(module.id):
                _LOGGER.debug("Module %s is not billed on package %s", module.id, package.id)
                continue
            if selection.in_trial:
                _LOGGER.debug("Module %s is in its free trial window", module.id)
                continue
            if not module.available:
                _gap(warnings, f"modules.{module.id}", f"Module '{module.id}' is not available and was skipped")
                continue
            if total_mw <= 0:
                continue

            price = selection.custom_price
            if price is None:
                price = config.custom_pricing.get(module.id, module.price_per_mw)
            out.append(
                InvoiceLineItem(
                    label=module.name,
                    quantity=total_mw,
                    unit_price=price * multiplier,
                    line_total=price * total_mw * multiplier,
                    revenue_type=RevenueType.RECURRING,
                    code=module.id,
                )
            )
        return out

    # ------------------------------------------------------------------
    # Step 2d: addons
    # ------------------------------------------------------------------
    def _addon_lines(
        self,
        config: ContractPricingConfig,
        multiplier: float,
        warnings: List[PricingWarning],
    ) -> List[InvoiceLineItem]:
        out: List[InvoiceLineItem] = []
        for selection in config.addons:
            addon = self.catalog.get_addon(selection.addon_id)
            if addon is None:
                _gap(warnings, f"addons.{selection.addon_id}", f"Unknown addon '{selection.addon_id}' skipped")
                continue

            priced = self._price_addon(addon, selection, warnings)
            if priced is None:
                continue
            quantity, unit_price, line_total = priced
            if quantity == 0:
                _LOGGER.debug("Addon %s has zero quantity; line omitted", addon.id)
                continue

            if addon.recurring:
                unit_price *= multiplier
                line_total *= multiplier
            out.append(
                InvoiceLineItem(
                    label=addon.name,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                    revenue_type=addon.revenue_type,
                    code=addon.id,
                )
            )
        return out

    def _price_addon(
        self,
        addon: AddonDefinition,
        selection: AddonSelection,
        warnings: List[PricingWarning],
    ) -> Optional[Tuple[float, float, float]]:
        """Return ``(quantity, unit_price, line_total)`` or None to skip the line."""

        key = f"addons.{addon.id}"
        mode = addon.pricing_mode

        if mode in (PricingMode.QUANTITY_TIERED_FLAT, PricingMode.QUANTITY_TIERED_GRADUATED):
            if selection.quantity is None:
                _gap(warnings, f"{key}.quantity", f"Addon '{addon.id}' is quantity-priced but has no quantity")
                return None
            quantity = float(selection.quantity)
        else:
            quantity = float(selection.quantity) if selection.quantity is not None else 1.0

        if selection.custom_price is not None:
            return quantity, selection.custom_price, selection.custom_price * quantity

        if mode is PricingMode.COMPLEXITY_TIERED:
            complexity = (selection.complexity or "").strip().lower()
            if complexity in addon.complexity_prices:
                unit = addon.complexity_prices[complexity]
                return quantity, unit, unit * quantity
            if addon.price is not None:
                return quantity, addon.price, addon.price * quantity
            _gap(
                warnings,
                f"{key}.complexity",
                f"Addon '{addon.id}' needs a complexity level (got {selection.complexity!r})",
            )
            return None

        if mode is PricingMode.FLAT:
            if addon.price is None:
                _gap(warnings, f"{key}.price", f"Addon '{addon.id}' has no price")
                return None
            return quantity, addon.price, addon.price * quantity

        tiers = selection.custom_tiers if selection.custom_tiers else addon.tiers

        if mode is PricingMode.QUANTITY_TIERED_GRADUATED and tiers:
            cost = graduated_cost(quantity, tiers)
            if not cost.exact:
                warnings.append(
                    PrecisionWarning(key=f"{key}.tiers", message=f"Graduated tiers do not cleanly cover {quantity}")
                )
            unit = cost.total / quantity if quantity else 0.0
            return quantity, unit, cost.total

        resolution = resolve_tier(quantity, tiers, fallback_price=addon.price or 0.0)
        if resolution.used_fallback and addon.price is None:
            _gap(warnings, f"{key}.tiers", f"Addon '{addon.id}' has neither tiers nor a flat price")
            return None
        if not resolution.exact:
            warnings.append(
                PrecisionWarning(
                    key=f"{key}.tiers",
                    message=f"No tier covers quantity {quantity}; fallback tier used",
                )
            )
        return quantity, resolution.unit_price, resolution.unit_price * quantity

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _total_mw(self, config: ContractPricingConfig, warnings: List[PricingWarning]) -> float:
        if config.total_mw is not None and config.total_mw > 0:
            return float(config.total_mw)
        caps = config.ammp_capabilities
        if config.total_mw is None and caps is not None and caps.has_breakdown:
            return float(caps.ongrid_mw) + float(caps.hybrid_mw)
        _gap(warnings, "total_mw", "Contract has no portfolio MW; MW-based lines are skipped")
        return 0.0

    def _portfolio_discount(
        self, config: ContractPricingConfig, total_mw: float, warnings: List[PricingWarning]
    ) -> PortfolioDiscount:
        tiers = (
            config.portfolio_discount_tiers
            if config.portfolio_discount_tiers is not None
            else self.catalog.portfolio_discount_tiers
        )
        portfolio = portfolio_discount_for(total_mw, tiers)
        if not portfolio.exact:
            warnings.append(
                PrecisionWarning(
                    key="portfolio_discount_tiers",
                    message=f"No discount tier covers {total_mw} MW; fallback tier used",
                )
            )
        return portfolio

    def _minimum_annual_value(self, package: PackageDefinition, config: ContractPricingConfig) -> float:
        if config.minimum_annual_value is not None:
            return float(config.minimum_annual_value)
        if package.default_minimum_annual_value:
            return package.default_minimum_annual_value
        if package.kind is PackageKind.FIXED:
            return app_config.DEFAULT_STARTER_MINIMUM_ANNUAL_VALUE
        return 0.0


def _gap(warnings: List[PricingWarning], key: str, message: str) -> None:
    _LOGGER.warning(message)
    warnings.append(DataGapWarning(key=key, message=message))


@lru_cache(maxsize=1)
def default_catalog() -> PricingCatalog:
    return load_catalog(app_config.CATALOG_FILE or None)


def calculate_invoice(config: ContractPricingConfig, catalog: Optional[PricingCatalog] = None) -> InvoiceResult:
    return InvoiceComposer(catalog or default_catalog()).calculate_invoice(config)
