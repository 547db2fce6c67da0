"""Pricing catalog schema.

Packages, modules, addons and the tier tables they price against. Everything
here is immutable: the catalog is loaded once and shared by every invoice
calculation, so per-tenant overrides are done by loading another catalog,
never by mutating this one.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple


class PricingMode(str, enum.Enum):
    FLAT = "flat"
    COMPLEXITY_TIERED = "complexity_tiered"
    QUANTITY_TIERED_FLAT = "quantity_tiered_flat"
    QUANTITY_TIERED_GRADUATED = "quantity_tiered_graduated"


class PackageKind(str, enum.Enum):
    FIXED = "fixed"  # starter / capped: minimum annual value + base monthly fee
    PER_MW = "per_mw"  # pro / custom: base rate + modules per MW
    HYBRID_TIERED = "hybrid_tiered"  # separate on-grid / hybrid per-MWp rates
    GRADUATED_MW = "graduated_mw"  # marginal MW brackets


class RevenueType(str, enum.Enum):
    RECURRING = "recurring"
    NON_RECURRING = "non_recurring"


COMPLEXITY_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class PricingTier:
    min_quantity: float
    max_quantity: Optional[float]
    price_per_unit: float
    label: str = ""

    @property
    def lower(self) -> float:
        return self.min_quantity

    @property
    def upper(self) -> Optional[float]:
        return self.max_quantity


@dataclass(frozen=True)
class MinimumChargeTier:
    min_mw: float
    max_mw: Optional[float]
    charge_per_site: float
    label: str = ""

    @property
    def lower(self) -> float:
        return self.min_mw

    @property
    def upper(self) -> Optional[float]:
        return self.max_mw


@dataclass(frozen=True)
class PortfolioDiscountTier:
    min_mw: float
    max_mw: Optional[float]
    discount_percent: float  # fraction in [0, 1)
    label: str = ""

    @property
    def lower(self) -> float:
        return self.min_mw

    @property
    def upper(self) -> Optional[float]:
        return self.max_mw


@dataclass(frozen=True)
class ModuleDefinition:
    id: str
    name: str
    price_per_mw: float
    trial: bool = False
    available: bool = True


@dataclass(frozen=True)
class AddonDefinition:
    id: str
    name: str
    pricing_mode: PricingMode = PricingMode.FLAT
    price: Optional[float] = None
    complexity_prices: Mapping[str, float] = field(default_factory=dict)
    tiers: Tuple[PricingTier, ...] = ()
    requires_pro: bool = False
    recurring: bool = False

    @property
    def revenue_type(self) -> RevenueType:
        return RevenueType.RECURRING if self.recurring else RevenueType.NON_RECURRING


@dataclass(frozen=True)
class PackageDefinition:
    id: str
    name: str
    kind: PackageKind
    base_rate_per_mw: float = 0.0
    base_monthly_price: float = 0.0
    default_minimum_annual_value: float = 0.0
    permitted_modules: Optional[FrozenSet[str]] = None  # None: every module
    excluded_modules: FrozenSet[str] = frozenset()
    pro_features: bool = False
    graduated_mw_tiers: Tuple[PricingTier, ...] = ()

    def allows_module(self, module_id: str) -> bool:
        if module_id in self.excluded_modules:
            return False
        return self.permitted_modules is None or module_id in self.permitted_modules


@dataclass(frozen=True)
class PricingCatalog:
    packages: Mapping[str, PackageDefinition]
    modules: Mapping[str, ModuleDefinition]
    addons: Mapping[str, AddonDefinition]
    portfolio_discount_tiers: Tuple[PortfolioDiscountTier, ...] = ()
    minimum_charge_tiers: Tuple[MinimumChargeTier, ...] = ()
    mutually_exclusive_modules: Tuple[FrozenSet[str], ...] = ()
    account_mappings: Mapping[str, RevenueType] = field(default_factory=dict)
    source_file: str = ""

    def get_package(self, package_id: str) -> Optional[PackageDefinition]:
        return self.packages.get((package_id or "").strip())

    def get_module(self, module_id: str) -> Optional[ModuleDefinition]:
        return self.modules.get(module_id)

    def get_addon(self, addon_id: str) -> Optional[AddonDefinition]:
        return self.addons.get(addon_id)

    def exclusive_partners(self, module_id: str) -> FrozenSet[str]:
        partners: set[str] = set()
        for group in self.mutually_exclusive_modules:
            if module_id in group:
                partners.update(group - {module_id})
        return frozenset(partners)

    def account_mapping_table(self) -> Dict[str, RevenueType]:
        return dict(self.account_mappings)
