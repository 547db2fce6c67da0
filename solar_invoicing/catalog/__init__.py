from .loader import DEFAULT_CATALOG_PATH, catalog_from_dict, load_catalog
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
from .validation import validate_discount_tiers, validate_tiers

__all__ = [
    "COMPLEXITY_LEVELS",
    "DEFAULT_CATALOG_PATH",
    "AddonDefinition",
    "MinimumChargeTier",
    "ModuleDefinition",
    "PackageDefinition",
    "PackageKind",
    "PortfolioDiscountTier",
    "PricingCatalog",
    "PricingMode",
    "PricingTier",
    "RevenueType",
    "catalog_from_dict",
    "load_catalog",
    "validate_discount_tiers",
    "validate_tiers",
]
