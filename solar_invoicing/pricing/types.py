from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple, Union

from ..catalog.schema import MinimumChargeTier, PortfolioDiscountTier, PricingTier, RevenueType
from ..errors import DataGapWarning, PrecisionWarning

PricingWarning = Union[DataGapWarning, PrecisionWarning]


@dataclass(frozen=True)
class ModuleSelection:
    module_id: str
    custom_price: Optional[float] = None
    in_trial: bool = False  # decided by the caller from the trial window dates


@dataclass(frozen=True)
class AddonSelection:
    addon_id: str
    quantity: Optional[float] = None
    complexity: Optional[str] = None  # "low" | "medium" | "high"
    custom_price: Optional[float] = None
    custom_tiers: Optional[Tuple[PricingTier, ...]] = None


@dataclass(frozen=True)
class AmmpCapabilities:
    """MW breakdown synced from the asset-monitoring platform."""

    ongrid_mw: Optional[float] = None
    hybrid_mw: Optional[float] = None
    site_count: Optional[int] = None

    @property
    def has_breakdown(self) -> bool:
        return self.ongrid_mw is not None and self.hybrid_mw is not None


@dataclass(frozen=True)
class ContractPricingConfig:
    """Snapshot of a contract's pricing inputs. Read-only for the composer."""

    package_id: str
    total_mw: Optional[float] = None
    modules: Tuple[ModuleSelection, ...] = ()
    addons: Tuple[AddonSelection, ...] = ()
    billing_frequency: str = "annual"
    site_charge_frequency: str = "annual"
    minimum_annual_value: Optional[float] = None
    currency: str = "EUR"
    custom_pricing: Mapping[str, float] = field(default_factory=dict)
    base_monthly_price: Optional[float] = None  # None uses the package default
    portfolio_discount_tiers: Optional[Tuple[PortfolioDiscountTier, ...]] = None
    minimum_charge_tiers: Optional[Tuple[MinimumChargeTier, ...]] = None
    graduated_mw_tiers: Optional[Tuple[PricingTier, ...]] = None
    site_count: int = 0
    ammp_capabilities: Optional[AmmpCapabilities] = None
    period_multiplier: Optional[float] = None  # overrides the frequency multiplier (proration)
    contract_id: str = ""

    def with_changes(self, **changes) -> "ContractPricingConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class InvoiceLineItem:
    label: str
    quantity: float
    unit_price: float
    line_total: float
    revenue_type: RevenueType = RevenueType.RECURRING
    code: str = ""  # package / module / addon id, or "minimum_charge"

    def rounded(self) -> "InvoiceLineItem":
        return replace(self, line_total=round(self.line_total, 2))


@dataclass(frozen=True)
class InvoiceResult:
    line_items: Tuple[InvoiceLineItem, ...]
    subtotal: float
    minimum_charge_applied: bool
    discount_applied: float
    total_price: float
    currency: str
    warnings: Tuple[PricingWarning, ...] = ()

    @property
    def data_gaps(self) -> Tuple[DataGapWarning, ...]:
        return tuple(w for w in self.warnings if isinstance(w, DataGapWarning))

    def rounded(self) -> "InvoiceResult":
        """Presentation copy: line totals and amounts rounded to 2 decimals."""

        return replace(
            self,
            line_items=tuple(item.rounded() for item in self.line_items),
            subtotal=round(self.subtotal, 2),
            discount_applied=round(self.discount_applied, 2),
            total_price=round(self.total_price, 2),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "line_items": [
                {
                    "label": li.label,
                    "code": li.code,
                    "quantity": li.quantity,
                    "unit_price": li.unit_price,
                    "line_total": li.line_total,
                    "revenue_type": li.revenue_type.value,
                }
                for li in self.line_items
            ],
            "subtotal": self.subtotal,
            "minimum_charge_applied": self.minimum_charge_applied,
            "discount_applied": self.discount_applied,
            "total_price": self.total_price,
            "currency": self.currency,
            "warnings": [{"kind": w.kind, "key": w.key, "message": w.message} for w in self.warnings],
        }


@dataclass(frozen=True)
class RevenueSplit:
    arr_amount: float = 0.0
    nrr_amount: float = 0.0

    @property
    def total(self) -> float:
        return self.arr_amount + self.nrr_amount

    def scaled(self, factor: float) -> "RevenueSplit":
        return RevenueSplit(arr_amount=self.arr_amount * factor, nrr_amount=self.nrr_amount * factor)

    def __add__(self, other: "RevenueSplit") -> "RevenueSplit":
        return RevenueSplit(
            arr_amount=self.arr_amount + other.arr_amount,
            nrr_amount=self.nrr_amount + other.nrr_amount,
        )
