from .composer import InvoiceComposer, calculate_invoice
from .contracts import contract_from_dict, load_contract_config
from .currency import CurrencyConversion, convert_from_eur, convert_to_eur, normalize_to_eur
from .discounts import PortfolioDiscount, apply_portfolio_discount, discount_fraction_for, portfolio_discount_for
from .frequency import (
    annualize,
    frequency_multiplier,
    months_in_period,
    next_period_end,
    per_invoice_amount,
    proration_multiplier,
)
from .minimums import MinimumChargeResult, enforce_minimum
from .revenue import allocate_revenue, apply_credit_note, revenue_from_external_invoice, split_invoice_result
from .selection import SelectionIssue, toggle_module, validate_selection
from .tiers import GraduatedCost, TierMatch, TierResolution, graduated_cost, match_tier, resolve_tier
from .types import (
    AddonSelection,
    AmmpCapabilities,
    ContractPricingConfig,
    InvoiceLineItem,
    InvoiceResult,
    ModuleSelection,
    RevenueSplit,
)

__all__ = [
    "AddonSelection",
    "AmmpCapabilities",
    "ContractPricingConfig",
    "CurrencyConversion",
    "GraduatedCost",
    "InvoiceComposer",
    "InvoiceLineItem",
    "InvoiceResult",
    "MinimumChargeResult",
    "ModuleSelection",
    "PortfolioDiscount",
    "RevenueSplit",
    "SelectionIssue",
    "TierMatch",
    "TierResolution",
    "allocate_revenue",
    "annualize",
    "apply_credit_note",
    "apply_portfolio_discount",
    "calculate_invoice",
    "contract_from_dict",
    "convert_from_eur",
    "convert_to_eur",
    "discount_fraction_for",
    "enforce_minimum",
    "frequency_multiplier",
    "graduated_cost",
    "load_contract_config",
    "match_tier",
    "months_in_period",
    "next_period_end",
    "normalize_to_eur",
    "per_invoice_amount",
    "portfolio_discount_for",
    "proration_multiplier",
    "resolve_tier",
    "revenue_from_external_invoice",
    "split_invoice_result",
    "toggle_module",
    "validate_selection",
]
