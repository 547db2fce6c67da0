"""Selection-time guards.

The composer trusts its input. These pure checks are what a form or a
server-side guard runs before a contract configuration is saved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..catalog.schema import PricingCatalog, PricingMode
from .types import ContractPricingConfig


@dataclass(frozen=True)
class SelectionIssue:
    key: str
    issue: str  # "unknown" | "excluded" | "exclusive" | "requires_pro" | "missing"
    message: str


def toggle_module(selected: Sequence[str], module_id: str, catalog: PricingCatalog) -> Tuple[str, ...]:
    """Select or deselect ``module_id``; selecting drops its exclusive partners."""

    if module_id in selected:
        return tuple(m for m in selected if m != module_id)
    partners = catalog.exclusive_partners(module_id)
    return tuple(m for m in selected if m not in partners) + (module_id,)


def validate_selection(config: ContractPricingConfig, catalog: PricingCatalog) -> List[SelectionIssue]:
    issues: List[SelectionIssue] = []

    package = catalog.get_package(config.package_id)
    if package is None:
        issues.append(
            SelectionIssue(key="package_id", issue="unknown", message=f"Unknown package '{config.package_id}'")
        )

    module_ids = [m.module_id for m in config.modules]
    for module_id in module_ids:
        if catalog.get_module(module_id) is None:
            issues.append(
                SelectionIssue(key=f"modules.{module_id}", issue="unknown", message=f"Unknown module '{module_id}'")
            )
        elif package is not None and not package.allows_module(module_id):
            issues.append(
                SelectionIssue(
                    key=f"modules.{module_id}",
                    issue="excluded",
                    message=f"Module '{module_id}' is not available on package '{package.id}'",
                )
            )

    seen = set()
    for module_id in module_ids:
        for partner in sorted(catalog.exclusive_partners(module_id)):
            pair = frozenset((module_id, partner))
            if partner in module_ids and pair not in seen:
                seen.add(pair)
                first, second = sorted(pair)
                issues.append(
                    SelectionIssue(
                        key=f"modules.{first}",
                        issue="exclusive",
                        message=f"Modules '{first}' and '{second}' cannot be selected together",
                    )
                )

    for selection in config.addons:
        addon = catalog.get_addon(selection.addon_id)
        key = f"addons.{selection.addon_id}"
        if addon is None:
            issues.append(SelectionIssue(key=key, issue="unknown", message=f"Unknown addon '{selection.addon_id}'"))
            continue
        if addon.requires_pro and package is not None and not package.pro_features:
            issues.append(
                SelectionIssue(
                    key=key,
                    issue="requires_pro",
                    message=f"Addon '{addon.id}' requires a package with pro features",
                )
            )
        if addon.pricing_mode in (PricingMode.QUANTITY_TIERED_FLAT, PricingMode.QUANTITY_TIERED_GRADUATED):
            if selection.quantity is None:
                issues.append(
                    SelectionIssue(key=f"{key}.quantity", issue="missing", message=f"Addon '{addon.id}' needs a quantity")
                )
        if (
            addon.pricing_mode is PricingMode.COMPLEXITY_TIERED
            and selection.custom_price is None
            and addon.price is None
            and (selection.complexity or "").strip().lower() not in addon.complexity_prices
        ):
            issues.append(
                SelectionIssue(
                    key=f"{key}.complexity",
                    issue="missing",
                    message=f"Addon '{addon.id}' needs a complexity level",
                )
            )

    return issues
