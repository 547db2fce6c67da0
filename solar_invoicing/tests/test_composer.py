from dataclasses import replace

import pytest

from solar_invoicing.catalog.schema import MinimumChargeTier, PortfolioDiscountTier, PricingTier, RevenueType
from solar_invoicing.errors import ConfigurationError, DataGapWarning, PrecisionWarning
from solar_invoicing.pricing import (
    AddonSelection,
    AmmpCapabilities,
    ContractPricingConfig,
    ModuleSelection,
    calculate_invoice,
)


def _codes(result):
    return [li.code for li in result.line_items]


def test_starter_package_quarterly(composer):
    cfg = ContractPricingConfig(package_id="starter", minimum_annual_value=12000, billing_frequency="quarterly")

    result = composer.calculate_invoice(cfg)

    assert result.total_price == pytest.approx(3000)
    assert len(result.line_items) == 1
    assert result.minimum_charge_applied is False


def test_starter_ignores_modules_and_adds_base_monthly_fee(composer):
    cfg = ContractPricingConfig(
        package_id="starter",
        minimum_annual_value=12000,
        billing_frequency="monthly",
        base_monthly_price=100,
        total_mw=50,
        modules=(ModuleSelection("technicalMonitoring"),),
        addons=(AddonSelection("customAPIIntegration"),),
    )

    result = composer.calculate_invoice(cfg)

    assert result.total_price == pytest.approx(1000 + 100)
    assert _codes(result) == ["starter", "starter.base_monthly"]


def test_starter_uses_package_default_minimum(composer):
    result = composer.calculate_invoice(ContractPricingConfig(package_id="starter"))

    assert result.total_price == pytest.approx(3000)


def test_unknown_package_raises(composer):
    with pytest.raises(ConfigurationError, match="Unknown package"):
        composer.calculate_invoice(ContractPricingConfig(package_id="platinum"))


def test_pro_modules_priced_per_mw(composer):
    cfg = ContractPricingConfig(
        package_id="pro",
        total_mw=10,
        modules=(ModuleSelection("technicalMonitoring"), ModuleSelection("stakeholderPortal")),
    )

    result = composer.calculate_invoice(cfg)

    assert result.subtotal == pytest.approx(10000 + 2500)
    assert result.total_price == pytest.approx(12500)
    assert result.minimum_charge_applied is False
    assert all(li.revenue_type is RevenueType.RECURRING for li in result.line_items)


def test_pro_minimum_floor_adds_adjustment_line(composer):
    cfg = ContractPricingConfig(
        package_id="pro",
        total_mw=2,
        billing_frequency="quarterly",
        modules=(ModuleSelection("technicalMonitoring"),),
    )

    result = composer.calculate_invoice(cfg)

    assert result.subtotal == pytest.approx(500)
    assert result.total_price == pytest.approx(1250)
    assert result.minimum_charge_applied is True
    assert result.line_items[-1].code == "minimum_charge"
    assert result.line_items[-1].line_total == pytest.approx(750)


def test_module_custom_price_and_trial(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=10,
        modules=(
            ModuleSelection("technicalMonitoring", custom_price=800),
            ModuleSelection("control", in_trial=True),
        ),
        custom_pricing={"stakeholderPortal": 100},
    )

    result = composer.calculate_invoice(cfg)

    assert _codes(result) == ["technicalMonitoring"]
    assert result.total_price == pytest.approx(8000)


def test_custom_pricing_map_overrides_module_price(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=10,
        modules=(ModuleSelection("stakeholderPortal"),),
        custom_pricing={"stakeholderPortal": 100},
    )

    assert composer.calculate_invoice(cfg).total_price == pytest.approx(1000)


def test_base_rate_gets_portfolio_discount(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=120,
        custom_pricing={"base_rate_per_mw": 100},
        modules=(ModuleSelection("technicalMonitoring"),),
    )

    result = composer.calculate_invoice(cfg)

    assert result.line_items[0].line_total == pytest.approx(10800)
    assert result.discount_applied == pytest.approx(1200)
    assert result.total_price == pytest.approx(10800 + 120000)


def test_addon_pricing_modes_and_frequency_scaling(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=10,
        billing_frequency="quarterly",
        addons=(
            AddonSelection("customKPIs", complexity="medium"),
            AddonSelection("customDashboard"),
            AddonSelection("customAPIIntegration", custom_price=2000),
            AddonSelection("satelliteDataAPI", quantity=40),
        ),
    )

    result = composer.calculate_invoice(cfg)
    by_code = {li.code: li for li in result.line_items}

    # One-time addons are not frequency-scaled.
    assert by_code["customKPIs"].line_total == pytest.approx(1500)
    assert by_code["customDashboard"].line_total == pytest.approx(1000)
    assert by_code["customAPIIntegration"].line_total == pytest.approx(2000)
    assert by_code["customKPIs"].revenue_type is RevenueType.NON_RECURRING
    # Recurring addon: 6 per site per year, quarterly.
    assert by_code["satelliteDataAPI"].line_total == pytest.approx(6 * 40 * 0.25)
    assert by_code["satelliteDataAPI"].revenue_type is RevenueType.RECURRING


def test_addon_custom_tiers_non_graduated(composer):
    tiers = (
        PricingTier(min_quantity=0, max_quantity=10, price_per_unit=50),
        PricingTier(min_quantity=11, max_quantity=None, price_per_unit=30),
    )
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=10,
        addons=(AddonSelection("satelliteDataAPI", quantity=15, custom_tiers=tiers),),
    )

    result = composer.calculate_invoice(cfg)

    assert result.line_items[0].unit_price == 30
    assert result.line_items[0].line_total == pytest.approx(450)


def test_data_gaps_are_recorded_not_raised(composer, caplog):
    cfg = ContractPricingConfig(
        package_id="pro",
        modules=(ModuleSelection("technicalMonitoring"), ModuleSelection("ghostModule")),
        addons=(
            AddonSelection("satelliteDataAPI"),
            AddonSelection("dataLoggerSetup"),
            AddonSelection("unknownAddon"),
        ),
    )

    with caplog.at_level("WARNING"):
        result = composer.calculate_invoice(cfg)

    keys = {w.key for w in result.warnings}
    assert {
        "total_mw",
        "modules.ghostModule",
        "addons.satelliteDataAPI.quantity",
        "addons.dataLoggerSetup.complexity",
        "addons.unknownAddon",
    } <= keys
    assert all(isinstance(w, DataGapWarning) for w in result.warnings)
    assert result.total_price == pytest.approx(5000)
    assert result.minimum_charge_applied is True
    assert "ghostModule" in caplog.text


def test_zero_quantity_addon_line_is_omitted(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=10,
        addons=(AddonSelection("satelliteDataAPI", quantity=0),),
    )

    assert composer.calculate_invoice(cfg).line_items == ()


def test_hybrid_tiered_uses_ammp_breakdown_and_excludes_technical_monitoring(composer):
    cfg = ContractPricingConfig(
        package_id="hybrid_tiered",
        custom_pricing={"ongrid_per_mwp": 800, "hybrid_per_mwp": 1200},
        ammp_capabilities=AmmpCapabilities(ongrid_mw=30, hybrid_mw=10),
        modules=(ModuleSelection("technicalMonitoring"),),
    )

    result = composer.calculate_invoice(cfg)

    assert _codes(result) == ["hybrid_tiered.ongrid", "hybrid_tiered.hybrid"]
    assert result.total_price == pytest.approx(24000 + 12000)
    assert result.warnings == ()


def test_hybrid_tiered_without_breakdown_bills_all_mw_on_grid(composer):
    cfg = ContractPricingConfig(
        package_id="hybrid_tiered",
        total_mw=40,
        custom_pricing={"ongrid_per_mwp": 800, "hybrid_per_mwp": 1200},
    )

    result = composer.calculate_invoice(cfg)

    assert result.total_price == pytest.approx(32000)
    assert [w.key for w in result.warnings] == ["ammp_capabilities"]


def test_graduated_mw_package(composer):
    cfg = ContractPricingConfig(
        package_id="internal_assets",
        total_mw=8,
        graduated_mw_tiers=(
            PricingTier(min_quantity=0, max_quantity=5, price_per_unit=1000),
            PricingTier(min_quantity=5, max_quantity=None, price_per_unit=800),
        ),
    )

    result = composer.calculate_invoice(cfg)

    assert result.total_price == pytest.approx(7400)


def test_graduated_mw_overflow_records_precision_warning(composer):
    cfg = ContractPricingConfig(
        package_id="internal_assets",
        total_mw=8,
        graduated_mw_tiers=(PricingTier(min_quantity=0, max_quantity=5, price_per_unit=1000),),
    )

    result = composer.calculate_invoice(cfg)

    assert result.total_price == pytest.approx(8000)
    assert any(isinstance(w, PrecisionWarning) for w in result.warnings)


def test_site_minimum_charge_scenario(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=10,
        site_count=2,
        minimum_charge_tiers=(MinimumChargeTier(min_mw=0, max_mw=None, charge_per_site=300),),
        addons=(AddonSelection("customAPIIntegration", custom_price=400),),
    )

    result = composer.calculate_invoice(cfg)

    assert result.subtotal == pytest.approx(400)
    assert result.total_price == pytest.approx(600)
    assert result.minimum_charge_applied is True


def test_proration_replaces_frequency_multiplier(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=12,
        billing_frequency="monthly",
        period_multiplier=0.5 / 12,
        modules=(ModuleSelection("technicalMonitoring"),),
    )

    assert composer.calculate_invoice(cfg).total_price == pytest.approx(500)


def test_rounding_only_at_output(composer):
    cfg = ContractPricingConfig(
        package_id="pro",
        total_mw=7.3,
        billing_frequency="monthly",
        modules=(ModuleSelection("technicalMonitoring"), ModuleSelection("stakeholderPortal")),
    )

    result = composer.calculate_invoice(cfg)
    rounded = result.rounded()

    assert result.total_price == pytest.approx(7.3 * 1250 / 12)
    summed_rounded = sum(li.line_total for li in rounded.line_items)
    assert abs(summed_rounded - rounded.total_price) <= 0.01 + 1e-9


def test_composer_does_not_mutate_config_and_is_repeatable(composer):
    cfg = ContractPricingConfig(
        package_id="pro",
        total_mw=25,
        modules=(ModuleSelection("technicalMonitoring"),),
        addons=(AddonSelection("satelliteDataAPI", quantity=12),),
    )

    first = composer.calculate_invoice(cfg)
    second = composer.calculate_invoice(cfg)

    assert first == second
    assert cfg.total_mw == 25


def test_module_level_calculate_invoice_accepts_catalog(catalog):
    result = calculate_invoice(ContractPricingConfig(package_id="starter"), catalog)

    assert result.total_price == pytest.approx(3000)


def test_fractional_mw_below_discount_boundary_gets_no_discount(composer):
    cfg = ContractPricingConfig(package_id="pro", total_mw=49.995, custom_pricing={"base_rate_per_mw": 100})

    result = composer.calculate_invoice(cfg)

    assert result.line_items[0].unit_price == pytest.approx(100)
    assert result.discount_applied == 0
    assert not any(isinstance(w, PrecisionWarning) for w in result.warnings)


def test_discount_and_minimum_fallbacks_record_precision_warnings(composer):
    cfg = ContractPricingConfig(
        package_id="custom",
        total_mw=30,
        site_count=1,
        custom_pricing={"base_rate_per_mw": 100},
        portfolio_discount_tiers=(
            PortfolioDiscountTier(min_mw=0, max_mw=10, discount_percent=0.0),
            PortfolioDiscountTier(min_mw=50, max_mw=None, discount_percent=0.2),
        ),
        minimum_charge_tiers=(
            MinimumChargeTier(min_mw=0, max_mw=10, charge_per_site=100),
            MinimumChargeTier(min_mw=50, max_mw=None, charge_per_site=200),
        ),
    )

    result = composer.calculate_invoice(cfg)

    precision = {w.key for w in result.warnings if isinstance(w, PrecisionWarning)}
    assert precision == {"portfolio_discount_tiers", "minimum_charge_tiers"}
    assert result.line_items[0].unit_price == pytest.approx(80)


def test_contract_can_zero_the_package_monthly_fee(catalog):
    starter = replace(catalog.packages["starter"], base_monthly_price=50)
    with_fee = replace(catalog, packages={**catalog.packages, "starter": starter})

    default = calculate_invoice(ContractPricingConfig(package_id="starter", billing_frequency="monthly"), with_fee)
    zeroed = calculate_invoice(
        ContractPricingConfig(package_id="starter", billing_frequency="monthly", base_monthly_price=0), with_fee
    )

    assert default.total_price == pytest.approx(250 + 50)
    assert zeroed.total_price == pytest.approx(250)
    assert _codes(zeroed) == ["starter"]
