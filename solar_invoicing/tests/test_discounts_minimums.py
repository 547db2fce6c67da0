import pytest

from solar_invoicing.catalog.schema import MinimumChargeTier, PortfolioDiscountTier
from solar_invoicing.pricing.discounts import apply_portfolio_discount, discount_fraction_for, portfolio_discount_for
from solar_invoicing.pricing.minimums import enforce_minimum, minimum_for


@pytest.mark.parametrize(
    "mw, fraction",
    [
        (0, 0.0),
        (49.99, 0.0),
        (49.995, 0.0),
        (50, 0.05),
        (99.99, 0.05),
        (99.995, 0.05),
        (120, 0.10),
        (149.995, 0.10),
        (150, 0.15),
        (199.995, 0.15),
        (200, 0.20),
        (5000, 0.20),
    ],
)
def test_default_discount_brackets(catalog, mw, fraction):
    assert discount_fraction_for(mw, catalog.portfolio_discount_tiers) == pytest.approx(fraction)


def test_discount_is_portfolio_wide_not_marginal(catalog):
    rate = apply_portfolio_discount(100.0, 120, catalog.portfolio_discount_tiers)

    assert rate == pytest.approx(90.0)


def test_no_discount_tiers_keeps_base_rate():
    assert apply_portfolio_discount(100.0, 500, []) == 100.0


SITE_TIERS = [MinimumChargeTier(min_mw=0, max_mw=None, charge_per_site=300)]


def test_minimum_charge_overrides_lower_subtotal():
    res = enforce_minimum(400, 10, "annual", SITE_TIERS, 2)

    assert res.final_amount == pytest.approx(600)
    assert res.applied is True


def test_minimum_charge_keeps_higher_subtotal():
    res = enforce_minimum(900, 10, "annual", SITE_TIERS, 2)

    assert res.final_amount == 900
    assert res.applied is False


def test_minimum_charge_is_idempotent():
    for subtotal in (0, 250, 600, 1000):
        once = enforce_minimum(subtotal, 10, "annual", SITE_TIERS, 2)
        twice = enforce_minimum(once.final_amount, 10, "annual", SITE_TIERS, 2)
        assert twice.final_amount == once.final_amount


def test_monthly_site_charge_is_scaled_to_the_invoice_period():
    # 25 per site per month, 2 sites, quarterly invoice: 25 * 2 * 12 * 0.25
    tiers = [MinimumChargeTier(min_mw=0, max_mw=None, charge_per_site=25)]

    assert minimum_for(10, "monthly", tiers, 2, period_multiplier=0.25) == pytest.approx(150)


def test_minimum_bracket_is_resolved_by_portfolio_mw():
    tiers = [
        MinimumChargeTier(min_mw=0, max_mw=49.99, charge_per_site=300),
        MinimumChargeTier(min_mw=50, max_mw=None, charge_per_site=200),
    ]

    assert minimum_for(10, "annual", tiers, 3) == pytest.approx(900)
    assert minimum_for(80, "annual", tiers, 3) == pytest.approx(600)


def test_empty_tiers_fall_back_to_minimum_annual_value():
    res = enforce_minimum(1000, 10, "annual", [], 5, period_multiplier=0.25, minimum_annual_value=5000)

    assert res.final_amount == pytest.approx(1250)
    assert res.applied is True


def test_fractional_mw_between_default_brackets_is_exact(catalog):
    for mw in (49.995, 99.995, 149.995, 199.995):
        assert portfolio_discount_for(mw, catalog.portfolio_discount_tiers).exact


def test_broken_discount_table_reports_fallback():
    tiers = [
        PortfolioDiscountTier(min_mw=0, max_mw=10, discount_percent=0.0),
        PortfolioDiscountTier(min_mw=50, max_mw=None, discount_percent=0.2),
    ]

    discount = portfolio_discount_for(30, tiers)

    assert discount.fraction == pytest.approx(0.2)
    assert discount.exact is False


def test_broken_minimum_table_reports_fallback():
    tiers = [
        MinimumChargeTier(min_mw=0, max_mw=10, charge_per_site=300),
        MinimumChargeTier(min_mw=50, max_mw=None, charge_per_site=200),
    ]

    res = enforce_minimum(0, 30, "annual", tiers, 2)

    assert res.final_amount == pytest.approx(400)
    assert res.exact is False
    assert enforce_minimum(0, 5, "annual", tiers, 2).exact
