from datetime import date

import pytest

from solar_invoicing.errors import ConfigurationError
from solar_invoicing.pricing.frequency import (
    annualize,
    charges_per_year,
    frequency_multiplier,
    months_in_period,
    next_period_end,
    per_invoice_amount,
    proration_multiplier,
)


@pytest.mark.parametrize(
    "freq, multiplier, months",
    [("monthly", 1 / 12, 1), ("quarterly", 0.25, 3), ("biannual", 0.5, 6), ("annual", 1.0, 12)],
)
def test_frequency_tables(freq, multiplier, months):
    assert frequency_multiplier(freq) == pytest.approx(multiplier)
    assert months_in_period(freq) == months


def test_per_invoice_and_annualize_are_reciprocal():
    assert per_invoice_amount(12000, "quarterly") == pytest.approx(3000)
    assert annualize(3000, "quarterly") == pytest.approx(12000)
    assert annualize(per_invoice_amount(1234.5, "monthly"), "monthly") == pytest.approx(1234.5)


def test_unknown_frequency_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        frequency_multiplier("weekly")
    with pytest.raises(ConfigurationError):
        charges_per_year("quarterly")


def test_site_charge_frequency():
    assert charges_per_year("monthly") == 12
    assert charges_per_year("Annual") == 1


def test_proration_multiplier_uses_standard_period_length():
    assert proration_multiplier(date(2026, 1, 1), date(2026, 1, 16), "monthly") == pytest.approx(0.5)
    assert proration_multiplier(date(2026, 1, 1), date(2026, 4, 2), "quarterly") == pytest.approx(91 / 91)


def test_next_period_end():
    assert next_period_end(date(2026, 1, 1), "monthly") == date(2026, 1, 31)
    assert next_period_end(date(2026, 1, 1), "quarterly") == date(2026, 3, 31)
    assert next_period_end(date(2026, 7, 1), "annual") == date(2027, 6, 30)
