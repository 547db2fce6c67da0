import pytest

from solar_invoicing.pricing.currency import convert_from_eur, convert_to_eur, normalize_to_eur


def test_eur_is_identity():
    conv = normalize_to_eur(123.45, "EUR", 1.3)

    assert conv.amount_eur == 123.45
    assert conv.source == "identity"
    assert not conv.degraded


def test_live_rate_is_units_per_eur():
    conv = normalize_to_eur(125.0, "usd", 1.25)

    assert conv.amount_eur == pytest.approx(100.0)
    assert conv.source == "live"


def test_fallback_table_is_degraded_and_logged(caplog):
    with caplog.at_level("WARNING"):
        conv = normalize_to_eur(1600.0, "NGN", None)

    assert conv.amount_eur == pytest.approx(1.0)
    assert conv.source == "fallback"
    assert conv.degraded
    assert "fallback" in caplog.text


@pytest.mark.parametrize("bad_rate", [None, 0, -2])
def test_non_positive_rate_uses_fallback(bad_rate):
    assert convert_to_eur(109.0, "USD", bad_rate) == pytest.approx(100.0)


def test_unknown_currency_is_left_unconverted(caplog):
    with caplog.at_level("WARNING"):
        conv = normalize_to_eur(50.0, "XYZ")

    assert conv.amount_eur == 50.0
    assert conv.source == "unconverted"
    assert "XYZ" in caplog.text


@pytest.mark.parametrize("code, rate", [("USD", 1.0873), ("GBP", 0.8512), ("NGN", 1650.0)])
def test_round_trip_with_live_rate(code, rate):
    for amount in (0.01, 1.0, 999.99, 123456.78):
        assert convert_to_eur(convert_from_eur(amount, code, rate), code, rate) == pytest.approx(amount)


def test_convert_from_eur_uses_fallback():
    assert convert_from_eur(100.0, "GBP") == pytest.approx(86.0)
