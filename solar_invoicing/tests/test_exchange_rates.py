from types import SimpleNamespace

import httpx
import pytest

from solar_invoicing.pricing import exchange_rates


def _stub_httpx(monkeypatch, payload=None, error=None, requested=None):
    class DummyResponse:
        def raise_for_status(self):
            if error is not None:
                raise error
            return None

        def json(self):
            return payload

    class DummyClient:
        closed = False

        def __init__(self, *args, **kwargs):
            pass

        def get(self, url):
            if requested is not None:
                requested.append(url)
            return DummyResponse()

        def close(self):
            DummyClient.closed = True

    monkeypatch.setattr(
        exchange_rates,
        "httpx",
        SimpleNamespace(Client=DummyClient, Timeout=lambda *a, **k: None, HTTPError=httpx.HTTPError),
    )
    return DummyClient


def test_fetch_live_rate(monkeypatch):
    requested = []
    client_cls = _stub_httpx(monkeypatch, payload={"rates": {"EUR": 0.91}, "date": "2026-10-16"}, requested=requested)

    rate = exchange_rates.fetch_usd_eur_rate()

    assert rate.rate == pytest.approx(0.91)
    assert rate.fallback is False
    assert rate.date == "2026-10-16"
    assert rate.units_per_eur == pytest.approx(1 / 0.91)
    assert requested[0].endswith("?base=USD&symbols=EUR")
    assert client_cls.closed


def test_http_error_returns_fallback(monkeypatch, caplog):
    _stub_httpx(monkeypatch, error=httpx.HTTPError("503 Service Unavailable"))

    with caplog.at_level("WARNING"):
        rate = exchange_rates.fetch_usd_eur_rate()

    assert rate.fallback is True
    assert rate.rate == pytest.approx(0.92)
    assert "503" in rate.error
    assert "fallback" in caplog.text


@pytest.mark.parametrize("payload", [{}, {"rates": {}}, {"rates": {"EUR": "0.9"}}, {"rates": {"EUR": 0}}])
def test_invalid_payload_returns_fallback(monkeypatch, payload):
    _stub_httpx(monkeypatch, payload=payload)

    rate = exchange_rates.fetch_usd_eur_rate()

    assert rate.fallback is True
    assert rate.rate == pytest.approx(0.92)
