# solar_invoicing/pricing/exchange_rates.py
"""Live USD→EUR rate from the Frankfurter API.

Lives next to the pricing core but is never called by it: callers fetch a
rate, then pass it into the currency functions. Any failure returns the
configured fallback rate flagged ``fallback=True``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..config import EXCHANGE_RATE_API_URL, FALLBACK_USD_EUR_RATE, HTTP_TIMEOUT_SECONDS

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExchangeRate:
    rate: float  # units of ``target`` per unit of ``base``
    base: str = "USD"
    target: str = "EUR"
    date: Optional[str] = None
    fetched_at: str = ""
    fallback: bool = False
    error: str = ""

    @property
    def units_per_eur(self) -> float:
        """Rate in the shape ``convert_to_eur`` expects (base units per EUR)."""

        return 1.0 / self.rate


def fetch_usd_eur_rate(url: str = EXCHANGE_RATE_API_URL) -> ExchangeRate:
    fetched_at = datetime.now(timezone.utc).isoformat()
    request_url = f"{url}?base=USD&symbols=EUR"

    timeout = httpx.Timeout(HTTP_TIMEOUT_SECONDS, connect=min(HTTP_TIMEOUT_SECONDS, 10.0))
    client = httpx.Client(timeout=timeout)
    try:
        resp = client.get(request_url)
        resp.raise_for_status()
        data = resp.json()
        rate = (data.get("rates") or {}).get("EUR")
        if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate <= 0:
            raise ValueError(f"Invalid EUR rate in response: {rate!r}")
        _LOGGER.info("Fetched USD/EUR rate %s (date %s)", rate, data.get("date"))
        return ExchangeRate(rate=float(rate), date=data.get("date"), fetched_at=fetched_at)
    except (httpx.HTTPError, ValueError) as exc:
        _LOGGER.warning("Exchange rate fetch failed (%s); using fallback %s", exc, FALLBACK_USD_EUR_RATE)
        return ExchangeRate(rate=FALLBACK_USD_EUR_RATE, fetched_at=fetched_at, fallback=True, error=str(exc))
    finally:
        client.close()
