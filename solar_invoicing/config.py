#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
config.py

Configuration constants and defaults for the solar invoicing engine.

Key idea: the pricing core is pure
----------------------------------
Nothing in ``solar_invoicing.pricing`` reads these values at calculation time
except as *defaults* for arguments the caller did not supply. The catalog is
loaded once and injected into the composer; contracts arrive as config
snapshots. Environment variables only change where things are loaded from and
how the CLI behaves.
"""

import os  # Standard library: access environment variables (os.getenv).

# ---------------------------------------------------------------------
# Defaults: currency
# ---------------------------------------------------------------------
# DEFAULT_CURRENCY:
# - Invoice currency when a contract does not declare one.
# - Contracts are billed in EUR or USD; reporting is always normalized to EUR.
DEFAULT_CURRENCY = os.getenv("SOLAR_INVOICING_DEFAULT_CURRENCY", "EUR")

SUPPORTED_INVOICE_CURRENCIES = ("EUR", "USD")

# ---------------------------------------------------------------------
# Pricing catalog
# ---------------------------------------------------------------------
# CATALOG_FILE:
# - YAML/JSON file with packages, modules, addons and tier tables.
# - Empty means "use the catalog shipped in catalog/definitions/default.yaml".
CATALOG_FILE = os.getenv("SOLAR_INVOICING_CATALOG", "").strip()

# ---------------------------------------------------------------------
# Package minimums (annual, invoice currency)
# ---------------------------------------------------------------------
# DEFAULT_STARTER_MINIMUM_ANNUAL_VALUE:
# - Fixed fee of a starter package when neither the contract nor the package
#   definition carries a minimum annual value.
# - Other packages take their floor from the catalog (pro ships with 5000).
DEFAULT_STARTER_MINIMUM_ANNUAL_VALUE = float(os.getenv("SOLAR_INVOICING_STARTER_MINIMUM", "3000"))

# ---------------------------------------------------------------------
# Exchange rates
# ---------------------------------------------------------------------
# EXCHANGE_RATE_API_URL:
# - Frankfurter API, free and keyless. Queried as base=USD&symbols=EUR.
EXCHANGE_RATE_API_URL = os.getenv(
    "SOLAR_INVOICING_EXCHANGE_RATE_URL", "https://api.frankfurter.dev/v1/latest"
)

# FALLBACK_USD_EUR_RATE:
# - EUR per USD returned when the live fetch fails. Approximate.
FALLBACK_USD_EUR_RATE = float(os.getenv("SOLAR_INVOICING_FALLBACK_USD_EUR", "0.92"))

# HTTP_TIMEOUT_SECONDS:
# - Total timeout for the exchange-rate request (connect timeout is capped at 10s).
HTTP_TIMEOUT_SECONDS = float(os.getenv("SOLAR_INVOICING_HTTP_TIMEOUT", "15"))

# ---------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------
DEFAULT_LOG_LEVEL = os.getenv("SOLAR_INVOICING_LOG_LEVEL", "INFO")
