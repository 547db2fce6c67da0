from __future__ import annotations

from dataclasses import dataclass


class ConfigurationError(ValueError):
    """Catalog or contract structure is invalid (unknown package, malformed tiers).

    Always propagates: invoice generation for the affected contract must stop
    and an operator has to fix the data.
    """


@dataclass(frozen=True)
class DataGapWarning:
    """A missing or unusable input that pricing recovered from with a safe default."""

    key: str
    message: str
    kind: str = "data_gap"


@dataclass(frozen=True)
class PrecisionWarning:
    """A fallback tier was used because the tier table does not cover a quantity."""

    key: str
    message: str
    kind: str = "precision"
