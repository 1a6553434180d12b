"""Statutory rate snapshots shipped with the engine.

Run-time tables normally come from the statutory-rates store; these
payloads seed that store and back the preview service when no rate file
is configured.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from statutory_payroll.calculators.errors import InvalidRateTable
from statutory_payroll.calculators.rate_table import RateTable

logger = logging.getLogger(__name__)

# Monthly figures, KES. PAYE bands use the published whole-shilling bounds.
KENYA_2024: dict[str, Any] = {
    "label": "Kenya 2024 monthly",
    "effective_from": "2024-12-27",
    "paye_bands": [
        {"min": "0", "max": "24000", "rate": "0.10"},
        {"min": "24001", "max": "32333", "rate": "0.25"},
        {"min": "32334", "max": "500000", "rate": "0.30"},
        {"min": "500001", "max": "800000", "rate": "0.325"},
        {"min": "800001", "max": None, "rate": "0.35"},
    ],
    "tiered_contributions": {
        "nssf": {
            "deductible": True,
            "tiers": [
                {"min": "0", "ceiling": "7000", "rate": "0.06", "employer_rate": "0.06"},
                {"min": "7001", "ceiling": "36000", "rate": "0.06", "employer_rate": "0.06"},
            ],
        },
    },
    "levies": {
        "housing_levy": {
            "rate": "0.015",
            "employer_rate": "0.015",
            "base": "gross_pay",
            "deductible": True,
        },
        "sha": {"rate": "0.0275", "base": "gross_pay", "deductible": False},
    },
    "reliefs": {
        "personal_relief": {"amount": "2400", "kind": "flat"},
        "insurance_relief": {"amount": "5000", "kind": "cap"},
    },
}

PRESETS: dict[str, dict[str, Any]] = {
    "kenya_2024": KENYA_2024,
}


def load_preset(name: str) -> RateTable:
    """Build the named preset table."""
    try:
        payload = PRESETS[name]
    except KeyError:
        raise InvalidRateTable("preset", f"unknown preset '{name}'") from None
    return RateTable.from_payload(payload)


def load_rate_file(path: str | Path) -> RateTable:
    """Build a table from a JSON payload file."""
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidRateTable("payload", f"{path} is not valid JSON: {e}") from e
    logger.info("Reading rate table from %s", path)
    return RateTable.from_payload(payload)
