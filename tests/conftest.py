"""Pytest fixtures for statutory payroll tests."""

from __future__ import annotations

import copy
from decimal import Decimal

import pytest

from statutory_payroll.calculators.engine import PayrollCalculator
from statutory_payroll.calculators.rate_table import RateTable
from statutory_payroll.calculators.tax_calculator import TaxCalculator
from statutory_payroll.calculators.types import (
    ContributionTier,
    FlatLevy,
    PayrollInput,
    Relief,
    ReliefKind,
    TaxBand,
    TieredScheme,
)
from statutory_payroll.presets import KENYA_2024, load_preset


@pytest.fixture
def kenya_rates() -> RateTable:
    """Kenya 2024 monthly statutory table."""
    return load_preset("kenya_2024")


@pytest.fixture
def kenya_payload() -> dict:
    """A deep copy of the Kenya 2024 payload, safe to modify."""
    return copy.deepcopy(KENYA_2024)


@pytest.fixture
def calculator() -> PayrollCalculator:
    return PayrollCalculator()


@pytest.fixture
def tax_calculator() -> TaxCalculator:
    return TaxCalculator()


@pytest.fixture
def reference_input() -> PayrollInput:
    """Basic salary of 50,000 with no other earnings or claims."""
    return PayrollInput(basic_salary=Decimal("50000"))


@pytest.fixture
def contiguous_bands() -> tuple[TaxBand, ...]:
    """Progressive bands whose bounds meet exactly."""
    return (
        TaxBand(min_amount=Decimal("0"), max_amount=Decimal("10000"), rate=Decimal("0.10")),
        TaxBand(min_amount=Decimal("10000"), max_amount=Decimal("40000"), rate=Decimal("0.12")),
        TaxBand(min_amount=Decimal("40000"), max_amount=None, rate=Decimal("0.22")),
    )


def _build_table(**overrides) -> RateTable:
    """Build a small complete table, replacing any component by keyword."""
    components = {
        "tax_bands": (
            TaxBand(Decimal("0"), Decimal("10000"), Decimal("0.10")),
            TaxBand(Decimal("10000"), None, Decimal("0.20")),
        ),
        "tiered_schemes": {
            "nssf": TieredScheme(
                name="nssf",
                tiers=(
                    ContributionTier(ceiling=Decimal("5000"), rate=Decimal("0.05")),
                    ContributionTier(ceiling=Decimal("20000"), rate=Decimal("0.05")),
                ),
            )
        },
        "levies": {
            "housing_levy": FlatLevy(
                name="housing_levy",
                rate=Decimal("0.01"),
                employer_rate=Decimal("0.01"),
                deductible=True,
            ),
            "sha": FlatLevy(name="sha", rate=Decimal("0.02")),
        },
        "reliefs": {
            "personal_relief": Relief(name="personal_relief", amount=Decimal("500")),
            "insurance_relief": Relief(
                name="insurance_relief", amount=Decimal("1000"), kind=ReliefKind.CAP
            ),
        },
    }
    components.update(overrides)
    return RateTable(**components)


@pytest.fixture
def make_table():
    """Factory for small complete tables with overridable components."""
    return _build_table
