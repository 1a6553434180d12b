"""Statutory payroll deduction engine.

Computes gross pay, PAYE, tiered contributions, flat levies, reliefs and
net pay from one employee's earnings and a validated rate snapshot.
"""

from statutory_payroll.calculators import (
    InvalidInput,
    InvalidRateTable,
    MissingRateType,
    PayrollCalculationError,
    PayrollCalculator,
    PayRunCalculationResult,
    RateTable,
    compute_payroll,
)
from statutory_payroll.calculators.types import (
    ContributionTier,
    FlatLevy,
    LevyBase,
    PayrollBreakdown,
    PayrollInput,
    PayrollResult,
    Relief,
    ReliefKind,
    StatutoryRate,
    TaxBand,
    TieredScheme,
)

from statutory_payroll.presets import load_preset, load_rate_file

__version__ = "1.0.0"

__all__ = [
    "compute_payroll",
    "PayrollCalculator",
    "PayRunCalculationResult",
    "RateTable",
    "PayrollInput",
    "PayrollResult",
    "PayrollBreakdown",
    "TaxBand",
    "ContributionTier",
    "TieredScheme",
    "FlatLevy",
    "LevyBase",
    "Relief",
    "ReliefKind",
    "StatutoryRate",
    "PayrollCalculationError",
    "InvalidInput",
    "InvalidRateTable",
    "MissingRateType",
    "load_preset",
    "load_rate_file",
]
