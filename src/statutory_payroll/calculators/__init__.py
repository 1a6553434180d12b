"""Statutory payroll calculation engine."""

from statutory_payroll.calculators.engine import (
    PayRunCalculationResult,
    PayrollCalculator,
    compute_payroll,
)
from statutory_payroll.calculators.errors import (
    InvalidInput,
    InvalidRateTable,
    MissingRateType,
    PayrollCalculationError,
)
from statutory_payroll.calculators.line_builder import LineItemBuilder
from statutory_payroll.calculators.rate_table import RateTable
from statutory_payroll.calculators.tax_calculator import TaxCalculator

__all__ = [
    "PayrollCalculator",
    "PayRunCalculationResult",
    "compute_payroll",
    "InvalidInput",
    "InvalidRateTable",
    "MissingRateType",
    "PayrollCalculationError",
    "LineItemBuilder",
    "RateTable",
    "TaxCalculator",
]
