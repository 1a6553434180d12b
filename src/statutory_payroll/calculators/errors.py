"""Errors raised by the statutory payroll calculators."""

from __future__ import annotations

from typing import Any


class PayrollCalculationError(Exception):
    """Base class for all calculation errors.

    Every error is terminal for the computation that raised it and is
    reproduced identically when retried with the same arguments.
    """

    code = "CALCULATION_ERROR"


class InvalidInput(PayrollCalculationError):
    """Raised when an employee figure is negative, non-finite or malformed."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, reason: str = "must be a non-negative amount"):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value {value!r} for '{field}': {reason}")


class InvalidRateTable(PayrollCalculationError):
    """Raised when a statutory rate configuration is structurally invalid."""

    code = "INVALID_RATE_TABLE"

    def __init__(self, rate_type: str, reason: str):
        self.rate_type = rate_type
        self.reason = reason
        super().__init__(f"Invalid rate table for '{rate_type}': {reason}")


class MissingRateType(InvalidRateTable):
    """Raised when a required statutory scheme has no active configuration."""

    code = "MISSING_RATE_TYPE"

    def __init__(self, rate_type: str):
        super().__init__(rate_type, "no active rate configured")
        self.args = (f"Rate type '{rate_type}' is not defined in the rate table",)
