"""Pydantic schemas for API request/response models."""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

# Accepts NaN and infinities; the engine rejects them as InvalidInput
Amount = Annotated[Decimal, Field(allow_inf_nan=True)]


# ============================================================================
# Request schemas
# ============================================================================


class PayrollInputSchema(BaseModel):
    """Earnings and claims for one employee for one period.

    Sign and finiteness checks are left to the engine so that errors carry
    the same codes whether the engine is called directly or over HTTP.
    """

    model_config = ConfigDict(extra="forbid")

    basic_salary: Amount = Decimal("0")
    housing_allowance: Amount = Decimal("0")
    transport_allowance: Amount = Decimal("0")
    other_taxable_allowances: Amount = Decimal("0")
    non_taxable_allowances: Amount = Decimal("0")
    overtime_pay: Amount = Decimal("0")
    bonus: Amount = Decimal("0")
    other_deductions: Amount = Decimal("0")
    insurance_relief: Amount = Decimal("0")


class ComputeRequest(BaseModel):
    """Schema for a single payroll computation."""

    input: PayrollInputSchema
    rates: dict[str, Any] | None = Field(
        default=None,
        description="Rate snapshot payload; the service default is used when omitted",
    )


class PayRunRequest(BaseModel):
    """Schema for a batch computation over one rate snapshot."""

    employees: dict[str, PayrollInputSchema]
    rates: dict[str, Any] | None = None


# ============================================================================
# Response schemas
# ============================================================================


class PayRunResponse(BaseModel):
    """Schema for pay run results."""

    calculation_id: str
    results: dict[str, dict[str, Any]]
    errors: dict[str, str]
    total_gross: Decimal
    total_net: Decimal
    total_employer_contributions: Decimal


class RateTableResponse(BaseModel):
    """Schema for the service's rate snapshot."""

    fingerprint: str
    payload: dict[str, Any]


class ErrorResponse(BaseModel):
    """Schema for calculation error responses."""

    detail: str
    code: str
    field: str | None = None
    rate_type: str | None = None
