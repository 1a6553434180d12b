"""Payroll computation endpoints."""

from typing import Any

from fastapi import APIRouter, status

from statutory_payroll.api.dependencies import Calculator, DefaultRates
from statutory_payroll.api.schemas import (
    ComputeRequest,
    ErrorResponse,
    PayRunRequest,
    PayRunResponse,
    RateTableResponse,
)
from statutory_payroll.calculators.rate_table import RateTable
from statutory_payroll.calculators.types import PayrollInput

router = APIRouter(tags=["payroll"])


def _resolve_rates(payload: dict[str, Any] | None, default: RateTable) -> RateTable:
    if payload is None:
        return default
    return RateTable.from_payload(payload)


@router.get(
    "/rates",
    response_model=RateTableResponse,
)
async def get_rates(rates: DefaultRates) -> RateTableResponse:
    """Return the default rate snapshot used when requests omit rates."""
    return RateTableResponse(fingerprint=rates.fingerprint(), payload=rates.to_payload())


@router.post(
    "/payroll/compute",
    status_code=status.HTTP_200_OK,
    responses={422: {"model": ErrorResponse}},
)
async def compute(
    payload: ComputeRequest,
    calculator: Calculator,
    default_rates: DefaultRates,
) -> dict[str, Any]:
    """Compute one employee's statutory deductions and net pay."""
    rates = _resolve_rates(payload.rates, default_rates)
    payroll_input = PayrollInput(**payload.input.model_dump())
    return calculator.compute_payroll(payroll_input, rates).to_dict()


@router.post(
    "/payroll/pay-run",
    response_model=PayRunResponse,
    responses={422: {"model": ErrorResponse}},
)
async def compute_pay_run(
    payload: PayRunRequest,
    calculator: Calculator,
    default_rates: DefaultRates,
) -> PayRunResponse:
    """Compute a batch of employees; failures are reported per employee."""
    rates = _resolve_rates(payload.rates, default_rates)
    inputs = {key: item.model_dump() for key, item in payload.employees.items()}
    run = calculator.compute_pay_run(inputs, rates)

    return PayRunResponse(
        calculation_id=str(run.calculation_id),
        results={key: result.to_dict() for key, result in run.results.items()},
        errors=run.errors,
        total_gross=run.total_gross,
        total_net=run.total_net,
        total_employer_contributions=run.total_employer_contributions,
    )
