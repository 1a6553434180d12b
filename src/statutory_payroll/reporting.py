"""Aggregate reporting over finalized payroll results.

Totals are always sums of the rounded fields on each PayrollResult;
nothing here recomputes a deduction from the breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from statutory_payroll.calculators.errors import InvalidInput
from statutory_payroll.calculators.types import PayrollResult

ZERO = Decimal("0")
MONTHS_IN_YEAR = 12


@dataclass(frozen=True)
class PayrollSummary:
    """Payroll register totals for a period (or any set of results)."""

    employee_count: int
    gross_pay: Decimal = ZERO
    paye: Decimal = ZERO
    nssf_employee: Decimal = ZERO
    nssf_employer: Decimal = ZERO
    sha_deduction: Decimal = ZERO
    housing_levy_employee: Decimal = ZERO
    housing_levy_employer: Decimal = ZERO
    other_deductions: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_pay: Decimal = ZERO

    @property
    def nssf_total(self) -> Decimal:
        return self.nssf_employee + self.nssf_employer

    @property
    def housing_levy_total(self) -> Decimal:
        return self.housing_levy_employee + self.housing_levy_employer


@dataclass(frozen=True)
class P9Totals:
    """Annual totals for an employee's P9 tax deduction card."""

    months: int
    gross_pay: Decimal = ZERO
    defined_contribution: Decimal = ZERO  # NSSF + Housing Levy (employee)
    taxable_income: Decimal = ZERO
    personal_relief: Decimal = ZERO
    insurance_relief: Decimal = ZERO
    paye: Decimal = ZERO

    @property
    def tax_charged(self) -> Decimal:
        """Tax before reliefs, as reported on the card."""
        return self.paye + self.personal_relief + self.insurance_relief


def _total(results: Sequence[PayrollResult], attr: str) -> Decimal:
    return sum((getattr(r, attr) for r in results), ZERO)


def summarize(results: Iterable[PayrollResult]) -> PayrollSummary:
    """Sum statutory figures across employees."""
    results = list(results)
    return PayrollSummary(
        employee_count=len(results),
        gross_pay=_total(results, "gross_pay"),
        paye=_total(results, "paye"),
        nssf_employee=_total(results, "nssf_employee"),
        nssf_employer=_total(results, "nssf_employer"),
        sha_deduction=_total(results, "sha_deduction"),
        housing_levy_employee=_total(results, "housing_levy_employee"),
        housing_levy_employer=_total(results, "housing_levy_employer"),
        other_deductions=_total(results, "other_deductions"),
        total_deductions=_total(results, "total_deductions"),
        net_pay=_total(results, "net_pay"),
    )


def p9_totals(monthly_results: Iterable[PayrollResult]) -> P9Totals:
    """Sum one employee's monthly results into P9 annual totals."""
    results = list(monthly_results)
    if len(results) > MONTHS_IN_YEAR:
        raise InvalidInput(
            "monthly_results", len(results), f"a P9 year has at most {MONTHS_IN_YEAR} months"
        )
    return P9Totals(
        months=len(results),
        gross_pay=_total(results, "gross_pay"),
        defined_contribution=_total(results, "nssf_employee")
        + _total(results, "housing_levy_employee"),
        taxable_income=_total(results, "taxable_income"),
        personal_relief=_total(results, "personal_relief"),
        insurance_relief=_total(results, "insurance_relief"),
        paye=_total(results, "paye"),
    )
