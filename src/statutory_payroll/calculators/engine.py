"""Payroll calculation engine - main orchestrator."""

from __future__ import annotations

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping
from uuid import UUID

from statutory_payroll.calculators.errors import (
    InvalidInput,
    InvalidRateTable,
    PayrollCalculationError,
)
from statutory_payroll.calculators.line_builder import LineItemBuilder
from statutory_payroll.calculators.rate_table import (
    DEFAULT_REQUIRED_RATE_TYPES,
    HOUSING_LEVY,
    INSURANCE_RELIEF,
    NSSF,
    PAYE_BAND,
    PERSONAL_RELIEF,
    SHA,
    RateTable,
)
from statutory_payroll.calculators.tax_calculator import TaxCalculator
from statutory_payroll.calculators.types import (
    EARNING_FIELDS,
    LineCandidate,
    PayrollBreakdown,
    PayrollInput,
    PayrollResult,
    SplitAmount,
)
from statutory_payroll.config import get_settings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
round_to_cents = LineItemBuilder.round_to_cents


@dataclass
class PayRunCalculationResult:
    """Result of calculating a batch of employees for one period."""

    calculation_id: UUID
    results: dict[str, PayrollResult]  # employee key -> result
    errors: dict[str, str] = field(default_factory=dict)  # employee key -> message
    total_gross: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    total_employer_contributions: Decimal = Decimal("0")

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors


class PayrollCalculator:
    """Statutory payroll calculator.

    Calculation pipeline (stable order, reordering changes the result):
    1) Gross pay = all earnings
    2) Taxable gross = gross - non-taxable allowances
    3) Tiered contributions (NSSF) on taxable gross, capped at the top tier
    4) Flat levies (Housing Levy, SHA) on their base
    5) Taxable income = taxable gross - deductible employee contributions
    6) Progressive tax (PAYE) over the bands
    7) Reliefs (personal, insurance) off the tax, never below zero
    8) Non-deductible levies are plain post-tax deductions
    9) Total deductions
    10) Net pay, clamped at zero
    11) Breakdown for payslips

    The calculator holds no per-computation state and may be shared
    across threads.
    """

    def __init__(self, required_rate_types: Iterable[str] = DEFAULT_REQUIRED_RATE_TYPES):
        self.required_rate_types = tuple(required_rate_types)
        self.tax_calculator = TaxCalculator()

    def compute_payroll(
        self,
        payroll_input: PayrollInput | Mapping[str, Any],
        rates: RateTable,
    ) -> PayrollResult:
        """Compute one employee's pay for one period.

        Raises:
            InvalidInput: If any amount is negative or non-finite
            InvalidRateTable: If rates is not a validated RateTable
            MissingRateType: If a required rate type is not configured
        """
        if isinstance(payroll_input, Mapping):
            payroll_input = PayrollInput.from_dict(payroll_input)
        elif not isinstance(payroll_input, PayrollInput):
            raise InvalidInput("input", payroll_input, "expected a PayrollInput")
        if not isinstance(rates, RateTable):
            raise InvalidRateTable("rate_table", "expected a RateTable snapshot")
        rates.require(self.required_rate_types)

        calc = self.tax_calculator

        # 1) Gross pay
        gross_pay = round_to_cents(sum(payroll_input.earnings.values(), ZERO))

        # 2) Non-taxable allowances never enter tax or contribution bases
        taxable_gross = round_to_cents(
            max(gross_pay - payroll_input.non_taxable_allowances, ZERO)
        )

        # 3) Tiered contributions
        contributions: dict[str, SplitAmount] = {
            name: calc.calculate_tiered_contribution(taxable_gross, scheme)
            for name, scheme in rates.tiered_schemes.items()
        }

        # 4) and 8) Flat levies
        levies: dict[str, SplitAmount] = {
            name: calc.calculate_flat_levy(levy, gross_pay, taxable_gross)
            for name, levy in rates.levies.items()
        }

        # 5) Only deductible employee portions reduce taxable income
        deductible = sum(
            (
                contributions[name].employee
                for name, scheme in rates.tiered_schemes.items()
                if scheme.deductible
            ),
            ZERO,
        ) + sum(
            (levies[name].employee for name, levy in rates.levies.items() if levy.deductible),
            ZERO,
        )
        taxable_income = round_to_cents(max(taxable_gross - deductible, ZERO))

        # 6) Progressive tax
        bands = rates.bands_for(PAYE_BAND)
        band_allocations = tuple(calc.allocate_bands(taxable_income, bands))
        gross_paye = calc.calculate_progressive_tax(taxable_income, bands)

        # 7) Reliefs
        personal_relief = (
            calc.calculate_relief(rates.relief_for(PERSONAL_RELIEF))
            if rates.has_rate_type(PERSONAL_RELIEF)
            else round_to_cents(ZERO)
        )
        insurance_relief = (
            calc.calculate_relief(
                rates.relief_for(INSURANCE_RELIEF), payroll_input.insurance_relief
            )
            if rates.has_rate_type(INSURANCE_RELIEF)
            else round_to_cents(ZERO)
        )
        paye = calc.apply_reliefs(gross_paye, [personal_relief, insurance_relief])

        # 9) Total deductions, summed from already-rounded components
        other_deductions = round_to_cents(payroll_input.other_deductions)
        total_deductions = round_to_cents(
            paye
            + sum((c.employee for c in contributions.values()), ZERO)
            + sum((lv.employee for lv in levies.values()), ZERO)
            + other_deductions
        )

        # 10) Net pay never goes negative
        net_pay = round_to_cents(max(gross_pay - total_deductions, ZERO))

        # 11) Breakdown
        breakdown = self._build_breakdown(
            payroll_input, rates, paye, contributions, levies, other_deductions
        )

        zero = round_to_cents(ZERO)
        nssf = contributions.get(NSSF, SplitAmount(zero, zero))
        housing_levy = levies.get(HOUSING_LEVY, SplitAmount(zero, zero))
        sha = levies.get(SHA, SplitAmount(zero, zero))

        logger.debug(
            "Computed payroll: gross=%s taxable=%s paye=%s net=%s",
            gross_pay,
            taxable_income,
            paye,
            net_pay,
        )

        return PayrollResult(
            gross_pay=gross_pay,
            taxable_income=taxable_income,
            gross_paye=gross_paye,
            paye=paye,
            nssf_employee=nssf.employee,
            nssf_employer=nssf.employer,
            sha_deduction=sha.employee,
            housing_levy_employee=housing_levy.employee,
            housing_levy_employer=housing_levy.employer,
            personal_relief=personal_relief,
            insurance_relief=insurance_relief,
            other_deductions=other_deductions,
            total_deductions=total_deductions,
            net_pay=net_pay,
            contributions=contributions,
            levies=levies,
            band_allocations=band_allocations,
            breakdown=breakdown,
            rate_table_fingerprint=rates.fingerprint(),
        )

    def compute_pay_run(
        self,
        inputs: Mapping[str, PayrollInput | Mapping[str, Any]],
        rates: RateTable,
        max_workers: int | None = None,
    ) -> PayRunCalculationResult:
        """Compute pay for a batch of employees sharing one rate table.

        Employees are independent: one employee's bad input is recorded in
        ``errors`` and never yields a partial result, while the others are
        still computed. A broken rate table fails the whole run.
        """
        if not isinstance(rates, RateTable):
            raise InvalidRateTable("rate_table", "expected a RateTable snapshot")
        rates.require(self.required_rate_types)

        items = list(inputs.items())
        if max_workers is not None and max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(lambda item: self._compute_one(item, rates), items))
        else:
            outcomes = [self._compute_one(item, rates) for item in items]

        results: dict[str, PayrollResult] = {}
        errors: dict[str, str] = {}
        total_gross = Decimal("0")
        total_net = Decimal("0")
        total_employer = Decimal("0")

        for key, result, error in outcomes:
            if result is None:
                errors[key] = error or "Unknown error"
                continue
            results[key] = result
            total_gross += result.gross_pay
            total_net += result.net_pay
            total_employer += result.total_employer_contributions

        return PayRunCalculationResult(
            calculation_id=self._generate_calculation_id(items, rates),
            results=results,
            errors=errors,
            total_gross=round_to_cents(total_gross),
            total_net=round_to_cents(total_net),
            total_employer_contributions=round_to_cents(total_employer),
        )

    def _compute_one(
        self,
        item: tuple[str, PayrollInput | Mapping[str, Any]],
        rates: RateTable,
    ) -> tuple[str, PayrollResult | None, str | None]:
        key, payroll_input = item
        try:
            return key, self.compute_payroll(payroll_input, rates), None
        except PayrollCalculationError as e:
            logger.warning("Payroll computation failed for %s: %s", key, e)
            return key, None, str(e)

    def _build_breakdown(
        self,
        payroll_input: PayrollInput,
        rates: RateTable,
        paye: Decimal,
        contributions: dict[str, SplitAmount],
        levies: dict[str, SplitAmount],
        other_deductions: Decimal,
    ) -> PayrollBreakdown:
        """Mirror earnings, deductions and employer contributions as lines."""
        earnings = {name: round_to_cents(payroll_input.earnings[name]) for name in EARNING_FIELDS}
        deductions: dict[str, Decimal] = {"paye": paye}
        employer: dict[str, Decimal] = {}
        lines: list[LineCandidate] = []

        for name, amount in earnings.items():
            if amount > 0:
                lines.append(LineItemBuilder.create_earning_line(name, amount))

        if paye > 0:
            lines.append(LineItemBuilder.create_tax_line("paye", paye, explanation="PAYE"))

        for name, split in contributions.items():
            deductions[f"{name}_employee"] = split.employee
            employer[f"{name}_employer"] = split.employer
            if split.employee > 0:
                lines.append(
                    LineItemBuilder.create_deduction_line(
                        f"{name}_employee", split.employee, explanation=f"{name.upper()} (Employee)"
                    )
                )
            if split.employer > 0:
                lines.append(
                    LineItemBuilder.create_employer_contribution_line(
                        f"{name}_employer", split.employer, explanation=f"{name.upper()} (Employer)"
                    )
                )

        for name, split in levies.items():
            levy = rates.levy_for(name)
            deductions[f"{name}_employee"] = split.employee
            if split.employee > 0:
                lines.append(
                    LineItemBuilder.create_deduction_line(
                        f"{name}_employee", split.employee, rate=levy.rate
                    )
                )
            if levy.has_employer_side:
                employer[f"{name}_employer"] = split.employer
                if split.employer > 0:
                    lines.append(
                        LineItemBuilder.create_employer_contribution_line(
                            f"{name}_employer", split.employer, rate=levy.employer_rate
                        )
                    )

        deductions["other_deductions"] = other_deductions
        if other_deductions > 0:
            lines.append(LineItemBuilder.create_deduction_line("other_deductions", other_deductions))

        return PayrollBreakdown(
            earnings=earnings,
            deductions=deductions,
            employer_contributions=employer,
            lines=tuple(lines),
        )

    def _generate_calculation_id(
        self,
        items: list[tuple[str, PayrollInput | Mapping[str, Any]]],
        rates: RateTable,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        inputs_data = []
        for key, payroll_input in items:
            if isinstance(payroll_input, PayrollInput):
                inputs_data.append([key, payroll_input.to_dict()])
            elif isinstance(payroll_input, Mapping):
                inputs_data.append([key, {k: str(v) for k, v in payroll_input.items()}])
            else:
                inputs_data.append([key, repr(payroll_input)])
        data = {
            "engine_version": get_settings().engine_version,
            "inputs": inputs_data,
            "rules_fingerprint": rates.fingerprint(),
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])


_default_calculator = PayrollCalculator()


def compute_payroll(
    payroll_input: PayrollInput | Mapping[str, Any],
    rates: RateTable,
) -> PayrollResult:
    """Compute payroll with the default statutory requirements."""
    return _default_calculator.compute_payroll(payroll_input, rates)
