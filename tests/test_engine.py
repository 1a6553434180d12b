"""Unit tests for PayrollCalculator.

Covers the full pipeline against the Kenya 2024 table.
"""

import json
from decimal import Decimal

import pytest

from statutory_payroll.calculators.engine import (
    PayRunCalculationResult,
    PayrollCalculator,
    compute_payroll,
)
from statutory_payroll.calculators.errors import (
    InvalidInput,
    InvalidRateTable,
    MissingRateType,
)
from statutory_payroll.calculators.line_builder import LineItemBuilder
from statutory_payroll.calculators.rate_table import RateTable
from statutory_payroll.calculators.types import (
    EARNING_FIELDS,
    ContributionTier,
    LineType,
    PayrollInput,
    TieredScheme,
)


class TestReferenceScenario:
    """Basic salary 50,000 under the 2024 table."""

    def test_headline_figures(self, kenya_rates, reference_input):
        result = compute_payroll(reference_input, kenya_rates)

        assert result.gross_pay == Decimal("50000.00")
        assert result.housing_levy_employee == Decimal("750.00")
        assert result.housing_levy_employer == Decimal("750.00")
        assert result.nssf_employee == Decimal("2160.00")
        assert result.nssf_employer == Decimal("2160.00")
        assert result.taxable_income == Decimal("47090.00")
        assert result.gross_paye == Decimal("8910.05")
        assert result.paye == Decimal("6510.05")
        assert result.sha_deduction == Decimal("1375.00")
        assert result.personal_relief == Decimal("2400.00")
        assert result.insurance_relief == Decimal("0.00")
        assert result.total_deductions == Decimal("10795.05")
        assert result.net_pay == Decimal("39204.95")

    def test_all_money_has_two_decimals(self, kenya_rates, reference_input):
        result = compute_payroll(reference_input, kenya_rates)

        for name in (
            "gross_pay",
            "taxable_income",
            "paye",
            "nssf_employee",
            "sha_deduction",
            "housing_levy_employee",
            "total_deductions",
            "net_pay",
        ):
            assert getattr(result, name).as_tuple().exponent == -2, name

    def test_band_allocations_are_traceable(self, kenya_rates, reference_input):
        result = compute_payroll(reference_input, kenya_rates)

        taxes = [a.tax for a in result.band_allocations]
        assert taxes[:3] == [Decimal("2400.00"), Decimal("2083.25"), Decimal("4426.8000")]
        assert LineItemBuilder.round_to_cents(sum(taxes)) == result.gross_paye

    def test_employer_contributions(self, kenya_rates, reference_input):
        result = compute_payroll(reference_input, kenya_rates)

        assert result.total_employer_contributions == Decimal("2910.00")
        assert result.breakdown.employer_contributions == {
            "nssf_employer": Decimal("2160.00"),
            "housing_levy_employer": Decimal("750.00"),
        }


class TestEdgeCases:
    """Edge cases from the statutory rules."""

    def test_zero_earnings(self, kenya_rates):
        result = compute_payroll(PayrollInput(), kenya_rates)

        assert result.gross_pay == Decimal("0.00")
        assert result.paye == Decimal("0.00")
        assert result.nssf_employee == Decimal("0.00")
        assert result.sha_deduction == Decimal("0.00")
        assert result.housing_levy_employee == Decimal("0.00")
        assert result.total_deductions == Decimal("0.00")
        assert result.net_pay == Decimal("0.00")

    def test_excess_other_deductions_clamps_net(self, kenya_rates):
        result = compute_payroll(
            PayrollInput(basic_salary=Decimal("10000"), other_deductions=Decimal("50000")),
            kenya_rates,
        )

        # 600 NSSF + 150 housing levy + 275 SHA + 50000 other, PAYE relieved to 0
        assert result.total_deductions == Decimal("51025.00")
        assert result.net_pay == Decimal("0.00")

    def test_non_taxable_allowances_excluded_from_bases(self, kenya_rates):
        result = compute_payroll(
            PayrollInput(basic_salary=Decimal("30000"), non_taxable_allowances=Decimal("10000")),
            kenya_rates,
        )

        assert result.gross_pay == Decimal("40000.00")
        # NSSF on 30000 only
        assert result.nssf_employee == Decimal("1800.00")
        # Levies stay on gross
        assert result.housing_levy_employee == Decimal("600.00")
        assert result.sha_deduction == Decimal("1100.00")
        assert result.taxable_income == Decimal("27600.00")
        # 2400 + 3599 * 0.25 - 2400
        assert result.paye == Decimal("899.75")
        assert result.net_pay == Decimal("35600.25")

    def test_insurance_relief_is_capped(self, kenya_rates):
        result = compute_payroll(
            PayrollInput(basic_salary=Decimal("100000"), insurance_relief=Decimal("8000")),
            kenya_rates,
        )

        assert result.insurance_relief == Decimal("5000.00")
        assert result.gross_paye == Decimal("23685.05")
        assert result.paye == Decimal("16285.05")
        assert result.net_pay == Decimal("77304.95")

    def test_insurance_relief_below_cap(self, kenya_rates):
        result = compute_payroll(
            PayrollInput(basic_salary=Decimal("100000"), insurance_relief=Decimal("3000")),
            kenya_rates,
        )

        assert result.insurance_relief == Decimal("3000.00")
        assert result.paye == Decimal("18285.05")

    def test_reliefs_never_produce_refund(self, kenya_rates):
        result = compute_payroll(PayrollInput(basic_salary=Decimal("20000")), kenya_rates)

        assert result.gross_paye == Decimal("1850.00")
        assert result.paye == Decimal("0.00")

    def test_nssf_capped_above_top_tier(self, kenya_rates):
        at_cap = compute_payroll(PayrollInput(basic_salary=Decimal("36000")), kenya_rates)
        above = compute_payroll(PayrollInput(basic_salary=Decimal("80000")), kenya_rates)

        assert at_cap.nssf_employee == above.nssf_employee == Decimal("2160.00")

    def test_all_earnings_enter_gross(self, kenya_rates):
        result = compute_payroll(
            PayrollInput(
                basic_salary="1000",
                housing_allowance="100",
                transport_allowance="200",
                other_taxable_allowances="300",
                non_taxable_allowances="400",
                overtime_pay="500",
                bonus="600",
            ),
            kenya_rates,
        )

        assert result.gross_pay == Decimal("3100.00")

    def test_asymmetric_employer_tier_rate(self, make_table):
        rates = make_table(
            tiered_schemes={
                "nssf": TieredScheme(
                    name="nssf",
                    tiers=(
                        ContributionTier(
                            ceiling=Decimal("20000"),
                            rate=Decimal("0.05"),
                            employer_rate=Decimal("0.10"),
                        ),
                    ),
                )
            }
        )

        result = compute_payroll(PayrollInput(basic_salary=Decimal("10000")), rates)

        assert result.nssf_employee == Decimal("500.00")
        assert result.nssf_employer == Decimal("1000.00")

    def test_non_deductible_scheme_leaves_taxable_income(self, make_table):
        rates = make_table(
            tiered_schemes={
                "nssf": TieredScheme(
                    name="nssf",
                    tiers=(ContributionTier(ceiling=Decimal("20000"), rate=Decimal("0.05")),),
                    deductible=False,
                )
            }
        )

        result = compute_payroll(PayrollInput(basic_salary=Decimal("10000")), rates)

        # Only the 1% housing levy is deducted before tax
        assert result.taxable_income == Decimal("9900.00")


class TestInputValidation:
    """Invalid inputs fail the computation outright."""

    def test_negative_amount(self, kenya_rates):
        with pytest.raises(InvalidInput) as exc_info:
            compute_payroll(PayrollInput(basic_salary=Decimal("-1")), kenya_rates)

        assert exc_info.value.field == "basic_salary"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "Infinity", "abc", True, None])
    def test_non_finite_or_malformed(self, value):
        with pytest.raises(InvalidInput) as exc_info:
            PayrollInput(bonus=value)

        assert exc_info.value.field == "bonus"

    def test_mapping_input(self, kenya_rates, reference_input):
        from_mapping = compute_payroll({"basic_salary": 50000}, kenya_rates)

        assert from_mapping == compute_payroll(reference_input, kenya_rates)

    def test_unknown_mapping_field(self, kenya_rates):
        with pytest.raises(InvalidInput) as exc_info:
            compute_payroll({"basic_salary": 50000, "commission": 10}, kenya_rates)

        assert exc_info.value.field == "commission"

    def test_wrong_input_type(self, kenya_rates):
        with pytest.raises(InvalidInput):
            compute_payroll(50000, kenya_rates)

    def test_rates_must_be_rate_table(self, reference_input):
        with pytest.raises(InvalidRateTable):
            compute_payroll(reference_input, {"paye_bands": []})

    @pytest.mark.parametrize("value", ["1e27", Decimal("1E+24")])
    def test_amount_too_large(self, kenya_rates, value):
        with pytest.raises(InvalidInput) as exc_info:
            compute_payroll(PayrollInput(basic_salary=value), kenya_rates)

        assert exc_info.value.field == "basic_salary"
        assert exc_info.value.reason == "amount too large"

    def test_largest_accepted_amounts_compute(self, kenya_rates):
        big = Decimal("9" * 24)
        result = compute_payroll({name: big for name in EARNING_FIELDS}, kenya_rates)

        assert result.gross_pay == big * len(EARNING_FIELDS)

    def test_negative_zero_is_normalised(self, kenya_rates, reference_input):
        payroll_input = PayrollInput(
            basic_salary=Decimal("50000"),
            bonus=Decimal("-0"),
            other_deductions=Decimal("-0.00"),
        )

        data = compute_payroll(payroll_input, kenya_rates).to_dict()

        assert data["other_deductions"] == "0.00"
        assert data["breakdown"]["earnings"]["bonus"] == "0.00"
        assert data == compute_payroll(reference_input, kenya_rates).to_dict()


class TestRequiredRateTypes:
    """The calculator refuses to run on incomplete configuration."""

    def test_missing_levy(self, kenya_payload, reference_input):
        del kenya_payload["levies"]["sha"]
        rates = RateTable.from_payload(kenya_payload, required=())

        with pytest.raises(MissingRateType) as exc_info:
            compute_payroll(reference_input, rates)

        assert exc_info.value.rate_type == "sha"

    def test_custom_requirements(self, kenya_payload, reference_input):
        del kenya_payload["levies"]["sha"]
        rates = RateTable.from_payload(kenya_payload, required=())
        calculator = PayrollCalculator(
            required_rate_types=("paye_band", "nssf", "housing_levy", "personal_relief")
        )

        result = calculator.compute_payroll(reference_input, rates)

        assert result.sha_deduction == Decimal("0.00")
        assert result.net_pay == Decimal("40579.95")


class TestDeterminism:
    """Identical arguments give identical results."""

    def test_byte_identical_results(self, kenya_rates, reference_input):
        first = compute_payroll(reference_input, kenya_rates)
        second = compute_payroll(reference_input, kenya_rates)

        assert first == second
        assert first.canonical_json() == second.canonical_json()

    def test_result_serializes_to_json(self, kenya_rates, reference_input):
        data = json.loads(compute_payroll(reference_input, kenya_rates).canonical_json())

        assert data["net_pay"] == "39204.95"
        assert data["levies"]["sha"] == {"employee": "1375.00", "employer": "0.00"}
        assert data["rate_table_fingerprint"] == kenya_rates.fingerprint()


class TestBreakdown:
    """Test payslip breakdown assembly."""

    def test_earnings_mirror_input(self, kenya_rates):
        result = compute_payroll(
            PayrollInput(basic_salary="40000", transport_allowance="2500"), kenya_rates
        )

        assert result.breakdown.earnings["basic_salary"] == Decimal("40000.00")
        assert result.breakdown.earnings["transport_allowance"] == Decimal("2500.00")
        assert result.breakdown.earnings["bonus"] == Decimal("0.00")

    def test_deductions(self, kenya_rates, reference_input):
        result = compute_payroll(reference_input, kenya_rates)

        assert result.breakdown.deductions == {
            "paye": Decimal("6510.05"),
            "nssf_employee": Decimal("2160.00"),
            "housing_levy_employee": Decimal("750.00"),
            "sha_employee": Decimal("1375.00"),
            "other_deductions": Decimal("0.00"),
        }

    def test_lines_reconcile(self, kenya_rates, reference_input):
        result = compute_payroll(reference_input, kenya_rates)
        lines = list(result.breakdown.lines)

        assert LineItemBuilder.validate_line_signs(lines) == []
        assert LineItemBuilder.calculate_gross_from_lines(lines) == result.gross_pay
        assert LineItemBuilder.calculate_net_from_lines(lines) == result.net_pay
        assert LineItemBuilder.sum_by_type(lines)[LineType.EMPLOYER_CONTRIBUTION] == Decimal(
            "2910.00"
        )


class TestPayRun:
    """Test batch computation."""

    def test_failures_are_isolated(self, calculator, kenya_rates, reference_input):
        run = calculator.compute_pay_run(
            {"alice": reference_input, "bob": {"basic_salary": -5}}, kenya_rates
        )

        assert isinstance(run, PayRunCalculationResult)
        assert list(run.results) == ["alice"]
        assert "basic_salary" in run.errors["bob"]
        assert run.error_count == 1
        assert not run.success
        assert run.total_gross == Decimal("50000.00")
        assert run.total_net == Decimal("39204.95")
        assert run.total_employer_contributions == Decimal("2910.00")

    def test_oversized_amount_is_isolated(self, calculator, kenya_rates, reference_input):
        run = calculator.compute_pay_run(
            {"alice": reference_input, "bob": {"basic_salary": "1e27"}}, kenya_rates
        )

        assert list(run.results) == ["alice"]
        assert "amount too large" in run.errors["bob"]
        assert run.total_net == Decimal("39204.95")

    def test_non_mapping_entry_is_isolated(self, calculator, kenya_rates, reference_input):
        run = calculator.compute_pay_run({"alice": reference_input, "bob": None}, kenya_rates)

        assert list(run.results) == ["alice"]
        assert list(run.errors) == ["bob"]
        assert run.total_gross == Decimal("50000.00")

    def test_thread_pool_matches_sequential(self, calculator, kenya_rates):
        inputs = {f"emp-{i}": PayrollInput(basic_salary=Decimal(10000 * i)) for i in range(1, 9)}

        sequential = calculator.compute_pay_run(inputs, kenya_rates)
        parallel = calculator.compute_pay_run(inputs, kenya_rates, max_workers=4)

        assert list(parallel.results) == list(inputs)
        assert parallel.results == sequential.results
        assert parallel.calculation_id == sequential.calculation_id

    def test_calculation_id_depends_on_inputs(self, calculator, kenya_rates):
        a = calculator.compute_pay_run({"x": PayrollInput(basic_salary="1000")}, kenya_rates)
        b = calculator.compute_pay_run({"x": PayrollInput(basic_salary="2000")}, kenya_rates)

        assert a.calculation_id != b.calculation_id

    def test_broken_table_fails_whole_run(self, calculator, kenya_payload):
        del kenya_payload["tiered_contributions"]["nssf"]
        rates = RateTable.from_payload(kenya_payload, required=())

        with pytest.raises(MissingRateType):
            calculator.compute_pay_run({"x": PayrollInput()}, rates)
