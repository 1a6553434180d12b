"""Type definitions for the statutory calculation pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
from enum import Enum
from typing import Any, Mapping

from statutory_payroll.calculators.errors import InvalidInput, InvalidRateTable

ZERO = Decimal("0")

# Earnings components, in the order they appear on a payslip
EARNING_FIELDS = (
    "basic_salary",
    "housing_allowance",
    "transport_allowance",
    "other_taxable_allowances",
    "non_taxable_allowances",
    "overtime_pay",
    "bonus",
)


def _parse_decimal(value: Any) -> Decimal:
    """Convert a numeric value to Decimal, rejecting booleans and non-finite values."""
    if isinstance(value, bool):
        raise ValueError("booleans are not amounts")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"cannot parse {value!r} as a number") from e
    else:
        raise ValueError(f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise ValueError("amount must be finite")
    return result


def to_amount(field_name: str, value: Any) -> Decimal:
    """Coerce an employee figure to a non-negative finite Decimal."""
    try:
        amount = _parse_decimal(value)
    except ValueError as e:
        raise InvalidInput(field_name, value, str(e)) from e
    if amount < 0:
        raise InvalidInput(field_name, value)
    # Sums of earnings must still quantize to cents within the context precision
    if amount.adjusted() > getcontext().prec - 5:
        raise InvalidInput(field_name, value, "amount too large")
    if amount == 0:
        amount = abs(amount)
    return amount


def to_rate_value(rate_type: str, label: str, value: Any) -> Decimal:
    """Coerce a rate-table value to a finite Decimal."""
    try:
        return _parse_decimal(value)
    except ValueError as e:
        raise InvalidRateTable(rate_type, f"{label}: {e}") from e


def _optional_rate_value(rate_type: str, label: str, value: Any) -> Decimal | None:
    if value is None:
        return None
    return to_rate_value(rate_type, label, value)


class RateKind(str, Enum):
    """How the rows of a rate_type are interpreted."""

    BAND = "band"
    TIER = "tier"
    LEVY = "levy"
    RELIEF = "relief"


class LevyBase(str, Enum):
    """Amount a flat levy is charged on."""

    GROSS_PAY = "gross_pay"
    TAXABLE_GROSS = "taxable_gross"


class ReliefKind(str, Enum):
    """Relief semantics."""

    FLAT = "flat"  # Always granted in full
    CAP = "cap"  # Granted up to the amount claimed


@dataclass(frozen=True)
class PayrollInput:
    """Earnings and claims for one employee for one pay period.

    Multi-line allowances and ad-hoc deductions are expected to be
    pre-summed by the caller.
    """

    basic_salary: Decimal = ZERO
    housing_allowance: Decimal = ZERO
    transport_allowance: Decimal = ZERO
    other_taxable_allowances: Decimal = ZERO
    non_taxable_allowances: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    bonus: Decimal = ZERO
    other_deductions: Decimal = ZERO
    insurance_relief: Decimal = ZERO

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(self, f.name, to_amount(f.name, getattr(self, f.name)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PayrollInput:
        """Build an input from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                raise InvalidInput(key, data[key], "unknown field")
        return cls(**{k: v for k, v in data.items() if v is not None})

    @property
    def earnings(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in EARNING_FIELDS}

    def to_dict(self) -> dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class TaxBand:
    """Tax band for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.25 for 25%

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_amount", to_rate_value("paye_band", "min", self.min_amount))
        object.__setattr__(
            self, "max_amount", _optional_rate_value("paye_band", "max", self.max_amount)
        )
        object.__setattr__(self, "rate", to_rate_value("paye_band", "rate", self.rate))

    @property
    def is_open_ended(self) -> bool:
        return self.max_amount is None


@dataclass(frozen=True)
class ContributionTier:
    """One slice of a tiered contribution scheme."""

    ceiling: Decimal  # Cumulative pensionable earnings limit
    rate: Decimal
    employer_rate: Decimal | None = None  # None = employer matches employee
    min_amount: Decimal | None = None  # Informational lower bound, checked if given

    def __post_init__(self) -> None:
        object.__setattr__(self, "ceiling", to_rate_value("tier", "ceiling", self.ceiling))
        object.__setattr__(self, "rate", to_rate_value("tier", "rate", self.rate))
        object.__setattr__(
            self, "employer_rate", _optional_rate_value("tier", "employer_rate", self.employer_rate)
        )
        object.__setattr__(
            self, "min_amount", _optional_rate_value("tier", "min", self.min_amount)
        )

    @property
    def effective_employer_rate(self) -> Decimal:
        return self.rate if self.employer_rate is None else self.employer_rate


@dataclass(frozen=True)
class TieredScheme:
    """Social-security style scheme computed over cumulative tiers (e.g. NSSF)."""

    name: str
    tiers: tuple[ContributionTier, ...]
    deductible: bool = True  # Employee portion reduces taxable income

    def __post_init__(self) -> None:
        object.__setattr__(self, "tiers", tuple(self.tiers))

    @property
    def top_ceiling(self) -> Decimal:
        return self.tiers[-1].ceiling


@dataclass(frozen=True)
class FlatLevy:
    """Levy charged as a single rate on a base amount (e.g. SHA, Housing Levy)."""

    name: str
    rate: Decimal
    employer_rate: Decimal | None = None  # None = employee-only levy
    base: LevyBase = LevyBase.GROSS_PAY
    deductible: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", to_rate_value(self.name, "rate", self.rate))
        object.__setattr__(
            self,
            "employer_rate",
            _optional_rate_value(self.name, "employer_rate", self.employer_rate),
        )
        try:
            object.__setattr__(self, "base", LevyBase(self.base))
        except ValueError as e:
            raise InvalidRateTable(self.name, f"unknown levy base {self.base!r}") from e

    @property
    def has_employer_side(self) -> bool:
        return self.employer_rate is not None


@dataclass(frozen=True)
class Relief:
    """Amount subtracted from the tax liability."""

    name: str
    amount: Decimal  # Flat amount, or the cap for claim-based reliefs
    kind: ReliefKind = ReliefKind.FLAT

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_rate_value(self.name, "amount", self.amount))
        try:
            object.__setattr__(self, "kind", ReliefKind(self.kind))
        except ValueError as e:
            raise InvalidRateTable(self.name, f"unknown relief kind {self.kind!r}") from e


@dataclass(frozen=True)
class StatutoryRate:
    """One row of the external statutory-rates store."""

    rate_type: str
    rate_name: str
    rate_value: Decimal
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    employer_rate: Decimal | None = None
    deductible: bool | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool = True

    def is_effective(self, as_of: date | None) -> bool:
        """Check the row is active and its date range includes as_of."""
        if not self.is_active:
            return False
        if as_of is None:
            return True
        if self.effective_from is not None and self.effective_from > as_of:
            return False
        return self.effective_to is None or self.effective_to >= as_of


@dataclass(frozen=True)
class BandAllocation:
    """Portion of taxable income that fell into one tax band."""

    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal
    taxable_amount: Decimal
    tax: Decimal  # Unrounded; PAYE is rounded once over the sum


@dataclass(frozen=True)
class SplitAmount:
    """Employee and employer sides of a contribution or levy."""

    employee: Decimal = ZERO
    employer: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.employee + self.employer


class LineType(str, Enum):
    """Payslip line item types."""

    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    TAX = "TAX"
    EMPLOYER_CONTRIBUTION = "EMPLOYER_CONTRIBUTION"


@dataclass(frozen=True)
class LineCandidate:
    """A payslip line ready for rendering."""

    line_type: LineType
    code: str
    amount: Decimal  # Final amount (signed per conventions)
    rate: Decimal | None = None
    explanation: str | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "line_type": self.line_type.value,
            "code": self.code,
            "rate": str(self.rate) if self.rate is not None else None,
            "amount": str(self.amount),
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class PayrollBreakdown:
    """Earnings, deductions and employer-only contributions for payslips."""

    earnings: dict[str, Decimal]
    deductions: dict[str, Decimal]
    employer_contributions: dict[str, Decimal]
    lines: tuple[LineCandidate, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "earnings": {k: str(v) for k, v in self.earnings.items()},
            "deductions": {k: str(v) for k, v in self.deductions.items()},
            "employer_contributions": {
                k: str(v) for k, v in self.employer_contributions.items()
            },
            "lines": [line.to_canonical_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class PayrollResult:
    """Outcome of one payroll computation. All money is rounded to cents."""

    gross_pay: Decimal
    taxable_income: Decimal
    gross_paye: Decimal  # Before reliefs
    paye: Decimal  # After reliefs, never negative
    nssf_employee: Decimal
    nssf_employer: Decimal
    sha_deduction: Decimal
    housing_levy_employee: Decimal
    housing_levy_employer: Decimal
    personal_relief: Decimal
    insurance_relief: Decimal  # As applied, post-cap
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    contributions: dict[str, SplitAmount] = field(default_factory=dict)
    levies: dict[str, SplitAmount] = field(default_factory=dict)
    band_allocations: tuple[BandAllocation, ...] = ()
    breakdown: PayrollBreakdown | None = None
    rate_table_fingerprint: str = ""

    @property
    def total_employer_contributions(self) -> Decimal:
        return sum(
            (s.employer for s in (*self.contributions.values(), *self.levies.values())),
            ZERO,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with Decimals rendered as strings."""
        return {
            "gross_pay": str(self.gross_pay),
            "taxable_income": str(self.taxable_income),
            "gross_paye": str(self.gross_paye),
            "paye": str(self.paye),
            "nssf_employee": str(self.nssf_employee),
            "nssf_employer": str(self.nssf_employer),
            "sha_deduction": str(self.sha_deduction),
            "housing_levy_employee": str(self.housing_levy_employee),
            "housing_levy_employer": str(self.housing_levy_employer),
            "personal_relief": str(self.personal_relief),
            "insurance_relief": str(self.insurance_relief),
            "other_deductions": str(self.other_deductions),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
            "contributions": {
                name: {"employee": str(s.employee), "employer": str(s.employer)}
                for name, s in self.contributions.items()
            },
            "levies": {
                name: {"employee": str(s.employee), "employer": str(s.employer)}
                for name, s in self.levies.items()
            },
            "band_allocations": [
                {
                    "min": str(a.min_amount),
                    "max": str(a.max_amount) if a.max_amount is not None else None,
                    "rate": str(a.rate),
                    "taxable_amount": str(a.taxable_amount),
                    "tax": str(a.tax),
                }
                for a in self.band_allocations
            ],
            "breakdown": self.breakdown.to_dict() if self.breakdown else None,
            "rate_table_fingerprint": self.rate_table_fingerprint,
        }

    def canonical_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
