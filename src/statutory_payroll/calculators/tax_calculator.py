"""Statutory tax, contribution, levy and relief calculations."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from statutory_payroll.calculators.line_builder import LineItemBuilder
from statutory_payroll.calculators.types import (
    BandAllocation,
    FlatLevy,
    LevyBase,
    Relief,
    ReliefKind,
    SplitAmount,
    TaxBand,
    TieredScheme,
)

ZERO = Decimal("0")


class TaxCalculator:
    """Stateless calculators for each statutory component.

    Bands and tiers arrive already validated by RateTable, so the walks
    below never re-sort or re-check them. Every public amount is rounded
    to cents before it is returned.
    """

    def allocate_bands(
        self,
        taxable_income: Decimal,
        bands: Sequence[TaxBand],
    ) -> list[BandAllocation]:
        """Split taxable income across progressive bands.

        A band's width is measured from the previous band's ceiling, and the
        amount taxed in it is ``clamp(income - band.min, 0, width)``. With
        contiguous bounds the allocations sum to the income exactly; with
        inclusive whole-unit bounds (24000 / 24001) the width of each upper
        band is ``max - min + 1``.
        """
        allocations: list[BandAllocation] = []
        floor: Decimal | None = None

        for band in bands:
            lower = band.min_amount if floor is None else floor
            if band.max_amount is None:
                taxable_in_band = max(taxable_income - band.min_amount, ZERO)
            else:
                width = band.max_amount - lower
                taxable_in_band = min(max(taxable_income - band.min_amount, ZERO), width)

            allocations.append(
                BandAllocation(
                    min_amount=band.min_amount,
                    max_amount=band.max_amount,
                    rate=band.rate,
                    taxable_amount=taxable_in_band,
                    tax=taxable_in_band * band.rate,
                )
            )
            floor = band.max_amount

        return allocations

    def calculate_progressive_tax(
        self,
        taxable_income: Decimal,
        bands: Sequence[TaxBand],
    ) -> Decimal:
        """Calculate tax using progressive bands."""
        if taxable_income <= 0:
            return LineItemBuilder.round_to_cents(ZERO)

        allocations = self.allocate_bands(taxable_income, bands)
        total_tax = sum((a.tax for a in allocations), ZERO)
        return LineItemBuilder.round_to_cents(total_tax)

    def calculate_tiered_contribution(
        self,
        earnings: Decimal,
        scheme: TieredScheme,
    ) -> SplitAmount:
        """Calculate a tiered contribution (e.g. NSSF Tier I and Tier II).

        Earnings above the top ceiling contribute nothing. Each tier is
        charged only on the slice of earnings between the previous ceiling
        and its own.
        """
        base = min(max(earnings, ZERO), scheme.top_ceiling)
        employee = ZERO
        employer = ZERO
        previous_ceiling = ZERO

        for tier in scheme.tiers:
            portion = max(min(base, tier.ceiling) - previous_ceiling, ZERO)
            employee += portion * tier.rate
            employer += portion * tier.effective_employer_rate
            previous_ceiling = tier.ceiling

        return SplitAmount(
            employee=LineItemBuilder.round_to_cents(employee),
            employer=LineItemBuilder.round_to_cents(employer),
        )

    def calculate_flat_levy(
        self,
        levy: FlatLevy,
        gross_pay: Decimal,
        taxable_gross: Decimal,
    ) -> SplitAmount:
        """Calculate a flat-rate levy on its configured base."""
        base = gross_pay if levy.base is LevyBase.GROSS_PAY else taxable_gross
        if base <= 0:
            return SplitAmount(
                employee=LineItemBuilder.round_to_cents(ZERO),
                employer=LineItemBuilder.round_to_cents(ZERO),
            )

        employee = LineItemBuilder.round_to_cents(base * levy.rate)
        employer = (
            LineItemBuilder.round_to_cents(base * levy.employer_rate)
            if levy.employer_rate is not None
            else LineItemBuilder.round_to_cents(ZERO)
        )
        return SplitAmount(employee=employee, employer=employer)

    def calculate_relief(self, relief: Relief, claimed: Decimal = ZERO) -> Decimal:
        """Relief granted: the flat amount, or the claim up to the cap."""
        if relief.kind is ReliefKind.FLAT:
            return LineItemBuilder.round_to_cents(relief.amount)
        return LineItemBuilder.round_to_cents(min(max(claimed, ZERO), relief.amount))

    def apply_reliefs(self, gross_tax: Decimal, reliefs: Iterable[Decimal]) -> Decimal:
        """Subtract reliefs from the tax liability; reliefs never refund."""
        net_tax = gross_tax - sum(reliefs, ZERO)
        return LineItemBuilder.round_to_cents(max(net_tax, ZERO))
