"""Validated, immutable snapshot of statutory rates."""

from __future__ import annotations

import hashlib
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from statutory_payroll.calculators.errors import InvalidRateTable, MissingRateType
from statutory_payroll.calculators.types import (
    ContributionTier,
    FlatLevy,
    LevyBase,
    RateKind,
    Relief,
    ReliefKind,
    StatutoryRate,
    TaxBand,
    TieredScheme,
    to_rate_value,
)

logger = logging.getLogger(__name__)

PAYE_BAND = "paye_band"
NSSF = "nssf"
SHA = "sha"
HOUSING_LEVY = "housing_levy"
PERSONAL_RELIEF = "personal_relief"
INSURANCE_RELIEF = "insurance_relief"

DEFAULT_REQUIRED_RATE_TYPES = (
    PAYE_BAND,
    NSSF,
    SHA,
    HOUSING_LEVY,
    PERSONAL_RELIEF,
    INSURANCE_RELIEF,
)

# How store rows are interpreted when building from StatutoryRate rows
RATE_TYPE_KINDS: dict[str, RateKind] = {
    PAYE_BAND: RateKind.BAND,
    NSSF: RateKind.TIER,
    SHA: RateKind.LEVY,
    HOUSING_LEVY: RateKind.LEVY,
    PERSONAL_RELIEF: RateKind.RELIEF,
    INSURANCE_RELIEF: RateKind.RELIEF,
}

# Levies whose employee portion reduces taxable income
DEDUCTIBLE_LEVIES = frozenset({HOUSING_LEVY})

# Reliefs granted up to the amount claimed
CAPPED_RELIEFS = frozenset({INSURANCE_RELIEF})

ONE = Decimal("1")
ZERO = Decimal("0")


def _check_rate(rate_type: str, label: str, rate: Decimal | None) -> None:
    if rate is None:
        return
    if rate < ZERO or rate > ONE:
        raise InvalidRateTable(rate_type, f"{label} {rate} is outside [0, 1]")


def _freeze(mapping: Mapping[str, Any]) -> MappingProxyType:
    return MappingProxyType(dict(sorted(mapping.items())))


@dataclass(frozen=True)
class RateTable:
    """Statutory parameters consumed by the payroll calculator.

    A table is validated on construction and never mutated afterwards;
    rate changes are made by building a new table. Safe to share across
    threads.

    Raises:
        InvalidRateTable: If bands or tiers are unsorted, overlapping,
            gapped, or carry a rate outside [0, 1].
        MissingRateType: If a rate_type listed in ``required`` is absent.
    """

    tax_bands: tuple[TaxBand, ...] = ()
    tiered_schemes: Mapping[str, TieredScheme] = field(default_factory=dict)
    levies: Mapping[str, FlatLevy] = field(default_factory=dict)
    reliefs: Mapping[str, Relief] = field(default_factory=dict)
    label: str | None = None
    effective_from: date | None = None
    required: tuple[str, ...] = field(default=DEFAULT_REQUIRED_RATE_TYPES, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tax_bands", tuple(self.tax_bands))
        object.__setattr__(self, "tiered_schemes", _freeze(self.tiered_schemes))
        object.__setattr__(self, "levies", _freeze(self.levies))
        object.__setattr__(self, "reliefs", _freeze(self.reliefs))
        object.__setattr__(self, "required", tuple(self.required))
        self._validate()

    def __hash__(self) -> int:
        return hash(
            (
                self.tax_bands,
                tuple(sorted(self.tiered_schemes.items())),
                tuple(sorted(self.levies.items())),
                tuple(sorted(self.reliefs.items())),
                self.label,
                self.effective_from,
            )
        )

    # === Queries ===

    @property
    def rate_types(self) -> frozenset[str]:
        """All rate types defined by this table."""
        names = set(self.tiered_schemes) | set(self.levies) | set(self.reliefs)
        if self.tax_bands:
            names.add(PAYE_BAND)
        return frozenset(names)

    def has_rate_type(self, rate_type: str) -> bool:
        return rate_type in self.rate_types

    def require(self, rate_types: Iterable[str]) -> None:
        """Raise MissingRateType for the first rate type not defined."""
        defined = self.rate_types
        for rate_type in rate_types:
            if rate_type not in defined:
                raise MissingRateType(rate_type)

    def bands_for(self, rate_type: str = PAYE_BAND) -> tuple[TaxBand, ...]:
        """Tax bands in ascending order."""
        if rate_type != PAYE_BAND or not self.tax_bands:
            raise MissingRateType(rate_type)
        return self.tax_bands

    def tier_scheme_for(self, name: str) -> TieredScheme:
        try:
            return self.tiered_schemes[name]
        except KeyError:
            raise MissingRateType(name) from None

    def levy_for(self, name: str) -> FlatLevy:
        try:
            return self.levies[name]
        except KeyError:
            raise MissingRateType(name) from None

    def relief_for(self, name: str) -> Relief:
        try:
            return self.reliefs[name]
        except KeyError:
            raise MissingRateType(name) from None

    # === Validation ===

    def _validate(self) -> None:
        self._validate_bands()
        for key, scheme in self.tiered_schemes.items():
            self._validate_scheme(key, scheme)
        for key, levy in self.levies.items():
            if levy.name != key:
                raise InvalidRateTable(key, f"levy registered under a different name '{levy.name}'")
            _check_rate(key, "rate", levy.rate)
            _check_rate(key, "employer_rate", levy.employer_rate)
        for key, relief in self.reliefs.items():
            if relief.name != key:
                raise InvalidRateTable(key, f"relief registered under a different name '{relief.name}'")
            if relief.amount < ZERO:
                raise InvalidRateTable(key, f"amount {relief.amount} is negative")
        self.require(self.required)

    def _validate_bands(self) -> None:
        bands = self.tax_bands
        if not bands:
            return

        if bands[0].min_amount != ZERO:
            raise InvalidRateTable(PAYE_BAND, "first band must start at 0")

        conventions: set[str] = set()
        for i, band in enumerate(bands):
            _check_rate(PAYE_BAND, f"band {i + 1} rate", band.rate)
            is_last = i == len(bands) - 1

            if band.max_amount is None:
                if not is_last:
                    raise InvalidRateTable(PAYE_BAND, f"band {i + 1} is open-ended but not the top band")
            elif band.max_amount <= band.min_amount:
                raise InvalidRateTable(
                    PAYE_BAND, f"band {i + 1} max {band.max_amount} is not above min {band.min_amount}"
                )
            elif is_last:
                raise InvalidRateTable(PAYE_BAND, "top band must be open-ended (max = none)")

            if i == 0:
                continue

            prev = bands[i - 1]
            if band.min_amount <= prev.min_amount:
                raise InvalidRateTable(PAYE_BAND, f"bands are not sorted ascending at band {i + 1}")

            step = band.min_amount - prev.max_amount
            if step == ZERO:
                conventions.add("contiguous")
            elif step == ONE:
                conventions.add("inclusive")
            elif step < ZERO:
                raise InvalidRateTable(PAYE_BAND, f"band {i + 1} overlaps band {i}")
            else:
                raise InvalidRateTable(
                    PAYE_BAND, f"gap between {prev.max_amount} and {band.min_amount}"
                )

        if len(conventions) > 1:
            raise InvalidRateTable(PAYE_BAND, "bands mix inclusive and contiguous bounds")

    def _validate_scheme(self, key: str, scheme: TieredScheme) -> None:
        if scheme.name != key:
            raise InvalidRateTable(key, f"scheme registered under a different name '{scheme.name}'")
        if not scheme.tiers:
            raise InvalidRateTable(key, "scheme has no tiers")

        previous_ceiling = ZERO
        for i, tier in enumerate(scheme.tiers):
            _check_rate(key, f"tier {i + 1} rate", tier.rate)
            _check_rate(key, f"tier {i + 1} employer_rate", tier.employer_rate)
            if tier.ceiling <= previous_ceiling:
                raise InvalidRateTable(
                    key, f"tier {i + 1} ceiling {tier.ceiling} is not above {previous_ceiling}"
                )
            if tier.min_amount is not None:
                allowed = {ZERO} if i == 0 else {previous_ceiling, previous_ceiling + ONE}
                if tier.min_amount not in allowed:
                    raise InvalidRateTable(
                        key, f"tier {i + 1} starts at {tier.min_amount}, expected {previous_ceiling}"
                    )
            previous_ceiling = tier.ceiling

    # === Serialization ===

    def to_payload(self) -> dict[str, Any]:
        """Render the table in the JSON payload shape accepted by from_payload."""

        def opt(value: Decimal | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "label": self.label,
            "effective_from": self.effective_from.isoformat() if self.effective_from else None,
            "paye_bands": [
                {"min": str(b.min_amount), "max": opt(b.max_amount), "rate": str(b.rate)}
                for b in self.tax_bands
            ],
            "tiered_contributions": {
                name: {
                    "deductible": scheme.deductible,
                    "tiers": [
                        {
                            "min": opt(t.min_amount),
                            "ceiling": str(t.ceiling),
                            "rate": str(t.rate),
                            "employer_rate": opt(t.employer_rate),
                        }
                        for t in scheme.tiers
                    ],
                }
                for name, scheme in self.tiered_schemes.items()
            },
            "levies": {
                name: {
                    "rate": str(levy.rate),
                    "employer_rate": opt(levy.employer_rate),
                    "base": levy.base.value,
                    "deductible": levy.deductible,
                }
                for name, levy in self.levies.items()
            },
            "reliefs": {
                name: {"amount": str(relief.amount), "kind": relief.kind.value}
                for name, relief in self.reliefs.items()
            },
        }

    def fingerprint(self) -> str:
        """Deterministic digest of the table contents."""
        json_str = json.dumps(self.to_payload(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

    # === Loaders ===

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        required: Iterable[str] = DEFAULT_REQUIRED_RATE_TYPES,
    ) -> RateTable:
        """Build a table from a JSON rate snapshot.

        Payload structure:
        {
            "label": "Kenya 2024",
            "effective_from": "2024-12-27",
            "paye_bands": [{"min": 0, "max": 24000, "rate": "0.10"}, ...],
            "tiered_contributions": {
                "nssf": {"tiers": [{"ceiling": 7000, "rate": "0.06"}, ...]}
            },
            "levies": {"sha": {"rate": "0.0275"}, ...},
            "reliefs": {"personal_relief": {"amount": 2400, "kind": "flat"}, ...}
        }
        """
        try:
            bands = [
                TaxBand(min_amount=b["min"], max_amount=b.get("max"), rate=b["rate"])
                for b in payload.get("paye_bands", [])
            ]

            schemes = {}
            for name, entry in payload.get("tiered_contributions", {}).items():
                tiers = [
                    ContributionTier(
                        ceiling=t["ceiling"],
                        rate=t["rate"],
                        employer_rate=t.get("employer_rate"),
                        min_amount=t.get("min"),
                    )
                    for t in entry.get("tiers", [])
                ]
                schemes[name] = TieredScheme(
                    name=name, tiers=tuple(tiers), deductible=entry.get("deductible", True)
                )

            levies = {
                name: FlatLevy(
                    name=name,
                    rate=entry["rate"],
                    employer_rate=entry.get("employer_rate"),
                    base=entry.get("base", LevyBase.GROSS_PAY.value),
                    deductible=entry.get("deductible", name in DEDUCTIBLE_LEVIES),
                )
                for name, entry in payload.get("levies", {}).items()
            }

            reliefs = {
                name: Relief(
                    name=name,
                    amount=entry["amount"],
                    kind=entry.get(
                        "kind",
                        ReliefKind.CAP.value if name in CAPPED_RELIEFS else ReliefKind.FLAT.value,
                    ),
                )
                for name, entry in payload.get("reliefs", {}).items()
            }

            effective_from = payload.get("effective_from")
            if isinstance(effective_from, str):
                effective_from = date.fromisoformat(effective_from)
        except KeyError as e:
            raise InvalidRateTable("payload", f"missing key {e.args[0]!r}") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidRateTable("payload", f"malformed payload: {e}") from e

        table = cls(
            tax_bands=tuple(bands),
            tiered_schemes=schemes,
            levies=levies,
            reliefs=reliefs,
            label=payload.get("label"),
            effective_from=effective_from,
            required=tuple(required),
        )
        logger.info("Loaded rate table %s (%s)", table.label or "<unlabelled>", table.fingerprint()[:12])
        return table

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[StatutoryRate],
        as_of: date | None = None,
        required: Iterable[str] = DEFAULT_REQUIRED_RATE_TYPES,
        kinds: Mapping[str, RateKind] | None = None,
        label: str | None = None,
    ) -> RateTable:
        """Build a table from statutory-rate store rows effective on ``as_of``.

        Inactive rows and rows outside their effective range are skipped.
        Two effective rows sharing ``(rate_type, rate_name)`` are rejected.
        """
        kind_of = dict(RATE_TYPE_KINDS)
        if kinds:
            kind_of.update(kinds)

        grouped: dict[str, list[StatutoryRate]] = defaultdict(list)
        seen: set[tuple[str, str]] = set()
        for row in rows:
            if not row.is_effective(as_of):
                continue
            key = (row.rate_type, row.rate_name)
            if key in seen:
                raise InvalidRateTable(
                    row.rate_type, f"more than one active row named '{row.rate_name}'"
                )
            seen.add(key)
            grouped[row.rate_type].append(row)

        bands: list[TaxBand] = []
        schemes: dict[str, TieredScheme] = {}
        levies: dict[str, FlatLevy] = {}
        reliefs: dict[str, Relief] = {}

        for rate_type, type_rows in sorted(grouped.items()):
            kind = kind_of.get(rate_type)
            if kind is None:
                raise InvalidRateTable(rate_type, "unknown rate type")

            if kind is RateKind.BAND:
                if rate_type != PAYE_BAND:
                    raise InvalidRateTable(rate_type, "only paye_band rows may define tax bands")
                for row in sorted(type_rows, key=lambda r: _sort_key(rate_type, r.min_amount)):
                    bands.append(
                        TaxBand(min_amount=row.min_amount, max_amount=row.max_amount, rate=row.rate_value)
                    )

            elif kind is RateKind.TIER:
                tiers = []
                for row in sorted(type_rows, key=lambda r: _sort_key(rate_type, r.max_amount)):
                    if row.max_amount is None:
                        raise InvalidRateTable(rate_type, f"tier '{row.rate_name}' has no ceiling")
                    tiers.append(
                        ContributionTier(
                            ceiling=row.max_amount,
                            rate=row.rate_value,
                            employer_rate=row.employer_rate,
                            min_amount=row.min_amount,
                        )
                    )
                deductible = all(r.deductible is not False for r in type_rows)
                schemes[rate_type] = TieredScheme(
                    name=rate_type, tiers=tuple(tiers), deductible=deductible
                )

            else:
                if len(type_rows) > 1:
                    raise InvalidRateTable(
                        rate_type, f"expected one active row, found {len(type_rows)}"
                    )
                row = type_rows[0]
                if kind is RateKind.LEVY:
                    levies[rate_type] = FlatLevy(
                        name=rate_type,
                        rate=row.rate_value,
                        employer_rate=row.employer_rate,
                        deductible=(
                            row.deductible
                            if row.deductible is not None
                            else rate_type in DEDUCTIBLE_LEVIES
                        ),
                    )
                else:
                    reliefs[rate_type] = Relief(
                        name=rate_type,
                        amount=row.rate_value,
                        kind=ReliefKind.CAP if rate_type in CAPPED_RELIEFS else ReliefKind.FLAT,
                    )

        table = cls(
            tax_bands=tuple(bands),
            tiered_schemes=schemes,
            levies=levies,
            reliefs=reliefs,
            label=label,
            effective_from=as_of,
            required=tuple(required),
        )
        logger.info("Built rate table from %d rows effective %s", len(seen), as_of)
        return table


def _sort_key(rate_type: str, value: Any) -> Decimal:
    """Order rows the way the store query does; missing bounds sort first."""
    if value is None:
        return Decimal("-Infinity")
    return to_rate_value(rate_type, "bound", value)
