"""
Statutory rate set schema.

Defines the typed, frozen reference data that governs every payroll
calculation: the income tax bracket table, the rebate schedule, the
no-tax thresholds and the UIF / SDL contribution parameters.  YAML rate
set files are parsed into these types by the loader.  A ``PayrollRateSet``
checks itself with ``payroll_config.integrity`` on construction, so an
invalid set never exists, however it was built.

Key distinction:
  PayrollRateSet  = one tax year's rules (effective-dated, immutable)
  RateSetRegistry = the ordered collection, answers "what applies on date X"
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from payroll_kernel.exceptions import RateSetNotFoundError, TaxTableIntegrityError

# ---------------------------------------------------------------------------
# Rebate categories
# ---------------------------------------------------------------------------


class RebateCategory(str, Enum):
    """Age band that decides which rebates and which no-tax threshold apply."""

    UNDER_65 = "under_65"
    AGE_65_TO_74 = "age_65_to_74"
    AGE_75_PLUS = "age_75_plus"


# ---------------------------------------------------------------------------
# Income tax
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxBracket:
    """One progressive band: ``[min, max)`` taxed at ``rate`` above ``min``.

    ``max`` is ``None`` for the open top bracket.
    """

    min: Decimal
    max: Decimal | None
    rate: Decimal
    cumulative_tax_at_min: Decimal

    def contains(self, amount: Decimal) -> bool:
        return amount >= self.min and (self.max is None or amount < self.max)

    def liability(self, amount: Decimal) -> Decimal:
        """Unrounded annual liability for an amount inside this bracket."""
        return self.cumulative_tax_at_min + self.rate * (amount - self.min)


@dataclass(frozen=True)
class TaxTable:
    """Ordered, contiguous brackets covering ``[0, +inf)``."""

    brackets: tuple[TaxBracket, ...]

    @property
    def minimums(self) -> tuple[Decimal, ...]:
        return tuple(b.min for b in self.brackets)

    def __len__(self) -> int:
        return len(self.brackets)


@dataclass(frozen=True)
class RebateSchedule:
    """Flat annual rebates; older categories stack on top of the primary."""

    primary: Decimal
    secondary: Decimal
    tertiary: Decimal

    def total_for(self, category: RebateCategory) -> Decimal:
        if category is RebateCategory.AGE_75_PLUS:
            return self.primary + self.secondary + self.tertiary
        if category is RebateCategory.AGE_65_TO_74:
            return self.primary + self.secondary
        return self.primary


@dataclass(frozen=True)
class TaxThresholds:
    """Annual income at or below which no PAYE is due, per category."""

    under_65: Decimal
    age_65_to_74: Decimal
    age_75_plus: Decimal

    def for_category(self, category: RebateCategory) -> Decimal:
        if category is RebateCategory.AGE_75_PLUS:
            return self.age_75_plus
        if category is RebateCategory.AGE_65_TO_74:
            return self.age_65_to_74
        return self.under_65


# ---------------------------------------------------------------------------
# Rate set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayrollRateSet:
    """All statutory parameters in force for one tax year.

    Raises:
        TaxTableIntegrityError: on construction, if any integrity check fails.
    """

    version: str
    effective_from: date
    effective_to: date | None
    tax_table: TaxTable
    rebates: RebateSchedule
    thresholds: TaxThresholds
    uif_employee_rate: Decimal
    uif_employer_rate: Decimal
    uif_monthly_ceiling: Decimal
    sdl_rate: Decimal
    sdl_exemption_threshold: Decimal
    pension_reduces_taxable_income: bool = False
    pension_deduction_percent: Decimal = Decimal("0.275")
    pension_deduction_annual_cap: Decimal = Decimal("350000")
    jurisdiction: str = "ZA"
    currency: str = "ZAR"
    checksum: str = ""

    def __post_init__(self) -> None:
        from payroll_config.integrity import assert_rate_set_integrity

        assert_rate_set_integrity(self)

    def is_effective(self, on_date: date) -> bool:
        if on_date < self.effective_from:
            return False
        return self.effective_to is None or on_date <= self.effective_to


class RateSetRegistry:
    """Effective-dated lookup over a collection of rate sets.

    Contract:
        Effective ranges never overlap, so at most one set is in force on
        any date.  Overlaps are rejected at construction time.
    """

    def __init__(self, rate_sets: Iterable[PayrollRateSet]):
        ordered = sorted(rate_sets, key=lambda rs: rs.effective_from)
        errors: list[str] = []
        seen: set[str] = set()
        for rs in ordered:
            if rs.version in seen:
                errors.append(f"duplicate version '{rs.version}'")
            seen.add(rs.version)
        for earlier, later in zip(ordered, ordered[1:]):
            if earlier.effective_to is None or earlier.effective_to >= later.effective_from:
                errors.append(
                    f"'{earlier.version}' overlaps '{later.version}' "
                    f"(starts {later.effective_from})"
                )
        if errors:
            raise TaxTableIntegrityError(version="registry", errors=errors)

        self._rate_sets: tuple[PayrollRateSet, ...] = tuple(ordered)
        self._starts = [rs.effective_from for rs in ordered]

    def __len__(self) -> int:
        return len(self._rate_sets)

    def __iter__(self):
        return iter(self._rate_sets)

    @property
    def versions(self) -> tuple[str, ...]:
        return tuple(rs.version for rs in self._rate_sets)

    def for_date(self, pay_date: date) -> PayrollRateSet:
        """Return the rate set in force on ``pay_date``.

        Raises:
            RateSetNotFoundError: if no configured set covers the date.
        """
        idx = bisect_right(self._starts, pay_date) - 1
        if idx >= 0:
            candidate = self._rate_sets[idx]
            if candidate.is_effective(pay_date):
                return candidate
        raise RateSetNotFoundError(self._describe_miss(pay_date))

    def _describe_miss(self, pay_date: date) -> str:
        """Name the configured coverage a missed date falls outside of."""
        if not self._rate_sets:
            return f"{pay_date.isoformat()} (no rate sets configured)"
        first, last = self._rate_sets[0], self._rate_sets[-1]
        if pay_date < first.effective_from:
            return (
                f"{pay_date.isoformat()} (earliest set '{first.version}' "
                f"starts {first.effective_from.isoformat()})"
            )
        if last.effective_to is not None and pay_date > last.effective_to:
            return (
                f"{pay_date.isoformat()} (latest set '{last.version}' ends "
                f"{last.effective_to.isoformat()}; install the rate set for "
                f"that tax year)"
            )
        return f"{pay_date.isoformat()} (gap between configured sets)"

    def get(self, version: str) -> PayrollRateSet:
        for rs in self._rate_sets:
            if rs.version == version:
                return rs
        raise RateSetNotFoundError(f"version '{version}'")
