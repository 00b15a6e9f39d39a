"""
Rate set integrity checks.

A misconfigured bracket table silently mis-taxes every employee, so every
rate set is validated when it is constructed (``PayrollRateSet.__post_init__``)
and rejected as a whole if any check fails.  This holds for sets parsed from
YAML and for sets built in code alike.  ``TaxBracketResolver`` runs
``validate_tax_table`` over the bare table it is handed.

Checks
------
* At least one bracket; the first starts at 0; the last is open-ended.
* Brackets are contiguous: each ``max`` equals the next ``min``, and each
  ``min`` is strictly below its own ``max``.
* Rates are within ``[0, 1]``.
* Cumulative amounts are continuous:
  ``cum[i+1] == cum[i] + rate[i] * (min[i+1] - min[i])``.
* Rebates, thresholds, contribution rates and ceilings are non-negative;
  contribution rates do not exceed 1.
* ``effective_to`` (when set) is not before ``effective_from``.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_config.schema import PayrollRateSet, TaxTable
from payroll_kernel.exceptions import TaxTableIntegrityError

_ZERO = Decimal("0")
_ONE = Decimal("1")


def validate_tax_table(table: TaxTable) -> list[str]:
    """Return every structural problem in a bracket table; empty means valid."""
    errors: list[str] = []
    brackets = table.brackets
    if not brackets:
        return ["tax table has no brackets"]

    if brackets[0].min != _ZERO:
        errors.append(f"first bracket must start at 0, starts at {brackets[0].min}")
    if brackets[0].cumulative_tax_at_min != _ZERO:
        errors.append("first bracket cumulative tax must be 0")
    if brackets[-1].max is not None:
        errors.append(f"top bracket must be open-ended, ends at {brackets[-1].max}")

    for i, bracket in enumerate(brackets):
        if not _ZERO <= bracket.rate <= _ONE:
            errors.append(f"bracket {i}: rate {bracket.rate} outside [0, 1]")
        if bracket.max is not None and bracket.max <= bracket.min:
            errors.append(f"bracket {i}: max {bracket.max} not above min {bracket.min}")

    for i, (lower, upper) in enumerate(zip(brackets, brackets[1:])):
        if lower.max is None:
            errors.append(f"bracket {i}: only the top bracket may be open-ended")
            continue
        if lower.max != upper.min:
            errors.append(
                f"bracket {i}: max {lower.max} does not meet next min {upper.min}"
            )
            continue
        expected = lower.liability(upper.min)
        if expected != upper.cumulative_tax_at_min:
            errors.append(
                f"bracket {i + 1}: cumulative tax {upper.cumulative_tax_at_min} "
                f"!= {expected} carried from bracket {i}"
            )
    return errors


def _check_scalars(rate_set: PayrollRateSet) -> list[str]:
    errors: list[str] = []
    non_negative = {
        "rebates.primary": rate_set.rebates.primary,
        "rebates.secondary": rate_set.rebates.secondary,
        "rebates.tertiary": rate_set.rebates.tertiary,
        "thresholds.under_65": rate_set.thresholds.under_65,
        "thresholds.age_65_to_74": rate_set.thresholds.age_65_to_74,
        "thresholds.age_75_plus": rate_set.thresholds.age_75_plus,
        "uif.monthly_ceiling": rate_set.uif_monthly_ceiling,
        "sdl.exemption_threshold": rate_set.sdl_exemption_threshold,
        "retirement.annual_cap": rate_set.pension_deduction_annual_cap,
    }
    for name, value in non_negative.items():
        if value < _ZERO:
            errors.append(f"{name} must be non-negative, got {value}")

    rates = {
        "uif.employee_rate": rate_set.uif_employee_rate,
        "uif.employer_rate": rate_set.uif_employer_rate,
        "sdl.rate": rate_set.sdl_rate,
        "retirement.deduction_percent": rate_set.pension_deduction_percent,
    }
    for name, value in rates.items():
        if not _ZERO <= value <= _ONE:
            errors.append(f"{name} {value} outside [0, 1]")

    if rate_set.effective_to is not None and rate_set.effective_to < rate_set.effective_from:
        errors.append(
            f"effective_to {rate_set.effective_to} before "
            f"effective_from {rate_set.effective_from}"
        )
    return errors


def validate_rate_set(rate_set: PayrollRateSet) -> list[str]:
    """Return every integrity problem found; empty list means valid."""
    return validate_tax_table(rate_set.tax_table) + _check_scalars(rate_set)


def assert_rate_set_integrity(rate_set: PayrollRateSet) -> PayrollRateSet:
    """Raise ``TaxTableIntegrityError`` unless ``rate_set`` is valid."""
    errors = validate_rate_set(rate_set)
    if errors:
        raise TaxTableIntegrityError(version=rate_set.version, errors=errors)
    return rate_set
