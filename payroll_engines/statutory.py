"""
Statutory Contribution Calculator - PAYE, UIF and SDL for one pay period.

Pure functions with no I/O - the rate set is provided as a parameter.

Usage:
    from payroll_config import get_default_registry
    from payroll_engines.statutory import compute_deductions, DeductionInputs
    from decimal import Decimal
    from datetime import date

    rates = get_default_registry().for_date(date(2024, 6, 25))
    result = compute_deductions(
        DeductionInputs(basic_salary=Decimal("20000.00")),
        "monthly",
        rates,
    )
    print(result.paye)       # 2183.08
    print(result.uif)        # 177.12
    print(result.net_pay)    # 17639.80

Calculation order
-----------------
1. gross = sum of the 2dp-normalized earnings components (exact).
2. annualized gross = gross * periods per year.
3. annual PAYE = bracket liability - rebates, zero at or below the
   category's no-tax threshold, floored at zero.
4. PAYE = round2(annual PAYE / periods).
5. UIF on min(gross, per-period ceiling), employee and employer share.
6. SDL on gross unless the employer is exempt.
7. total deductions = PAYE + UIF + pension + medical aid + other.
8. net = gross - total deductions; negative net is an error, never clamped.

Employer costs (UIF employer share, SDL, employer pension) never reduce
net pay.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_config.schema import PayrollRateSet, RebateCategory
from payroll_engines.tax_brackets import TaxBracketResolver
from payroll_kernel.domain.values import Money, parse_money_input, round_money, to_decimal
from payroll_kernel.exceptions import NegativeNetPayError, ValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.statutory")

_ZERO = Decimal("0")
_MONTHS_PER_YEAR = 12


# ---------------------------------------------------------------------------
# Pay frequency
# ---------------------------------------------------------------------------


class PayFrequency(str, Enum):
    """How often an employee is paid."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"


_PERIODS_PER_YEAR = {
    PayFrequency.WEEKLY: 52,
    PayFrequency.BIWEEKLY: 26,
    PayFrequency.MONTHLY: 12,
    PayFrequency.ANNUAL: 1,
}

_FREQUENCY_ALIASES = {
    "fortnightly": PayFrequency.BIWEEKLY,
    "bi-weekly": PayFrequency.BIWEEKLY,
    "yearly": PayFrequency.ANNUAL,
}


def parse_pay_frequency(value: PayFrequency | str) -> PayFrequency:
    """
    Normalize a pay frequency.

    Raises:
        ValidationError: for anything other than weekly, biweekly
            (fortnightly), monthly or annual.
    """
    if isinstance(value, PayFrequency):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in _FREQUENCY_ALIASES:
            return _FREQUENCY_ALIASES[key]
        try:
            return PayFrequency(key)
        except ValueError:
            pass
    raise ValidationError(
        {
            "pay_frequency": (
                f"unsupported pay frequency {value!r}; expected one of "
                + ", ".join(f.value for f in PayFrequency)
            )
        }
    )


def periods_per_year(frequency: PayFrequency | str) -> int:
    return _PERIODS_PER_YEAR[parse_pay_frequency(frequency)]


# ---------------------------------------------------------------------------
# Rebate category
# ---------------------------------------------------------------------------


def parse_rebate_category(value: RebateCategory | str) -> RebateCategory:
    if isinstance(value, RebateCategory):
        return value
    try:
        return RebateCategory(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            {"rebate_category": f"unknown rebate category {value!r}"}
        ) from None


def rebate_category_for_age(age: int) -> RebateCategory:
    """Category for an employee's age at the end of the tax year."""
    if isinstance(age, bool) or not isinstance(age, int) or age < 0:
        raise ValidationError({"age": f"must be a non-negative integer, got {age!r}"})
    if age >= 75:
        return RebateCategory.AGE_75_PLUS
    if age >= 65:
        return RebateCategory.AGE_65_TO_74
    return RebateCategory.UNDER_65


# ---------------------------------------------------------------------------
# Inputs and results
# ---------------------------------------------------------------------------


EARNING_FIELDS = ("basic_salary", "overtime", "bonus", "commission", "allowances")
DEDUCTION_FIELDS = ("pension_employee", "medical_aid", "other_deductions")
EMPLOYER_FIELDS = ("pension_employer",)
AMOUNT_FIELDS = EARNING_FIELDS + DEDUCTION_FIELDS + EMPLOYER_FIELDS


@dataclass(frozen=True)
class DeductionInputs:
    """
    Caller-supplied pay components for one period.

    Every component is normalized to exactly 2 fractional digits (half-up)
    on construction and must be non-negative.
    """

    basic_salary: Decimal
    overtime: Decimal = _ZERO
    bonus: Decimal = _ZERO
    commission: Decimal = _ZERO
    allowances: Decimal = _ZERO
    pension_employee: Decimal = _ZERO
    pension_employer: Decimal = _ZERO
    medical_aid: Decimal = _ZERO
    other_deductions: Decimal = _ZERO

    def __post_init__(self) -> None:
        errors: dict[str, str] = {}
        for f in fields(self):
            try:
                object.__setattr__(
                    self, f.name, parse_money_input(getattr(self, f.name), f.name)
                )
            except ValidationError as exc:
                errors.update(exc.field_errors)
        if errors:
            raise ValidationError(errors)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DeductionInputs:
        """Build from a dict of component name to amount; unknown keys are rejected."""
        unknown = sorted(set(data) - set(AMOUNT_FIELDS))
        if unknown:
            raise ValidationError({k: "unknown pay component" for k in unknown})
        if "basic_salary" not in data:
            raise ValidationError({"basic_salary": "is required"})
        return cls(**dict(data))

    def merged(self, changes: Mapping[str, Any]) -> DeductionInputs:
        """Copy with ``changes`` applied on top of the current components."""
        data = self.to_dict()
        data.update(changes)
        return DeductionInputs.from_mapping(data)

    @property
    def gross_pay(self) -> Decimal:
        return sum((getattr(self, name) for name in EARNING_FIELDS), _ZERO)

    def to_dict(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in AMOUNT_FIELDS}


@dataclass(frozen=True)
class DeductionResult:
    """
    Outputs of one period's statutory calculation.

    Every Money field is rounded to 2 fractional digits.  The annualized
    figures are kept for audit and recomputation.
    """

    gross_pay: Money
    paye: Money
    uif: Money
    uif_employer: Money
    sdl: Money
    pension_employee: Money
    pension_employer: Money
    medical_aid: Money
    other_deductions: Money
    total_deductions: Money
    net_pay: Money
    annualized_gross: Decimal
    annualized_taxable: Decimal
    annual_paye: Decimal
    pay_frequency: PayFrequency
    rebate_category: RebateCategory
    rate_set_version: str

    @property
    def total_employer_cost(self) -> Money:
        """Gross pay plus the employer-only contributions."""
        return self.gross_pay + self.uif_employer + self.sdl + self.pension_employer

    def to_dict(self) -> dict[str, str]:
        """All amounts as exact 2dp decimal strings."""
        result = {
            f.name: getattr(self, f.name).to_string()
            for f in fields(self)
            if isinstance(getattr(self, f.name), Money)
        }
        result["total_employer_cost"] = self.total_employer_cost.to_string()
        result["annualized_gross"] = str(round_money(self.annualized_gross))
        result["annualized_taxable"] = str(round_money(self.annualized_taxable))
        result["annual_paye"] = str(round_money(self.annual_paye))
        result["pay_frequency"] = self.pay_frequency.value
        result["rebate_category"] = self.rebate_category.value
        result["rate_set_version"] = self.rate_set_version
        return result


# ---------------------------------------------------------------------------
# Contribution helpers
# ---------------------------------------------------------------------------


def uif_ceiling_per_period(frequency: PayFrequency | str, rates: PayrollRateSet) -> Decimal:
    """Per-period UIF earnings ceiling derived from the monthly ceiling (unrounded)."""
    return rates.uif_monthly_ceiling * _MONTHS_PER_YEAR / periods_per_year(frequency)


def is_sdl_exempt(annual_payroll: Decimal | str | int, rates: PayrollRateSet) -> bool:
    """True when an employer's annual payroll is below the SDL threshold."""
    amount = to_decimal(annual_payroll, "annual_payroll")
    if amount < _ZERO:
        raise ValidationError({"annual_payroll": "must not be negative"})
    return amount < rates.sdl_exemption_threshold


def _retirement_deduction(
    inputs: DeductionInputs,
    annualized_gross: Decimal,
    periods: int,
    rates: PayrollRateSet,
) -> Decimal:
    if not rates.pension_reduces_taxable_income:
        return _ZERO
    return min(
        inputs.pension_employee * periods,
        rates.pension_deduction_percent * annualized_gross,
        rates.pension_deduction_annual_cap,
    )


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


def compute_deductions(
    inputs: DeductionInputs | Mapping[str, Any],
    pay_frequency: PayFrequency | str,
    rates: PayrollRateSet,
    *,
    rebate_category: RebateCategory | str = RebateCategory.UNDER_65,
    sdl_exempt: bool = False,
) -> DeductionResult:
    """
    Compute PAYE, UIF, SDL, total deductions and net pay for one period.

    Deterministic: identical arguments always produce an identical result.

    Raises:
        ValidationError: malformed or negative components, unsupported
            pay frequency or rebate category.
        NegativeNetPayError: deductions exceed gross pay.
    """
    t0 = time.monotonic()
    if not isinstance(inputs, DeductionInputs):
        inputs = DeductionInputs.from_mapping(inputs)
    frequency = parse_pay_frequency(pay_frequency)
    category = parse_rebate_category(rebate_category)
    periods = _PERIODS_PER_YEAR[frequency]

    gross = round_money(inputs.gross_pay)
    annualized_gross = gross * periods
    annualized_taxable = annualized_gross - _retirement_deduction(
        inputs, annualized_gross, periods, rates
    )

    resolver = TaxBracketResolver(rates.tax_table, version=rates.version)
    annual_paye = resolver.tax_payable(
        annualized_taxable, category, rates.rebates, rates.thresholds
    )
    paye = round_money(annual_paye / periods)

    uif_base = min(gross, uif_ceiling_per_period(frequency, rates))
    uif = round_money(uif_base * rates.uif_employee_rate)
    uif_employer = round_money(uif_base * rates.uif_employer_rate)

    sdl = _ZERO if sdl_exempt else round_money(gross * rates.sdl_rate)

    total = round_money(
        paye + uif + inputs.pension_employee + inputs.medical_aid + inputs.other_deductions
    )
    net = round_money(gross - total)
    if net < _ZERO:
        logger.warning(
            "negative_net_pay_rejected",
            extra={"gross_pay": gross, "total_deductions": total, "net_pay": net},
        )
        raise NegativeNetPayError(
            gross_pay=str(gross), total_deductions=str(total), net_pay=str(net)
        )

    result = DeductionResult(
        gross_pay=Money(gross),
        paye=Money(paye),
        uif=Money(uif),
        uif_employer=Money(uif_employer),
        sdl=Money(round_money(sdl)),
        pension_employee=Money(inputs.pension_employee),
        pension_employer=Money(inputs.pension_employer),
        medical_aid=Money(inputs.medical_aid),
        other_deductions=Money(inputs.other_deductions),
        total_deductions=Money(total),
        net_pay=Money(net),
        annualized_gross=annualized_gross,
        annualized_taxable=annualized_taxable,
        annual_paye=annual_paye,
        pay_frequency=frequency,
        rebate_category=category,
        rate_set_version=rates.version,
    )

    logger.info(
        "deductions_computed",
        extra={
            "rate_set_version": rates.version,
            "pay_frequency": frequency.value,
            "rebate_category": category.value,
            "gross_pay": gross,
            "paye": paye,
            "uif": uif,
            "sdl": result.sdl.amount,
            "total_deductions": total,
            "net_pay": net,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return result
