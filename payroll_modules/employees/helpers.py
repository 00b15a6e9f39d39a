"""
Employee Helpers (``payroll_modules.employees.helpers``).

Responsibility
--------------
Pure functions for employee record validation and for turning an
employee's contracted salary into the basic salary of one pay period.

Architecture position
---------------------
**Modules layer** -- pure helper functions.  No I/O, no session, no
clock.  Called by ``EmployeeService`` and ``PayslipService``.

Invariants enforced
-------------------
* ``end_date`` is never before ``start_date``.
* An inactive employee always has an ``end_date``.
* ``salary_amount`` is non-negative and exact to 2 fractional digits.
* Per-period salary is rounded once, at the end, half-up.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from payroll_engines.statutory import PayFrequency, periods_per_year
from payroll_kernel.domain.values import parse_non_negative, round_money
from payroll_kernel.exceptions import ValidationError
from payroll_modules.employees.models import SalaryType

_MONTHS_PER_YEAR = 12


def employee_field_errors(
    start_date: date | None,
    end_date: date | None,
    is_active: bool,
) -> dict[str, str]:
    """Field errors for the date/activity invariants; empty when valid."""
    errors: dict[str, str] = {}
    if start_date is None:
        errors["start_date"] = "is required"
    elif end_date is not None and end_date < start_date:
        errors["end_date"] = "must be on or after start_date"
    if not is_active and end_date is None:
        errors["end_date"] = "is required when the employee is inactive"
    return errors


def parse_salary_type(value: SalaryType | str) -> SalaryType:
    if isinstance(value, SalaryType):
        return value
    try:
        return SalaryType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            {"salary_type": f"unknown salary type {value!r}"}
        ) from None


def basic_salary_for_period(
    salary_type: SalaryType | str,
    salary_amount: Decimal,
    pay_frequency: PayFrequency | str,
    hours: Any = None,
) -> Decimal:
    """
    Basic salary for one pay period.

    * monthly salary  -> ``amount * 12 / periods``
    * annual salary   -> ``amount / periods``
    * hourly rate     -> ``rate * hours`` (``hours`` required)

    Raises:
        ValidationError: hourly employee without hours, negative hours,
            unknown salary type or pay frequency.
    """
    salary_type = parse_salary_type(salary_type)
    periods = periods_per_year(pay_frequency)

    if salary_type is SalaryType.HOURLY:
        if hours is None:
            raise ValidationError({"hours": "is required for hourly employees"})
        return round_money(salary_amount * parse_non_negative(hours, "hours"))
    if salary_type is SalaryType.ANNUAL:
        return round_money(salary_amount / periods)
    return round_money(salary_amount * _MONTHS_PER_YEAR / periods)
