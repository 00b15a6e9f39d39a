"""
Employee Domain Models (``payroll_modules.employees.models``).

Responsibility
--------------
Frozen dataclass value objects for the employee record and the outcome of
removing one.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``EmployeeService``; persisted through ``payroll_modules.employees.orm``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* ``salary_amount`` is ``Decimal`` -- NEVER ``float``.
* Date and activity invariants are enforced by the service before a
  record is built; the DTO does not re-validate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_engines.statutory import PayFrequency


class EmploymentType(str, Enum):
    """Contract under which the employee works."""
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    TEMPORARY = "temporary"
    INTERN = "intern"


class SalaryType(str, Enum):
    """What ``salary_amount`` denominates."""
    MONTHLY = "monthly"
    HOURLY = "hourly"
    ANNUAL = "annual"


@dataclass(frozen=True)
class Employee:
    """An employee of a business, as payroll sees them."""
    id: UUID
    business_id: UUID
    employee_number: str
    first_name: str
    last_name: str
    employment_type: EmploymentType
    salary_type: SalaryType
    salary_amount: Decimal  # monthly / annual salary, or hourly rate
    pay_frequency: PayFrequency
    start_date: date
    end_date: date | None = None
    is_active: bool = True
    tax_number: str | None = None
    version: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "business_id": str(self.business_id),
            "employee_number": self.employee_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "tax_number": self.tax_number,
            "employment_type": self.employment_type.value,
            "salary_type": self.salary_type.value,
            "salary_amount": str(self.salary_amount),
            "pay_frequency": self.pay_frequency.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_active": self.is_active,
            "version": self.version,
        }


@dataclass(frozen=True)
class EmployeeRemovalResult:
    """Outcome of ``deactivate_or_delete_employee``.

    Exactly one of ``deleted`` / ``deactivated`` is True.
    """
    employee_id: UUID
    deleted: bool
    deactivated: bool
    payslip_count: int = 0
