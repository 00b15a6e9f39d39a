"""
Employee Module (``payroll_modules.employees``).

Responsibility
--------------
Employee Record Manager: the people payslips are issued to.  Creates and
updates employee records under their date and activity invariants, and
removes them without ever orphaning pay history (employees with payslips
are deactivated instead of deleted).

Architecture position
---------------------
**Modules layer** -- DTOs, ORM model, pure helpers and a service facade
that owns the transaction boundary.
"""

from payroll_modules.employees.helpers import basic_salary_for_period
from payroll_modules.employees.models import (
    Employee,
    EmployeeRemovalResult,
    EmploymentType,
    SalaryType,
)
from payroll_modules.employees.service import EmployeeService

__all__ = [
    "Employee",
    "EmployeeRemovalResult",
    "EmployeeService",
    "EmploymentType",
    "SalaryType",
    "basic_salary_for_period",
]
