"""
Payslip Module (``payroll_modules.payslips``).

Responsibility
--------------
Payslip Lifecycle Manager: computes payslips through the statutory
calculator, recalculates them when an editable component changes, and
moves them along draft -> approved -> paid.  Paid payslips are
immutable; only drafts may be deleted.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM model, workflow declaration and a service
facade that owns the transaction boundary.
"""

from payroll_modules.payslips.models import Payslip, PayslipAuditResult, PayslipStatus
from payroll_modules.payslips.service import PayslipService
from payroll_modules.payslips.workflows import PAYSLIP_WORKFLOW

__all__ = [
    "PAYSLIP_WORKFLOW",
    "Payslip",
    "PayslipAuditResult",
    "PayslipService",
    "PayslipStatus",
]
