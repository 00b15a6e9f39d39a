"""
Payslip Domain Models (``payroll_modules.payslips.models``).

Responsibility
--------------
Frozen dataclass value objects for a payslip, its lifecycle status and
the result of re-auditing a stored payslip against its rate set.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``PayslipService``; persisted through ``payroll_modules.payslips.orm``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are 2dp ``Decimal`` -- NEVER ``float``.
* ``gross_pay - total_deductions == net_pay`` and ``net_pay >= 0`` for every
  payslip produced by the service.

Audit relevance
---------------
A payslip carries every input needed to recompute it: the pay components,
the pay frequency, the rebate category, the SDL flag and the version of
the rate set used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_config.schema import RebateCategory
from payroll_engines.statutory import AMOUNT_FIELDS, PayFrequency


class PayslipStatus(str, Enum):
    """Payslip lifecycle states."""
    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"


OUTPUT_FIELDS = (
    "gross_pay",
    "paye",
    "uif",
    "uif_employer",
    "sdl",
    "total_deductions",
    "net_pay",
)


@dataclass(frozen=True)
class Payslip:
    """One employee's pay for one pay period."""
    id: UUID
    employee_id: UUID
    pay_period_start: date
    pay_period_end: date
    pay_date: date
    status: PayslipStatus
    pay_frequency: PayFrequency
    rebate_category: RebateCategory
    sdl_exempt: bool
    rate_set_version: str
    # Inputs
    basic_salary: Decimal
    overtime: Decimal
    bonus: Decimal
    commission: Decimal
    allowances: Decimal
    pension_employee: Decimal
    pension_employer: Decimal
    medical_aid: Decimal
    other_deductions: Decimal
    # Computed
    gross_pay: Decimal
    paye: Decimal
    uif: Decimal
    uif_employer: Decimal
    sdl: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    paid_at: datetime | None = None
    version: int = 1

    @property
    def total_employer_cost(self) -> Decimal:
        return self.gross_pay + self.uif_employer + self.sdl + self.pension_employer

    @property
    def is_paid(self) -> bool:
        return self.status is PayslipStatus.PAID

    def amounts(self) -> dict[str, Decimal]:
        """The caller-supplied pay components."""
        return {name: getattr(self, name) for name in AMOUNT_FIELDS}

    def outputs(self) -> dict[str, Decimal]:
        """The computed figures."""
        return {name: getattr(self, name) for name in OUTPUT_FIELDS}

    def to_dict(self) -> dict:
        data = {
            "id": str(self.id),
            "employee_id": str(self.employee_id),
            "pay_period_start": self.pay_period_start.isoformat(),
            "pay_period_end": self.pay_period_end.isoformat(),
            "pay_date": self.pay_date.isoformat(),
            "status": self.status.value,
            "pay_frequency": self.pay_frequency.value,
            "rebate_category": self.rebate_category.value,
            "sdl_exempt": self.sdl_exempt,
            "rate_set_version": self.rate_set_version,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "version": self.version,
        }
        data.update({k: str(v) for k, v in self.amounts().items()})
        data.update({k: str(v) for k, v in self.outputs().items()})
        data["total_employer_cost"] = str(self.total_employer_cost)
        return data


@dataclass(frozen=True)
class PayslipAuditResult:
    """Stored outputs compared with a fresh recomputation."""
    payslip_id: UUID
    rate_set_version: str
    matches: bool
    differences: dict[str, tuple[str, str]] = field(default_factory=dict)
