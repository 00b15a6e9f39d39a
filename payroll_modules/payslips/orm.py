"""
Payslip ORM Persistence Model (``payroll_modules.payslips.orm``).

Responsibility:
    SQLAlchemy ORM model that persists the frozen ``Payslip`` DTO defined
    in ``payroll_modules.payslips.models``.

Architecture position:
    **Modules layer** -- persistence companion to the pure DTO model.
    Inherits from ``TrackedBase`` (kernel DB base).

Invariants enforced:
    - All monetary columns are Decimal (MoneyType, 2 fractional digits).
    - ``employee_id`` is a FK to ``payroll_employees.id``.
    - ``version`` is the optimistic-lock counter (``version_id_col``).
    - PAID rows are immutable and ``basic_salary`` never changes; both are
      enforced by the listeners in ``payroll_kernel.db.immutability``.

Audit relevance:
    Snapshot columns (``pay_frequency``, ``rebate_category``,
    ``sdl_exempt``, ``rate_set_version``) make every stored payslip
    recomputable long after the employee record has changed.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase


class PayslipModel(TrackedBase):
    """
    ORM model for ``Payslip``.

    Contract:
        Inputs and computed outputs are written together; the service never
        updates one without the other.
    """

    __tablename__ = "payroll_payslips"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_employees.id"), nullable=False,
    )
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    pay_frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    rebate_category: Mapped[str] = mapped_column(String(20), nullable=False)
    sdl_exempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rate_set_version: Mapped[str] = mapped_column(String(50), nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    overtime: Mapped[Decimal] = mapped_column(nullable=False)
    bonus: Mapped[Decimal] = mapped_column(nullable=False)
    commission: Mapped[Decimal] = mapped_column(nullable=False)
    allowances: Mapped[Decimal] = mapped_column(nullable=False)
    pension_employee: Mapped[Decimal] = mapped_column(nullable=False)
    pension_employer: Mapped[Decimal] = mapped_column(nullable=False)
    medical_aid: Mapped[Decimal] = mapped_column(nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False)

    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)
    paye: Mapped[Decimal] = mapped_column(nullable=False)
    uif: Mapped[Decimal] = mapped_column(nullable=False)
    uif_employer: Mapped[Decimal] = mapped_column(nullable=False)
    sdl: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_payroll_payslip_employee", "employee_id"),
        Index("idx_payroll_payslip_status", "status"),
        Index("idx_payroll_payslip_period", "pay_period_start", "pay_period_end"),
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from payroll_config.schema import RebateCategory
        from payroll_engines.statutory import PayFrequency
        from payroll_modules.payslips.models import Payslip, PayslipStatus
        return Payslip(
            id=self.id,
            employee_id=self.employee_id,
            pay_period_start=self.pay_period_start,
            pay_period_end=self.pay_period_end,
            pay_date=self.pay_date,
            status=PayslipStatus(self.status),
            pay_frequency=PayFrequency(self.pay_frequency),
            rebate_category=RebateCategory(self.rebate_category),
            sdl_exempt=self.sdl_exempt,
            rate_set_version=self.rate_set_version,
            basic_salary=self.basic_salary,
            overtime=self.overtime,
            bonus=self.bonus,
            commission=self.commission,
            allowances=self.allowances,
            pension_employee=self.pension_employee,
            pension_employer=self.pension_employer,
            medical_aid=self.medical_aid,
            other_deductions=self.other_deductions,
            gross_pay=self.gross_pay,
            paye=self.paye,
            uif=self.uif,
            uif_employer=self.uif_employer,
            sdl=self.sdl,
            total_deductions=self.total_deductions,
            net_pay=self.net_pay,
            paid_at=self.paid_at,
            version=self.version,
        )

    def apply_result(self, result) -> None:
        """Copy the computed outputs of a ``DeductionResult`` onto the row."""
        self.gross_pay = result.gross_pay.amount
        self.paye = result.paye.amount
        self.uif = result.uif.amount
        self.uif_employer = result.uif_employer.amount
        self.sdl = result.sdl.amount
        self.total_deductions = result.total_deductions.amount
        self.net_pay = result.net_pay.amount
        self.rate_set_version = result.rate_set_version

    def __repr__(self) -> str:
        return (
            f"<PayslipModel {self.id} employee={self.employee_id} "
            f"{self.pay_period_start}..{self.pay_period_end} ({self.status})>"
        )
