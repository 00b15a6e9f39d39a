"""
Employee ORM Persistence Model (``payroll_modules.employees.orm``).

Responsibility:
    SQLAlchemy ORM model that persists the frozen ``Employee`` DTO defined
    in ``payroll_modules.employees.models`` with ``to_dto()`` /
    ``from_dto()`` round-trip conversion.

Architecture position:
    **Modules layer** -- persistence companion to the pure DTO model.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - ``salary_amount`` is Decimal (MoneyType) -- NEVER float.
    - Enum fields stored as String(50) containing the enum .value string.
    - ``employee_number`` is unique within a business.
    - ``version`` is the optimistic-lock counter (``version_id_col``);
      every UPDATE checks and bumps it.
    - Hard deletion of an employee that owns payslips is blocked by the
      ``before_flush`` listener in ``payroll_kernel.db.immutability``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase


class EmployeeModel(TrackedBase):
    """
    ORM model for ``Employee``.

    Guarantees:
        - ``(business_id, employee_number)`` is unique
          (uq_payroll_employee_business_number).
        - ``employment_type``, ``salary_type`` and ``pay_frequency`` store
          enum .value strings.
    """

    __tablename__ = "payroll_employees"

    business_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tax_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    employment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    salary_type: Mapped[str] = mapped_column(String(50), nullable=False)
    salary_amount: Mapped[Decimal] = mapped_column(nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint(
            "business_id", "employee_number",
            name="uq_payroll_employee_business_number",
        ),
        Index("idx_payroll_employee_business", "business_id"),
        Index("idx_payroll_employee_active", "is_active"),
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from payroll_engines.statutory import PayFrequency
        from payroll_modules.employees.models import Employee, EmploymentType, SalaryType
        return Employee(
            id=self.id,
            business_id=self.business_id,
            employee_number=self.employee_number,
            first_name=self.first_name,
            last_name=self.last_name,
            tax_number=self.tax_number,
            employment_type=EmploymentType(self.employment_type),
            salary_type=SalaryType(self.salary_type),
            salary_amount=self.salary_amount,
            pay_frequency=PayFrequency(self.pay_frequency),
            start_date=self.start_date,
            end_date=self.end_date,
            is_active=self.is_active,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmployeeModel":
        return cls(
            id=dto.id,
            business_id=dto.business_id,
            employee_number=dto.employee_number,
            first_name=dto.first_name,
            last_name=dto.last_name,
            tax_number=dto.tax_number,
            employment_type=dto.employment_type.value,
            salary_type=dto.salary_type.value,
            salary_amount=dto.salary_amount,
            pay_frequency=dto.pay_frequency.value,
            start_date=dto.start_date,
            end_date=dto.end_date,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<EmployeeModel {self.employee_number}: "
            f"{self.first_name} {self.last_name} active={self.is_active}>"
        )
