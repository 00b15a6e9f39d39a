"""
Employee Module Service (``payroll_modules.employees.service``).

Responsibility
--------------
Creates, updates, reads and removes employee records, enforcing the
record's date and activity invariants.  Removal either hard-deletes the
employee (no pay history) or deactivates them (pay history exists), so
payslips never lose the employee they belong to.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``EmployeeService`` is the sole public
entry point for employee records.  It composes the pure helpers in
``helpers.py`` and persists through ``EmployeeModel``.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` and re-raise on any exception).
* ``end_date >= start_date``; ``is_active=False`` requires ``end_date``;
  ``salary_amount >= 0``.
* Dates are ``date`` objects or ISO ``YYYY-MM-DD`` strings; anything else,
  ``datetime`` included, is a ``ValidationError`` before any write.
* Removing an already-inactive employee never rewrites their ``end_date``.
* Removal is one locked read-modify-write: the payslip count and the
  delete/deactivate decision happen under the same row lock.

Failure modes
-------------
* ``ValidationError`` -- malformed fields or broken invariants.
* ``EmployeeNotFoundError`` -- unknown employee id.
* ``OptimisticLockError`` -- ``expected_version`` mismatch or a concurrent
  writer won the race.

Audit relevance
---------------
Structured log events for every create, update, delete and deactivation,
carrying the employee id and the acting user.

Usage::

    service = EmployeeService(session, clock=clock)
    employee = service.create_employee(
        business_id=business_id, employee_number="E-001",
        first_name="Thandi", last_name="Nkosi",
        employment_type="full_time", salary_type="monthly",
        salary_amount=Decimal("20000.00"), pay_frequency="monthly",
        start_date=date(2024, 3, 1), actor_id=actor_id,
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_engines.statutory import parse_pay_frequency
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import parse_date, parse_money_input
from payroll_kernel.exceptions import EmployeeNotFoundError, ValidationError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules._session_helpers import (
    check_expected_version,
    flush_versioned,
    load_for_update,
)
from payroll_modules.employees.helpers import employee_field_errors, parse_salary_type
from payroll_modules.employees.models import (
    Employee,
    EmployeeRemovalResult,
    EmploymentType,
)
from payroll_modules.employees.orm import EmployeeModel

logger = get_logger("modules.employees.service")

EDITABLE_FIELDS = frozenset({
    "employee_number",
    "first_name",
    "last_name",
    "tax_number",
    "employment_type",
    "salary_type",
    "salary_amount",
    "pay_frequency",
    "start_date",
    "end_date",
    "is_active",
})


def _parse_employment_type(value: EmploymentType | str) -> EmploymentType:
    if isinstance(value, EmploymentType):
        return value
    try:
        return EmploymentType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            {"employment_type": f"unknown employment type {value!r}"}
        ) from None


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError({field: "is required"})
    return value.strip()


def _optional_date(value: Any, field: str) -> date | None:
    """``None`` passes through for the record-level required check."""
    return None if value is None else parse_date(value, field)


class EmployeeService:
    """
    Manages the employee records that payslips are issued against.

    Contract
    --------
    * Every method returns frozen ``Employee`` DTOs, never ORM rows.
    * Mutating methods commit on success and roll back on any exception.

    Non-goals
    ---------
    * Does NOT compute pay; see ``PayslipService``.
    * Does NOT decide the employee's rebate category; that is supplied per
      payslip by the caller.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # =========================================================================
    # Create / Update
    # =========================================================================

    def create_employee(
        self,
        *,
        business_id: UUID,
        employee_number: str,
        first_name: str,
        last_name: str,
        employment_type: EmploymentType | str,
        salary_type: str,
        salary_amount: Any,
        pay_frequency: str,
        start_date: date,
        actor_id: UUID,
        tax_number: str | None = None,
        end_date: date | None = None,
        is_active: bool = True,
    ) -> Employee:
        """Validate and persist a new employee."""
        try:
            start_date = _optional_date(start_date, "start_date")
            end_date = _optional_date(end_date, "end_date")
            employee = Employee(
                id=uuid4(),
                business_id=business_id,
                employee_number=_require_text(employee_number, "employee_number"),
                first_name=_require_text(first_name, "first_name"),
                last_name=_require_text(last_name, "last_name"),
                tax_number=tax_number,
                employment_type=_parse_employment_type(employment_type),
                salary_type=parse_salary_type(salary_type),
                salary_amount=parse_money_input(salary_amount, "salary_amount"),
                pay_frequency=parse_pay_frequency(pay_frequency),
                start_date=start_date,
                end_date=end_date,
                is_active=is_active,
            )
            errors = employee_field_errors(start_date, end_date, is_active)
            if errors:
                raise ValidationError(errors)
            self._ensure_number_free(business_id, employee.employee_number)

            with LogContext.bind(actor_id=actor_id, employee_id=employee.id):
                model = EmployeeModel.from_dto(employee, created_by_id=actor_id)
                self._session.add(model)
                self._session.flush()
                self._session.commit()

                logger.info("employee_created", extra={
                    "business_id": str(business_id),
                    "employee_number": employee.employee_number,
                    "salary_type": employee.salary_type.value,
                    "pay_frequency": employee.pay_frequency.value,
                })
            return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    def update_employee(
        self,
        employee_id: UUID,
        changes: Mapping[str, Any],
        *,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Employee:
        """
        Apply a partial update and re-check every record invariant against
        the merged result.
        """
        try:
            unknown = sorted(set(changes) - EDITABLE_FIELDS)
            if unknown:
                raise ValidationError({k: "field is not editable" for k in unknown})

            model = self._load_for_update(employee_id)
            check_expected_version("Employee", model, expected_version)

            values = self._normalize_changes(changes)
            start = values.get("start_date", model.start_date)
            end = values.get("end_date", model.end_date)
            active = values.get("is_active", model.is_active)
            errors = employee_field_errors(start, end, active)
            if errors:
                raise ValidationError(errors)

            number = values.get("employee_number")
            if number is not None and number != model.employee_number:
                self._ensure_number_free(model.business_id, number)

            for key, value in values.items():
                setattr(model, key, value)
            model.updated_by_id = actor_id
            flush_versioned(self._session, "Employee", employee_id)
            self._session.commit()

            logger.info("employee_updated", extra={
                "employee_id": str(employee_id),
                "actor_id": str(actor_id),
                "fields": sorted(values),
                "version": model.version,
            })
            return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_employee(self, employee_id: UUID) -> Employee:
        model = self._session.get(EmployeeModel, employee_id)
        if model is None:
            raise EmployeeNotFoundError(str(employee_id))
        return model.to_dto()

    def list_employees(
        self,
        business_id: UUID,
        include_inactive: bool = False,
    ) -> list[Employee]:
        stmt = select(EmployeeModel).where(EmployeeModel.business_id == business_id)
        if not include_inactive:
            stmt = stmt.where(EmployeeModel.is_active.is_(True))
        stmt = stmt.order_by(EmployeeModel.employee_number)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def count_payslips(self, employee_id: UUID) -> int:
        from payroll_modules.payslips.orm import PayslipModel

        return self._session.execute(
            select(func.count(PayslipModel.id)).where(
                PayslipModel.employee_id == employee_id
            )
        ).scalar_one()

    # =========================================================================
    # Removal
    # =========================================================================

    def deactivate_or_delete_employee(
        self,
        employee_id: UUID,
        *,
        actor_id: UUID,
    ) -> EmployeeRemovalResult:
        """
        Hard-delete an employee with no payslips; otherwise deactivate them.

        Deactivation sets ``is_active=False`` and ``end_date`` to today (from
        the injected clock), or to ``start_date`` for an employee whose
        start lies in the future, so the date invariant still holds.  An
        employee who is already inactive keeps the ``end_date`` on record
        and the row is left untouched.
        """
        try:
            model = self._load_for_update(employee_id)
            payslip_count = self.count_payslips(employee_id)

            if payslip_count == 0:
                self._session.delete(model)
                self._session.flush()
                self._session.commit()
                logger.info("employee_deleted", extra={
                    "employee_id": str(employee_id),
                    "actor_id": str(actor_id),
                })
                return EmployeeRemovalResult(
                    employee_id=employee_id, deleted=True, deactivated=False,
                )

            already_inactive = not model.is_active
            if not already_inactive:
                model.is_active = False
                model.end_date = max(self._clock.today(), model.start_date)
                model.updated_by_id = actor_id
                flush_versioned(self._session, "Employee", employee_id)
            self._session.commit()

            logger.info("employee_deactivated", extra={
                "employee_id": str(employee_id),
                "actor_id": str(actor_id),
                "payslip_count": payslip_count,
                "end_date": model.end_date,
                "already_inactive": already_inactive,
            })
            return EmployeeRemovalResult(
                employee_id=employee_id,
                deleted=False,
                deactivated=True,
                payslip_count=payslip_count,
            )

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Internal
    # =========================================================================

    def _load_for_update(self, employee_id: UUID) -> EmployeeModel:
        model = load_for_update(self._session, EmployeeModel, employee_id)
        if model is None:
            raise EmployeeNotFoundError(str(employee_id))
        return model

    def _ensure_number_free(self, business_id: UUID, employee_number: str) -> None:
        taken = self._session.execute(
            select(EmployeeModel.id).where(
                EmployeeModel.business_id == business_id,
                EmployeeModel.employee_number == employee_number,
            )
        ).first()
        if taken is not None:
            raise ValidationError({"employee_number": "already in use"})

    def _normalize_changes(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in changes.items():
            if key in ("employee_number", "first_name", "last_name"):
                values[key] = _require_text(value, key)
            elif key == "employment_type":
                values[key] = _parse_employment_type(value).value
            elif key == "salary_type":
                values[key] = parse_salary_type(value).value
            elif key == "salary_amount":
                values[key] = parse_money_input(value, key)
            elif key == "pay_frequency":
                values[key] = parse_pay_frequency(value).value
            elif key == "is_active":
                values[key] = bool(value)
            elif key in ("start_date", "end_date"):
                values[key] = _optional_date(value, key)
            else:
                values[key] = value
        return values
