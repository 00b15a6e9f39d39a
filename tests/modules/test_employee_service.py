"""
Tests for EmployeeService.

Covers:
- Create with validation of required fields, dates and salary
- Date inputs: ISO strings accepted, malformed strings and datetimes rejected
- Partial updates, non-editable fields and duplicate employee numbers
- Listing with and without inactive employees
- Remove: hard delete without payslips, deactivation with payslips,
  history of already-inactive employees left intact
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_engines.statutory import PayFrequency
from payroll_kernel.exceptions import (
    EmployeeNotFoundError,
    OptimisticLockError,
    ValidationError,
)
from payroll_modules.employees.helpers import basic_salary_for_period
from payroll_modules.employees.models import EmploymentType, SalaryType


class TestCreateEmployee:

    def test_create_returns_dto(self, make_employee, business_id):
        employee = make_employee(first_name="Sipho", last_name="Dlamini")

        assert employee.full_name == "Sipho Dlamini"
        assert employee.business_id == business_id
        assert employee.employment_type is EmploymentType.FULL_TIME
        assert employee.salary_type is SalaryType.MONTHLY
        assert employee.pay_frequency is PayFrequency.MONTHLY
        assert employee.salary_amount == Decimal("20000.00")
        assert employee.is_active
        assert employee.version == 1

    def test_persisted(self, make_employee, employee_service):
        employee = make_employee()
        assert employee_service.get_employee(employee.id) == employee

    def test_salary_normalized(self, make_employee):
        employee = make_employee(salary_amount="15000.005")
        assert str(employee.salary_amount) == "15000.01"

    def test_negative_salary_rejected(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(salary_amount="-1")
        assert "salary_amount" in exc_info.value.field_errors

    def test_float_salary_rejected(self, make_employee):
        with pytest.raises(ValidationError):
            make_employee(salary_amount=20000.0)

    def test_end_before_start_rejected(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(start_date=date(2024, 3, 1), end_date=date(2024, 2, 1))
        assert exc_info.value.field_errors == {"end_date": "must be on or after start_date"}

    def test_iso_string_dates_parsed(self, make_employee):
        employee = make_employee(start_date="2024-03-01", end_date=" 2025-02-28 ")
        assert employee.start_date == date(2024, 3, 1)
        assert employee.end_date == date(2025, 2, 28)

    def test_malformed_start_date_rejected(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(start_date="2024-13-01")
        assert list(exc_info.value.field_errors) == ["start_date"]

    def test_datetime_start_date_rejected(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(start_date=datetime(2024, 3, 1, 8, 0))
        assert "start_date" in exc_info.value.field_errors

    def test_non_date_end_date_rejected(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(end_date=20250228)
        assert "end_date" in exc_info.value.field_errors

    def test_inactive_requires_end_date(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(is_active=False)
        assert "end_date" in exc_info.value.field_errors

    def test_blank_name_rejected(self, make_employee):
        with pytest.raises(ValidationError) as exc_info:
            make_employee(first_name="  ")
        assert exc_info.value.field_errors == {"first_name": "is required"}

    def test_unknown_employment_type(self, make_employee):
        with pytest.raises(ValidationError):
            make_employee(employment_type="volunteer")

    def test_unsupported_pay_frequency(self, make_employee):
        with pytest.raises(ValidationError):
            make_employee(pay_frequency="daily")

    def test_duplicate_number_rejected(self, make_employee, employee_service):
        make_employee(employee_number="E-100")
        with pytest.raises(ValidationError) as exc_info:
            make_employee(employee_number="E-100")
        assert exc_info.value.field_errors == {"employee_number": "already in use"}
        assert len(employee_service.list_employees(make_employee().business_id)) == 2

    def test_same_number_other_business(self, make_employee):
        make_employee(employee_number="E-100")
        other = make_employee(employee_number="E-100", business_id=uuid4())
        assert other.employee_number == "E-100"

    def test_created_log(self, make_employee, captured_logs):
        make_employee()
        created = [r for r in captured_logs() if r["message"] == "employee_created"]
        assert len(created) == 1
        assert created[0]["pay_frequency"] == "monthly"
        assert "employee_id" in created[0]


class TestUpdateEmployee:

    def test_partial_update(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        updated = employee_service.update_employee(
            employee.id,
            {"last_name": "Mokoena", "salary_amount": "22000"},
            actor_id=actor_id,
        )
        assert updated.last_name == "Mokoena"
        assert updated.first_name == employee.first_name
        assert updated.salary_amount == Decimal("22000.00")
        assert updated.version == 2

    def test_enum_fields(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        updated = employee_service.update_employee(
            employee.id,
            {"salary_type": "hourly", "pay_frequency": "weekly", "employment_type": "contract"},
            actor_id=actor_id,
        )
        assert updated.salary_type is SalaryType.HOURLY
        assert updated.pay_frequency is PayFrequency.WEEKLY
        assert updated.employment_type is EmploymentType.CONTRACT

    def test_non_editable_field(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        with pytest.raises(ValidationError) as exc_info:
            employee_service.update_employee(
                employee.id, {"business_id": uuid4()}, actor_id=actor_id,
            )
        assert exc_info.value.field_errors == {"business_id": "field is not editable"}

    def test_merged_dates_checked(self, make_employee, employee_service, actor_id):
        employee = make_employee(start_date=date(2024, 3, 1))
        with pytest.raises(ValidationError):
            employee_service.update_employee(
                employee.id, {"end_date": date(2024, 1, 31)}, actor_id=actor_id,
            )
        assert employee_service.get_employee(employee.id).end_date is None

    def test_malformed_end_date_rejected(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        with pytest.raises(ValidationError) as exc_info:
            employee_service.update_employee(
                employee.id, {"end_date": "not-a-date"}, actor_id=actor_id,
            )
        assert "end_date" in exc_info.value.field_errors
        assert employee_service.get_employee(employee.id).end_date is None

    def test_string_dates_in_update(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        updated = employee_service.update_employee(
            employee.id,
            {"is_active": False, "end_date": "2024-05-31"},
            actor_id=actor_id,
        )
        assert updated.end_date == date(2024, 5, 31)

    def test_start_date_cannot_be_cleared(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        with pytest.raises(ValidationError) as exc_info:
            employee_service.update_employee(
                employee.id, {"start_date": None}, actor_id=actor_id,
            )
        assert exc_info.value.field_errors == {"start_date": "is required"}

    def test_deactivate_without_end_date_rejected(
        self, make_employee, employee_service, actor_id,
    ):
        employee = make_employee()
        with pytest.raises(ValidationError):
            employee_service.update_employee(
                employee.id, {"is_active": False}, actor_id=actor_id,
            )

    def test_renumber_to_taken_number(self, make_employee, employee_service, actor_id):
        make_employee(employee_number="E-200")
        employee = make_employee(employee_number="E-201")
        with pytest.raises(ValidationError):
            employee_service.update_employee(
                employee.id, {"employee_number": "E-200"}, actor_id=actor_id,
            )

    def test_keep_own_number(self, make_employee, employee_service, actor_id):
        employee = make_employee(employee_number="E-300")
        updated = employee_service.update_employee(
            employee.id, {"employee_number": "E-300"}, actor_id=actor_id,
        )
        assert updated.employee_number == "E-300"

    def test_stale_expected_version(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        employee_service.update_employee(employee.id, {"first_name": "A"}, actor_id=actor_id)
        with pytest.raises(OptimisticLockError) as exc_info:
            employee_service.update_employee(
                employee.id, {"first_name": "B"},
                actor_id=actor_id, expected_version=employee.version,
            )
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert employee_service.get_employee(employee.id).first_name == "A"

    def test_unknown_employee(self, employee_service, actor_id):
        with pytest.raises(EmployeeNotFoundError):
            employee_service.update_employee(uuid4(), {"first_name": "X"}, actor_id=actor_id)


class TestListEmployees:

    def test_ordered_and_filtered(self, make_employee, employee_service, business_id, actor_id):
        make_employee(employee_number="E-900")
        second = make_employee(employee_number="E-100")
        leaver = make_employee(employee_number="E-500")
        employee_service.update_employee(
            leaver.id, {"is_active": False, "end_date": date(2024, 5, 31)}, actor_id=actor_id,
        )

        active = employee_service.list_employees(business_id)
        assert [e.employee_number for e in active] == ["E-100", "E-900"]
        assert active[0].id == second.id

        everyone = employee_service.list_employees(business_id, include_inactive=True)
        assert [e.employee_number for e in everyone] == ["E-100", "E-500", "E-900"]

    def test_other_business_excluded(self, make_employee, employee_service):
        make_employee()
        assert employee_service.list_employees(uuid4()) == []


class TestRemoveEmployee:

    def test_delete_without_payslips(self, make_employee, employee_service, actor_id):
        employee = make_employee()
        result = employee_service.deactivate_or_delete_employee(employee.id, actor_id=actor_id)

        assert result.deleted and not result.deactivated
        with pytest.raises(EmployeeNotFoundError):
            employee_service.get_employee(employee.id)

    def test_deactivate_with_payslips(
        self, make_employee, make_payslip, employee_service, payslip_service,
        actor_id, captured_logs,
    ):
        employee = make_employee()
        for month in (4, 5, 6):
            make_payslip(
                employee.id,
                pay_period_start=date(2024, month, 1),
                pay_period_end=date(2024, month, 28),
                pay_date=date(2024, month, 25),
            )
        before = payslip_service.list_payslips(employee_id=employee.id)

        result = employee_service.deactivate_or_delete_employee(employee.id, actor_id=actor_id)

        assert result.deactivated and not result.deleted
        assert result.payslip_count == 3
        stored = employee_service.get_employee(employee.id)
        assert stored.is_active is False
        assert stored.end_date == date(2024, 6, 30)
        assert employee_service.count_payslips(employee.id) == 3
        assert payslip_service.list_payslips(employee_id=employee.id) == before
        assert any(r["message"] == "employee_deactivated" for r in captured_logs())

    def test_already_inactive_keeps_end_date(
        self, make_employee, make_payslip, employee_service, actor_id,
    ):
        employee = make_employee()
        make_payslip(
            employee.id,
            pay_period_start=date(2024, 4, 1),
            pay_period_end=date(2024, 4, 30),
            pay_date=date(2024, 4, 25),
        )
        left = employee_service.update_employee(
            employee.id,
            {"is_active": False, "end_date": date(2024, 4, 30)},
            actor_id=actor_id,
        )

        result = employee_service.deactivate_or_delete_employee(employee.id, actor_id=actor_id)

        assert result.deactivated and not result.deleted
        stored = employee_service.get_employee(employee.id)
        assert stored.end_date == date(2024, 4, 30)
        assert stored.is_active is False
        assert stored.version == left.version

    def test_future_starter_end_date_not_before_start(
        self, make_employee, make_payslip, employee_service, actor_id,
    ):
        employee = make_employee(start_date=date(2024, 9, 1))
        make_payslip(employee.id)

        employee_service.deactivate_or_delete_employee(employee.id, actor_id=actor_id)

        assert employee_service.get_employee(employee.id).end_date == date(2024, 9, 1)

    def test_unknown_employee(self, employee_service, actor_id):
        with pytest.raises(EmployeeNotFoundError):
            employee_service.deactivate_or_delete_employee(uuid4(), actor_id=actor_id)


class TestBasicSalaryForPeriod:

    def test_monthly_salary_paid_weekly(self):
        assert basic_salary_for_period("monthly", Decimal("26000"), "weekly") == Decimal("6000.00")

    def test_annual_salary_paid_monthly(self):
        assert basic_salary_for_period("annual", Decimal("240000"), "monthly") == Decimal("20000.00")

    def test_hourly(self):
        assert basic_salary_for_period("hourly", Decimal("150.00"), "weekly", "37.5") == Decimal("5625.00")

    def test_hourly_requires_hours(self):
        with pytest.raises(ValidationError) as exc_info:
            basic_salary_for_period("hourly", Decimal("150.00"), "weekly")
        assert "hours" in exc_info.value.field_errors

    def test_rounded_once(self):
        # 10000 * 12 / 26 = 4615.384...
        assert basic_salary_for_period("monthly", Decimal("10000"), "biweekly") == Decimal("4615.38")
