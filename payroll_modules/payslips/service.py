"""
Payslip Module Service (``payroll_modules.payslips.service``).

Responsibility
--------------
Creates payslips from pay components, recalculates them when an editable
component changes, moves them through the ``PAYSLIP_WORKFLOW`` lifecycle
and deletes drafts.  All arithmetic is delegated to
``payroll_engines.statutory.compute_deductions``; this service only
validates, snapshots and persists.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``PayslipService`` is the sole public
entry point for payslips.  It composes the rate set registry
(``payroll_config``), the pure calculator (``payroll_engines``) and the
``PayslipModel`` persistence companion.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` and re-raise on any exception).
* Inputs and computed outputs are replaced together or not at all.
* ``basic_salary`` is fixed at creation.
* A PAID payslip is never modified; only a DRAFT payslip is deleted.
* APPROVED is mandatory between DRAFT and PAID.
* Every mutation runs under ``SELECT ... FOR UPDATE`` and the row
  ``version`` check; a lost race raises ``OptimisticLockError``.

Failure modes
-------------
* ``ValidationError`` -- malformed or negative amounts, unknown fields,
  non-date or ISO-malformed dates (``datetime`` included), a period that
  ends before it starts, unknown status.
* ``NegativeNetPayError`` -- deductions exceed gross; nothing persisted.
* ``ImmutableRecordError`` -- edit of ``basic_salary`` or of a PAID payslip.
* ``InvalidStateError`` -- undeclared transition or non-DRAFT delete.
* ``EmployeeNotFoundError`` / ``PayslipNotFoundError`` -- unknown ids.
* ``RateSetNotFoundError`` -- no rate set in force on the pay date.
* ``OptimisticLockError`` -- concurrent modification.

Audit relevance
---------------
Structured log events for every create, recalculation, transition and
delete, carrying payslip id, employee id, actor, version and the rate set
version used.  ``audit_payslip`` recomputes a stored payslip from its own
snapshot and reports any drift.

Usage::

    service = PayslipService(session, get_default_registry(), clock=clock)
    payslip = service.create_payslip(
        employee.id,
        pay_period_start=date(2024, 6, 1), pay_period_end=date(2024, 6, 30),
        pay_date=date(2024, 6, 25),
        amounts={"basic_salary": Decimal("20000.00")},
        actor_id=actor_id,
    )
    service.transition_payslip(payslip.id, "approved", actor_id=actor_id)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_config.schema import RateSetRegistry, RebateCategory
from payroll_engines.statutory import (
    AMOUNT_FIELDS,
    DeductionInputs,
    DeductionResult,
    compute_deductions,
    parse_rebate_category,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import parse_date
from payroll_kernel.exceptions import (
    EmployeeNotFoundError,
    ImmutableRecordError,
    InvalidStateError,
    PayslipNotFoundError,
    ValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules._session_helpers import (
    check_expected_version,
    flush_versioned,
    load_for_update,
)
from payroll_modules.employees.helpers import basic_salary_for_period
from payroll_modules.employees.orm import EmployeeModel
from payroll_modules.payslips.models import (
    OUTPUT_FIELDS,
    Payslip,
    PayslipAuditResult,
    PayslipStatus,
)
from payroll_modules.payslips.orm import PayslipModel
from payroll_modules.payslips.workflows import PAYSLIP_WORKFLOW

logger = get_logger("modules.payslips.service")

EDITABLE_AMOUNT_FIELDS = frozenset(AMOUNT_FIELDS) - {"basic_salary"}


def parse_status(value: PayslipStatus | str) -> PayslipStatus:
    if isinstance(value, PayslipStatus):
        return value
    try:
        return PayslipStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"status": f"unknown payslip status {value!r}"}) from None


def _check_editable_amounts(payslip_id: UUID | str, amounts: Mapping[str, Any]) -> None:
    if "basic_salary" in amounts:
        raise ImmutableRecordError(
            entity_type="Payslip",
            entity_id=str(payslip_id),
            reason="basic_salary is fixed at creation",
        )
    unknown = sorted(set(amounts) - EDITABLE_AMOUNT_FIELDS)
    if unknown:
        raise ValidationError({k: "field is not editable" for k in unknown})


class PayslipService:
    """
    Orchestrates the payslip lifecycle through the statutory calculator.

    Contract
    --------
    * Every method returns frozen ``Payslip`` DTOs, never ORM rows.
    * The rate set is chosen by pay date from the injected registry.

    Guarantees
    ----------
    * Session is committed only after the calculation and every lifecycle
      check succeeded; otherwise rolled back.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT guess an employee's rebate category; callers pass it.
    * Does NOT render or deliver payslip documents.
    """

    def __init__(
        self,
        session: Session,
        rate_registry: RateSetRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._registry = rate_registry
        self._clock = clock or SystemClock()

    # =========================================================================
    # Create
    # =========================================================================

    def create_payslip(
        self,
        employee_id: UUID,
        *,
        pay_period_start: date,
        pay_period_end: date,
        pay_date: date,
        actor_id: UUID,
        amounts: Mapping[str, Any] | None = None,
        hours: Any = None,
        rebate_category: RebateCategory | str = RebateCategory.UNDER_65,
        sdl_exempt: bool = False,
    ) -> Payslip:
        """
        Compute and persist a new DRAFT payslip.

        When ``amounts`` omits ``basic_salary`` it is derived from the
        employee's salary and pay frequency (hourly employees need
        ``hours``).
        """
        try:
            pay_period_start = parse_date(pay_period_start, "pay_period_start")
            pay_period_end = parse_date(pay_period_end, "pay_period_end")
            pay_date = parse_date(pay_date, "pay_date")
            if pay_period_start > pay_period_end:
                raise ValidationError(
                    {"pay_period_end": "must be on or after pay_period_start"}
                )
            employee = self._session.get(EmployeeModel, employee_id)
            if employee is None:
                raise EmployeeNotFoundError(str(employee_id))

            data = dict(amounts or {})
            if "basic_salary" not in data:
                data["basic_salary"] = basic_salary_for_period(
                    employee.salary_type,
                    employee.salary_amount,
                    employee.pay_frequency,
                    hours,
                )
            inputs = DeductionInputs.from_mapping(data)
            category = parse_rebate_category(rebate_category)
            rates = self._registry.for_date(pay_date)
            result = compute_deductions(
                inputs,
                employee.pay_frequency,
                rates,
                rebate_category=category,
                sdl_exempt=sdl_exempt,
            )

            payslip_id = uuid4()
            with LogContext.bind(
                actor_id=actor_id, employee_id=employee_id, payslip_id=payslip_id,
            ):
                model = PayslipModel(
                    id=payslip_id,
                    employee_id=employee_id,
                    pay_period_start=pay_period_start,
                    pay_period_end=pay_period_end,
                    pay_date=pay_date,
                    status=PAYSLIP_WORKFLOW.initial_state,
                    pay_frequency=result.pay_frequency.value,
                    rebate_category=result.rebate_category.value,
                    sdl_exempt=bool(sdl_exempt),
                    created_by_id=actor_id,
                    **inputs.to_dict(),
                )
                model.apply_result(result)
                self._session.add(model)
                self._session.flush()
                self._session.commit()

                logger.info("payslip_created", extra={
                    "rate_set_version": rates.version,
                    "gross_pay": result.gross_pay.amount,
                    "total_deductions": result.total_deductions.amount,
                    "net_pay": result.net_pay.amount,
                })
            return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Update / Transition
    # =========================================================================

    def update_payslip(
        self,
        payslip_id: UUID,
        *,
        actor_id: UUID,
        amounts: Mapping[str, Any] | None = None,
        status: PayslipStatus | str | None = None,
        pay_date: date | None = None,
        expected_version: int | None = None,
    ) -> Payslip:
        """
        Partial update.

        Amount changes re-run the calculator on the stored ``basic_salary``
        merged with the new components and replace every computed output.
        A ``pay_date`` change alone leaves the figures untouched.  A
        ``status`` change is applied last, through the workflow.
        """
        try:
            amounts = dict(amounts or {})
            _check_editable_amounts(payslip_id, amounts)
            target = parse_status(status) if status is not None else None
            if pay_date is not None:
                pay_date = parse_date(pay_date, "pay_date")

            model = self._load_for_update(payslip_id)
            check_expected_version("Payslip", model, expected_version)
            current = PayslipStatus(model.status)

            if current is PayslipStatus.PAID:
                wants_change = bool(amounts) or (
                    pay_date is not None and pay_date != model.pay_date
                ) or (target is not None and target is not PayslipStatus.PAID)
                if wants_change:
                    raise ImmutableRecordError(
                        entity_type="Payslip",
                        entity_id=str(payslip_id),
                        reason="payslip has been paid",
                    )
                self._session.commit()
                return model.to_dto()

            with LogContext.bind(
                actor_id=actor_id, employee_id=model.employee_id, payslip_id=payslip_id,
            ):
                if pay_date is not None:
                    model.pay_date = pay_date
                if amounts:
                    self._recalculate(model, amounts)
                if target is not None:
                    self._apply_transition(model, current, target)

                model.updated_by_id = actor_id
                flush_versioned(self._session, "Payslip", payslip_id)
                self._session.commit()

                logger.info("payslip_updated", extra={
                    "fields": sorted(amounts),
                    "pay_date_changed": pay_date is not None,
                    "status": model.status,
                    "version": model.version,
                })
            return model.to_dto()

        except Exception:
            self._session.rollback()
            raise

    def transition_payslip(
        self,
        payslip_id: UUID,
        to_status: PayslipStatus | str,
        *,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Payslip:
        """Move a payslip to ``to_status``; same-state is a no-op."""
        return self.update_payslip(
            payslip_id,
            actor_id=actor_id,
            status=to_status,
            expected_version=expected_version,
        )

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_payslip(
        self,
        payslip_id: UUID,
        *,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> None:
        """Delete a DRAFT payslip."""
        try:
            model = self._load_for_update(payslip_id)
            check_expected_version("Payslip", model, expected_version)
            if model.status != PayslipStatus.DRAFT.value:
                raise InvalidStateError(
                    entity_type="Payslip",
                    entity_id=str(payslip_id),
                    current_state=model.status,
                    operation="delete",
                )
            employee_id = model.employee_id
            self._session.delete(model)
            flush_versioned(self._session, "Payslip", payslip_id)
            self._session.commit()

            logger.info("payslip_deleted", extra={
                "payslip_id": str(payslip_id),
                "employee_id": str(employee_id),
                "actor_id": str(actor_id),
            })

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_payslip(self, payslip_id: UUID) -> Payslip:
        model = self._session.get(PayslipModel, payslip_id)
        if model is None:
            raise PayslipNotFoundError(str(payslip_id))
        return model.to_dto()

    def list_payslips(
        self,
        employee_id: UUID | None = None,
        status: PayslipStatus | str | None = None,
    ) -> list[Payslip]:
        stmt = select(PayslipModel)
        if employee_id is not None:
            stmt = stmt.where(PayslipModel.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(PayslipModel.status == parse_status(status).value)
        stmt = stmt.order_by(PayslipModel.pay_period_start, PayslipModel.created_at)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def audit_payslip(self, payslip_id: UUID) -> PayslipAuditResult:
        """
        Recompute a stored payslip from its own snapshot (inputs, frequency,
        rebate category, SDL flag and rate set version) and compare.
        """
        payslip = self.get_payslip(payslip_id)
        rates = self._registry.get(payslip.rate_set_version)
        result = compute_deductions(
            DeductionInputs(**payslip.amounts()),
            payslip.pay_frequency,
            rates,
            rebate_category=payslip.rebate_category,
            sdl_exempt=payslip.sdl_exempt,
        )
        differences = {}
        for name in OUTPUT_FIELDS:
            stored = getattr(payslip, name)
            fresh = getattr(result, name).amount
            if stored != fresh:
                differences[name] = (str(stored), str(fresh))

        if differences:
            logger.warning("payslip_audit_mismatch", extra={
                "payslip_id": str(payslip_id),
                "rate_set_version": rates.version,
                "fields": sorted(differences),
            })
        return PayslipAuditResult(
            payslip_id=payslip_id,
            rate_set_version=rates.version,
            matches=not differences,
            differences=differences,
        )

    # =========================================================================
    # Internal
    # =========================================================================

    def _load_for_update(self, payslip_id: UUID) -> PayslipModel:
        model = load_for_update(self._session, PayslipModel, payslip_id)
        if model is None:
            raise PayslipNotFoundError(str(payslip_id))
        return model

    def _recalculate(self, model: PayslipModel, changes: Mapping[str, Any]) -> DeductionResult:
        stored = DeductionInputs(
            **{name: getattr(model, name) for name in AMOUNT_FIELDS}
        )
        inputs = stored.merged(changes)
        rates = self._registry.for_date(model.pay_date)
        result = compute_deductions(
            inputs,
            model.pay_frequency,
            rates,
            rebate_category=model.rebate_category,
            sdl_exempt=model.sdl_exempt,
        )
        for name, value in inputs.to_dict().items():
            if name != "basic_salary":
                setattr(model, name, value)
        model.apply_result(result)

        logger.info("payslip_recalculated", extra={
            "rate_set_version": rates.version,
            "gross_pay": result.gross_pay.amount,
            "total_deductions": result.total_deductions.amount,
            "net_pay": result.net_pay.amount,
        })
        return result

    def _apply_transition(
        self,
        model: PayslipModel,
        current: PayslipStatus,
        target: PayslipStatus,
    ) -> None:
        if current is target:
            return
        transition = PAYSLIP_WORKFLOW.find_transition(current.value, target.value)
        if transition is None:
            raise InvalidStateError(
                entity_type="Payslip",
                entity_id=str(model.id),
                current_state=current.value,
                operation=f"move to '{target.value}'",
            )
        model.status = transition.to_state
        if target is PayslipStatus.PAID:
            model.paid_at = self._clock.now()
        logger.info("payslip_transitioned", extra={
            "action": transition.action,
            "from_status": current.value,
            "to_status": transition.to_state,
        })
