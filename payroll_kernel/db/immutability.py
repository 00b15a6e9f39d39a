"""
ORM-Level Immutability Enforcement for pay records.

===============================================================================
WHY THIS EXISTS
===============================================================================

Payroll history must be tamper-proof.  A PAID payslip is a statement of what
an employee was actually paid and what was withheld on their behalf; it can
only be corrected by issuing a new payslip, never by editing the old one.

The service layer (``payroll_modules.payslips.service``) enforces these rules
with typed errors before it touches the session.  This module is the second
line: SQLAlchemy event listeners that fire BEFORE the SQL is sent, so that a
caller who bypasses the service (a script, a bulk fix, a careless refactor)
still cannot rewrite pay history.

    session.flush()
         |
         v
    [before_flush]  --> _check_employee_deletion_before_flush() --> InvalidStateError
         |
         v
    [before_update] --> _check_payslip_immutability() --> ImmutableRecordError
         |
         v
    [before_delete] --> _check_payslip_delete() ------> InvalidStateError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity         | Rule                                   | Error
---------------|----------------------------------------|----------------------
PayslipModel   | No field changes once status = PAID    | ImmutableRecordError
PayslipModel   | basic_salary never changes             | ImmutableRecordError
PayslipModel   | Delete only while DRAFT                | InvalidStateError
EmployeeModel  | Delete only if no payslips reference it| InvalidStateError

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by_id / version are audit and concurrency metadata,
   not pay data; they are allowed to change.

2. "Was PAID" is read from attribute history, not the current value: the
   APPROVED -> PAID transition itself must be allowed, and everything after
   it must not.

3. Model imports are inline to avoid circular imports (models import db).

===============================================================================
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutableRecordError, InvalidStateError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id", "version"})
_PAID = "paid"
_DRAFT = "draft"


def _persisted_status(target) -> str | None:
    """Status as loaded from the database, before any pending change."""
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return target.status


def _check_payslip_immutability(mapper, connection, target):
    """
    Block updates to PAID payslips and to basic_salary.

    Logic:
        1. basic_salary has a pending change: block, regardless of status.
        2. Status was PAID before this flush: block any non-metadata change.
        3. Otherwise (including the APPROVED -> PAID move itself): allow.
    """
    from payroll_modules.payslips.orm import PayslipModel

    if not isinstance(target, PayslipModel):
        return

    if get_history(target, "basic_salary").deleted:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "Payslip",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "field": "basic_salary",
            },
        )
        raise ImmutableRecordError(
            entity_type="Payslip",
            entity_id=str(target.id),
            reason="basic_salary is fixed at creation",
        )

    if _persisted_status(target) != _PAID:
        return

    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _METADATA_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Payslip",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutableRecordError(
                entity_type="Payslip",
                entity_id=str(target.id),
                reason=f"cannot modify field '{attr.key}' on a paid payslip",
            )


def _check_payslip_delete(mapper, connection, target):
    """Only DRAFT payslips may be deleted."""
    from payroll_modules.payslips.orm import PayslipModel

    if not isinstance(target, PayslipModel):
        return

    status = _persisted_status(target)
    if status != _DRAFT:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "Payslip",
                "entity_id": str(target.id),
                "operation": "DELETE",
                "status": status,
            },
        )
        raise InvalidStateError(
            entity_type="Payslip",
            entity_id=str(target.id),
            current_state=status,
            operation="delete",
        )


def _check_employee_deletion_before_flush(session, flush_context, instances):
    """
    Prevent hard deletion of employees that own payslips.

    Runs in SessionEvents.before_flush, before the flush plan is finalized,
    so the deletion never reaches the database.
    """
    from payroll_modules.employees.orm import EmployeeModel
    from payroll_modules.payslips.orm import PayslipModel

    for obj in list(session.deleted):
        if not isinstance(obj, EmployeeModel):
            continue

        with session.no_autoflush:
            count = session.execute(
                select(func.count(PayslipModel.id)).where(
                    PayslipModel.employee_id == obj.id
                )
            ).scalar_one()

        if count:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Employee",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "payslip_count": count,
                },
            )
            raise InvalidStateError(
                entity_type="Employee",
                entity_id=str(obj.id),
                current_state=f"has {count} payslip(s)",
                operation="delete",
            )


def _listener_table():
    from payroll_modules.payslips.orm import PayslipModel

    return [
        (Session, "before_flush", _check_employee_deletion_before_flush),
        (PayslipModel, "before_update", _check_payslip_immutability),
        (PayslipModel, "before_delete", _check_payslip_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all ORM immutability listeners (idempotent)."""
    for target, name, fn in _listener_table():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all ORM immutability listeners.  FOR TESTING ONLY."""
    for target, name, fn in _listener_table():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
    logger.debug("immutability_listeners_unregistered")
