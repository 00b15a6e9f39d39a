"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll errors reach three different audiences: the UI layer (field-level
validation messages), the operator (a payslip that cannot be finalized), and
the auditor (an attempt to rewrite pay history). Callers must be able to tell
these apart by TYPE, never by parsing message text.

Every exception:
  1. Has a typed class (catch by type, not message)
  2. Has a ``code`` class attribute (machine-readable, API-safe)
  3. Carries structured data as attributes (not just a message string)

Example:
    try:
        service.update_payslip(payslip_id, amounts={"bonus": "500.00"}, ...)
    except ImmutableRecordError as e:
        api_response(status=409, code=e.code, payslip=e.entity_id)
    except ValidationError as e:
        api_response(status=400, code=e.code, fields=e.field_errors)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- ValidationError
    |
    +-- CalculationError
    |   +-- NegativeNetPayError
    |
    +-- LifecycleError
    |   +-- ImmutableRecordError
    |   +-- InvalidStateError
    |
    +-- NotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- PayslipNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConfigurationError
        +-- TaxTableIntegrityError
        +-- RateSetNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed / out-of-range input
----------------|-----------------------------|-----------------------------------------
Calculation     | NEGATIVE_NET_PAY            | Deductions exceed gross pay
----------------|-----------------------------|-----------------------------------------
Lifecycle       | IMMUTABLE_RECORD            | Mutating a PAID payslip or basic_salary
                | INVALID_STATE               | Operation not allowed in current status
----------------|-----------------------------|-----------------------------------------
Not found       | EMPLOYEE_NOT_FOUND          | Employee ID doesn't exist
                | PAYSLIP_NOT_FOUND           | Payslip ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Concurrent modification detected
----------------|-----------------------------|-----------------------------------------
Configuration   | TAX_TABLE_INTEGRITY         | Rate set fails integrity checks at load
                | RATE_SET_NOT_FOUND          | No rate set in force on a pay date

None of these are retried automatically: they indicate a caller or data
problem, not a transient fault. ``OptimisticLockError`` is the one a caller
may choose to retry after re-reading the record.

===============================================================================
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Validation


class ValidationError(PayrollKernelError):
    """
    Caller supplied malformed or out-of-range input.

    ``field_errors`` maps each offending field name to a human-readable
    message so the UI layer can render it next to the input.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, field_errors: dict[str, str] | str, field: str | None = None):
        if isinstance(field_errors, str):
            field_errors = {field or "__all__": field_errors}
        self.field_errors = dict(field_errors)
        details = "; ".join(f"{k}: {v}" for k, v in sorted(self.field_errors.items()))
        super().__init__(f"Validation failed: {details}")


# Calculation


class CalculationError(PayrollKernelError):
    """Base exception for payroll calculation errors."""

    code: str = "CALCULATION_ERROR"


class NegativeNetPayError(CalculationError):
    """
    Computed net pay is below zero.

    The payslip is never persisted and net pay is never clamped; a human
    must reduce the deductions or escalate.
    """

    code: str = "NEGATIVE_NET_PAY"

    def __init__(self, gross_pay: str, total_deductions: str, net_pay: str):
        self.gross_pay = gross_pay
        self.total_deductions = total_deductions
        self.net_pay = net_pay
        super().__init__(
            f"Net pay would be negative: gross={gross_pay}, "
            f"deductions={total_deductions}, net={net_pay}"
        )


# Lifecycle


class LifecycleError(PayrollKernelError):
    """Base exception for record lifecycle violations."""

    code: str = "LIFECYCLE_ERROR"


class ImmutableRecordError(LifecycleError):
    """Attempted mutation of a PAID payslip or of an immutable field."""

    code: str = "IMMUTABLE_RECORD"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is immutable: {reason}")


class InvalidStateError(LifecycleError):
    """Operation is not permitted in the record's current lifecycle state."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        operation: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} "
            f"in state '{current_state}'"
        )


# Lookup


class NotFoundError(PayrollKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class EmployeeNotFoundError(NotFoundError):
    """Employee with given ID was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class PayslipNotFoundError(NotFoundError):
    """Payslip with given ID was not found."""

    code: str = "PAYSLIP_NOT_FOUND"

    def __init__(self, payslip_id: str):
        self.payslip_id = payslip_id
        super().__init__(f"Payslip not found: {payslip_id}")


# Concurrency


class ConcurrencyError(PayrollKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        detail = ""
        if expected_version is not None:
            detail = f" (expected version {expected_version}, found {actual_version})"
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"entity was modified by another transaction{detail}"
        )


# Configuration


class ConfigurationError(PayrollKernelError):
    """Base exception for statutory configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class TaxTableIntegrityError(ConfigurationError):
    """
    A rate set failed integrity validation.

    Raised at load time so that a misconfigured tax table (gaps, overlaps,
    discontinuous cumulative amounts) never reaches a calculation.
    """

    code: str = "TAX_TABLE_INTEGRITY"

    def __init__(self, version: str, errors: list[str]):
        self.version = version
        self.errors = list(errors)
        super().__init__(
            f"Rate set '{version}' failed integrity checks: " + "; ".join(self.errors)
        )


class RateSetNotFoundError(ConfigurationError):
    """No statutory rate set matches the requested pay date or version."""

    code: str = "RATE_SET_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"No payroll rate set found for {reference}")
