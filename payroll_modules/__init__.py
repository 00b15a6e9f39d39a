"""
payroll_modules -- ERP glue over the payroll engines.

    employees  Employee Record Manager
    payslips   Payslip Lifecycle Manager

Each module follows the same shape: ``models.py`` (frozen DTOs), ``orm.py``
(SQLAlchemy persistence), ``service.py`` (transaction-owning facade) and,
where needed, ``helpers.py`` / ``workflows.py``.
"""


def import_all_orm_models() -> None:
    """Import every ``payroll_modules.*.orm`` module so ``Base.metadata``
    holds their tables before ``create_all()`` runs.

    Idempotent -- repeated calls are harmless.
    """
    import payroll_modules.employees.orm  # noqa: F401
    import payroll_modules.payslips.orm  # noqa: F401
