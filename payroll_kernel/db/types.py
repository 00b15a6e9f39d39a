"""
Module: payroll_kernel.db.types
Responsibility: Column types for financial-grade persistence.  Every money
    column in the schema is a ``MoneyType`` so that amounts are stored with
    exactly 2 fractional digits and never pass through binary floating point.
Architecture position: Kernel > DB.  May be imported by models and modules.
    MUST NOT import from engines, config or modules.

Invariants enforced:
    - Money columns hold exactly 2 fractional digits (round_money on bind).
    - Values read back are always ``Decimal``.
    - On SQLite (tests), amounts are stored as exact decimal strings because
      the driver has no native decimal type.
"""

from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

from payroll_kernel.domain.values import round_money, to_decimal

# 15 digits total, 2 decimal places
MONEY_PRECISION = 15
MONEY_SCALE = 2


class MoneyType(TypeDecorator):
    """
    Fixed-point money column.

    Contract:
        Binds ``Decimal``/``int``/``str`` amounts rounded half-up to 2dp and
        returns ``Decimal`` quantized to 2dp.

    Guarantees:
        - ``Numeric(15, 2)`` on PostgreSQL.
        - ``String(32)`` exact-string storage on SQLite.
        - ``float`` values are rejected at bind time.
    """

    impl = Numeric(MONEY_PRECISION, MONEY_SCALE)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(32))
        return dialect.type_descriptor(
            Numeric(MONEY_PRECISION, MONEY_SCALE, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = round_money(to_decimal(value))
        if dialect.name == "sqlite":
            return str(amount)
        return amount

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return round_money(Decimal(str(value)))
