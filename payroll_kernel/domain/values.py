"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides the fixed-point ``Money`` type and the boundary parsers that
    every monetary and date input passes through before it reaches a
    calculation or the database.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines, config and modules. No outward dependencies except
    ``payroll_kernel.exceptions``.

Invariants enforced:
    - All amounts are ``Decimal``; ``float`` is rejected at construction.
    - Intermediate arithmetic is never rounded implicitly; values carry the
      full 28-digit decimal context (well above 4 fractional digits).
    - ``round_money`` is the ONLY sanctioned rounding function: 2 fractional
      digits, ROUND_HALF_UP.
    - Single currency (ZAR). Multi-currency is out of scope.

Failure modes:
    - ValidationError for float, bool, NaN/Infinity, non-numeric strings,
      and negative amounts where a non-negative quantity is required.
    - ValidationError for dates that are not a ``date`` or ISO string.
    - TypeError when Money arithmetic is mixed with unsupported operands.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from payroll_kernel.exceptions import ValidationError

CURRENCY_CODE = "ZAR"
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

_CENT = Decimal("0.01")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for monetary values.

    Postconditions: Returns ``value`` quantized to ``decimal_places`` using
        ``rounding`` (default half-up). ``Decimal("-0.00")`` is normalized
        to ``Decimal("0.00")``.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    rounded = value.quantize(Decimal(quantize_str), rounding=rounding)
    if rounded.is_zero():
        return abs(rounded)
    return rounded


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Convert a boundary value to ``Decimal`` without loss.

    Accepts ``Decimal``, ``int`` (whole rand) and exact decimal strings.
    Rejects ``float`` (binary floating point), ``bool``, ``None`` and
    anything non-finite.

    Raises:
        ValidationError: keyed on ``field``.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError({field: f"must be a decimal amount, got {value!r}"})
    if isinstance(value, float):
        raise ValidationError(
            {field: "floating point amounts are not accepted; use a decimal string"}
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError({field: f"not a valid decimal amount: {value!r}"}) from None
    else:
        raise ValidationError({field: f"unsupported amount type {type(value).__name__}"})

    if not result.is_finite():
        raise ValidationError({field: "amount must be finite"})
    return result


def parse_money_input(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """
    Parse and normalize a monetary input to exactly 2 fractional digits.

    Preconditions: ``value`` is Decimal, int or a decimal string.
    Postconditions: Returns a 2dp ``Decimal`` (half-up). Non-negative unless
        ``allow_negative``.

    Raises:
        ValidationError: malformed or negative input.
    """
    amount = to_decimal(value, field)
    if amount < 0 and not allow_negative:
        raise ValidationError({field: "must not be negative"})
    return round_money(amount)


def parse_non_negative(value: Any, field: str) -> Decimal:
    """Parse a non-monetary, non-negative quantity (hours, rates) unrounded."""
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError({field: "must not be negative"})
    return amount


def parse_date(value: Any, field: str) -> date:
    """
    Parse a boundary calendar date.

    Accepts a ``date`` or an ISO-8601 ``YYYY-MM-DD`` string.  A ``datetime``
    is rejected even though it is a ``date`` subclass: pay periods and
    employment dates carry no time of day.

    Raises:
        ValidationError: keyed on ``field``.
    """
    if isinstance(value, datetime):
        raise ValidationError({field: "must be a calendar date, not a datetime"})
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError({field: f"not a valid ISO date: {value!r}"}) from None
    raise ValidationError({field: f"must be a date, got {type(value).__name__}"})


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount in South African Rand.

    Contract:
        Wraps a Decimal amount. The currency is fixed (ZAR) and carried only
        for display.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a Decimal (never float)
        - Arithmetic never rounds implicitly; callers call ``.round()``

    Non-goals:
        - Does NOT perform currency conversion
    """

    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", to_decimal(self.amount))
        elif not self.amount.is_finite():
            raise ValidationError({"amount": "amount must be finite"})

    @classmethod
    def of(cls, amount: Decimal | str | int) -> Money:
        """
        Factory method for creating Money.

        Raises:
            ValidationError: If amount is a float or not a valid decimal.
        """
        return cls(amount=to_decimal(amount))

    @classmethod
    def zero(cls) -> Money:
        """Create a zero amount."""
        return cls(amount=Decimal("0"))

    @classmethod
    def from_minor_units(cls, cents: int) -> Money:
        """
        Create Money from an integer number of cents.

        Example:
            Money.from_minor_units(216375) -> Money(Decimal("2163.75"))
        """
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise ValidationError({"amount": "minor units must be an integer"})
        return cls(amount=Decimal(cents) * _CENT)

    @property
    def currency(self) -> str:
        return CURRENCY_CODE

    @property
    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        """Check if amount is positive."""
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        """Check if amount is negative."""
        return self.amount < Decimal("0")

    def round(self, rounding: str = DEFAULT_ROUNDING) -> Money:
        """Return a new Money rounded to 2 decimal places (half-up by default)."""
        return Money(amount=round_money(self.amount, rounding=rounding))

    def to_minor_units(self) -> int:
        """Integer cents of the rounded amount."""
        return int(round_money(self.amount) / _CENT)

    def to_string(self) -> str:
        """Exact 2dp decimal string, e.g. ``"2163.75"``."""
        return str(round_money(self.amount))

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount - other.amount)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount))

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar."""
        if isinstance(factor, bool) or isinstance(factor, float):
            return NotImplemented
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        """Divide by a scalar."""
        if isinstance(divisor, bool) or isinstance(divisor, float):
            return NotImplemented
        if isinstance(divisor, (int, str)):
            divisor = Decimal(str(divisor))
        if not isinstance(divisor, Decimal):
            return NotImplemented
        return Money(amount=self.amount / divisor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount >= other.amount

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Money({self.amount!r})"
