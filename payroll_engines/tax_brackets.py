"""
Tax Bracket Resolver - annual income tax liability from a progressive table.

Pure functions with no I/O - the bracket table is provided as a parameter.

Usage:
    from payroll_config import get_default_registry, RebateCategory
    from payroll_engines.tax_brackets import TaxBracketResolver
    from decimal import Decimal
    from datetime import date

    rates = get_default_registry().for_date(date(2024, 6, 25))
    resolver = TaxBracketResolver(rates.tax_table, version=rates.version)

    resolver.liability(Decimal("240000"))      # 43432.00 before rebates
    resolver.tax_payable(
        Decimal("240000"),
        RebateCategory.UNDER_65,
        rates.rebates,
        rates.thresholds,
    )                                          # 26197.00 after the primary rebate

Results are returned UNROUNDED; the caller decides when to round.
"""

from __future__ import annotations

from bisect import bisect_right
from decimal import Decimal

from payroll_config.integrity import validate_tax_table
from payroll_config.schema import (
    RebateCategory,
    RebateSchedule,
    TaxBracket,
    TaxTable,
    TaxThresholds,
)
from payroll_kernel.exceptions import TaxTableIntegrityError, ValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tax_brackets")

_ZERO = Decimal("0")


class TaxBracketResolver:
    """
    Locates the bracket for an annualized amount and computes liability.

    Brackets are half-open ``[min, max)``: an amount equal to a bracket
    boundary belongs to the bracket that starts there.

    Raises:
        TaxTableIntegrityError: if ``table`` is not a contiguous, continuous
            table starting at 0 with an open top bracket.
    """

    def __init__(self, table: TaxTable, version: str = "tax_table"):
        errors = validate_tax_table(table)
        if errors:
            raise TaxTableIntegrityError(version=version, errors=errors)
        self._table = table
        self._minimums = list(table.minimums)

    @property
    def table(self) -> TaxTable:
        return self._table

    def bracket_for(self, amount: Decimal) -> TaxBracket:
        """
        Return the single bracket containing ``amount``.

        Raises:
            ValidationError: if ``amount`` is negative.
        """
        if amount < _ZERO:
            raise ValidationError({"annual_taxable": "must not be negative"})
        idx = bisect_right(self._minimums, amount) - 1
        return self._table.brackets[idx]

    def liability(self, amount: Decimal) -> Decimal:
        """Annual liability before rebates: ``cum + rate * (amount - min)``."""
        if amount == _ZERO:
            return _ZERO
        bracket = self.bracket_for(amount)
        result = bracket.liability(amount)
        logger.debug(
            "tax_bracket_resolved",
            extra={
                "annual_taxable": amount,
                "bracket_min": bracket.min,
                "bracket_max": bracket.max,
                "rate": bracket.rate,
                "liability": result,
            },
        )
        return result

    def marginal_rate(self, amount: Decimal) -> Decimal:
        """Rate applied to the next rand above ``amount``."""
        return self.bracket_for(amount).rate

    def tax_payable(
        self,
        amount: Decimal,
        category: RebateCategory,
        rebates: RebateSchedule,
        thresholds: TaxThresholds,
    ) -> Decimal:
        """
        Annual tax after rebates, floored at zero.

        Income at or below the category's no-tax threshold owes nothing
        and skips the bracket lookup entirely.
        """
        if amount < _ZERO:
            raise ValidationError({"annual_taxable": "must not be negative"})
        if amount <= thresholds.for_category(category):
            return _ZERO
        return max(_ZERO, self.liability(amount) - rebates.total_for(category))
