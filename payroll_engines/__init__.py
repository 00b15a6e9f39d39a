"""
payroll_engines -- pure payroll calculation engines.

Engines take values and a rate set and return values.  They do no I/O,
read no clock and never touch a session; modules call them and persist
what they return.

    tax_brackets  TaxBracketResolver (annual liability, rebates, thresholds)
    statutory     compute_deductions (PAYE, UIF, SDL, net pay)
"""

from payroll_engines.statutory import (
    DeductionInputs,
    DeductionResult,
    PayFrequency,
    compute_deductions,
    is_sdl_exempt,
    parse_pay_frequency,
    periods_per_year,
    rebate_category_for_age,
    uif_ceiling_per_period,
)
from payroll_engines.tax_brackets import TaxBracketResolver

__all__ = [
    "DeductionInputs",
    "DeductionResult",
    "PayFrequency",
    "TaxBracketResolver",
    "compute_deductions",
    "is_sdl_exempt",
    "parse_pay_frequency",
    "periods_per_year",
    "rebate_category_for_age",
    "uif_ceiling_per_period",
]
