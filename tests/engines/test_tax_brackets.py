"""
Tests for the Tax Bracket Resolver.

Covers:
- Bracket lookup, including exact boundary amounts
- Liability formula and continuity across every boundary
- No-tax threshold short-circuit and rebate floor
- Rejection of negative amounts
- Rejection of gapped, overlapping or closed bracket tables
"""

from decimal import Decimal

import pytest

from payroll_config import RebateCategory, TaxBracket, TaxTable
from payroll_engines.tax_brackets import TaxBracketResolver
from payroll_kernel.exceptions import TaxTableIntegrityError, ValidationError


@pytest.fixture
def resolver(rates_2024):
    return TaxBracketResolver(rates_2024.tax_table)


class TestBracketLookup:

    def test_zero_is_in_first_bracket(self, resolver):
        assert resolver.bracket_for(Decimal("0")).min == Decimal("0")

    def test_boundary_belongs_to_bracket_that_starts_there(self, resolver):
        bracket = resolver.bracket_for(Decimal("237100"))
        assert bracket.min == Decimal("237100")
        assert bracket.rate == Decimal("0.26")

    def test_just_below_boundary(self, resolver):
        bracket = resolver.bracket_for(Decimal("237099.99"))
        assert bracket.min == Decimal("0")
        assert bracket.rate == Decimal("0.18")

    def test_top_bracket_is_open(self, resolver):
        bracket = resolver.bracket_for(Decimal("50000000"))
        assert bracket.max is None
        assert bracket.rate == Decimal("0.45")

    def test_marginal_rate(self, resolver):
        assert resolver.marginal_rate(Decimal("600000")) == Decimal("0.36")

    def test_negative_rejected(self, resolver):
        with pytest.raises(ValidationError):
            resolver.bracket_for(Decimal("-0.01"))


class TestLiability:

    def test_zero_income(self, resolver):
        assert resolver.liability(Decimal("0")) == Decimal("0")

    def test_first_bracket(self, resolver):
        assert resolver.liability(Decimal("100000")) == Decimal("18000.00")

    def test_second_bracket(self, resolver):
        # 42678 + 26% of (240000 - 237100)
        assert resolver.liability(Decimal("240000")) == Decimal("43432.00")

    def test_top_bracket(self, resolver):
        # 644489 + 45% of (2000000 - 1817000)
        assert resolver.liability(Decimal("2000000")) == Decimal("726839.00")

    def test_continuous_at_every_boundary(self, resolver):
        brackets = resolver.table.brackets
        for lower, upper in zip(brackets, brackets[1:]):
            assert lower.liability(upper.min) == resolver.liability(upper.min)

    def test_unrounded(self, resolver):
        assert resolver.liability(Decimal("0.01")) == Decimal("0.0018")


class TestTaxPayable:

    def test_at_threshold_owes_nothing(self, resolver, rates_2024):
        result = resolver.tax_payable(
            Decimal("95750"), RebateCategory.UNDER_65,
            rates_2024.rebates, rates_2024.thresholds,
        )
        assert result == Decimal("0")

    def test_one_rand_above_threshold(self, resolver, rates_2024):
        result = resolver.tax_payable(
            Decimal("95751"), RebateCategory.UNDER_65,
            rates_2024.rebates, rates_2024.thresholds,
        )
        assert result == Decimal("0.18")

    def test_older_category_uses_higher_threshold(self, resolver, rates_2024):
        amount = Decimal("148217")
        under_65 = resolver.tax_payable(
            amount, RebateCategory.UNDER_65, rates_2024.rebates, rates_2024.thresholds,
        )
        age_65 = resolver.tax_payable(
            amount, RebateCategory.AGE_65_TO_74, rates_2024.rebates, rates_2024.thresholds,
        )
        assert under_65 > Decimal("0")
        assert age_65 == Decimal("0")

    def test_stacked_rebates(self, resolver, rates_2024):
        result = resolver.tax_payable(
            Decimal("240000"), RebateCategory.AGE_75_PLUS,
            rates_2024.rebates, rates_2024.thresholds,
        )
        assert result == Decimal("43432.00") - Decimal("29824")

    def test_negative_rejected(self, resolver, rates_2024):
        with pytest.raises(ValidationError):
            resolver.tax_payable(
                Decimal("-1"), RebateCategory.UNDER_65,
                rates_2024.rebates, rates_2024.thresholds,
            )


def _bracket(lo, hi, rate, cum):
    return TaxBracket(
        min=Decimal(lo),
        max=Decimal(hi) if hi is not None else None,
        rate=Decimal(rate),
        cumulative_tax_at_min=Decimal(cum),
    )


class TestTableValidation:
    """A resolver refuses a table that would mis-tax some income."""

    def test_gap_rejected(self):
        table = TaxTable(brackets=(
            _bracket("0", "100000", "0.18", "0"),
            _bracket("200000", None, "0.26", "18000"),
        ))
        with pytest.raises(TaxTableIntegrityError) as exc_info:
            TaxBracketResolver(table, version="GAPPED")
        assert exc_info.value.version == "GAPPED"
        assert any("does not meet next min" in e for e in exc_info.value.errors)

    def test_overlap_rejected(self):
        table = TaxTable(brackets=(
            _bracket("0", "250000", "0.18", "0"),
            _bracket("200000", None, "0.26", "36000"),
        ))
        with pytest.raises(TaxTableIntegrityError):
            TaxBracketResolver(table)

    def test_closed_top_bracket_rejected(self):
        table = TaxTable(brackets=(_bracket("0", "250000", "0.18", "0"),))
        with pytest.raises(TaxTableIntegrityError) as exc_info:
            TaxBracketResolver(table)
        assert exc_info.value.version == "tax_table"

    def test_empty_table_rejected(self):
        with pytest.raises(TaxTableIntegrityError):
            TaxBracketResolver(TaxTable(brackets=()))

    def test_valid_table_accepted(self, example_rates):
        resolver = TaxBracketResolver(example_rates.tax_table)
        assert resolver.liability(Decimal("240000")) == Decimal("43200.00")
