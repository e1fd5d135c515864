"""Rounding tests for even splits and quantization."""

from decimal import Decimal

import pytest

from nomoneyla.settle.rounding import quantize_amount, split_evenly


class TestSplitEvenlyPerfectMatch:
    """Amounts that divide without residual."""

    def test_whole_amounts(self):
        """100 over 4 is 25 each."""
        assert split_evenly(Decimal("100.00"), 4) == [Decimal("25.00")] * 4

    def test_single_part(self):
        """One part gets everything."""
        assert split_evenly(Decimal("12.34"), 1) == [Decimal("12.34")]

    def test_zero_amount(self):
        """Zero splits into zeros."""
        assert split_evenly(Decimal("0"), 3) == [Decimal("0.00")] * 3


class TestSplitEvenlyResiduals:
    """Residual cents are handed out from the first part."""

    def test_thirds(self):
        """100 over 3 gives the extra cent to the first part."""
        parts = split_evenly(Decimal("100.00"), 3)

        assert parts == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert sum(parts) == Decimal("100.00")

    def test_two_residual_cents(self):
        """10.02 over 4: two parts absorb a cent each."""
        parts = split_evenly(Decimal("10.02"), 4)

        assert parts == [
            Decimal("2.51"),
            Decimal("2.51"),
            Decimal("2.50"),
            Decimal("2.50"),
        ]

    def test_sub_quantum_precision(self):
        """Precision finer than the quantum lands on the first part."""
        parts = split_evenly(Decimal("10.005"), 2)

        assert parts == [Decimal("5.005"), Decimal("5.00")]
        assert sum(parts) == Decimal("10.005")

    def test_many_parts(self):
        """Large counts still sum exactly."""
        parts = split_evenly(Decimal("99.99"), 7)

        assert len(parts) == 7
        assert sum(parts) == Decimal("99.99")
        assert max(parts) - min(parts) <= Decimal("0.01")

    def test_custom_quantum(self):
        """Whole-unit quantum for currencies without cents."""
        parts = split_evenly(Decimal("100"), 3, quantum=Decimal("1"))

        assert parts == [Decimal("34"), Decimal("33"), Decimal("33")]


class TestSplitEvenlySignHandling:
    """Negative amounts split with the sign on every part."""

    def test_negative_amount(self):
        """-0.05 over 2."""
        assert split_evenly(Decimal("-0.05"), 2) == [Decimal("-0.03"), Decimal("-0.02")]

    def test_negative_sum_preserved(self):
        """Negative parts sum back to the amount."""
        parts = split_evenly(Decimal("-100.00"), 3)

        assert sum(parts) == Decimal("-100.00")


class TestSplitEvenlyEdgeCases:
    """Degenerate counts."""

    @pytest.mark.parametrize("count", [0, -1])
    def test_no_parts(self, count):
        """Non-positive counts give an empty list."""
        assert split_evenly(Decimal("10.00"), count) == []

    @pytest.mark.parametrize("quantum", [Decimal("0"), Decimal("-0.01")])
    def test_non_positive_quantum(self, quantum):
        """A quantum that can't shrink the residual is rejected."""
        with pytest.raises(ValueError):
            split_evenly(Decimal("10"), 3, quantum=quantum)


class TestQuantizeAmount:
    """ROUND_HALF_UP quantization."""

    def test_half_rounds_up(self):
        """2.345 rounds to 2.35."""
        assert quantize_amount(Decimal("2.345")) == Decimal("2.35")

    def test_negative_half_rounds_away_from_zero(self):
        """-2.345 rounds to -2.35."""
        assert quantize_amount(Decimal("-2.345")) == Decimal("-2.35")

    def test_pads_whole_numbers(self):
        """Whole amounts get two decimal places."""
        assert str(quantize_amount(Decimal("12"))) == "12.00"
