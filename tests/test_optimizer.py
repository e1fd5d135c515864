"""Tests for the greedy settlement optimizer."""

from decimal import Decimal

import pytest

from nomoneyla.settle.optimizer import (
    apply_transfers,
    balance_residual,
    is_balanced,
    optimize_settlement,
)


def D(value: str) -> Decimal:
    """Shorthand for Decimal literals."""
    return Decimal(value)


def as_tuples(transfers) -> list[tuple[str, str, Decimal]]:
    """Flatten transfers for easy comparison."""
    return [(t.from_payer_id, t.to_payer_id, t.amount) for t in transfers]


class TestOptimizeSettlement:
    """Core greedy matching behaviour."""

    def test_one_creditor_two_debtors(self):
        """Largest debtor pays first."""
        balances = {"A": D("100"), "B": D("-60"), "C": D("-40")}

        transfers = optimize_settlement(balances)

        assert as_tuples(transfers) == [("B", "A", D("60")), ("C", "A", D("40"))]
        assert all(v == 0 for v in apply_transfers(balances, transfers).values())

    def test_two_creditors_one_debtor(self):
        """Largest creditor is paid first."""
        balances = {"A": D("30"), "B": D("20"), "C": D("-50")}

        transfers = optimize_settlement(balances)

        assert as_tuples(transfers) == [("C", "A", D("30")), ("C", "B", D("20"))]

    def test_empty(self):
        """No balances, no transfers."""
        assert optimize_settlement({}) == []

    def test_all_zero(self):
        """Everyone settled, no transfers."""
        assert optimize_settlement({"A": D("0"), "B": D("0.00")}) == []

    def test_single_nonzero_balance(self):
        """A lone creditor has nobody to be paid by."""
        assert optimize_settlement({"A": D("25.00"), "B": D("0")}) == []
        assert optimize_settlement({"A": D("-25.00")}) == []

    def test_input_not_mutated(self):
        """The balance map is left untouched."""
        balances = {"A": D("10"), "B": D("-10")}

        optimize_settlement(balances)

        assert balances == {"A": D("10"), "B": D("-10")}

    def test_cent_amounts(self):
        """Fractional amounts settle exactly."""
        balances = {"A": D("33.34"), "B": D("-16.67"), "C": D("-16.67")}

        transfers = optimize_settlement(balances)

        assert as_tuples(transfers) == [
            ("B", "A", D("16.67")),
            ("C", "A", D("16.67")),
        ]

    def test_chain_of_partial_settlements(self):
        """Creditor and debtor both advance when they hit zero together."""
        balances = {
            "A": D("70"),
            "B": D("30"),
            "C": D("-50"),
            "D": D("-50"),
        }

        transfers = optimize_settlement(balances)

        assert as_tuples(transfers) == [
            ("C", "A", D("50")),
            ("D", "A", D("20")),
            ("D", "B", D("30")),
        ]


class TestTieBreaking:
    """Equal amounts are ordered by payer id."""

    def test_tied_creditors_and_debtors(self):
        """Ids decide order regardless of insertion order."""
        balances = {"d": D("-50"), "b": D("50"), "c": D("-50"), "a": D("50")}

        transfers = optimize_settlement(balances)

        assert as_tuples(transfers) == [("c", "a", D("50")), ("d", "b", D("50"))]

    def test_deterministic(self):
        """Same input, same output."""
        balances = {"x": D("10"), "y": D("10"), "z": D("-20")}

        assert optimize_settlement(balances) == optimize_settlement(dict(balances))


class TestUnbalancedInput:
    """Residual imbalance is left unsettled, not raised."""

    def test_leftover_credit(self):
        """Creditor remainder stays when debtors run out."""
        balances = {"A": D("100"), "B": D("-60")}

        transfers = optimize_settlement(balances)

        assert as_tuples(transfers) == [("B", "A", D("60"))]
        assert apply_transfers(balances, transfers)["A"] == D("40")
        assert balance_residual(balances) == D("40")
        assert not is_balanced(balances)

    def test_is_balanced_within_tolerance(self):
        """A one cent residual is within the default tolerance."""
        assert is_balanced({"A": D("10.01"), "B": D("-10.00")})
        assert not is_balanced({"A": D("10.02"), "B": D("-10.00")})


class TestSettlementRoundTrip:
    """Per-party transfer sums equal the input balances for zero-sum maps."""

    @pytest.mark.parametrize(
        "balances",
        [
            {"A": D("100"), "B": D("-60"), "C": D("-40")},
            {"A": D("12.50"), "B": D("7.25"), "C": D("-9.75"), "D": D("-10.00")},
            {"A": D("0.01"), "B": D("-0.01")},
            {
                "A": D("45.10"),
                "B": D("-5.05"),
                "C": D("-15.15"),
                "D": D("-24.90"),
                "E": D("0"),
            },
        ],
    )
    def test_transfers_cover_balances(self, balances):
        """Every creditor receives, and every debtor pays, exactly their balance."""
        transfers = optimize_settlement(balances)

        received: dict[str, Decimal] = {}
        paid: dict[str, Decimal] = {}
        for t in transfers:
            received[t.to_payer_id] = received.get(t.to_payer_id, D("0")) + t.amount
            paid[t.from_payer_id] = paid.get(t.from_payer_id, D("0")) + t.amount

        for payer_id, balance in balances.items():
            if balance > 0:
                assert received[payer_id] == balance
            elif balance < 0:
                assert paid[payer_id] == -balance

        assert all(t.amount > 0 for t in transfers)
        assert all(v == 0 for v in apply_transfers(balances, transfers).values())
        # Greedy never needs more than n - 1 transfers
        nonzero = sum(1 for v in balances.values() if v != 0)
        assert len(transfers) <= max(nonzero - 1, 0)
