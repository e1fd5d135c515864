"""Tests for contribution validation and repair."""

from datetime import date
from decimal import Decimal

from nomoneyla.models import (
    Category,
    Contribution,
    ContributionIssue,
    Subcategory,
    Transaction,
)
from nomoneyla.settle.validator import (
    find_contribution_issues,
    fix_contribution,
    group_issues_by_category,
    total_missing_amount,
    validate_contribution,
)


# Helper function for tests
def make_transaction(
    total: str,
    contributions: dict[str, str] | None = None,
    type: str = "expense",
    subcategory_id: str | None = None,
) -> Transaction:
    """Create a transaction with payer_id -> amount contributions."""
    transaction = Transaction(
        amount=Decimal(total),
        date=date(2025, 1, 15),
        type=type,
        subcategory_id=subcategory_id,
    )
    for payer_id, amount in (contributions or {}).items():
        transaction.contributions.append(
            Contribution(
                amount=Decimal(amount),
                payer_id=payer_id,
                transaction_id=transaction.id,
            )
        )
    return transaction


class TestValidateIncome:
    """Income transactions are always balanced."""

    def test_income_without_contributions(self):
        """No contributions on income is fine."""
        check = validate_contribution(make_transaction("100.00", type="income"))

        assert check.status == "balanced"
        assert check.severity == "valid"

    def test_income_with_excess_contributions(self):
        """Even wildly mismatched income contributions are balanced."""
        transaction = make_transaction("100.00", {"alice": "500.00"}, type="income")

        check = validate_contribution(transaction)

        assert check.status == "balanced"
        assert check.severity == "valid"
        assert check.difference == Decimal("400.00")


class TestValidateExpense:
    """Expense classification and severity."""

    def test_exact_match(self):
        """Contributions summing to the total are balanced and valid."""
        transaction = make_transaction("100.00", {"alice": "60.00", "bob": "40.00"})

        check = validate_contribution(transaction)

        assert check.status == "balanced"
        assert check.severity == "valid"
        assert check.difference == Decimal("0")

    def test_excess_fifty_cents_is_warning(self):
        """Sum = total + 0.50 is excess with a warning."""
        transaction = make_transaction("100.00", {"alice": "60.50", "bob": "40.00"})

        check = validate_contribution(transaction)

        assert check.status == "excess"
        assert check.severity == "warning"
        assert check.difference == Decimal("0.50")

    def test_excess_two_dollars_is_error(self):
        """Sum = total + 2.00 is excess with an error."""
        transaction = make_transaction("100.00", {"alice": "62.00", "bob": "40.00"})

        check = validate_contribution(transaction)

        assert check.status == "excess"
        assert check.severity == "error"

    def test_insufficient(self):
        """Sum below total - tolerance is insufficient."""
        transaction = make_transaction("100.00", {"alice": "99.50"})

        check = validate_contribution(transaction)

        assert check.status == "insufficient"
        assert check.severity == "warning"
        assert check.difference == Decimal("-0.50")

    def test_insufficient_large_gap_is_error(self):
        """A missing amount above the warning limit is an error."""
        transaction = make_transaction("100.00", {"alice": "50.00"})

        check = validate_contribution(transaction)

        assert check.status == "insufficient"
        assert check.severity == "error"

    def test_no_contributions(self):
        """An expense without contributions is an error."""
        check = validate_contribution(make_transaction("100.00"))

        assert check.status == "no_contributions"
        assert check.severity == "error"
        assert check.difference == Decimal("-100.00")

    def test_zero_contribution_counts_as_contribution(self):
        """A zero contribution alongside a full one still balances."""
        transaction = make_transaction("80.00", {"alice": "80.00", "bob": "0"})

        check = validate_contribution(transaction)

        assert check.status == "balanced"


class TestValidateToleranceBoundaries:
    """Boundary behaviour around tolerance and warning limit."""

    def test_one_cent_over_is_balanced(self):
        """Difference of exactly the tolerance is still balanced."""
        transaction = make_transaction("100.00", {"alice": "100.01"})

        check = validate_contribution(transaction)

        assert check.status == "balanced"
        assert check.severity == "valid"

    def test_two_cents_over_is_excess(self):
        """Difference just past the tolerance is excess."""
        transaction = make_transaction("100.00", {"alice": "100.02"})

        check = validate_contribution(transaction)

        assert check.status == "excess"
        assert check.severity == "warning"

    def test_exactly_warning_limit_is_warning(self):
        """Difference of exactly 1.00 is a warning, not an error."""
        transaction = make_transaction("100.00", {"alice": "101.00"})

        assert validate_contribution(transaction).severity == "warning"

    def test_decimal_thirds_are_exact(self):
        """Three-way cent splits sum exactly, no float drift."""
        transaction = make_transaction(
            "0.30", {"alice": "0.10", "bob": "0.10", "carol": "0.10"}
        )

        check = validate_contribution(transaction)

        assert check.difference == Decimal("0")
        assert check.status == "balanced"

    def test_custom_thresholds(self):
        """Tolerance and warning limit can be overridden."""
        transaction = make_transaction("100.00", {"alice": "100.50"})

        check = validate_contribution(
            transaction, tolerance=Decimal("1.00"), warning_limit=Decimal("5.00")
        )

        assert check.status == "balanced"
        assert check.severity == "valid"


class TestFindContributionIssues:
    """Tests for collecting and summarising issues."""

    def test_skips_income_and_balanced(self):
        """Only unbalanced expenses are reported."""
        transactions = [
            make_transaction("100.00", {"alice": "100.00"}),
            make_transaction("50.00", type="income"),
            make_transaction("30.00", {"alice": "20.00"}),
            make_transaction("10.00"),
        ]

        issues = find_contribution_issues(transactions)

        assert len(issues) == 2
        assert issues[0].check.status == "insufficient"
        assert issues[1].check.status == "no_contributions"

    def test_total_missing_amount(self):
        """Missing amount sums total - contributions across issues."""
        transactions = [
            make_transaction("30.00", {"alice": "20.00"}),  # missing 10
            make_transaction("10.00"),  # missing 10
            make_transaction("5.00", {"alice": "7.00"}),  # over by 2
        ]

        issues = find_contribution_issues(transactions)

        assert total_missing_amount(issues) == Decimal("18.00")

    def test_group_by_category(self):
        """Issues are grouped by the parent category of their subcategory."""
        trip = Category(name="Trip")
        home = Category(name="Home", is_default=True)
        food = Subcategory(name="Food", parent_id=trip.id)
        rent = Subcategory(name="Rent", parent_id=home.id)

        issues = find_contribution_issues(
            [
                make_transaction("10.00", subcategory_id=food.id),
                make_transaction("20.00", subcategory_id=rent.id),
                make_transaction("30.00", subcategory_id="deleted-subcategory"),
                make_transaction("40.00"),  # uncategorized
            ]
        )

        grouped = group_issues_by_category(issues, [food, rent], [trip, home])

        assert len(grouped[trip.id]) == 1
        # Unknown subcategory falls back to the default category
        assert len(grouped[home.id]) == 2
        # Uncategorized transactions get their own group
        assert len(grouped[None]) == 1
        assert sum(len(v) for v in grouped.values()) == 4

    def test_group_by_category_without_default(self):
        """Unknown subcategories count as uncategorized without a default category."""
        issue = ContributionIssue(
            transaction=make_transaction("10.00", subcategory_id="gone"),
            check=validate_contribution(make_transaction("10.00")),
        )

        assert group_issues_by_category([issue], [], []) == {None: [issue]}


class TestFixContribution:
    """Tests for automatic contribution repair."""

    def test_assigns_default_payer_when_empty(self):
        """A transaction with no contributions goes to the default payer."""
        transaction = make_transaction("45.50")

        fixed = fix_contribution(transaction, default_payer_id="me")

        assert fixed is not None
        assert len(fixed.contributions) == 1
        assert fixed.contributions[0].payer_id == "me"
        assert fixed.contributions[0].amount == Decimal("45.50")
        assert fixed.contributions[0].transaction_id == transaction.id
        # Input is left untouched
        assert transaction.contributions == []

    def test_no_default_payer(self):
        """Without a default payer, an empty transaction can't be fixed."""
        transaction = make_transaction("45.50")

        assert fix_contribution(transaction, default_payer_id=None) is None

    def test_spreads_missing_amount(self):
        """Missing amount is spread evenly across contributions."""
        transaction = make_transaction("100.00", {"alice": "30.00", "bob": "30.00"})

        fixed = fix_contribution(transaction, default_payer_id="me")

        assert fixed is not None
        assert [c.amount for c in fixed.contributions] == [
            Decimal("50.00"),
            Decimal("50.00"),
        ]
        assert validate_contribution(fixed).status == "balanced"

    def test_spreads_odd_cents(self):
        """Leftover cents go to the first contributions."""
        transaction = make_transaction("10.05", {"alice": "5.00", "bob": "5.00"})

        fixed = fix_contribution(transaction, default_payer_id="me")

        assert fixed is not None
        assert [c.amount for c in fixed.contributions] == [
            Decimal("5.03"),
            Decimal("5.02"),
        ]

    def test_spreads_excess(self):
        """Excess is removed evenly."""
        transaction = make_transaction("90.00", {"alice": "50.00", "bob": "50.00"})

        fixed = fix_contribution(transaction, default_payer_id="me")

        assert fixed is not None
        assert fixed.contribution_total == Decimal("90.00")

    def test_refuses_negative_result(self):
        """A spread that would make a contribution negative is refused."""
        transaction = make_transaction("50.00", {"alice": "100.00", "bob": "0"})

        assert fix_contribution(transaction, default_payer_id="me") is None

    def test_balanced_and_income_untouched(self):
        """Nothing to fix for balanced expenses or income."""
        balanced = make_transaction("10.00", {"alice": "10.00"})
        income = make_transaction("10.00", type="income")

        assert fix_contribution(balanced, default_payer_id="me") is None
        assert fix_contribution(income, default_payer_id="me") is None
