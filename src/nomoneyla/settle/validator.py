"""Contribution consistency checks for transactions."""

import logging
from collections.abc import Iterable
from decimal import Decimal

from ..models import (
    Category,
    Contribution,
    ContributionCheck,
    ContributionIssue,
    Subcategory,
    Transaction,
)
from .rounding import DEFAULT_QUANTUM, split_evenly

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")
DEFAULT_WARNING_LIMIT = Decimal("1.00")


def validate_contribution(
    transaction: Transaction,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    warning_limit: Decimal = DEFAULT_WARNING_LIMIT,
) -> ContributionCheck:
    """
    Classify how well a transaction's contributions match its total.

    Income transactions are always balanced. An expense without contributions
    is an error; otherwise the absolute difference decides the severity:
    valid up to the tolerance, warning up to the warning limit, error beyond.

    Args:
        transaction: The transaction to check
        tolerance: Absolute margin within which sums are considered equal
        warning_limit: Largest absolute difference reported as a warning

    Returns:
        Status, severity and signed difference (contributions - total)
    """
    difference = transaction.contribution_total - transaction.amount

    if transaction.type == "income":
        return ContributionCheck(
            status="balanced", severity="valid", difference=difference
        )

    if not transaction.contributions:
        return ContributionCheck(
            status="no_contributions", severity="error", difference=difference
        )

    if difference > tolerance:
        status = "excess"
    elif difference < -tolerance:
        status = "insufficient"
    else:
        status = "balanced"

    magnitude = abs(difference)
    if magnitude <= tolerance:
        severity = "valid"
    elif magnitude <= warning_limit:
        severity = "warning"
    else:
        severity = "error"

    return ContributionCheck(status=status, severity=severity, difference=difference)


def find_contribution_issues(
    transactions: Iterable[Transaction],
    tolerance: Decimal = DEFAULT_TOLERANCE,
    warning_limit: Decimal = DEFAULT_WARNING_LIMIT,
) -> list[ContributionIssue]:
    """Collect every expense transaction whose contributions are not balanced."""
    issues = []
    for transaction in transactions:
        if transaction.type != "expense":
            continue
        check = validate_contribution(transaction, tolerance, warning_limit)
        if check.status != "balanced":
            issues.append(ContributionIssue(transaction=transaction, check=check))

    if issues:
        logger.info(f"Found {len(issues)} transactions with contribution issues")
    return issues


def total_missing_amount(issues: Iterable[ContributionIssue]) -> Decimal:
    """Sum of (total - contributions) across issues."""
    return sum((issue.missing_amount for issue in issues), Decimal("0"))


def group_issues_by_category(
    issues: Iterable[ContributionIssue],
    subcategories: Iterable[Subcategory],
    categories: Iterable[Category],
) -> dict[str | None, list[ContributionIssue]]:
    """
    Group issues under the id of their transaction's parent category.

    Uncategorized transactions are filed under None. A transaction pointing at
    a subcategory that no longer exists is filed under the default category,
    or under None when there is none.
    """
    parent_by_sub = {sub.id: sub.parent_id for sub in subcategories}
    default_category = next((cat for cat in categories if cat.is_default), None)

    grouped: dict[str | None, list[ContributionIssue]] = {}
    for issue in issues:
        subcategory_id = issue.transaction.subcategory_id
        category_id = None
        if subcategory_id is not None:
            category_id = parent_by_sub.get(subcategory_id)
            if category_id is None and default_category is not None:
                category_id = default_category.id

        grouped.setdefault(category_id, []).append(issue)

    return grouped


def fix_contribution(
    transaction: Transaction,
    default_payer_id: str | None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> Transaction | None:
    """
    Build a repaired copy of an unbalanced expense transaction.

    - No contributions: the default payer is credited with the full amount.
    - Mismatched sum: the difference is spread evenly across the existing
      contributions, one quantum of remainder at a time from the first.

    Args:
        transaction: The transaction to repair
        default_payer_id: Payer credited when there are no contributions
        tolerance: Differences within this margin are left alone
        quantum: Smallest currency unit for the spread

    Returns:
        A repaired copy, or None if nothing was (or could be) fixed
    """
    if transaction.type != "expense":
        return None

    if not transaction.contributions:
        if default_payer_id is None:
            return None
        fixed = transaction.model_copy(deep=True)
        fixed.contributions = [
            Contribution(
                amount=transaction.amount,
                payer_id=default_payer_id,
                transaction_id=transaction.id,
            )
        ]
        logger.info(
            f"Assigned full amount {transaction.amount} of transaction "
            f"{transaction.id} to default payer {default_payer_id}"
        )
        return fixed

    missing = transaction.amount - transaction.contribution_total
    if abs(missing) <= tolerance:
        return None

    adjustments = split_evenly(missing, len(transaction.contributions), quantum)
    new_amounts = [
        c.amount + adj for c, adj in zip(transaction.contributions, adjustments)
    ]
    if any(amount < 0 for amount in new_amounts):
        logger.warning(
            f"Cannot fix transaction {transaction.id}: spreading {missing} "
            f"would make a contribution negative"
        )
        return None

    fixed = transaction.model_copy(deep=True)
    for contribution, amount in zip(fixed.contributions, new_amounts):
        contribution.amount = amount

    logger.info(
        f"Spread {missing} across {len(new_amounts)} contributions "
        f"of transaction {transaction.id}"
    )
    return fixed
