"""Service layer that composes the record store and the settlement engine.

Each public method takes a fresh snapshot of the records it needs from the
database and hands it to the pure functions in aggregator, optimizer and
validator. Only cleanup_assigned_payers() and fix_contribution_issues() write.
"""

import logging
from decimal import Decimal

from ..config import Settings
from ..db import Database
from ..models import Category, CategorySettlement, ContributionIssue
from .aggregator import (
    category_transactions,
    compute_payer_balances,
    dangling_payer_ids,
    resolve_participants,
)
from .optimizer import balance_residual, optimize_settlement
from .validator import find_contribution_issues, fix_contribution

logger = logging.getLogger(__name__)


class SettlementService:
    """Service for settling categories and maintaining contribution data."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the settlement service."""
        self.settings = settings
        self.db = database

    def settle_category(self, category_id: str) -> CategorySettlement:
        """
        Compute balances and the transfer plan for one category.

        Args:
            category_id: The category to settle

        Returns:
            Balances, transfers, contribution issues and integrity figures
        """
        category = self.db.get_category(category_id)
        subcategories = self.db.get_subcategories(parent_id=category.id)
        transactions = self.db.get_transactions()
        payers = self.db.get_payers()

        logger.info(
            f"Settling '{category.name}' with fair share mode "
            f"'{self.settings.fair_share_mode}'"
        )

        relevant = category_transactions(category, subcategories, transactions)
        issues = find_contribution_issues(
            relevant, self.settings.tolerance, self.settings.warning_limit
        )

        participants = resolve_participants(
            category, subcategories, transactions, payers
        )
        balances = compute_payer_balances(
            category,
            subcategories,
            transactions,
            participants,
            fair_share_mode=self.settings.fair_share_mode,
            quantum=self.settings.amount_quantum,
        )
        net_balances = {b.payer_id: b.net_balance for b in balances}

        residual = balance_residual(net_balances)
        balanced = abs(residual) <= self.settings.tolerance
        if not balanced:
            logger.warning(
                f"Balances for '{category.name}' do not sum to zero "
                f"(residual {residual}); transfers will leave a remainder"
            )

        transfers = optimize_settlement(net_balances)

        return CategorySettlement(
            category=category,
            transaction_count=len(relevant),
            total_amount=sum((t.amount for t in relevant), Decimal("0")),
            balances=sorted(balances, key=lambda b: -b.net_balance),
            transfers=transfers,
            issues=issues,
            dangling_payer_ids=dangling_payer_ids(category, payers),
            residual=residual,
            is_balanced=balanced,
        )

    def cleanup_assigned_payers(self, category_id: str | None = None) -> dict[str, int]:
        """
        Drop duplicate and dangling ids from assigned payer lists.

        Args:
            category_id: Only clean this category (default: all categories)

        Returns:
            Mapping of category id to number of ids removed, for changed
            categories only
        """
        categories: list[Category]
        if category_id is None:
            categories = self.db.get_categories()
        else:
            categories = [self.db.get_category(category_id)]

        known = {payer.id for payer in self.db.get_payers()}

        removed: dict[str, int] = {}
        for category in categories:
            cleaned: list[str] = []
            for payer_id in category.assigned_payer_ids:
                if payer_id in known and payer_id not in cleaned:
                    cleaned.append(payer_id)

            dropped = len(category.assigned_payer_ids) - len(cleaned)
            if dropped:
                self.db.set_assigned_payer_ids(category.id, cleaned)
                removed[category.id] = dropped
                logger.info(
                    f"Removed {dropped} stale assigned payer ids from "
                    f"'{category.name}'"
                )

        return removed

    def contribution_issues(self) -> list[ContributionIssue]:
        """List every expense transaction with unbalanced contributions."""
        return find_contribution_issues(
            self.db.get_transactions(),
            self.settings.tolerance,
            self.settings.warning_limit,
        )

    def fix_contribution_issues(self) -> int:
        """
        Repair unbalanced expense transactions in place.

        Returns:
            Number of transactions fixed
        """
        default_payer = self.db.get_default_payer()
        default_payer_id = default_payer.id if default_payer else None

        fixed_count = 0
        for issue in self.contribution_issues():
            fixed = fix_contribution(
                issue.transaction,
                default_payer_id,
                tolerance=self.settings.tolerance,
                quantum=self.settings.amount_quantum,
            )
            if fixed is None:
                continue
            self.db.save_transaction(fixed)
            fixed_count += 1

        logger.info(f"Fixed {fixed_count} transactions with contribution issues")
        return fixed_count
