"""Per-category balance rollup.

Turns the transactions filed under one category into a paid / fair share / net
figure for every participant. Two fair-share rules are supported:

- "equal": each transaction's total is split evenly among the payers who
  share it: its own participant list when set, otherwise every participant
  of the category (see transaction_sharers()).
- "contributed": a payer's fair share is what they contributed, so every net
  balance is zero. This mirrors an older formula (T * (P / T)) kept for
  compatibility with ledgers settled under it.
"""

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from ..config import FairShareMode
from ..models import Category, Payer, PayerBalance, Subcategory, Transaction
from .rounding import DEFAULT_QUANTUM, split_evenly

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def payer_sort_key(payer: Payer) -> tuple[int, str]:
    """Stable display order: explicit rank, then id."""
    return (payer.order, payer.id)


def category_subcategory_ids(
    category: Category, subcategories: Iterable[Subcategory]
) -> set[str]:
    """Ids of the subcategories whose parent is this category."""
    return {sub.id for sub in subcategories if sub.parent_id == category.id}


def category_transactions(
    category: Category,
    subcategories: Iterable[Subcategory],
    transactions: Iterable[Transaction],
) -> list[Transaction]:
    """
    Select the expense transactions filed under a category's subcategories.

    Income and uncategorized transactions never take part in a settlement.
    A category with no subcategories has no transactions.
    """
    subcategory_ids = category_subcategory_ids(category, subcategories)
    if not subcategory_ids:
        return []

    return [
        t
        for t in transactions
        if t.subcategory_id in subcategory_ids and t.type == "expense"
    ]


def dangling_payer_ids(category: Category, payers: Iterable[Payer]) -> list[str]:
    """Assigned payer ids that no longer match an existing payer."""
    known = {payer.id for payer in payers}
    return [pid for pid in category.assigned_payer_ids if pid not in known]


def resolve_participants(
    category: Category,
    subcategories: Iterable[Subcategory],
    transactions: Iterable[Transaction],
    payers: Iterable[Payer],
) -> list[Payer]:
    """
    Resolve who takes part in a category's settlement.

    A non-empty assigned payer list wins (dangling ids are dropped).
    Otherwise participants are every payer who contributes to, or is listed as
    sharing, a transaction under the category.

    Returns:
        Participants in display order
    """
    payers = list(payers)

    if category.assigned_payer_ids:
        assigned = set(category.assigned_payer_ids)
        participants = [p for p in payers if p.id in assigned]

        stale = dangling_payer_ids(category, payers)
        if stale:
            logger.warning(
                f"Category '{category.name}' has {len(stale)} assigned payer ids "
                f"with no matching payer: {stale}"
            )
    else:
        seen: set[str] = set()
        for transaction in category_transactions(category, subcategories, transactions):
            seen.update(c.payer_id for c in transaction.contributions)
            seen.update(transaction.participant_ids)
        participants = [p for p in payers if p.id in seen]

    return sorted(participants, key=payer_sort_key)


def transaction_sharers(
    transaction: Transaction, participants: Sequence[Payer]
) -> list[Payer]:
    """
    Resolve the payers among whom one transaction's total is divided.

    The transaction's own participant list (limited to the participants) when
    it has one, otherwise every participant of the category.
    """
    if transaction.participant_ids:
        listed = set(transaction.participant_ids)
        return [p for p in participants if p.id in listed]

    return list(participants)


def compute_payer_balances(
    category: Category,
    subcategories: Iterable[Subcategory],
    transactions: Iterable[Transaction],
    participants: Sequence[Payer],
    fair_share_mode: FairShareMode = "equal",
    quantum: Decimal = DEFAULT_QUANTUM,
) -> list[PayerBalance]:
    """
    Compute paid, fair share and net balance for every participant.

    Args:
        category: The category being settled
        subcategories: All subcategories (filtered by parent here)
        transactions: All transactions (filtered by subcategory here)
        participants: Resolved participants, see resolve_participants()
        fair_share_mode: "equal" or "contributed"
        quantum: Smallest currency unit for equal shares

    Returns:
        One PayerBalance per participant, in participant order
    """
    relevant = category_transactions(category, subcategories, transactions)
    if not relevant:
        return []

    participants = list(participants)
    participant_ids = {p.id for p in participants}

    paid = {p.id: ZERO for p in participants}
    for transaction in relevant:
        for contribution in transaction.contributions:
            if contribution.payer_id in participant_ids:
                paid[contribution.payer_id] += contribution.amount

    if fair_share_mode == "contributed":
        should_pay = _contributed_shares(relevant, participants)
    else:
        should_pay = _equal_shares(relevant, participants, quantum)

    balances = []
    for payer in participants:
        net = paid[payer.id] - should_pay[payer.id]
        logger.debug(
            f"{payer.name}: paid={paid[payer.id]}, "
            f"should_pay={should_pay[payer.id]}, net={net}"
        )
        balances.append(
            PayerBalance(
                payer_id=payer.id,
                payer_name=payer.name,
                total_paid=paid[payer.id],
                total_should_pay=should_pay[payer.id],
                net_balance=net,
            )
        )

    return balances


def compute_balances(
    category: Category,
    subcategories: Iterable[Subcategory],
    transactions: Iterable[Transaction],
    participants: Sequence[Payer],
    fair_share_mode: FairShareMode = "equal",
    quantum: Decimal = DEFAULT_QUANTUM,
) -> dict[str, Decimal]:
    """Map each participant's id to their net balance."""
    return {
        balance.payer_id: balance.net_balance
        for balance in compute_payer_balances(
            category,
            subcategories,
            transactions,
            participants,
            fair_share_mode=fair_share_mode,
            quantum=quantum,
        )
    }


def _equal_shares(
    transactions: Sequence[Transaction],
    participants: Sequence[Payer],
    quantum: Decimal,
) -> dict[str, Decimal]:
    """Fair share = sum of equal per-transaction splits among sharers."""
    should_pay = {p.id: ZERO for p in participants}

    for transaction in transactions:
        sharers = transaction_sharers(transaction, participants)
        if not sharers:
            logger.debug(f"Transaction {transaction.id} has no sharers, skipping")
            continue

        shares = split_evenly(transaction.amount, len(sharers), quantum)
        for payer, share in zip(sharers, shares):
            should_pay[payer.id] += share

    return should_pay


def _contributed_shares(
    transactions: Sequence[Transaction], participants: Sequence[Payer]
) -> dict[str, Decimal]:
    """Fair share = T * (P / T) over the payer's own transactions."""
    should_pay = {}
    for payer in participants:
        own = [t for t in transactions if t.has_contribution_from(payer.id)]
        contributed = sum((t.get_payer_contribution(payer.id) for t in own), ZERO)
        # T * (P / T) == P, and P == 0 when the payer only paid nothing
        should_pay[payer.id] = contributed
    return should_pay
