"""Minimize number of transfers so everyone is settled (who owes whom)."""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from ..models import Transfer

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def optimize_settlement(balances: Mapping[str, Decimal]) -> list[Transfer]:
    """
    Compute the transfers that bring every balance to zero.

    balances: payer_id -> net balance (positive = is owed money,
    negative = owes money).

    Greedy matching: creditors and debtors are each sorted by amount, largest
    first, ties broken by payer id. The largest remaining debtor pays the
    largest remaining creditor min(owed, owing); a party is dropped once its
    remainder is exactly zero. Stops when either side runs out, so any
    imbalance in the input is left unsettled rather than reported.

    Returns:
        Ordered list of transfers
    """
    creditors: list[tuple[str, Decimal]] = []
    debtors: list[tuple[str, Decimal]] = []
    for payer_id, balance in balances.items():
        if balance > 0:
            creditors.append((payer_id, balance))
        elif balance < 0:
            debtors.append((payer_id, -balance))

    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (-x[1], x[0]))

    transfers: list[Transfer] = []
    i, j = 0, 0
    while i < len(creditors) and j < len(debtors):
        creditor_id, owed = creditors[i]
        debtor_id, owing = debtors[j]

        amount = min(owed, owing)
        if amount > 0:
            transfers.append(
                Transfer(
                    from_payer_id=debtor_id, to_payer_id=creditor_id, amount=amount
                )
            )
            logger.debug(f"Transfer: {debtor_id} -> {creditor_id}: {amount}")

        creditors[i] = (creditor_id, owed - amount)
        debtors[j] = (debtor_id, owing - amount)

        if creditors[i][1] == 0:
            i += 1
        if debtors[j][1] == 0:
            j += 1

    unmatched = len(creditors) - i + len(debtors) - j
    if unmatched:
        logger.debug(f"{unmatched} parties left with an unsettled remainder")

    logger.info(f"Settlement needs {len(transfers)} transfers")
    return transfers


def balance_residual(balances: Mapping[str, Decimal]) -> Decimal:
    """Sum of all balances; zero for a consistent rollup."""
    return sum(balances.values(), ZERO)


def is_balanced(
    balances: Mapping[str, Decimal], tolerance: Decimal = Decimal("0.01")
) -> bool:
    """Check that balances sum to zero within tolerance."""
    return abs(balance_residual(balances)) <= tolerance


def apply_transfers(
    balances: Mapping[str, Decimal], transfers: Iterable[Transfer]
) -> dict[str, Decimal]:
    """
    Apply transfers to a copy of the balances.

    Paying raises the debtor's balance and lowers the creditor's.
    """
    result = dict(balances)
    for transfer in transfers:
        result[transfer.from_payer_id] = (
            result.get(transfer.from_payer_id, ZERO) + transfer.amount
        )
        result[transfer.to_payer_id] = (
            result.get(transfer.to_payer_id, ZERO) - transfer.amount
        )
    return result
