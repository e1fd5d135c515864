"""Decimal rounding helpers shared by the settlement components."""

import logging
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)

DEFAULT_QUANTUM = Decimal("0.01")


def quantize_amount(amount: Decimal, quantum: Decimal = DEFAULT_QUANTUM) -> Decimal:
    """
    Round an amount to the currency quantum.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Amount as Decimal
        quantum: Smallest currency unit, e.g. Decimal("0.01")

    Returns:
        The rounded amount
    """
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def split_evenly(
    amount: Decimal, count: int, quantum: Decimal = DEFAULT_QUANTUM
) -> list[Decimal]:
    """
    Divide an amount into `count` parts that sum exactly to it.

    Steps:
    1. Truncate the per-part quotient to the quantum
    2. Compute the residual left over by truncation
    3. Hand the residual out one quantum at a time, starting with the first part
    4. Anything finer than the quantum lands on the first part

    The sign of the amount carries over to every part.

    Args:
        amount: The amount to divide
        count: Number of parts
        quantum: Smallest currency unit

    Returns:
        List of `count` parts, larger parts first

    Raises:
        ValueError: If the quantum is not positive
    """
    if count <= 0:
        return []
    if quantum <= 0:
        raise ValueError(f"quantum must be positive, got {quantum}")

    sign = Decimal("-1") if amount < 0 else Decimal("1")
    magnitude = abs(amount)

    base = (magnitude / count).quantize(quantum, rounding=ROUND_DOWN)
    parts = [base] * count
    residual = magnitude - base * count

    idx = 0
    while residual >= quantum:
        parts[idx % count] += quantum
        residual -= quantum
        idx += 1
    parts[0] += residual

    if idx:
        logger.debug(f"Distributed {idx} x {quantum} residual splitting {amount}")

    total = sum(parts, Decimal("0"))
    assert total == magnitude, "Split failed to preserve total"

    return [sign * part for part in parts]
