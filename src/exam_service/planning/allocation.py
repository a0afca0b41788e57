"""
Largest-remainder allocation of an item count across weighted keys.
"""

from collections.abc import Sequence

import numpy as np

from exam_service.core.exceptions import InvalidAllocation


def allocate_by_weight(
    total: int, weights: Sequence[tuple[str, float]]
) -> dict[str, int]:
    """
    Split ``total`` items across keys in proportion to their weights.

    Each key receives ``floor(total * w / sum(w))`` items; the shortfall is
    handed out one unit at a time to the keys with the largest fractional
    remainders, ties broken by input order.

    Args:
        total: Number of items to distribute. Zero yields all zeros.
        weights: Ordered (key, weight) pairs. Weights are non-negative.

    Returns:
        Mapping key -> count, in input order, summing exactly to ``total``.

    Raises:
        InvalidAllocation: If total is negative, the key list is empty, a key
            repeats, a weight is negative, or the weights sum to zero.
    """
    if total < 0:
        raise InvalidAllocation(f"total must be >= 0, got {total}")
    if not weights:
        raise InvalidAllocation("at least one key is required")

    keys = [key for key, _ in weights]
    if len(set(keys)) != len(keys):
        raise InvalidAllocation(f"duplicate keys in {keys}")

    values = [w for _, w in weights]
    if any(w < 0 for w in values):
        raise InvalidAllocation(f"weights must be >= 0, got {values}")
    weight_sum = sum(values)
    if weight_sum <= 0:
        raise InvalidAllocation("weights must sum to a positive value")

    # Keep the products exact for integer weights.
    numerators = [total * w for w in values]
    base = [int(n // weight_sum) for n in numerators]
    remainders = np.array(
        [n - b * weight_sum for n, b in zip(numerators, base, strict=True)],
        dtype=np.float64,
    )

    shortfall = total - sum(base)
    order = np.argsort(-remainders, kind="stable")
    for i in order[:shortfall]:
        base[int(i)] += 1

    return dict(zip(keys, base, strict=True))
