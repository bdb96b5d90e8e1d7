"""Combinatorial feasibility check for code generation requests."""

import logging

from uniqcodes.errors import InfeasibleRequest

# Configure logging
logger = logging.getLogger(__name__)


def count_permutations(n: int, k: int) -> int:
    """Count arrangements of k distinct items chosen from n.

    Computes n! / (n - k)! as a falling product. Returns 0 when k > n.

    Raises:
        ValueError: If n or k is negative
    """
    if n < 0 or k < 0:
        raise ValueError(f"n and k must be non-negative, got n={n}, k={k}")
    if k > n:
        return 0

    result = 1
    for factor in range(n - k + 1, n + 1):
        result *= factor
    return result


def check_feasibility(alphabet_size: int, size: int, quantity: int) -> int:
    """Verify that quantity codes can be generated with a 2x safety margin.

    Args:
        alphabet_size: Number of symbols codes are drawn from
        size: Code length
        quantity: Number of unique codes requested

    Returns:
        The number of possible codes P(alphabet_size, size)

    Raises:
        InfeasibleRequest: If P(alphabet_size, size) <= quantity / 2
    """
    possibilities = count_permutations(alphabet_size, size)

    if possibilities <= quantity // 2:
        logger.error(
            f"Infeasible request: {quantity} codes from {possibilities} "
            f"possibilities (alphabet={alphabet_size}, size={size})"
        )
        raise InfeasibleRequest(
            f"Cannot safely generate {quantity} codes of size {size} from an "
            f"alphabet of {alphabet_size} symbols: only {possibilities} "
            "combinations, codes would be predictable or run out"
        )

    logger.debug(
        f"Feasibility ok: {possibilities} possibilities for {quantity} codes"
    )
    return possibilities
