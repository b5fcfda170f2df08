"""Numeric helpers for trend scoring.

All functions are total: empty or too-short inputs return 0.0 instead of
raising. Callers decide whether a 0.0 means "no baseline" in their context.
"""

import math
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def stdev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N, not N-1).

    Returns 0.0 for fewer than two values.
    """
    if len(values) < 2:
        return 0.0
    m = mean(values)
    variance = mean([(x - m) ** 2 for x in values])
    return math.sqrt(variance)


def ema(values: Sequence[float], span: int = 6) -> float:
    """Exponential moving average with smoothing factor 2 / (span + 1).

    The first value seeds the accumulator unweighted. Values must be in
    chronological order, oldest first.
    """
    if not values:
        return 0.0
    k = 2 / (span + 1)
    acc = values[0]
    for x in values[1:]:
        acc = acc * (1 - k) + x * k
    return acc


def wilson_score(up: int, down: int, z: float = 1.96) -> float:
    """Lower bound of the Wilson score interval for the upvote proportion.

    Returns 0.0 when there are no votes (no data = no confidence). A universe
    with 10 upvotes and no downvotes scores ~0.72; the bound only approaches
    1.0 as the sample grows.

    Source: https://www.evanmiller.org/how-not-to-sort-by-average-rating.html
    """
    n = max(0, (up or 0) + (down or 0))
    if n == 0:
        return 0.0
    p_hat = (up or 0) / n
    z2 = z * z
    numerator = p_hat + z2 / (2 * n) - z * math.sqrt(
        (p_hat * (1 - p_hat) + z2 / (4 * n)) / n
    )
    return numerator / (1 + z2 / n)
