"""Small descriptive statistics helpers."""

import math
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def variance(values: Sequence[float]) -> float:
    """Population variance."""
    if not values:
        return 0.0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) / len(values)


def std_dev(values: Sequence[float]) -> float:
    return math.sqrt(variance(values))


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; 0 when either series is constant."""
    n = len(x)
    if n == 0:
        return 0.0
    sum_x, sum_y = sum(x), sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    sum_y2 = sum(b * b for b in y)
    denominator_sq = (n * sum_x2 - sum_x ** 2) * (n * sum_y2 - sum_y ** 2)
    if denominator_sq <= 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / math.sqrt(denominator_sq)
