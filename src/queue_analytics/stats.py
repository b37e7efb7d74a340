"""Small numeric helpers shared by the scoring modules."""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

_ONE_DECIMAL = Decimal("0.1")


def round1(value: float) -> float:
    """Round to one decimal place, halves away from zero.

    Goes through the shortest ``repr`` of *value* so that e.g. ``0.25``
    rounds to ``0.3`` rather than being skewed by its binary expansion.
    """
    if math.isnan(value) or math.isinf(value):
        return value
    rounded = Decimal(repr(float(value))).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return float(rounded) + 0.0  # normalise -0.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N); 0.0 when empty."""
    if not values:
        return 0.0
    mu = mean(values)
    return math.sqrt(math.fsum((v - mu) ** 2 for v in values) / len(values))


def median(values: Iterable[float]) -> float:
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return 0.0
    mid = n // 2
    if n % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return float(ordered[mid])
