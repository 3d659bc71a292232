"""
Streak multiplier.

Pure functions: identical input always gives identical output, regardless
of call order or any other state.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence, Tuple

from ..rules import DEFAULT_MULTIPLIER_TIERS

BASE_MULTIPLIER = 1.0


def multiplier(streak_days: int, tiers: Sequence[Tuple[int, float]] = DEFAULT_MULTIPLIER_TIERS) -> float:
    """
    Map a streak length to a point multiplier.

    With the default tiers: >=14 days -> 2.0, >=7 -> 1.5, >=3 -> 1.2, else 1.0.
    Tiers are (min_streak_days, factor) pairs ordered by descending threshold.
    """
    for threshold, factor in tiers:
        if streak_days >= threshold:
            return float(factor)
    return BASE_MULTIPLIER


def apply_multiplier(base_points: int, factor: float) -> int:
    """
    base_points x factor, rounded to the nearest integer with ties away
    from zero (22.5 -> 23).
    """
    product = Decimal(str(base_points)) * Decimal(str(factor))
    return int(product.quantize(Decimal('1'), rounding=ROUND_HALF_UP))
