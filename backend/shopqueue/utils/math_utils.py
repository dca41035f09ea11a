import math
from typing import Optional, Sequence


def round_half_up(value: float) -> int:
    """Rounds .5 towards positive infinity, unlike the builtin banker's rounding."""
    return int(math.floor(value + 0.5))


def average(values: Sequence[float]) -> int:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def median(values: Sequence[float]) -> int:
    """
    Median of the values; an even-length list averages the two middle values.
    Result is rounded to a whole number.
    """
    if not values:
        return 0
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return round_half_up((ordered[middle - 1] + ordered[middle]) / 2)
    return round_half_up(ordered[middle])


def minutes_between(start, end) -> Optional[int]:
    """Whole minutes from start to end, or None when either timestamp is missing."""
    if start is None or end is None:
        return None
    return round_half_up((end - start).total_seconds() / 60)


def percentage(part: int, whole: int) -> int:
    if not whole:
        return 0
    return round_half_up(part / whole * 100)
