"""Pure statistical functions.

Every function is deterministic, never mutates its input and returns 0
(or an empty result) for empty input or a zero denominator. Results are
rounded half-up to two decimal places.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, TypeVar

DEFAULT_PERCENTILES = (25, 50, 75, 90)
_SECONDS_PER_DAY = 86_400
_TWO_PLACES = Decimal("0.01")

K = TypeVar("K")


def round2(value: float) -> float:
    """Round half-up (not banker's rounding) to two decimal places."""
    if not math.isfinite(value):
        return 0.0
    return float(Decimal(repr(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return round2(numerator / denominator)


def percentage(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return round2(part / whole * 100)


def growth_rate(current: float, previous: float) -> float:
    """Relative change from *previous* to *current*.

    A rise from zero counts as 1 (100%); zero to zero is 0.
    """
    if previous == 0:
        return 1.0 if current > 0 else 0.0
    return round2((current - previous) / previous)


def _mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values)


def mean(values: Iterable[float]) -> float:
    data = list(values)
    if not data:
        return 0.0
    return round2(_mean(data))


def _interpolate(ordered: Sequence[float], pct: float) -> float:
    rank = pct / 100 * (len(ordered) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    weight = rank - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def percentile(values: Iterable[float], pct: float) -> float:
    """Linearly interpolated percentile over a sorted copy of *values*."""
    if not 0 <= pct <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {pct}")
    ordered = sorted(values)
    if not ordered:
        return 0.0
    return round2(_interpolate(ordered, pct))


def percentiles(
    values: Iterable[float], pcts: Sequence[float] = DEFAULT_PERCENTILES
) -> dict[str, float]:
    """Several percentiles at once, keyed ``p25``, ``p50`` and so on."""
    ordered = sorted(values)
    if not ordered:
        return {}
    result: dict[str, float] = {}
    for pct in pcts:
        if not 0 <= pct <= 100:
            raise ValueError(f"percentile must be within [0, 100], got {pct}")
        result[f"p{pct:g}"] = round2(_interpolate(ordered, pct))
    return result


def median(values: Iterable[float]) -> float:
    return percentile(values, 50)


def _variance(values: Sequence[float]) -> float:
    if len(values) <= 1:
        return 0.0
    centre = _mean(values)
    return math.fsum((v - centre) ** 2 for v in values) / len(values)


def variance(values: Iterable[float]) -> float:
    """Population variance; 0 for fewer than two values."""
    return round2(_variance(sorted(values)))


def standard_deviation(values: Iterable[float]) -> float:
    return round2(math.sqrt(_variance(sorted(values))))


def gini_coefficient(values: Iterable[float]) -> float:
    """Discrete Gini coefficient of a non-negative distribution.

    0 is perfect equality, values near 1 mean one member holds almost
    everything. Empty, single-valued and all-zero inputs give 0.
    """
    ordered = sorted(values)
    if any(v < 0 for v in ordered):
        raise ValueError("gini coefficient requires non-negative values")
    n = len(ordered)
    total = math.fsum(ordered)
    if n <= 1 or total == 0:
        return 0.0
    weighted = math.fsum((2 * (i + 1) - n - 1) * v for i, v in enumerate(ordered))
    return round2(weighted / (n * total))


def top_share(values: Iterable[float], n: int = 1) -> float:
    """Percentage of the total held by the *n* largest values."""
    ordered = sorted(values, reverse=True)
    total = math.fsum(ordered)
    if n <= 0 or total == 0:
        return 0.0
    return percentage(math.fsum(ordered[:n]), total)


def activity_density(event_count: float, elapsed_days: float) -> float:
    """Events per day; 0 when no time has elapsed."""
    if elapsed_days <= 0:
        return 0.0
    return round2(event_count / elapsed_days)


def days_between(start: datetime, end: datetime) -> float:
    """Absolute distance in days, fractional to two places."""
    return round2(abs((end - start).total_seconds()) / _SECONDS_PER_DAY)


def hours_between(start: datetime, end: datetime) -> float:
    return round2(abs((end - start).total_seconds()) / 3600)


def business_days_between(start: datetime, end: datetime) -> int:
    """Weekdays in ``[start, end)``, stepping one day at a time from *start*."""
    if start >= end:
        return 0
    days = 0
    current = start
    while current < end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def bin_counts(
    instants: Iterable[datetime], size: Literal["day", "week"] = "day"
) -> dict[date, int]:
    """Count instants per UTC day (or per ISO week, keyed by its Monday), in date order."""
    bins: Counter[date] = Counter()
    for instant in instants:
        day = instant.date()
        if size == "week":
            day -= timedelta(days=day.weekday())
        bins[day] += 1
    return dict(sorted(bins.items()))


def find_top_n(counts: Mapping[K, float], n: int) -> list[tuple[K, float]]:
    """The *n* largest entries, by value descending then key ascending."""
    if n <= 0:
        return []
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:n]
