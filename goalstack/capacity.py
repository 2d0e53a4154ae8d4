"""Capacity model: per-week effort budget derived from total man-days and week count.

Nothing here is stored. Both numbers are recomputed whenever either input
changes.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


def capacity_divisor(week_count: Any) -> float:
    """Week count used to split the budget.

    A finite positive count passes through unchanged, fractions included.
    Non-numeric, non-finite, zero and negative values all mean one week.
    """
    if isinstance(week_count, bool) or not isinstance(week_count, (int, float)):
        return 1
    if not math.isfinite(week_count) or week_count <= 0:
        return 1
    return week_count


def effective_week_count(week_count: Any) -> int:
    """Number of whole weeks in the plan: the divisor floored, at least 1."""
    return max(1, int(capacity_divisor(week_count)))


def weekly_capacity(total_man_days: float, week_count: Any) -> float:
    return total_man_days / capacity_divisor(week_count)


@dataclass(frozen=True)
class CapacityModel:
    total_man_days: float
    week_count: int
    weekly_capacity: float

    @classmethod
    def from_inputs(cls, total_man_days: float, week_count: Any) -> CapacityModel:
        weeks = effective_week_count(week_count)
        return cls(
            total_man_days=total_man_days,
            week_count=weeks,
            weekly_capacity=total_man_days / capacity_divisor(week_count),
        )
