"""Allocation engine: greedy, capacity-bounded placement of initiatives into weeks.

Algorithm
---------
Initiatives are processed in a fixed order (requested ``week`` ascending, then
``id`` ascending). Canonical list order is ignored, so reordering in the UI
never changes who claims scarce capacity first.

For each initiative a cursor starts at its requested week. Every week with
capacity left receives a fragment of ``min(remaining, capacity_left)``; full
weeks are skipped. Effort still unplaced after the last week sends the
initiative to the backlog.

Backlog entries carry the initiative's *original* effort and requested week,
not the unplaced remainder. Fragments already placed in earlier weeks stay in
the plan, so a partially placed initiative is counted in both places.

The function is pure: the per-week totals live only for one call.
"""
from __future__ import annotations

from collections.abc import Iterable

from goalstack.capacity import CapacityModel
from goalstack.models import Fragment, Initiative, Plan


def processing_order(initiatives: Iterable[Initiative]) -> list[Initiative]:
    return sorted(initiatives, key=lambda i: (i.week, i.id))


def _fragment(init: Initiative, effort: float, week: int) -> Fragment:
    return Fragment(**{**init.model_dump(), "effort_man_days": effort, "week": week})


def allocate(
    initiatives: Iterable[Initiative],
    effective_week_count: int,
    weekly_capacity: float,
) -> Plan:
    """Partition each initiative's effort across weeks ``1..effective_week_count``."""
    by_week: dict[int, list[Fragment]] = {w: [] for w in range(1, effective_week_count + 1)}
    used: dict[int, float] = {w: 0 for w in by_week}
    backlog: list[Fragment] = []

    for init in processing_order(initiatives):
        remaining: float = init.effort_man_days
        w = max(1, init.week)
        while remaining > 0 and w <= effective_week_count:
            capacity_left = weekly_capacity - used[w]
            if capacity_left <= 0:
                w += 1
                continue
            effort = min(remaining, capacity_left)
            by_week[w].append(_fragment(init, effort, w))
            used[w] += effort
            remaining -= effort
            w += 1

        if remaining > 0:
            backlog.append(Fragment(**init.model_dump()))

    return Plan(
        weekly_capacity=weekly_capacity,
        week_count=effective_week_count,
        by_week=by_week,
        backlog=backlog,
    )


def allocate_plan(initiatives: Iterable[Initiative], total_man_days: float, week_count) -> Plan:
    """Apply the capacity model to raw constraint inputs, then allocate."""
    capacity = CapacityModel.from_inputs(total_man_days, week_count)
    return allocate(initiatives, capacity.week_count, capacity.weekly_capacity)
