"""User-driven reordering of the canonical lists.

List order is presentation only. The allocation engine sorts by week and id,
so nothing here changes which week an initiative lands in.
"""
from __future__ import annotations

from typing import Literal, TypeVar

from goalstack.models import Initiative, Objective

Direction = Literal["up", "down"]

T = TypeVar("T")


def array_move(items: list[T], old_index: int, new_index: int) -> list[T]:
    """Return a copy with the element at ``old_index`` moved to ``new_index``."""
    out = list(items)
    out.insert(new_index, out.pop(old_index))
    return out


def _index_of(items: list, item_id: int) -> int | None:
    for idx, item in enumerate(items):
        if item.id == item_id:
            return idx
    return None


def move_initiative(items: list[Initiative], moved_id: int, target_id: int | None) -> list[Initiative]:
    """Move ``moved_id`` to the position currently held by ``target_id``.

    Returns the list unchanged (as a copy) when the ids match or either one
    cannot be resolved.
    """
    if target_id is None or moved_id == target_id:
        return list(items)
    old_index = _index_of(items, moved_id)
    new_index = _index_of(items, target_id)
    if old_index is None or new_index is None:
        return list(items)
    return array_move(items, old_index, new_index)


def move_objective(objectives: list[Objective], objective_id: int, direction: Direction) -> list[Objective]:
    """Swap an objective with its neighbour. No-op at the list edges."""
    out = list(objectives)
    idx = _index_of(out, objective_id)
    if idx is None:
        return out
    other = idx - 1 if direction == "up" else idx + 1
    if 0 <= other < len(out):
        out[idx], out[other] = out[other], out[idx]
    return out
