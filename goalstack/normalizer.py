"""Parse-and-validate boundary for externally supplied initiative lists.

Anything coming from an LLM producer or a raw API payload passes through
:func:`normalize_initiatives` before it reaches the store. The result is a
list of validated :class:`~goalstack.models.Initiative` objects; an item that
cannot be coerced at all raises :class:`InitiativeParseError`.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from goalstack.models import UNASSIGNED_OKR, Initiative

log = logging.getLogger(__name__)

IdFactory = Callable[[], int]


class InitiativeParseError(ValueError):
    """An initiative payload has a shape that cannot be normalised."""
    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.index = index


def _number(value: Any) -> float | None:
    """Coerce to a finite float, accepting numeric strings. None if not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        v = float(value)
    elif isinstance(value, str):
        try:
            v = float(value.strip() or "nan")
        except ValueError:
            return None
    else:
        return None
    return v if math.isfinite(v) else None


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _valid_id(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        return None
    return int(value)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def normalize_effort(value: Any) -> int:
    effort = _number(value)
    if effort is None:
        return 0
    rounded = round_half_up(effort)
    if rounded < 0:
        log.warning("Negative effort %r clamped to 0", value)
        return 0
    return rounded


def normalize_week(value: Any) -> int:
    week = _number(value)
    if not week:
        return 1
    return max(1, round_half_up(week))


def normalize_title(value: Any, index: int) -> str:
    """Blank or missing titles become the positional placeholder ``Task {n}``."""
    title = str(value) if value is not None else ""
    return title if title.strip() else f"Task {index + 1}"


def normalize_okr(value: Any) -> str:
    return str(value) if value else UNASSIGNED_OKR


def normalize_initiative(
    raw: Any, index: int, id_factory: IdFactory, taken_ids: set[int] | None = None,
) -> Initiative:
    """Normalise one raw initiative dict. ``index`` drives the placeholder title."""
    if not isinstance(raw, dict):
        raise InitiativeParseError(
            f"Initiative #{index + 1} is not an object: {type(raw).__name__}", index=index,
        )
    init_id = _valid_id(raw.get("id"))
    if init_id is None or (taken_ids is not None and init_id in taken_ids):
        init_id = id_factory()
    if taken_ids is not None:
        taken_ids.add(init_id)

    return Initiative(
        id=init_id,
        title=normalize_title(raw.get("title"), index),
        effort_man_days=normalize_effort(raw.get("effortManDays", raw.get("effort_man_days"))),
        week=normalize_week(raw.get("week")),
        okr=normalize_okr(raw.get("okr")),
        task_dependencies=_string_list(raw.get("taskDependencies", raw.get("task_dependencies"))),
        team_dependencies=_string_list(raw.get("teamDependencies", raw.get("team_dependencies"))),
    )


def normalize_initiatives(raw: Any, id_factory: IdFactory) -> list[Initiative]:
    """Normalise a full initiative list (e.g. an LLM producer's reply)."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InitiativeParseError(f"Expected a list of initiatives, got {type(raw).__name__}")
    taken: set[int] = set()
    return [normalize_initiative(item, idx, id_factory, taken) for idx, item in enumerate(raw)]
