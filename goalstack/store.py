"""In-memory plan store: the single source of truth for one planning session.

The store owns the canonical initiative list, the objective list and the
planning inputs. The weekly plan is never kept here; :meth:`PlanStore.plan`
recomputes it from a snapshot on every call.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Literal

from goalstack.allocator import allocate
from goalstack.capacity import CapacityModel
from goalstack.config import get_settings
from goalstack.models import Initiative, Objective, Plan, PlanningConstraints, PlanningContext
from goalstack.normalizer import (
    normalize_effort,
    normalize_initiative,
    normalize_initiatives,
    normalize_okr,
    normalize_title,
)
from goalstack.reorder import Direction, move_initiative, move_objective

log = logging.getLogger(__name__)

DEFAULT_OBJECTIVES = ("Increase paid conversion by 15%",)
NEW_OBJECTIVE_TEXT = "New OKR"

DependencyKind = Literal["task", "team"]

_DEPENDENCY_FIELDS: dict[str, str] = {"task": "task_dependencies", "team": "team_dependencies"}


class ProducerBusyError(RuntimeError):
    """A generate/modify call is already in flight for this store."""


class PlanStore:
    def __init__(
        self,
        objectives: list[str] | tuple[str, ...] = DEFAULT_OBJECTIVES,
        constraints: PlanningConstraints | None = None,
        context: PlanningContext | None = None,
    ):
        self._lock = threading.RLock()
        self._next_id = 1
        self._initiatives: list[Initiative] = []
        self._objectives: list[Objective] = [Objective(id=self.new_id(), text=t) for t in objectives]
        if constraints is None:
            settings = get_settings()
            constraints = PlanningConstraints(
                man_days=settings.default_man_days,
                timeline_weeks=settings.default_timeline_weeks,
            )
        self.constraints = constraints
        self.context = context or PlanningContext()
        self._producer_pending = False

    # ------------------------------------------------------------------
    # Ids
    # ------------------------------------------------------------------

    def new_id(self) -> int:
        """Hand out an id never used before in this session."""
        with self._lock:
            value = self._next_id
            self._next_id += 1
            return value

    def _reserve(self, ids: list[int]) -> None:
        if ids:
            self._next_id = max(self._next_id, max(ids) + 1)

    # ------------------------------------------------------------------
    # Initiatives
    # ------------------------------------------------------------------

    def snapshot(self) -> list[Initiative]:
        with self._lock:
            return list(self._initiatives)

    def get(self, initiative_id: int) -> Initiative | None:
        with self._lock:
            return next((i for i in self._initiatives if i.id == initiative_id), None)

    def replace_all(self, raw: list[Any] | list[Initiative]) -> list[Initiative]:
        """Replace the canonical list wholesale. Raw dicts are normalised first."""
        with self._lock:
            if all(isinstance(i, Initiative) for i in raw):
                initiatives = list(raw)
            else:
                initiatives = normalize_initiatives(
                    [i.model_dump(by_alias=True) if isinstance(i, Initiative) else i for i in raw],
                    self.new_id,
                )
            self._reserve([i.id for i in initiatives])
            self._initiatives = initiatives
            log.info("Replaced initiative list (%d items)", len(initiatives))
            return list(initiatives)

    def append(self, raw: dict[str, Any] | None = None) -> Initiative:
        with self._lock:
            taken = {i.id for i in self._initiatives}
            init = normalize_initiative(raw or {}, len(self._initiatives), self.new_id, taken)
            self._reserve([init.id])
            self._initiatives.append(init)
            return init

    def update(self, initiative_id: int, updates: dict[str, Any]) -> Initiative | None:
        """Merge a partial update (None values ignored) and re-validate the record."""
        with self._lock:
            for idx, current in enumerate(self._initiatives):
                if current.id != initiative_id:
                    continue
                data = current.model_dump()
                for key, val in updates.items():
                    if val is None or key == "id" or key not in data:
                        continue
                    data[key] = val
                data["title"] = normalize_title(data["title"], idx)
                data["okr"] = normalize_okr(data["okr"])
                data["effort_man_days"] = normalize_effort(data["effort_man_days"])
                updated = Initiative.model_validate(data)
                self._initiatives[idx] = updated
                return updated
            return None

    def remove(self, initiative_id: int) -> bool:
        with self._lock:
            before = len(self._initiatives)
            self._initiatives = [i for i in self._initiatives if i.id != initiative_id]
            return len(self._initiatives) < before

    def reorder(self, moved_id: int, target_id: int | None) -> list[Initiative]:
        with self._lock:
            self._initiatives = move_initiative(self._initiatives, moved_id, target_id)
            return list(self._initiatives)

    def add_dependency(self, initiative_id: int, kind: DependencyKind, name: str) -> Initiative | None:
        name = name.strip()
        with self._lock:
            current = self.get(initiative_id)
            if current is None or not name:
                return current
            field = _DEPENDENCY_FIELDS[kind]
            return self.update(initiative_id, {field: [*getattr(current, field), name]})

    def remove_dependency(self, initiative_id: int, kind: DependencyKind, name: str) -> Initiative | None:
        with self._lock:
            current = self.get(initiative_id)
            if current is None:
                return None
            field = _DEPENDENCY_FIELDS[kind]
            return self.update(initiative_id, {field: [d for d in getattr(current, field) if d != name]})

    # ------------------------------------------------------------------
    # Objectives
    # ------------------------------------------------------------------

    def objectives(self) -> list[Objective]:
        with self._lock:
            return list(self._objectives)

    def objective_texts(self) -> list[str]:
        return [o.text for o in self.objectives()]

    def add_objective(self, text: str = NEW_OBJECTIVE_TEXT) -> Objective:
        with self._lock:
            obj = Objective(id=self.new_id(), text=text)
            self._objectives.append(obj)
            return obj

    def update_objective(self, objective_id: int, text: str) -> Objective | None:
        """Rename an objective. Initiatives tagged with the old text keep it."""
        with self._lock:
            for idx, obj in enumerate(self._objectives):
                if obj.id == objective_id:
                    self._objectives[idx] = Objective(id=obj.id, text=text)
                    return self._objectives[idx]
            return None

    def remove_objective(self, objective_id: int) -> list[Initiative] | None:
        """Delete an objective and every initiative tagged with its exact text.

        Returns the removed initiatives, or None if the objective is unknown.
        """
        with self._lock:
            obj = next((o for o in self._objectives if o.id == objective_id), None)
            if obj is None:
                return None
            self._objectives = [o for o in self._objectives if o.id != objective_id]
            removed = [i for i in self._initiatives if i.okr == obj.text]
            self.replace_all([i for i in self._initiatives if i.okr != obj.text])
            return removed

    def move_objective(self, objective_id: int, direction: Direction) -> list[Objective]:
        with self._lock:
            self._objectives = move_objective(self._objectives, objective_id, direction)
            return list(self._objectives)

    # ------------------------------------------------------------------
    # Planning inputs
    # ------------------------------------------------------------------

    def update_constraints(self, updates: dict[str, Any]) -> PlanningConstraints:
        """Merge a partial constraints update. Raises pydantic's ValidationError on bad values."""
        with self._lock:
            self.constraints = self.constraints.merged(updates)
            return self.constraints

    def update_context(self, updates: dict[str, Any]) -> PlanningContext:
        with self._lock:
            self.context = self.context.merged(updates)
            return self.context

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def capacity(self) -> CapacityModel:
        return CapacityModel.from_inputs(self.constraints.man_days, self.constraints.timeline_weeks)

    def plan(self) -> Plan:
        capacity = self.capacity()
        return allocate(self.snapshot(), capacity.week_count, capacity.weekly_capacity)

    # ------------------------------------------------------------------
    # Producer guard
    # ------------------------------------------------------------------

    @contextmanager
    def producer_call(self) -> Iterator[None]:
        """Mark a generate/modify call as in flight; refuse a second one."""
        with self._lock:
            if self._producer_pending:
                raise ProducerBusyError("A roadmap generation or modification is already running")
            self._producer_pending = True
        try:
            yield
        finally:
            with self._lock:
                self._producer_pending = False

    @property
    def producer_pending(self) -> bool:
        return self._producer_pending

    def reset(self) -> None:
        with self._lock:
            self._initiatives = []


_store: PlanStore | None = None
_store_lock = threading.Lock()


def get_store() -> PlanStore:
    """Process-wide store shared by the HTTP API and the MCP server."""
    global _store
    with _store_lock:
        if _store is None:
            _store = PlanStore()
        return _store


def reset_store() -> PlanStore:
    global _store
    with _store_lock:
        _store = PlanStore()
        return _store
