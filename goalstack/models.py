from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UNASSIGNED_OKR = "Unassigned"
MAX_TIMELINE_WEEKS = 26


def dedupe(values: list[str]) -> list[str]:
    """Drop repeated entries (exact, case-sensitive), keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


class WireModel(BaseModel):
    """Base for models exchanged as JSON: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def merged(self, updates: dict[str, Any]):
        """Return a validated copy with the non-None known fields from updates applied."""
        changes = {k: v for k, v in updates.items() if v is not None and k in type(self).model_fields}
        return self.model_validate({**self.model_dump(), **changes})


class Initiative(WireModel):
    id: int
    title: str
    effort_man_days: int = Field(0, ge=0)
    week: int = Field(1, ge=1)
    okr: str = UNASSIGNED_OKR
    task_dependencies: list[str] = []
    team_dependencies: list[str] = []

    @field_validator("task_dependencies", "team_dependencies")
    @classmethod
    def _dedupe_dependencies(cls, v: list[str]) -> list[str]:
        return dedupe(v)


class Fragment(Initiative):
    """Portion of an initiative placed into one week or into the backlog."""
    effort_man_days: float = 0.0


class Objective(WireModel):
    id: int
    text: str


class PlanningContext(WireModel):
    organisation: str = ""
    team: str = ""
    goal: str = ""
    additional_context: str = ""


class PlanningConstraints(WireModel):
    man_days: float = Field(50, ge=0)
    timeline_weeks: float = Field(12, le=MAX_TIMELINE_WEEKS)
    start_date: str = ""


class Plan(WireModel):
    weekly_capacity: float
    week_count: int
    by_week: dict[int, list[Fragment]]
    backlog: list[Fragment] = []

    def placed_effort(self, initiative_id: int) -> float:
        return sum(
            f.effort_man_days
            for frags in self.by_week.values()
            for f in frags
            if f.id == initiative_id
        )

    def week_load(self, week: int) -> float:
        return sum(f.effort_man_days for f in self.by_week.get(week, []))
