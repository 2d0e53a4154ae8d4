"""Pydantic request/response schemas for the GoalStack API."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator

from goalstack.models import MAX_TIMELINE_WEEKS, Fragment, Initiative, Objective, WireModel


class InitiativeCreate(WireModel):
    title: str = ""
    effort_man_days: float = Field(0, ge=0)
    week: int = Field(1, ge=1)
    okr: str = ""
    task_dependencies: list[str] = []
    team_dependencies: list[str] = []


class InitiativeUpdate(WireModel):
    title: str | None = None
    effort_man_days: float | None = Field(None, ge=0)
    week: int | None = Field(None, ge=1)
    okr: str | None = None
    task_dependencies: list[str] | None = None
    team_dependencies: list[str] | None = None


class InitiativeListReplace(WireModel):
    initiatives: list[Any]


class DependencyChange(WireModel):
    kind: Literal["task", "team"]
    name: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("dependency name must not be blank")
        return v


class ReorderRequest(WireModel):
    moved_id: int
    target_id: int | None = None


class ObjectiveCreate(WireModel):
    text: str = "New OKR"


class ObjectiveUpdate(WireModel):
    text: str


class ObjectiveMove(WireModel):
    direction: Literal["up", "down"]


class ConstraintsUpdate(WireModel):
    man_days: float | None = Field(None, ge=0)
    timeline_weeks: float | None = Field(None, le=MAX_TIMELINE_WEEKS)
    start_date: str | None = None


class ContextUpdate(WireModel):
    organisation: str | None = None
    team: str | None = None
    goal: str | None = None
    additional_context: str | None = None


class _ProducerRequest(WireModel):
    """Fields left out fall back to the values held by the store."""
    okrs: list[str] | None = None
    context: ContextUpdate | None = None
    constraints: ConstraintsUpdate | None = None


class GenerateRequest(_ProducerRequest):
    pass


class ModifyRequest(_ProducerRequest):
    command: str = ""
    initiatives: list[Any] | None = None


class InitiativeListResponse(WireModel):
    initiatives: list[Initiative]


class ObjectiveListResponse(WireModel):
    objectives: list[Objective]


class PlanOut(WireModel):
    weekly_capacity: float
    week_count: int
    by_week: dict[int, list[Fragment]]
    backlog: list[Fragment]


class WeekStatsOut(WireModel):
    week: int
    allocated: float
    capacity: float
    utilisation: float


class StatsOut(WireModel):
    total_initiatives: int
    total_effort: int
    placed_effort: float
    backlog_count: int
    backlog_effort: int
    effort_by_okr: dict[str, int]
    weeks: list[WeekStatsOut]
