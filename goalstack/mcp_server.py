from __future__ import annotations

import json
import logging

from mcp.server.fastmcp import FastMCP

from goalstack import services
from goalstack.models import MAX_TIMELINE_WEEKS
from goalstack.normalizer import InitiativeParseError
from goalstack.producer import LLMCallError, PlanValidationError
from goalstack.store import ProducerBusyError, get_store

log = logging.getLogger(__name__)


mcp = FastMCP(
    "GoalStack",
    instructions=(
        "GoalStack turns OKR-tagged initiatives into a week-by-week roadmap bounded by "
        "a capacity budget. Start with get_plan() for the current weekly allocation and "
        "backlog, set_constraints() to change the budget, and generate_roadmap() or "
        "modify_roadmap() to let the LLM rewrite the initiative list."
    ),
    json_response=True,
)


def _error(message: str) -> dict:
    return {"error": message}


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("goalstack://overview")
def goalstack_overview() -> str:
    """Overview of GoalStack: data model, allocation rules, and workflow."""
    return json.dumps({
        "system": "GoalStack: capacity-bounded weekly roadmap planning",
        "data_model": {
            "initiative": "Unit of work: title, effortManDays, requested week, okr, task/team dependency tags.",
            "objective": "OKR text. List order is priority and only feeds the generation prompt.",
            "plan": "Derived view: week -> fragments, plus a backlog. Recomputed on every read.",
        },
        "allocation": [
            "Initiatives are placed in order of requested week, then id.",
            "Weekly capacity = total man-days / timeline weeks.",
            "Work that overflows a week spills into the next one.",
            "An initiative that does not fit before the last week is listed in the backlog at full effort.",
        ],
        "workflow": [
            "1. get_plan() to see the weekly allocation.",
            "2. list_initiatives() to browse the canonical list.",
            "3. add_initiative / update_initiative / delete_initiative to edit.",
            "4. set_constraints(man_days, timeline_weeks) to change capacity.",
            "5. generate_roadmap() / modify_roadmap(command) for LLM rewrites.",
        ],
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Plan & Initiatives
# ---------------------------------------------------------------------------


@mcp.tool()
def get_plan() -> dict:
    """Get the weekly allocation (byWeek) and backlog for the current initiatives."""
    return services.plan_response(get_store().plan())


@mcp.tool()
def list_initiatives() -> dict:
    """List all initiatives in their current (user-defined) order."""
    return services.initiatives_response(get_store().snapshot())


@mcp.tool()
def add_initiative(
    title: str = "", effort_man_days: float = 0, week: int = 1, okr: str = "",
    task_dependencies: list[str] | None = None, team_dependencies: list[str] | None = None,
) -> dict:
    """Append a new initiative. Blank title and okr fall back to placeholders."""
    init = get_store().append({
        "title": title, "effortManDays": effort_man_days, "week": week, "okr": okr,
        "taskDependencies": task_dependencies or [], "teamDependencies": team_dependencies or [],
    })
    return init.model_dump(by_alias=True)


@mcp.tool()
def update_initiative(
    initiative_id: int,
    title: str | None = None, effort_man_days: float | None = None, week: int | None = None,
    okr: str | None = None, task_dependencies: list[str] | None = None,
    team_dependencies: list[str] | None = None,
) -> dict:
    """Update fields on an initiative. Only provided (non-null) arguments are applied."""
    if week is not None and week < 1:
        return _error("week must be >= 1")
    if effort_man_days is not None and effort_man_days < 0:
        return _error("effort_man_days must be >= 0")
    init = get_store().update(initiative_id, {
        "title": title, "effort_man_days": effort_man_days, "week": week, "okr": okr,
        "task_dependencies": task_dependencies, "team_dependencies": team_dependencies,
    })
    if init is None:
        return _error(f"Initiative {initiative_id} not found")
    return init.model_dump(by_alias=True)


@mcp.tool()
def delete_initiative(initiative_id: int) -> dict:
    """Delete an initiative by id."""
    if not get_store().remove(initiative_id):
        return _error(f"Initiative {initiative_id} not found")
    return {"ok": True}


@mcp.tool()
def reorder_initiatives(moved_id: int, target_id: int) -> dict:
    """Move an initiative to another's position. Does not change week allocation."""
    return services.initiatives_response(get_store().reorder(moved_id, target_id))


@mcp.tool()
def set_constraints(
    man_days: float | None = None, timeline_weeks: float | None = None, start_date: str | None = None,
) -> dict:
    """Update total man-days, timeline weeks (at most 26), or start date."""
    if man_days is not None and man_days < 0:
        return _error("man_days must be >= 0")
    if timeline_weeks is not None and timeline_weeks > MAX_TIMELINE_WEEKS:
        return _error(f"timeline_weeks must be <= {MAX_TIMELINE_WEEKS}")
    constraints = get_store().update_constraints({
        "man_days": man_days, "timeline_weeks": timeline_weeks, "start_date": start_date,
    })
    return constraints.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Tools: AI
# ---------------------------------------------------------------------------


@mcp.tool()
async def generate_roadmap(okrs: list[str] | None = None) -> dict:
    """Generate a fresh initiative list with the LLM. Uses the stored OKRs unless given."""
    try:
        items = await services.run_generate(get_store(), okrs=okrs)
    except (PlanValidationError, ProducerBusyError, LLMCallError) as exc:
        return _error(str(exc))
    return services.initiatives_response(items)


@mcp.tool()
async def modify_roadmap(command: str) -> dict:
    """Rewrite the initiative list according to a free-text instruction."""
    try:
        items = await services.run_modify(get_store(), command)
    except (PlanValidationError, InitiativeParseError, ProducerBusyError, LLMCallError) as exc:
        return _error(str(exc))
    return services.initiatives_response(items)


# ---------------------------------------------------------------------------
# Tools: Stats
# ---------------------------------------------------------------------------


@mcp.tool()
def get_stats() -> dict:
    """Effort totals, backlog size, and per-week utilisation."""
    return services.compute_stats(get_store())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the GoalStack MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
