"""Shared business logic for the GoalStack API and MCP server."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from goalstack.models import Initiative, Plan, PlanningConstraints, PlanningContext
from goalstack.normalizer import normalize_initiatives
from goalstack.producer import (
    LLMCallError,
    LLMClient,
    generate_initiatives,
    modify_initiatives,
    validate_instruction,
    validate_objectives,
)
from goalstack.store import PlanStore

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def plan_response(plan: Plan) -> dict[str, Any]:
    return plan.model_dump(by_alias=True)


def initiatives_response(initiatives: list[Initiative]) -> dict[str, Any]:
    return {"initiatives": [i.model_dump(by_alias=True) for i in initiatives]}


# ---------------------------------------------------------------------------
# Producer operations
# ---------------------------------------------------------------------------


def _ensure_client(client: LLMClient | None) -> LLMClient:
    if client is not None:
        return client
    try:
        return LLMClient()
    except Exception as exc:
        raise LLMCallError(f"LLM client unavailable: {exc}") from exc


def _producer_inputs(
    store: PlanStore,
    okrs: list[str] | None,
    context: dict[str, Any] | None,
    constraints: dict[str, Any] | None,
) -> tuple[list[str], PlanningContext, PlanningConstraints]:
    return (
        okrs if okrs is not None else store.objective_texts(),
        store.context.merged(context or {}),
        store.constraints.merged(constraints or {}),
    )


async def run_generate(
    store: PlanStore,
    client: LLMClient | None = None,
    okrs: list[str] | None = None,
    context: dict[str, Any] | None = None,
    constraints: dict[str, Any] | None = None,
) -> list[Initiative]:
    """Generate a roadmap and replace the store's initiative list with it.

    Raises PlanValidationError before any LLM call, ProducerBusyError when a
    producer call is already running, and LLMCallError on producer failure.
    The store is left untouched on any error.
    """
    objectives, ctx, cons = _producer_inputs(store, okrs, context, constraints)
    objectives = validate_objectives(objectives)
    with store.producer_call():
        try:
            initiatives = await generate_initiatives(
                objectives, ctx, cons, _ensure_client(client), store.new_id,
            )
        except LLMCallError as exc:
            log.warning("Roadmap generation failed: %s", exc)
            raise
        return store.replace_all(initiatives)


async def run_modify(
    store: PlanStore,
    command: str,
    client: LLMClient | None = None,
    initiatives: list[Any] | None = None,
    okrs: list[str] | None = None,
    context: dict[str, Any] | None = None,
    constraints: dict[str, Any] | None = None,
) -> list[Initiative]:
    """Apply a free-text instruction through the LLM and replace the initiative list."""
    command = validate_instruction(command)
    objectives, ctx, cons = _producer_inputs(store, okrs, context, constraints)
    current = (
        normalize_initiatives(initiatives, store.new_id)
        if initiatives is not None else store.snapshot()
    )
    with store.producer_call():
        try:
            updated = await modify_initiatives(
                command, current, objectives, ctx, cons, _ensure_client(client), store.new_id,
            )
        except LLMCallError as exc:
            log.warning("Roadmap modification failed: %s", exc)
            raise
        return store.replace_all(updated)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def compute_stats(store: PlanStore) -> dict[str, Any]:
    initiatives = store.snapshot()
    plan = store.plan()
    by_okr: Counter[str] = Counter()
    for init in initiatives:
        by_okr[init.okr] += init.effort_man_days
    weeks = []
    for week in plan.by_week:
        allocated = plan.week_load(week)
        cap = plan.weekly_capacity
        weeks.append({
            "week": week, "allocated": allocated, "capacity": cap,
            "utilisation": round(allocated / cap, 4) if cap > 0 else 0.0,
        })
    return {
        "totalInitiatives": len(initiatives),
        "totalEffort": sum(i.effort_man_days for i in initiatives),
        "placedEffort": sum(w["allocated"] for w in weeks),
        "backlogCount": len(plan.backlog),
        "backlogEffort": sum(int(f.effort_man_days) for f in plan.backlog),
        "effortByOkr": dict(by_okr),
        "weeks": weeks,
    }
