from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException

from goalstack import services
from goalstack.config import get_settings
from goalstack.models import Initiative, Objective, PlanningConstraints, PlanningContext
from goalstack.normalizer import InitiativeParseError
from goalstack.producer import LLMCallError, PlanValidationError
from goalstack.schemas import (
    ConstraintsUpdate,
    ContextUpdate,
    DependencyChange,
    GenerateRequest,
    InitiativeCreate,
    InitiativeListReplace,
    InitiativeListResponse,
    InitiativeUpdate,
    ModifyRequest,
    ObjectiveCreate,
    ObjectiveListResponse,
    ObjectiveMove,
    ObjectiveUpdate,
    PlanOut,
    ReorderRequest,
    StatsOut,
)
from goalstack.store import PlanStore, ProducerBusyError, get_store

log = logging.getLogger(__name__)


app = FastAPI(
    title="GoalStack",
    version="0.1.0",
    description=(
        "Weekly roadmap planning API. Turns OKR-tagged initiatives into a "
        "capacity-bounded week-by-week plan with a backlog of work that does not fit. "
        "All endpoints return JSON. No authentication required."
    ),
    openapi_tags=[
        {"name": "Plan", "description": "The derived weekly plan, recomputed on every read."},
        {"name": "Initiatives", "description": "Create, edit, reorder, and delete initiatives."},
        {"name": "Objectives", "description": "Manage the ordered OKR list."},
        {"name": "Settings", "description": "Capacity constraints and planning context."},
        {"name": "AI", "description": "LLM roadmap generation and modification. Requires an API key."},
        {"name": "Stats", "description": "Aggregate effort and utilisation figures."},
        {"name": "Admin", "description": "Administrative operations."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def plan_store() -> PlanStore:
    return get_store()


def _get_or_404(store: PlanStore, initiative_id: int) -> Initiative:
    init = store.get(initiative_id)
    if init is None:
        raise HTTPException(404, "Initiative not found")
    return init


def _producer_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (PlanValidationError, InitiativeParseError)):
        return HTTPException(400, str(exc))
    if isinstance(exc, ProducerBusyError):
        return HTTPException(409, str(exc))
    return HTTPException(502, str(exc))


# ---------------------------------------------------------------------------
# Routes: Plan
# ---------------------------------------------------------------------------


@app.get("/api/plan", response_model=PlanOut, tags=["Plan"],
         summary="Weekly allocation of all initiatives plus the backlog")
async def get_plan(store: PlanStore = Depends(plan_store)):
    return services.plan_response(store.plan())


# ---------------------------------------------------------------------------
# Routes: Initiatives (static paths before parameterized)
# ---------------------------------------------------------------------------


@app.get("/api/initiatives", response_model=InitiativeListResponse,
         tags=["Initiatives"], summary="Canonical initiative list in user order")
async def list_initiatives(store: PlanStore = Depends(plan_store)):
    return services.initiatives_response(store.snapshot())


@app.put("/api/initiatives", response_model=InitiativeListResponse,
         tags=["Initiatives"], summary="Replace the whole initiative list (normalised)")
async def replace_initiatives(body: InitiativeListReplace, store: PlanStore = Depends(plan_store)):
    try:
        items = store.replace_all(body.initiatives)
    except InitiativeParseError as exc:
        raise HTTPException(400, str(exc)) from exc
    return services.initiatives_response(items)


@app.post("/api/initiatives", response_model=Initiative, status_code=201,
          tags=["Initiatives"], summary="Append a new initiative")
async def create_initiative(body: InitiativeCreate, store: PlanStore = Depends(plan_store)):
    return store.append(body.model_dump(by_alias=True)).model_dump(by_alias=True)


@app.post("/api/initiatives/reorder", response_model=InitiativeListResponse,
          tags=["Initiatives"], summary="Move one initiative to another's position")
async def reorder_initiatives(body: ReorderRequest, store: PlanStore = Depends(plan_store)):
    return services.initiatives_response(store.reorder(body.moved_id, body.target_id))


@app.get("/api/initiatives/{initiative_id}", response_model=Initiative,
         tags=["Initiatives"], summary="Get one initiative")
async def get_initiative(initiative_id: int, store: PlanStore = Depends(plan_store)):
    return _get_or_404(store, initiative_id).model_dump(by_alias=True)


@app.put("/api/initiatives/{initiative_id}", response_model=Initiative,
         tags=["Initiatives"], summary="Update initiative fields (partial update, null fields ignored)")
async def update_initiative(initiative_id: int, body: InitiativeUpdate,
                            store: PlanStore = Depends(plan_store)):
    _get_or_404(store, initiative_id)
    return store.update(initiative_id, body.model_dump()).model_dump(by_alias=True)


@app.delete("/api/initiatives/{initiative_id}", tags=["Initiatives"], summary="Delete an initiative")
async def delete_initiative(initiative_id: int, store: PlanStore = Depends(plan_store)):
    if not store.remove(initiative_id):
        raise HTTPException(404, "Initiative not found")
    return {"ok": True}


@app.post("/api/initiatives/{initiative_id}/dependencies", response_model=Initiative,
          tags=["Initiatives"], summary="Add a task or team dependency tag")
async def add_dependency(initiative_id: int, body: DependencyChange,
                         store: PlanStore = Depends(plan_store)):
    _get_or_404(store, initiative_id)
    return store.add_dependency(initiative_id, body.kind, body.name).model_dump(by_alias=True)


@app.delete("/api/initiatives/{initiative_id}/dependencies", response_model=Initiative,
            tags=["Initiatives"], summary="Remove a task or team dependency tag")
async def remove_dependency(initiative_id: int, body: DependencyChange,
                            store: PlanStore = Depends(plan_store)):
    _get_or_404(store, initiative_id)
    return store.remove_dependency(initiative_id, body.kind, body.name).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Routes: Objectives
# ---------------------------------------------------------------------------


@app.get("/api/objectives", response_model=ObjectiveListResponse,
         tags=["Objectives"], summary="Ordered OKR list (highest priority first)")
async def list_objectives(store: PlanStore = Depends(plan_store)):
    return {"objectives": store.objectives()}


@app.post("/api/objectives", response_model=Objective, status_code=201,
          tags=["Objectives"], summary="Add an OKR at the end of the list")
async def create_objective(body: ObjectiveCreate, store: PlanStore = Depends(plan_store)):
    return store.add_objective(body.text)


@app.put("/api/objectives/{objective_id}", response_model=Objective,
         tags=["Objectives"], summary="Rename an OKR (initiatives keep their tag)")
async def update_objective(objective_id: int, body: ObjectiveUpdate,
                           store: PlanStore = Depends(plan_store)):
    obj = store.update_objective(objective_id, body.text)
    if obj is None:
        raise HTTPException(404, "Objective not found")
    return obj


@app.delete("/api/objectives/{objective_id}", tags=["Objectives"],
            summary="Delete an OKR and every initiative tagged with it")
async def delete_objective(objective_id: int, store: PlanStore = Depends(plan_store)):
    removed = store.remove_objective(objective_id)
    if removed is None:
        raise HTTPException(404, "Objective not found")
    return {"ok": True, "initiativesRemoved": len(removed)}


@app.post("/api/objectives/{objective_id}/move", response_model=ObjectiveListResponse,
          tags=["Objectives"], summary="Swap an OKR with its neighbour")
async def move_objective(objective_id: int, body: ObjectiveMove,
                         store: PlanStore = Depends(plan_store)):
    return {"objectives": store.move_objective(objective_id, body.direction)}


# ---------------------------------------------------------------------------
# Routes: Settings
# ---------------------------------------------------------------------------


@app.get("/api/constraints", response_model=PlanningConstraints, tags=["Settings"],
         summary="Total man-days, timeline weeks, and start date")
async def get_constraints(store: PlanStore = Depends(plan_store)):
    return store.constraints


@app.put("/api/constraints", response_model=PlanningConstraints, tags=["Settings"],
         summary="Update capacity constraints (partial update)")
async def update_constraints(body: ConstraintsUpdate, store: PlanStore = Depends(plan_store)):
    return store.update_constraints(body.model_dump())


@app.get("/api/context", response_model=PlanningContext, tags=["Settings"],
         summary="Organisation, team, goal, and additional context")
async def get_context(store: PlanStore = Depends(plan_store)):
    return store.context


@app.put("/api/context", response_model=PlanningContext, tags=["Settings"],
         summary="Update planning context (partial update)")
async def update_context(body: ContextUpdate, store: PlanStore = Depends(plan_store)):
    return store.update_context(body.model_dump())


# ---------------------------------------------------------------------------
# Routes: AI
# ---------------------------------------------------------------------------


@app.post("/ai/generate-roadmap", response_model=InitiativeListResponse, tags=["AI"],
          summary="Generate initiatives for the OKRs and replace the list")
async def generate_roadmap(body: GenerateRequest, store: PlanStore = Depends(plan_store)):
    try:
        items = await services.run_generate(
            store,
            okrs=body.okrs,
            context=body.context.model_dump() if body.context else None,
            constraints=body.constraints.model_dump() if body.constraints else None,
        )
    except (PlanValidationError, ProducerBusyError, LLMCallError) as exc:
        raise _producer_http_error(exc) from exc
    return services.initiatives_response(items)


@app.post("/ai/modify-roadmap", response_model=InitiativeListResponse, tags=["AI"],
          summary="Apply a free-text instruction to the roadmap and replace the list")
async def modify_roadmap(body: ModifyRequest, store: PlanStore = Depends(plan_store)):
    try:
        items = await services.run_modify(
            store,
            body.command,
            initiatives=body.initiatives,
            okrs=body.okrs,
            context=body.context.model_dump() if body.context else None,
            constraints=body.constraints.model_dump() if body.constraints else None,
        )
    except (PlanValidationError, InitiativeParseError, ProducerBusyError, LLMCallError) as exc:
        raise _producer_http_error(exc) from exc
    return services.initiatives_response(items)


# ---------------------------------------------------------------------------
# Routes: Stats
# ---------------------------------------------------------------------------


@app.get("/api/stats", response_model=StatsOut, tags=["Stats"],
         summary="Effort totals, backlog size, and per-week utilisation")
async def get_stats(store: PlanStore = Depends(plan_store)):
    return services.compute_stats(store)


# ---------------------------------------------------------------------------
# Routes: Reset
# ---------------------------------------------------------------------------


@app.delete("/api/reset", tags=["Admin"], summary="Delete all initiatives")
async def reset(store: PlanStore = Depends(plan_store)):
    store.reset()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("goalstack.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
