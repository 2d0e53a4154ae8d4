"""Tests for the in-memory plan store, reordering, and objective management."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from goalstack.models import Initiative, Objective, PlanningConstraints
from goalstack.reorder import array_move, move_initiative, move_objective
from goalstack.store import PlanStore, ProducerBusyError


@pytest.fixture()
def store() -> PlanStore:
    s = PlanStore(
        objectives=["Grow revenue", "Reduce churn"],
        constraints=PlanningConstraints(man_days=10, timeline_weeks=2),
    )
    s.replace_all([
        {"id": 1, "title": "A", "effortManDays": 7, "week": 1, "okr": "Grow revenue"},
        {"id": 2, "title": "B", "effortManDays": 4, "week": 1, "okr": "Reduce churn"},
        {"id": 3, "title": "C", "effortManDays": 0, "week": 2, "okr": "Grow revenue"},
    ])
    return s


def _ids(items) -> list[int]:
    return [i.id for i in items]


# ---------------------------------------------------------------------------
# Reordering primitives
# ---------------------------------------------------------------------------


class TestReorder:
    def _items(self, *ids):
        return [Initiative(id=i, title=str(i)) for i in ids]

    def test_array_move_forward_and_back(self):
        assert array_move(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]
        assert array_move(["a", "b", "c", "d"], 3, 1) == ["a", "d", "b", "c"]

    def test_move_to_target_position(self):
        assert _ids(move_initiative(self._items(1, 2, 3, 4), 1, 3)) == [2, 3, 1, 4]
        assert _ids(move_initiative(self._items(1, 2, 3, 4), 4, 2)) == [1, 4, 2, 3]

    def test_same_id_is_noop(self):
        assert _ids(move_initiative(self._items(1, 2, 3), 2, 2)) == [1, 2, 3]

    @pytest.mark.parametrize("moved, target", [(9, 1), (1, 9), (1, None)])
    def test_unresolved_move_is_noop(self, moved, target):
        assert _ids(move_initiative(self._items(1, 2, 3), moved, target)) == [1, 2, 3]

    def test_original_list_untouched(self):
        items = self._items(1, 2, 3)
        move_initiative(items, 1, 3)
        assert _ids(items) == [1, 2, 3]

    def test_move_objective(self):
        objs = [Objective(id=i, text=t) for i, t in enumerate("xyz", start=1)]
        assert [o.text for o in move_objective(objs, 2, "up")] == ["y", "x", "z"]
        assert [o.text for o in move_objective(objs, 2, "down")] == ["x", "z", "y"]
        assert [o.text for o in move_objective(objs, 1, "up")] == ["x", "y", "z"]
        assert [o.text for o in move_objective(objs, 3, "down")] == ["x", "y", "z"]
        assert [o.text for o in move_objective(objs, 99, "up")] == ["x", "y", "z"]


# ---------------------------------------------------------------------------
# Initiatives
# ---------------------------------------------------------------------------


class TestInitiativeMutations:
    def test_replace_all_normalises(self, store):
        items = store.replace_all([{"title": "", "effortManDays": "2.5", "week": "x"}])
        assert len(items) == 1
        assert items[0].title == "Task 1"
        assert items[0].effort_man_days == 3
        assert items[0].week == 1
        assert items[0].id not in (1, 2, 3)

    def test_append_gets_fresh_id(self, store):
        init = store.append({"title": "D", "effortManDays": 1})
        assert init.id == 4
        assert _ids(store.snapshot()) == [1, 2, 3, 4]

    def test_append_defaults(self, store):
        init = store.append()
        assert init.title == "Task 4"
        assert init.okr == "Unassigned"

    def test_append_ignores_taken_id(self, store):
        init = store.append({"id": 2, "title": "dup"})
        assert init.id != 2
        assert len({i.id for i in store.snapshot()}) == 4

    def test_ids_never_reused_after_delete(self, store):
        store.remove(3)
        init = store.append({"title": "D"})
        assert init.id == 4
        store.remove(4)
        assert store.append({"title": "E"}).id == 5

    def test_update_merges_partial(self, store):
        updated = store.update(1, {"title": "A2", "week": None, "effort_man_days": 5.5})
        assert updated.title == "A2"
        assert updated.week == 1
        assert updated.effort_man_days == 6
        assert store.get(1) == updated

    def test_update_cannot_change_id(self, store):
        assert store.update(1, {"id": 99}).id == 1

    def test_update_dedupes_dependencies(self, store):
        updated = store.update(1, {"task_dependencies": ["B", "B", "C"]})
        assert updated.task_dependencies == ["B", "C"]

    def test_update_blank_title_and_okr_get_defaults(self, store):
        updated = store.update(2, {"title": "  ", "okr": ""})
        assert updated.title == "Task 2"
        assert updated.okr == "Unassigned"

    def test_update_unknown(self, store):
        assert store.update(42, {"title": "x"}) is None

    def test_remove(self, store):
        assert store.remove(2) is True
        assert store.remove(2) is False
        assert _ids(store.snapshot()) == [1, 3]

    def test_add_and_remove_dependency(self, store):
        store.add_dependency(1, "task", "Design")
        store.add_dependency(1, "task", "Design")
        init = store.add_dependency(1, "team", "Payments")
        assert init.task_dependencies == ["Design"]
        assert init.team_dependencies == ["Payments"]
        init = store.remove_dependency(1, "task", "Design")
        assert init.task_dependencies == []

    def test_blank_dependency_ignored(self, store):
        assert store.add_dependency(1, "task", "  ").task_dependencies == []

    def test_reorder_does_not_change_plan(self, store):
        before = store.plan()
        assert _ids(store.reorder(2, 1)) == [2, 1, 3]
        assert store.plan() == before


# ---------------------------------------------------------------------------
# Objectives
# ---------------------------------------------------------------------------


class TestObjectives:
    def test_defaults(self):
        s = PlanStore()
        assert s.objective_texts() == ["Increase paid conversion by 15%"]

    def test_add_objective(self, store):
        obj = store.add_objective()
        assert obj.text == "New OKR"
        assert store.objective_texts()[-1] == "New OKR"

    def test_remove_objective_cascades_exact_text(self, store):
        store.append({"title": "D", "okr": "grow revenue"})
        grow = store.objectives()[0]
        removed = store.remove_objective(grow.id)
        assert _ids(removed) == [1, 3]
        assert [i.title for i in store.snapshot()] == ["B", "D"]
        assert store.objective_texts() == ["Reduce churn"]

    def test_remove_unknown_objective(self, store):
        assert store.remove_objective(999) is None
        assert len(store.snapshot()) == 3

    def test_rename_does_not_retag(self, store):
        grow = store.objectives()[0]
        store.update_objective(grow.id, "Grow ARR")
        assert store.get(1).okr == "Grow revenue"
        assert store.objective_texts()[0] == "Grow ARR"

    def test_move_objective(self, store):
        churn = store.objectives()[1]
        store.move_objective(churn.id, "up")
        assert store.objective_texts() == ["Reduce churn", "Grow revenue"]


# ---------------------------------------------------------------------------
# Plan & producer guard
# ---------------------------------------------------------------------------


class TestPlan:
    def test_plan_matches_worked_example(self, store):
        plan = store.plan()
        assert plan.weekly_capacity == 5
        assert [(f.id, f.effort_man_days) for f in plan.by_week[1]] == [(1, 5)]
        assert [(f.id, f.effort_man_days) for f in plan.by_week[2]] == [(1, 2), (2, 3)]
        assert [(f.id, f.effort_man_days) for f in plan.backlog] == [(2, 4)]

    def test_plan_recomputed_after_edit(self, store):
        store.constraints = PlanningConstraints(man_days=20, timeline_weeks=2)
        plan = store.plan()
        assert plan.backlog == []
        assert plan.weekly_capacity == 10

    def test_week_count_clamped(self, store):
        store.constraints = PlanningConstraints(man_days=20, timeline_weeks=0)
        plan = store.plan()
        assert list(plan.by_week) == [1]
        assert plan.weekly_capacity == 20

    def test_plan_is_not_stored(self, store):
        plan = store.plan()
        plan.by_week[1].clear()
        assert store.plan().by_week[1]


class TestPlanningInputs:
    def test_update_constraints_partial(self, store):
        updated = store.update_constraints({"man_days": 20, "timeline_weeks": None, "bogus": 1})
        assert updated.man_days == 20
        assert updated.timeline_weeks == 2
        assert store.plan().weekly_capacity == 10

    def test_timeline_cap_enforced(self, store):
        with pytest.raises(ValidationError):
            store.update_constraints({"timeline_weeks": 5000})
        assert store.constraints.timeline_weeks == 2
        with pytest.raises(ValidationError):
            PlanningConstraints(timeline_weeks=27)
        assert store.update_constraints({"timeline_weeks": 26}).timeline_weeks == 26

    def test_update_context(self, store):
        ctx = store.update_context({"team": "Growth", "goal": None})
        assert ctx.team == "Growth"
        assert ctx.goal == ""
        assert store.context.team == "Growth"


class TestProducerGuard:
    def test_second_call_refused(self, store):
        with store.producer_call():
            assert store.producer_pending
            with pytest.raises(ProducerBusyError):
                with store.producer_call():
                    pass
        assert not store.producer_pending

    def test_flag_cleared_after_error(self, store):
        with pytest.raises(RuntimeError):
            with store.producer_call():
                raise RuntimeError("boom")
        assert not store.producer_pending
