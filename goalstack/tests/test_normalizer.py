"""Tests for normalising externally supplied initiative payloads."""
from __future__ import annotations

import itertools

import pytest
from pydantic import ValidationError

from goalstack.models import Initiative
from goalstack.normalizer import (
    InitiativeParseError,
    normalize_effort,
    normalize_initiative,
    normalize_initiatives,
    normalize_week,
    round_half_up,
)


@pytest.fixture()
def id_factory():
    counter = itertools.count(1000)
    return lambda: next(counter)


class TestFieldDefaults:
    def test_empty_object_gets_all_defaults(self, id_factory):
        init = normalize_initiative({}, 0, id_factory)
        assert init.id == 1000
        assert init.title == "Task 1"
        assert init.effort_man_days == 0
        assert init.week == 1
        assert init.okr == "Unassigned"
        assert init.task_dependencies == []
        assert init.team_dependencies == []

    def test_placeholder_title_uses_position(self, id_factory):
        items = normalize_initiatives([{"title": "A"}, {"title": "   "}, {}], id_factory)
        assert [i.title for i in items] == ["A", "Task 2", "Task 3"]

    def test_valid_fields_preserved(self, id_factory):
        init = normalize_initiative({
            "id": 7, "title": "Checkout revamp", "effortManDays": 8, "week": 3,
            "okr": "Increase paid conversion by 15%",
            "taskDependencies": ["Design"], "teamDependencies": ["Payments"],
        }, 0, id_factory)
        assert init == Initiative(
            id=7, title="Checkout revamp", effort_man_days=8, week=3,
            okr="Increase paid conversion by 15%",
            task_dependencies=["Design"], team_dependencies=["Payments"],
        )

    def test_snake_case_keys_accepted(self, id_factory):
        init = normalize_initiative(
            {"id": 1, "effort_man_days": 4, "task_dependencies": ["X"]}, 0, id_factory,
        )
        assert init.effort_man_days == 4
        assert init.task_dependencies == ["X"]


class TestIds:
    @pytest.mark.parametrize("raw_id", [None, "12", float("nan"), float("inf"), 1.5, True])
    def test_invalid_ids_are_synthesised(self, id_factory, raw_id):
        assert normalize_initiative({"id": raw_id}, 0, id_factory).id == 1000

    def test_integral_float_id_kept(self, id_factory):
        assert normalize_initiative({"id": 4.0}, 0, id_factory).id == 4

    def test_duplicate_ids_in_one_payload_get_fresh_ids(self, id_factory):
        items = normalize_initiatives([{"id": 5}, {"id": 5}, {"id": 6}], id_factory)
        assert [i.id for i in items] == [5, 1000, 6]

    def test_synthesised_ids_are_unique(self, id_factory):
        items = normalize_initiatives([{}, {}, {}], id_factory)
        assert len({i.id for i in items}) == 3


class TestEffortAndWeek:
    @pytest.mark.parametrize("raw, expected", [
        (5, 5), (4.4, 4), (4.5, 5), (2.5, 3), ("7", 7), (" 3.6 ", 4),
        ("lots", 0), (None, 0), ([], 0), (float("nan"), 0), (True, 0),
    ])
    def test_effort(self, raw, expected):
        assert normalize_effort(raw) == expected

    def test_negative_effort_clamped(self):
        assert normalize_effort(-4) == 0

    @pytest.mark.parametrize("raw, expected", [
        (3, 3), ("2", 2), (0, 1), (None, 1), ("soon", 1), (-2, 1), (2.6, 3),
    ])
    def test_week(self, raw, expected):
        assert normalize_week(raw) == expected

    def test_round_half_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(1.5) == 2
        assert round_half_up(2.49) == 2


class TestOkrAndDependencies:
    def test_missing_okr(self, id_factory):
        assert normalize_initiative({"okr": ""}, 0, id_factory).okr == "Unassigned"

    def test_non_string_okr_stringified(self, id_factory):
        assert normalize_initiative({"okr": 42}, 0, id_factory).okr == "42"

    def test_non_list_dependencies_become_empty(self, id_factory):
        init = normalize_initiative(
            {"taskDependencies": "Design", "teamDependencies": {"a": 1}}, 0, id_factory,
        )
        assert init.task_dependencies == []
        assert init.team_dependencies == []

    def test_dependencies_deduplicated_case_sensitive(self, id_factory):
        init = normalize_initiative(
            {"taskDependencies": ["Design", "design", "Design", 3]}, 0, id_factory,
        )
        assert init.task_dependencies == ["Design", "design", "3"]


class TestMalformedPayloads:
    def test_non_object_item(self, id_factory):
        with pytest.raises(InitiativeParseError) as exc_info:
            normalize_initiatives([{"title": "ok"}, "oops"], id_factory)
        assert exc_info.value.index == 1

    def test_non_list_payload(self, id_factory):
        with pytest.raises(InitiativeParseError):
            normalize_initiatives({"initiatives": []}, id_factory)

    def test_none_payload_is_empty(self, id_factory):
        assert normalize_initiatives(None, id_factory) == []


class TestModelInvariants:
    def test_negative_effort_rejected(self):
        with pytest.raises(ValidationError):
            Initiative(id=1, title="x", effort_man_days=-1)

    def test_week_zero_rejected(self):
        with pytest.raises(ValidationError):
            Initiative(id=1, title="x", week=0)

    def test_wire_names(self):
        init = Initiative(id=1, title="x", effort_man_days=3, task_dependencies=["a", "a"])
        dumped = init.model_dump(by_alias=True)
        assert dumped["effortManDays"] == 3
        assert dumped["taskDependencies"] == ["a"]
        assert Initiative.model_validate(dumped) == init
