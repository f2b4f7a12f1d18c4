"""Tests for the week snapshot engine."""

import copy

import pytest

from roster.documents.normalizer import normalize
from roster.documents.snapshot import (
    FrozenWeekError,
    checkout,
    commit,
    create_new_week,
    ensure_derived_fields,
    get_week_view,
    next_week_view,
    previous_week_view,
)
from tests.factories import make_document, make_player, make_week


def _squad_document():
    players = [
        make_player("a", price=6.0, have=True),
        make_player("b", price=4.5, have=True),
        make_player("c", price=9.0, have=False),
    ]
    return normalize(make_document(players, captain="a", vice_captain="b"))


def test_ensure_derived_fields_recomputes_one_week():
    doc = normalize({"currentWeek": 2, "weeks": {"1": make_week(), "2": make_week([make_player("x", price=7.0, have=True)])}})
    doc["weeks"]["2"]["totalTeamCost"] = 999
    snapshot = copy.deepcopy(doc)

    result = ensure_derived_fields(doc, 2)

    assert result["weeks"]["2"]["totalTeamCost"] == 7.0
    assert result["weeks"]["2"]["teamStats"]["playerCount"] == 1
    assert result["weeks"]["1"] == doc["weeks"]["1"]
    assert doc == snapshot


def test_ensure_derived_fields_preserves_existing_added_at():
    week = make_week([make_player("a", have=True), make_player("b", have=True)], added_at=1)
    week["teamMembers"] = [{"playerId": "a", "addedAt": 1}]
    doc = normalize({"currentWeek": 3, "weeks": {"3": week}})

    result = ensure_derived_fields(doc, 3)

    assert result["weeks"]["3"]["teamMembers"] == [{"playerId": "a", "addedAt": 1}, {"playerId": "b", "addedAt": 3}]


def test_create_new_week_freezes_and_clones():
    doc = _squad_document()

    result = create_new_week(doc)

    assert result["currentWeek"] == 2
    assert result["weeks"]["1"]["isReadOnly"] is True
    assert result["weeks"]["2"]["isReadOnly"] is False
    assert result["weeks"]["2"]["players"] == result["weeks"]["1"]["players"]
    assert result["weeks"]["2"]["captain"] == "a"
    assert result["weeks"]["2"]["viceCaptain"] == "b"
    assert result["weeks"]["2"]["totalTeamCost"] == 10.5
    assert doc["currentWeek"] == 1


def test_create_new_week_copies_are_independent():
    result = create_new_week(_squad_document())

    result["weeks"]["2"]["players"][0]["name"] = "Edited"

    assert result["weeks"]["1"]["players"][0]["name"] == "Player a"


def test_create_new_week_twice():
    result = create_new_week(create_new_week(_squad_document()))

    assert result["currentWeek"] == 3
    assert [result["weeks"][k]["isReadOnly"] for k in ("1", "2", "3")] == [True, True, False]


def test_created_week_survives_normalization():
    result = create_new_week(_squad_document())

    assert normalize(result) == result


def test_checkout_returns_owned_copy():
    doc = _squad_document()
    week = checkout(doc)

    week.record["players"].append(make_player("z"))

    assert len(doc["weeks"]["1"]["players"]) == 3
    assert week.week_number == 1


def test_checkout_rejects_read_only_week():
    doc = create_new_week(_squad_document())

    with pytest.raises(FrozenWeekError) as exc_info:
        checkout(doc, 1)

    assert exc_info.value.week_number == 1


def test_checkout_rejects_missing_week():
    with pytest.raises(FrozenWeekError):
        checkout(_squad_document(), 7)


def test_commit_recomputes_derived_fields():
    doc = _squad_document()
    week = checkout(doc)
    week.record["players"][2]["have"] = True

    result = commit(doc, week)

    assert result["weeks"]["1"]["totalTeamCost"] == 19.5
    assert result["weeks"]["1"]["teamStats"]["playerCount"] == 3
    assert doc["weeks"]["1"]["totalTeamCost"] == 10.5


def test_commit_refuses_week_frozen_after_checkout():
    doc = _squad_document()
    week = checkout(doc)
    advanced = create_new_week(doc)

    with pytest.raises(FrozenWeekError):
        commit(advanced, week)


def test_week_views_never_change_current_week():
    doc = create_new_week(create_new_week(_squad_document()))

    view = get_week_view(doc, 1)

    assert view is not None
    assert view.read_only is True
    assert view.is_current is False
    assert doc["currentWeek"] == 3
    assert get_week_view(doc, 42) is None


def test_next_and_previous_week_views():
    doc = create_new_week(create_new_week(_squad_document()))

    assert next_week_view(doc, 1).week_number == 2
    assert next_week_view(doc, 3) is None
    assert previous_week_view(doc, 3).week_number == 2
    assert previous_week_view(doc, 1) is None


def test_create_new_week_refuses_to_replace_a_frozen_successor():
    weeks = {"1": make_week([make_player("a", have=True)]), "2": make_week([make_player("b", have=True)]), "3": make_week()}
    weeks["2"]["isReadOnly"] = True
    doc = normalize({"currentWeek": 1, "weeks": weeks})
    frozen_week = copy.deepcopy(doc["weeks"]["2"])

    with pytest.raises(FrozenWeekError) as exc_info:
        create_new_week(doc)

    assert exc_info.value.week_number == 2
    assert doc["weeks"]["2"] == frozen_week
    assert doc["weeks"]["1"]["isReadOnly"] is False


def test_create_new_week_replaces_an_editable_successor():
    doc = normalize({"currentWeek": 1, "weeks": {"1": make_week([make_player("a", have=True)]), "2": make_week()}})

    result = create_new_week(doc)

    assert [p["id"] for p in result["weeks"]["2"]["players"]] == ["a"]
