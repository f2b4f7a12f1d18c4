"""Tests for roster commands (players, squad, captaincy)."""

from roster.documents.commands import (
    add_player,
    calculate_total_cost,
    delete_player,
    filter_players,
    set_captain,
    set_vice_captain,
    toggle_have,
    update_player,
)
from roster.documents.normalizer import normalize
from roster.documents.snapshot import create_new_week
from tests.factories import make_document, make_player


def _document(players=None, captain=None, vice_captain=None):
    return normalize(make_document(players, captain, vice_captain))


def _week(doc, number=None):
    return doc["weeks"][str(number or doc["currentWeek"])]


def test_add_player_assigns_id_and_recomputes():
    result = add_player(_document(), {"name": "Palmer", "position": "midfield", "team": "CHE", "price": 10.5, "have": True})

    assert result.applied is True
    players = _week(result.document)["players"]
    assert len(players) == 1
    assert players[0]["id"]
    assert players[0]["name"] == "Palmer"
    assert _week(result.document)["totalTeamCost"] == 10.5
    assert _week(result.document)["teamMembers"][0]["playerId"] == players[0]["id"]


def test_add_player_rejects_invalid_input():
    doc = _document()

    result = add_player(doc, {"name": "", "position": "midfield", "price": 5})

    assert result.applied is False
    assert result.document is doc
    assert "invalid player" in result.reason


def test_add_player_rejected_on_read_only_week():
    doc = create_new_week(_document())

    result = add_player(doc, {"name": "Late", "position": "forward", "price": 6}, week_number=1)

    assert result.applied is False
    assert "read-only" in result.reason
    assert result.document is doc


def test_update_player_merges_changes():
    doc = _document([make_player("a", price=5.0, notes="old")])

    result = update_player(doc, "a", {"price": 5.5, "notes": "rising"})

    player = _week(result.document)["players"][0]
    assert result.applied is True
    assert player["price"] == 5.5
    assert player["notes"] == "rising"
    assert player["name"] == "Player a"


def test_update_player_unknown_id():
    result = update_player(_document(), "missing", {"price": 5.5})

    assert result.applied is False
    assert "not found" in result.reason


def test_update_player_clears_roles_when_unowned():
    doc = _document([make_player("a", have=True)], captain="a")

    result = update_player(doc, "a", {"have": False})

    assert _week(result.document)["captain"] is None


def test_delete_player_clears_roles():
    doc = _document([make_player("a", have=True), make_player("b", have=True)], captain="a", vice_captain="b")

    result = delete_player(doc, "b")

    week = _week(result.document)
    assert [p["id"] for p in week["players"]] == ["a"]
    assert week["captain"] == "a"
    assert week["viceCaptain"] is None
    assert week["teamStats"]["playerCount"] == 1


def test_toggle_have_flips_membership():
    doc = _document([make_player("a", price=7.0)])

    owned = toggle_have(doc, "a")
    unowned = toggle_have(owned.document, "a")

    assert _week(owned.document)["totalTeamCost"] == 7.0
    assert _week(unowned.document)["players"][0]["have"] is False
    assert _week(unowned.document)["teamMembers"] == []


def test_toggle_have_enforces_squad_limit():
    players = [make_player(str(i), have=True) for i in range(15)] + [make_player("extra")]
    doc = _document(players)

    result = toggle_have(doc, "extra")

    assert result.applied is False
    assert result.reason == "You can only have 15 players in your team. Please remove a player first."


def test_update_player_cannot_exceed_squad_limit():
    players = [make_player(str(i), have=True) for i in range(15)] + [make_player("extra")]
    doc = _document(players)

    result = update_player(doc, "extra", {"have": True})

    assert result.applied is False
    assert result.document is doc
    assert _week(doc)["teamStats"]["playerCount"] == 15


def test_update_player_keeps_owned_player_when_squad_is_full():
    doc = _document([make_player(str(i), have=True) for i in range(15)])

    result = update_player(doc, "0", {"have": True, "price": 6.0})

    assert result.applied is True


def test_add_owned_player_to_full_squad_is_rejected():
    doc = _document([make_player(str(i), have=True) for i in range(15)])

    result = add_player(doc, {"name": "Sixteenth", "position": "forward", "price": 4.5, "have": True})

    assert result.applied is False
    assert len(_week(result.document)["players"]) == 15


def test_unowning_captain_clears_captaincy():
    doc = _document([make_player("a", have=True)], captain="a")

    result = toggle_have(doc, "a")

    assert _week(result.document)["captain"] is None


def test_set_captain_requires_owned_player():
    doc = _document([make_player("a", have=False)])

    result = set_captain(doc, "a")

    assert result.applied is False
    assert _week(result.document)["captain"] is None


def test_set_captain_twice_clears_it():
    doc = _document([make_player("a", have=True)])

    first = set_captain(doc, "a")
    second = set_captain(first.document, "a")

    assert _week(first.document)["captain"] == "a"
    assert _week(second.document)["captain"] is None


def test_vice_captain_taken_from_captain_clears_captaincy():
    doc = _document([make_player("a", have=True)], captain="a")

    result = set_vice_captain(doc, "a")

    week = _week(result.document)
    assert week["viceCaptain"] == "a"
    assert week["captain"] is None


def test_captain_and_vice_captain_never_coincide():
    doc = _document([make_player("a", have=True), make_player("b", have=True)], captain="a", vice_captain="b")

    result = set_captain(doc, "b")

    week = _week(result.document)
    assert week["captain"] == "b"
    assert week["viceCaptain"] is None


def test_numeric_legacy_ids_match_string_input():
    doc = _document([make_player(1700000000000, have=True)])

    result = set_captain(doc, "1700000000000")

    assert _week(result.document)["captain"] == 1700000000000


def test_filter_players_and_total_cost():
    players = [
        make_player("a", position="forward", price=8.0, have=True),
        make_player("b", position="forward", price=6.0),
        make_player("c", position="defence", price=4.5, have=True),
    ]

    assert [p["id"] for p in filter_players(players, "forward")] == ["a", "b"]
    assert [p["id"] for p in filter_players(players, owned_only=True)] == ["a", "c"]
    assert [p["id"] for p in filter_players(players, "forward", owned_only=True)] == ["a"]
    assert calculate_total_cost(players) == 12.5
