"""Roster commands: pure functions from a RootDocument to a CommandResult.

Every editing command checks out the target week, edits the owned copy and
commits it. Read-only weeks are rejected with the document unchanged.
"""

import uuid
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import ValidationError

from roster.documents.snapshot import FrozenWeekError, checkout, commit
from roster.documents.types import MAX_SQUAD_SIZE, Player, PlayerInput, PlayerRecord, PlayerUpdate, RootDocument


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a roster command.

    Attributes:
        document: Resulting document (the input document when rejected)
        applied: Whether the mutation happened
        reason: Why the command was rejected, if it was
    """

    document: RootDocument
    applied: bool
    reason: str | None = None


def _rejected(doc: RootDocument, reason: str, **context: Any) -> CommandResult:
    logger.bind(**context).info(f"Command rejected: {reason}")
    return CommandResult(document=doc, applied=False, reason=reason)


def _find_player(players: list[PlayerRecord], player_id: str) -> PlayerRecord | None:
    # Legacy documents may carry numeric ids; match on their string form too.
    return next((p for p in players if isinstance(p, dict) and str(p.get("id")) == str(player_id)), None)


def _clear_roles(record: dict[str, Any], player_id: str) -> None:
    if record.get("captain") == player_id:
        record["captain"] = None
    if record.get("viceCaptain") == player_id:
        record["viceCaptain"] = None


_SQUAD_FULL_MESSAGE = f"You can only have {MAX_SQUAD_SIZE} players in your team. Please remove a player first."


def _squad_is_full(players: list[PlayerRecord]) -> bool:
    return sum(1 for p in players if isinstance(p, dict) and p.get("have") is True) >= MAX_SQUAD_SIZE


def new_player_id() -> str:
    return uuid.uuid4().hex


def add_player(doc: RootDocument, data: PlayerInput | dict[str, Any], week_number: int | None = None) -> CommandResult:
    """Append a new player to a week; the id is assigned here."""
    try:
        player_input = data if isinstance(data, PlayerInput) else PlayerInput.model_validate(data)
    except ValidationError as e:
        return _rejected(doc, f"invalid player: {e.errors()[0]['msg']}")

    try:
        week = checkout(doc, week_number)
    except FrozenWeekError as e:
        return _rejected(doc, str(e), week=e.week_number)

    if player_input.have and _squad_is_full(week.record["players"]):
        return _rejected(doc, _SQUAD_FULL_MESSAGE)

    player = Player(id=new_player_id(), **player_input.model_dump()).model_dump()
    week.record["players"].append(player)
    logger.debug(f"Added player {player['id']} ({player['name']}) to week {week.week_number}")
    return CommandResult(document=commit(doc, week), applied=True)


def update_player(
    doc: RootDocument,
    player_id: str,
    changes: PlayerUpdate | dict[str, Any],
    week_number: int | None = None,
) -> CommandResult:
    """Merge `changes` into an existing player. Un-owning a player drops their roles."""
    try:
        update = changes if isinstance(changes, PlayerUpdate) else PlayerUpdate.model_validate(changes)
    except ValidationError as e:
        return _rejected(doc, f"invalid update: {e.errors()[0]['msg']}", player_id=player_id)

    try:
        week = checkout(doc, week_number)
    except FrozenWeekError as e:
        return _rejected(doc, str(e), week=e.week_number)

    players = week.record["players"]
    player = _find_player(players, player_id)
    if player is None:
        return _rejected(doc, f"player {player_id} not found", player_id=player_id)
    player_id = player["id"]

    merged = {**player, **update.model_dump(exclude_unset=True)}
    if merged.get("have") is True and player.get("have") is not True and _squad_is_full(players):
        return _rejected(doc, _SQUAD_FULL_MESSAGE, player_id=player_id)
    try:
        Player.model_validate(merged)
    except ValidationError as e:
        return _rejected(doc, f"invalid update: {e.errors()[0]['msg']}", player_id=player_id)

    players[players.index(player)] = merged
    if merged.get("have") is not True:
        _clear_roles(week.record, player_id)
    return CommandResult(document=commit(doc, week), applied=True)


def delete_player(doc: RootDocument, player_id: str, week_number: int | None = None) -> CommandResult:
    try:
        week = checkout(doc, week_number)
    except FrozenWeekError as e:
        return _rejected(doc, str(e), week=e.week_number)

    players = week.record["players"]
    player = _find_player(players, player_id)
    if player is None:
        return _rejected(doc, f"player {player_id} not found", player_id=player_id)

    _clear_roles(week.record, player["id"])
    week.record["players"] = [p for p in players if p is not player]
    return CommandResult(document=commit(doc, week), applied=True)


def toggle_have(doc: RootDocument, player_id: str, week_number: int | None = None) -> CommandResult:
    """Flip squad membership. A full squad (15 owned) rejects additions."""
    try:
        week = checkout(doc, week_number)
    except FrozenWeekError as e:
        return _rejected(doc, str(e), week=e.week_number)

    players = week.record["players"]
    player = _find_player(players, player_id)
    if player is None:
        return _rejected(doc, f"player {player_id} not found", player_id=player_id)
    player_id = player["id"]

    if player.get("have") is True:
        player["have"] = False
        _clear_roles(week.record, player_id)
    else:
        if _squad_is_full(players):
            return _rejected(doc, _SQUAD_FULL_MESSAGE, player_id=player_id)
        player["have"] = True
    return CommandResult(document=commit(doc, week), applied=True)


def _assign_role(doc: RootDocument, player_id: str, role: str, other_role: str, week_number: int | None) -> CommandResult:
    try:
        week = checkout(doc, week_number)
    except FrozenWeekError as e:
        return _rejected(doc, str(e), week=e.week_number)

    record = week.record
    player = _find_player(record["players"], player_id)
    if player is not None:
        player_id = player["id"]
    if record.get(role) == player_id:
        record[role] = None
        return CommandResult(document=commit(doc, week), applied=True)

    if player is None:
        return _rejected(doc, f"player {player_id} not found", player_id=player_id)
    if player.get("have") is not True:
        return _rejected(doc, f"player {player_id} is not in the squad", player_id=player_id, role=role)

    if record.get(other_role) == player_id:
        record[other_role] = None
    record[role] = player_id
    return CommandResult(document=commit(doc, week), applied=True)


def set_captain(doc: RootDocument, player_id: str, week_number: int | None = None) -> CommandResult:
    """Make a squad player captain. Re-setting the captain clears the role."""
    return _assign_role(doc, player_id, "captain", "viceCaptain", week_number)


def set_vice_captain(doc: RootDocument, player_id: str, week_number: int | None = None) -> CommandResult:
    """Make a squad player vice-captain. Taking it from the captain clears the captaincy."""
    return _assign_role(doc, player_id, "viceCaptain", "captain", week_number)


def filter_players(players: list[PlayerRecord], position: str = "all", owned_only: bool = False) -> list[PlayerRecord]:
    filtered = players
    if position != "all":
        filtered = [p for p in filtered if p.get("position") == position]
    if owned_only:
        filtered = [p for p in filtered if p.get("have") is True]
    return filtered


def calculate_total_cost(players: list[PlayerRecord]) -> float:
    return sum(p.get("price") or 0 for p in players if p.get("have") is True)
