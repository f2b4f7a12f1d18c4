"""Canonical shape enforcement for root documents.

Anything read back from a backend goes through `normalize` before the rest of
the system sees it. Malformed payloads are recovered locally by substituting
the default document; nothing here raises.
"""

import copy
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from roster.documents.types import CURRENT_VERSION, DEFAULT_WEEK_NUMBER, RootDocument, WeekRecord


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp used for teamStats.updatedDate."""
    return datetime.now(timezone.utc).isoformat()


def zeroed_team_stats() -> dict[str, Any]:
    return {"totalValue": 0, "playerCount": 0, "updatedDate": utc_timestamp()}


def default_week_record() -> WeekRecord:
    """An empty, editable week."""
    return {
        "players": [],
        "captain": None,
        "viceCaptain": None,
        "teamMembers": [],
        "teamStats": zeroed_team_stats(),
        "totalTeamCost": 0,
        "isReadOnly": False,
    }


def default_root_document() -> RootDocument:
    """The document materialized on first access: week 1, no players."""
    return {
        "version": CURRENT_VERSION,
        "currentWeek": DEFAULT_WEEK_NUMBER,
        "weeks": {str(DEFAULT_WEEK_NUMBER): default_week_record()},
    }


def coerce_week_number(value: Any) -> int | None:
    """Return value as a positive int, or None when it is not one.

    Accepts ints, integral floats and digit strings ("3"); rejects bools.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            number = int(stripped)
            return number if number > 0 else None
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_team_members(members: Any) -> list[dict[str, Any]]:
    if not isinstance(members, list):
        return []
    seen: set[Any] = set()
    normalized = []
    for member in members:
        if not isinstance(member, dict) or "playerId" not in member:
            continue
        player_id = member["playerId"]
        if player_id in seen:
            continue
        seen.add(player_id)
        normalized.append({"playerId": player_id, "addedAt": member.get("addedAt")})
    return normalized


def _normalize_team_stats(stats: Any, member_count: int) -> dict[str, Any]:
    if not isinstance(stats, dict):
        return zeroed_team_stats()
    normalized = copy.deepcopy(stats)
    if not _is_number(normalized.get("totalValue")):
        normalized["totalValue"] = 0
    if not isinstance(normalized.get("playerCount"), int) or isinstance(normalized.get("playerCount"), bool):
        normalized["playerCount"] = member_count
    if not isinstance(normalized.get("updatedDate"), str):
        normalized["updatedDate"] = utc_timestamp()
    return normalized


def normalize_week(payload: Any) -> WeekRecord:
    """Normalize a single week record. Unknown keys are carried over."""
    base = copy.deepcopy(payload) if isinstance(payload, dict) else {}

    base["players"] = base["players"] if isinstance(base.get("players"), list) else []
    base["captain"] = base.get("captain")
    base["viceCaptain"] = base.get("viceCaptain")
    base["teamMembers"] = _normalize_team_members(base.get("teamMembers"))
    base["teamStats"] = _normalize_team_stats(base.get("teamStats"), len(base["teamMembers"]))
    if not _is_number(base.get("totalTeamCost")):
        base["totalTeamCost"] = base["teamStats"]["totalValue"]
    base["isReadOnly"] = bool(base.get("isReadOnly"))
    return base


def _normalize_weeks(weeks: Any) -> dict[str, WeekRecord]:
    if not isinstance(weeks, dict):
        return {}
    normalized: dict[str, WeekRecord] = {}
    for key, value in weeks.items():
        week_number = coerce_week_number(key)
        if week_number is None:
            logger.debug(f"Dropping week with invalid key: {key!r}")
            continue
        normalized[str(week_number)] = normalize_week(value)
    return normalized


def normalize(raw: Any) -> RootDocument:
    """Coerce any loaded payload into a canonical RootDocument.

    Pure and idempotent: normalize(normalize(x)) == normalize(x), and `raw`
    is never mutated.

    Args:
        raw: Whatever a backend returned (None, a dict, a legacy shape, ...)

    Returns:
        A RootDocument satisfying the load invariants
    """
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning(f"Root payload is not an object (got {type(raw).__name__}); using default document")
        return default_root_document()

    weeks = _normalize_weeks(raw.get("weeks"))
    if not weeks:
        logger.debug("Root payload has no usable weeks; using default document")
        return default_root_document()

    extras = {key: copy.deepcopy(value) for key, value in raw.items() if key not in ("version", "currentWeek", "weeks")}

    version = raw.get("version")
    if not isinstance(version, str) or not version:
        version = CURRENT_VERSION

    current_week = coerce_week_number(raw.get("currentWeek")) or DEFAULT_WEEK_NUMBER
    if str(current_week) not in weeks:
        current_week = max(int(key) for key in weeks)

    # Weeks before the current one are history; the current week stays editable.
    for key, week in weeks.items():
        number = int(key)
        if number < current_week:
            week["isReadOnly"] = True
        elif number == current_week:
            week["isReadOnly"] = False

    return {**extras, "version": version, "currentWeek": current_week, "weeks": weeks}
