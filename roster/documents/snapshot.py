"""Week snapshot engine.

Derived fields (teamMembers, teamStats, totalTeamCost) are recomputed from a
week's players on every mutation. Advancing the week freezes the current week
and clones it forward.

Edits go through checkout/commit: `checkout` hands out an owned deep copy of
an editable week and `commit` writes that copy into a new document. Frozen
weeks have no checkout path, so history cannot be edited by construction.
"""

import copy
from dataclasses import dataclass
from typing import Any

from loguru import logger

from roster.documents.normalizer import utc_timestamp
from roster.documents.types import RootDocument, WeekRecord


class FrozenWeekError(RuntimeError):
    """Raised when an edit targets a read-only (or missing) week.

    Attributes:
        week_number: The week the edit targeted
    """

    def __init__(self, week_number: int, message: str | None = None):
        self.week_number = week_number
        super().__init__(message or f"Week {week_number} is read-only")


def _week_key(week_number: int | str) -> str:
    return str(int(week_number))


def _price(player: dict[str, Any]) -> float:
    price = player.get("price")
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return price
    try:
        return float(price)
    except (TypeError, ValueError):
        return 0


def compute_derived_fields(week: WeekRecord, week_number: int) -> WeekRecord:
    """Return a copy of `week` with derived fields recomputed from its players.

    Members already present keep their addedAt; new members get the week number.
    """
    record = copy.deepcopy(week)
    players = record.get("players") if isinstance(record.get("players"), list) else []
    record["players"] = players

    previous_added_at = {
        member.get("playerId"): member.get("addedAt")
        for member in record.get("teamMembers") or []
        if isinstance(member, dict)
    }
    owned = [p for p in players if isinstance(p, dict) and p.get("have") is True]
    total_value = sum(_price(p) for p in owned)

    record["teamMembers"] = [
        {"playerId": p.get("id"), "addedAt": previous_added_at.get(p.get("id"), week_number)}
        for p in owned
    ]
    record["teamStats"] = {
        "totalValue": total_value,
        "playerCount": len(owned),
        "updatedDate": utc_timestamp(),
    }
    record["totalTeamCost"] = total_value
    return record


def ensure_derived_fields(doc: RootDocument, week_number: int | str) -> RootDocument:
    """Recompute derived fields for one week; every other week is untouched.

    Args:
        doc: Root document (not mutated)
        week_number: Week to recompute

    Returns:
        New root document
    """
    key = _week_key(week_number)
    weeks = doc.get("weeks") or {}
    if key not in weeks:
        logger.debug(f"ensure_derived_fields: week {key} does not exist, nothing to recompute")
        return copy.deepcopy(doc)

    result = copy.deepcopy(doc)
    result["weeks"][key] = compute_derived_fields(weeks[key], int(key))
    return result


def create_new_week(doc: RootDocument) -> RootDocument:
    """Freeze the current week and continue in a clone of it.

    Steps: recompute the current week, replace it with a read-only clone,
    clone the pre-freeze snapshot into currentWeek + 1 (editable), recompute
    that week, then advance currentWeek.

    Args:
        doc: Root document (not mutated)

    Returns:
        New root document whose currentWeek is one higher

    Raises:
        FrozenWeekError: If week currentWeek + 1 already exists and is read-only
    """
    current = int(doc["currentWeek"])
    recomputed = ensure_derived_fields(doc, current)
    snapshot = recomputed["weeks"][_week_key(current)]

    frozen = copy.deepcopy(snapshot)
    frozen["isReadOnly"] = True
    recomputed["weeks"][_week_key(current)] = frozen

    next_number = current + 1
    existing = recomputed["weeks"].get(_week_key(next_number))
    if isinstance(existing, dict) and existing.get("isReadOnly") is True:
        raise FrozenWeekError(next_number, f"Week {next_number} is read-only and cannot be replaced")
    if existing is not None:
        logger.warning(f"Week {next_number} already exists and will be replaced by a clone of week {current}")

    successor = copy.deepcopy(snapshot)
    successor["isReadOnly"] = False
    recomputed["weeks"][_week_key(next_number)] = successor
    recomputed = ensure_derived_fields(recomputed, next_number)
    recomputed["currentWeek"] = next_number

    logger.info(f"Created week {next_number}; week {current} is now read-only")
    return recomputed


@dataclass
class WeekCheckout:
    """An owned, mutable copy of one editable week.

    Attributes:
        week_number: Week the copy was taken from
        record: Deep copy of the week record; mutate freely
    """

    week_number: int
    record: WeekRecord


def is_week_read_only(doc: RootDocument, week_number: int | str) -> bool:
    week = (doc.get("weeks") or {}).get(_week_key(week_number))
    return week is None or bool(week.get("isReadOnly"))


def checkout(doc: RootDocument, week_number: int | str | None = None) -> WeekCheckout:
    """Take an owned copy of an editable week (the current week by default).

    Raises:
        FrozenWeekError: If the week is read-only or does not exist
    """
    number = int(week_number if week_number is not None else doc["currentWeek"])
    week = (doc.get("weeks") or {}).get(_week_key(number))
    if week is None:
        raise FrozenWeekError(number, f"Week {number} does not exist")
    if week.get("isReadOnly"):
        raise FrozenWeekError(number)
    return WeekCheckout(week_number=number, record=copy.deepcopy(week))


def commit(doc: RootDocument, week_checkout: WeekCheckout) -> RootDocument:
    """Write a checked-out week back into a new document.

    The record is copied again on the way in, so the caller's checkout never
    aliases stored state. Derived fields are recomputed.

    Raises:
        FrozenWeekError: If the target week became read-only meanwhile
    """
    number = week_checkout.week_number
    if is_week_read_only(doc, number):
        raise FrozenWeekError(number)

    result = copy.deepcopy(doc)
    record = copy.deepcopy(week_checkout.record)
    record["isReadOnly"] = False
    result["weeks"][_week_key(number)] = compute_derived_fields(record, number)
    return result


@dataclass(frozen=True)
class WeekView:
    """Read-only view of a week used for navigation."""

    week_number: int
    record: WeekRecord
    read_only: bool
    is_current: bool


def week_numbers(doc: RootDocument) -> list[int]:
    return sorted(int(key) for key in (doc.get("weeks") or {}))


def get_week_view(doc: RootDocument, week_number: int | str) -> WeekView | None:
    """Go to week N without changing which week is current."""
    key = _week_key(week_number)
    week = (doc.get("weeks") or {}).get(key)
    if week is None:
        return None
    return WeekView(
        week_number=int(key),
        record=copy.deepcopy(week),
        read_only=bool(week.get("isReadOnly")),
        is_current=int(key) == int(doc["currentWeek"]),
    )


def next_week_view(doc: RootDocument, from_week: int) -> WeekView | None:
    later = [n for n in week_numbers(doc) if n > from_week]
    return get_week_view(doc, later[0]) if later else None


def previous_week_view(doc: RootDocument, from_week: int) -> WeekView | None:
    earlier = [n for n in week_numbers(doc) if n < from_week]
    return get_week_view(doc, earlier[-1]) if earlier else None
