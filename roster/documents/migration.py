"""v1 → v2 document migration.

v1 stored a single roster: {"players": [...], "captain": ..., "viceCaptain": ...}.
v2 stores versioned weeks. Migration never touches the legacy payload: the
legacy key keeps its bytes, a backup copy is written next to it, and the
migrated document lands under the primary key.
"""

import copy
import json
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from roster.documents.normalizer import normalize, utc_timestamp
from roster.documents.types import CURRENT_VERSION, DEFAULT_WEEK_NUMBER, RootDocument

LEGACY_STORAGE_KEY = "fpl-team-data"
PRIMARY_STORAGE_KEY = "fpl-team-data-v2"
BACKUP_STORAGE_KEY = "fpl-team-data-v1-backup"


def is_legacy_document(raw: Any) -> bool:
    """Legacy documents carry a bare players list and no weeks or version."""
    return (
        isinstance(raw, dict)
        and isinstance(raw.get("players"), list)
        and "weeks" not in raw
        and "version" not in raw
    )


def _price(player: Any) -> float:
    if not isinstance(player, dict):
        return 0
    price = player.get("price")
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return price
    try:
        return float(price)
    except (TypeError, ValueError):
        return 0


def migrate_v1_to_v2(legacy_doc: Any) -> RootDocument:
    """Upgrade a legacy single-roster document to the versioned model.

    Already-versioned (or unrecognisable) input short-circuits to normalize,
    so migrate_v1_to_v2(migrate_v1_to_v2(x)) == migrate_v1_to_v2(x).
    The argument is never mutated.

    Args:
        legacy_doc: Document as read from storage

    Returns:
        Versioned RootDocument with a single week 1
    """
    if not is_legacy_document(legacy_doc):
        return normalize(legacy_doc)

    players = copy.deepcopy(legacy_doc["players"])
    owned = [p for p in players if isinstance(p, dict) and p.get("have") is True]
    total_value = sum(_price(p) for p in owned)
    team_members = [{"playerId": p.get("id"), "addedAt": DEFAULT_WEEK_NUMBER} for p in owned]

    week = {
        "players": players,
        "captain": copy.deepcopy(legacy_doc.get("captain")),
        "viceCaptain": copy.deepcopy(legacy_doc.get("viceCaptain")),
        "teamMembers": team_members,
        "teamStats": {
            "totalValue": total_value,
            "playerCount": len(team_members),
            "updatedDate": utc_timestamp(),
        },
        "totalTeamCost": total_value,
        "isReadOnly": False,
    }
    logger.info(f"Migrated legacy document: {len(players)} players, {len(team_members)} owned")
    return normalize(
        {
            "version": CURRENT_VERSION,
            "currentWeek": DEFAULT_WEEK_NUMBER,
            "weeks": {str(DEFAULT_WEEK_NUMBER): week},
        }
    )


@dataclass(frozen=True)
class MigrationReport:
    """What migrate_storage_if_needed did.

    Attributes:
        migrated: True when a v2 document was written
        backup_key: Key holding the byte-for-byte legacy copy, if one was written
        reason: Short machine-readable explanation
    """

    migrated: bool
    backup_key: str | None
    reason: str


def migrate_storage_if_needed(
    store: MutableMapping[str, str],
    legacy_key: str = LEGACY_STORAGE_KEY,
    primary_key: str = PRIMARY_STORAGE_KEY,
    backup_key: str = BACKUP_STORAGE_KEY,
) -> MigrationReport:
    """Migrate legacy data found in the raw local store.

    Runs once at startup. When versioned data already exists this is a no-op:
    no backup is written and nothing is overwritten, even if legacy data is
    also present. The legacy key is never deleted or altered.

    Args:
        store: Raw string store (the durable local store)
        legacy_key: Where v1 data lives
        primary_key: Where the v2 document lives
        backup_key: Where the legacy bytes are copied

    Returns:
        MigrationReport describing the outcome
    """
    if store.get(primary_key):
        return MigrationReport(migrated=False, backup_key=None, reason="versioned-data-present")

    legacy_raw = store.get(legacy_key)
    if not legacy_raw:
        return MigrationReport(migrated=False, backup_key=None, reason="no-legacy-data")

    try:
        legacy_doc = json.loads(legacy_raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.bind(legacy_key=legacy_key, error=str(e)).warning("Legacy payload is not valid JSON; leaving it untouched")
        return MigrationReport(migrated=False, backup_key=None, reason="legacy-unparsable")

    if not is_legacy_document(legacy_doc):
        logger.bind(legacy_key=legacy_key).debug("Payload under legacy key is not a v1 document; skipping migration")
        return MigrationReport(migrated=False, backup_key=None, reason="not-legacy-shape")

    store[backup_key] = legacy_raw
    store[primary_key] = json.dumps(migrate_v1_to_v2(legacy_doc))
    logger.bind(legacy_key=legacy_key, primary_key=primary_key, backup_key=backup_key).info("Legacy roster migrated to v2")
    return MigrationReport(migrated=True, backup_key=backup_key, reason="migrated")
