"""JSON import/export of roster documents."""

import copy
import json
from typing import Any

from loguru import logger

from roster.documents.normalizer import coerce_week_number, normalize_week
from roster.documents.snapshot import ensure_derived_fields
from roster.documents.types import RootDocument


def export_document(doc: RootDocument) -> str:
    return json.dumps(doc, indent=2)


def export_filename(current_week: int) -> str:
    return f"fpl-data-week-{current_week}.json"


def parse_import(text: str) -> Any:
    """Parse an uploaded file's text.

    Raises:
        ValueError: If the text is not JSON
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ValueError("Invalid JSON file") from e


def merge_imported_week(doc: RootDocument, imported: Any) -> tuple[RootDocument, int]:
    """Merge an imported payload into the document as a single week.

    Legacy exports ({"players": [...], "captain": ...}) and v2 exports
    ({"weeks": {...}}) are both accepted. For v2 the week is `week`, else the
    first week in the file. The imported week becomes the current week.

    Args:
        doc: Current root document (not mutated)
        imported: Parsed import payload

    Returns:
        (new document, imported week number)

    Raises:
        ValueError: If the payload carries no usable week, or targets a read-only week
    """
    if not isinstance(imported, dict):
        raise ValueError("Import payload must be a JSON object")

    weeks = imported.get("weeks")
    if isinstance(weeks, dict) and weeks:
        week_number = coerce_week_number(imported.get("week")) or coerce_week_number(next(iter(weeks)))
        week_payload = weeks.get(str(week_number)) if week_number is not None else None
    else:
        week_number = coerce_week_number(imported.get("week")) or int(doc["currentWeek"])
        week_payload = {
            "players": copy.deepcopy(imported.get("players") or []),
            "captain": imported.get("captain"),
            "viceCaptain": imported.get("viceCaptain"),
            "isReadOnly": False,
        }

    if week_number is None or not isinstance(week_payload, dict):
        raise ValueError("Import payload does not contain a week")

    existing = doc["weeks"].get(str(week_number))
    if isinstance(existing, dict) and existing.get("isReadOnly") is True:
        raise ValueError(f"Week {week_number} is read-only and cannot be replaced by an import")

    result = copy.deepcopy(doc)
    week = normalize_week(week_payload)
    week["isReadOnly"] = False
    result["weeks"][str(week_number)] = week
    result["currentWeek"] = week_number
    result = ensure_derived_fields(result, week_number)
    logger.info(f"Imported week {week_number} with {len(week['players'])} players")
    return result, week_number
