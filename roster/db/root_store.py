"""Relational root-document store behind the remote storage endpoint.

The root document is kept as JSON under meta key "root"; a weeks table
mirrors its weeks one row per week number. Both are written together in one
transaction so they never disagree.
"""

from __future__ import annotations

import json
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from roster.db.engine import build_engine
from roster.db.models import MetaEntry, ServerBase, WeekPayload
from roster.documents.normalizer import default_root_document, default_week_record, normalize, normalize_week
from roster.documents.types import DEFAULT_WEEK_NUMBER, RootDocument, WeekRecord

ROOT_KEY = "root"


def validate_week_number(value: Any) -> int:
    """Return value as a positive int.

    Raises:
        TypeError: If value is not a positive integer (bools rejected)
    """
    if isinstance(value, bool):
        raise TypeError("weekNumber must be a positive integer")
    try:
        week_number = int(value)
    except (TypeError, ValueError) as e:
        raise TypeError("weekNumber must be a positive integer") from e
    if week_number <= 0 or (isinstance(value, float) and not value.is_integer()):
        raise TypeError("weekNumber must be a positive integer")
    return week_number


def _safe_parse_json(value: str | None, fallback: Any) -> Any:
    if not isinstance(value, str):
        return fallback
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse stored JSON payload; resetting to default: {e}")
        return fallback


class RelationalRootStore:
    """Synchronous store used by the storage API routes."""

    def __init__(self, url: str | None = None) -> None:
        if url is None:
            from roster.config.settings import settings

            url = settings.database_url
        self.url = url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    def _get_engine(self) -> Engine:
        """Create the engine and schema on first use."""
        if self._engine is None:
            logger.info(f"Initializing storage database: {self.url}")
            self._engine = build_engine(self.url)
            ServerBase.metadata.create_all(self._engine)
            self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
            logger.info("Storage database initialized")
        return self._engine

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        self._get_engine()
        assert self._session_factory is not None
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception as e:
            logger.error(f"Storage database transaction failed: {e}. Error type: {type(e).__name__}")
            db.rollback()
            raise
        finally:
            db.close()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    # -- internals -----------------------------------------------------------------

    def _read_root(self, db: Session) -> RootDocument | None:
        entry = db.get(MetaEntry, ROOT_KEY)
        parsed = _safe_parse_json(entry.value if entry else None, None)
        return normalize(parsed) if isinstance(parsed, dict) else None

    def _persist_root(self, db: Session, root: RootDocument) -> None:
        db.merge(MetaEntry(key=ROOT_KEY, value=json.dumps(root)))

    def _upsert_week(self, db: Session, week_number: int, week: WeekRecord) -> None:
        existing = db.get(WeekPayload, week_number)
        if existing is None:
            db.add(WeekPayload(week_number=week_number, payload=json.dumps(week)))
        else:
            existing.payload = json.dumps(week)

    def _sync_weeks(self, db: Session, weeks: dict[str, WeekRecord]) -> None:
        numbers = [int(key) for key in weeks]
        for key, week in weeks.items():
            self._upsert_week(db, int(key), week)
        db.execute(delete(WeekPayload).where(WeekPayload.week_number.not_in(numbers)))

    def _write(self, db: Session, root: RootDocument) -> RootDocument:
        self._persist_root(db, root)
        self._sync_weeks(db, root["weeks"])
        return root

    # -- public API ----------------------------------------------------------------

    def get_root_data(self) -> RootDocument:
        """Return the stored root, seeding the default document when absent or corrupt."""
        with self.session() as db:
            root = self._read_root(db)
            if root is None:
                logger.info("No stored root document; seeding default")
                root = self._write(db, default_root_document())
            return root

    def set_root_data(self, data: Any) -> RootDocument:
        """Normalize and persist a whole root document.

        Raises:
            TypeError: If data is not a JSON object
        """
        if not isinstance(data, dict):
            raise TypeError("Root payload must be a plain object")
        with self.session() as db:
            return self._write(db, normalize(data))

    def list_weeks(self) -> list[WeekRecord]:
        with self.session() as db:
            rows = db.execute(select(WeekPayload).order_by(WeekPayload.week_number)).scalars().all()
            return [
                {**normalize_week(_safe_parse_json(row.payload, {})), "weekNumber": row.week_number}
                for row in rows
            ]

    def get_week(self, week_number: Any) -> WeekRecord | None:
        number = validate_week_number(week_number)
        with self.session() as db:
            row = db.get(WeekPayload, number)
            if row is None:
                return None
            return {**normalize_week(_safe_parse_json(row.payload, {})), "weekNumber": number}

    def save_week(self, week_number: Any, payload: Any = None) -> WeekRecord:
        """Upsert one week and mirror it into the root document."""
        number = validate_week_number(week_number)
        week = normalize_week(payload if payload is not None else default_week_record())
        week.pop("weekNumber", None)
        with self.session() as db:
            root = self._read_root(db) or default_root_document()
            root["weeks"][str(number)] = week
            written = self._write(db, normalize(root))
            return {**written["weeks"][str(number)], "weekNumber": number}

    def delete_week(self, week_number: Any) -> bool:
        """Delete a week. Returns False when it did not exist.

        Deleting the last week re-creates an empty week 1; currentWeek moves
        to the highest remaining week.
        """
        number = validate_week_number(week_number)
        with self.session() as db:
            if db.get(WeekPayload, number) is None:
                return False
            root = self._read_root(db) or default_root_document()
            weeks = dict(root["weeks"])
            weeks.pop(str(number), None)
            if not weeks:
                weeks[str(DEFAULT_WEEK_NUMBER)] = default_week_record()
            highest = max(int(key) for key in weeks)
            self._write(db, normalize({**root, "currentWeek": highest, "weeks": weeks}))
            logger.info(f"Deleted week {number}; currentWeek is now {highest}")
            return True
