"""Transactional document-store backend.

Three logical record stores back the root document:
- root: singleton metadata (version, currentWeek)
- weeks: one row per week, players serialized, team-derived fields as columns
- team_members: one row per (week, player), queried by week via a secondary index

A fourth table holds the generic key-value entries. Opening the store (schema
creation and default seeding) happens asynchronously off the event loop; every
operation awaits readiness first. Writes are all-or-nothing: a failed
transaction is rolled back and surfaces as TransactionError.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy import delete, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from roster.documents.normalizer import default_root_document, default_week_record, normalize, normalize_week
from roster.documents.snapshot import compute_derived_fields
from roster.documents.types import RootDocument, WeekRecord
from roster.db.engine import build_engine
from roster.db.models import DocumentStoreBase, KeyValueEntry, RootRecord, TeamMemberRow, WeekRow
from roster.storage.base import StorageAdapter, assert_valid_key
from roster.storage.errors import AdapterInitError, TransactionError

ROOT_ID = "singleton"
_KNOWN_WEEK_KEYS = {"players", "captain", "viceCaptain", "teamMembers", "teamStats", "totalTeamCost", "isReadOnly"}
_KNOWN_ROOT_KEYS = {"version", "currentWeek", "weeks"}

T = TypeVar("T")


class DocumentStoreAdapter(StorageAdapter):
    """SQLAlchemy-backed document store with async readiness."""

    backend = "docstore"

    def __init__(self, url: str | None = None) -> None:
        if url is None:
            from roster.config.settings import settings

            url = settings.docstore_url
        self.url = url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._ready_future: asyncio.Future[None] | None = None
        self._generation = 0

    # -- lifecycle -----------------------------------------------------------------

    def _open(self, generation: int) -> None:
        """Create the schema and seed the default document (runs in a worker thread).

        A close() that lands while this runs bumps the generation; the engine
        built here is then disposed instead of being installed.
        """
        logger.info(f"Opening document store: {self.url}")
        engine = build_engine(self.url)
        try:
            DocumentStoreBase.metadata.create_all(engine)
            session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
            self._initialize(session_factory)
        except Exception:
            engine.dispose()
            raise

        if generation != self._generation:
            engine.dispose()
            logger.info("Document store was closed while opening; engine disposed")
            return
        self._engine = engine
        self._session_factory = session_factory
        logger.info("Document store ready")

    def _initialize(self, session_factory: sessionmaker[Session]) -> None:
        with self._transaction(session_factory) as session:
            if session.get(RootRecord, ROOT_ID) is not None:
                return
            logger.info("Document store is empty; seeding default root and week 1")
            self._write_document(session, default_root_document())

    async def ready(self) -> None:
        if self._ready_future is None:
            self._ready_future = asyncio.ensure_future(self._open_async())
        # Shielded so a caller giving up on readiness does not abort the open itself.
        await asyncio.shield(self._ready_future)

    async def _open_async(self) -> None:
        try:
            await asyncio.to_thread(self._open, self._generation)
        except Exception as e:
            logger.bind(url=self.url, error=str(e)).error("Document store failed to open")
            raise AdapterInitError(self.backend, e) from e

    async def close(self) -> None:
        self._generation += 1
        if self._engine is not None:
            self._engine.dispose()
            logger.debug("Document store engine disposed")
        self._engine = None
        self._session_factory = None
        self._ready_future = None

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        await self.ready()
        return await asyncio.to_thread(fn, *args)

    @contextmanager
    def _transaction(self, session_factory: sessionmaker[Session] | None = None) -> Generator[Session, None, None]:
        """Session that commits on success and rolls back everything on failure."""
        session_factory = session_factory or self._session_factory
        if session_factory is None:
            raise TransactionError("Document store is not open")
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.error(f"Document store transaction failed, rolling back: {e}. Error type: {type(e).__name__}")
            session.rollback()
            if isinstance(e, TransactionError):
                raise
            raise TransactionError(f"Transaction failed: {e}") from e
        finally:
            session.close()

    @contextmanager
    def _read_session(self) -> Generator[Session, None, None]:
        if self._session_factory is None:
            raise TransactionError("Document store is not open")
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    # -- record mapping --------------------------------------------------------------

    def _read_week(self, session: Session, row: WeekRow) -> WeekRecord:
        members = session.execute(
            select(TeamMemberRow).where(TeamMemberRow.week_number == row.week_number).order_by(TeamMemberRow.position)
        ).scalars()
        return {
            **(row.extras or {}),
            "players": json.loads(row.players_json or "[]"),
            "captain": row.captain,
            "viceCaptain": row.vice_captain,
            "teamMembers": [{"playerId": json.loads(m.player_key), "addedAt": m.added_at} for m in members],
            "teamStats": row.team_stats,
            "totalTeamCost": row.total_team_cost,
            "isReadOnly": bool(row.is_read_only),
        }

    def _read_document(self, session: Session) -> RootDocument | None:
        root = session.get(RootRecord, ROOT_ID)
        if root is None:
            return None
        rows = session.execute(select(WeekRow).order_by(WeekRow.week_number)).scalars().all()
        weeks = {str(row.week_number): self._read_week(session, row) for row in rows}
        return {**(root.extras or {}), "version": root.version, "currentWeek": root.current_week, "weeks": weeks}

    def _write_team_members(self, session: Session, week_number: int, members: list[dict[str, Any]]) -> None:
        session.execute(delete(TeamMemberRow).where(TeamMemberRow.week_number == week_number))
        if members:
            session.execute(
                insert(TeamMemberRow),
                [
                    {
                        "week_number": week_number,
                        "player_key": json.dumps(member["playerId"]),
                        "position": position,
                        "added_at": member.get("addedAt"),
                    }
                    for position, member in enumerate(members)
                ],
            )

    def _write_week(self, session: Session, week_number: int, week: WeekRecord) -> None:
        session.merge(
            WeekRow(
                week_number=week_number,
                players_json=json.dumps(week["players"]),
                captain=week.get("captain"),
                vice_captain=week.get("viceCaptain"),
                total_team_cost=week["totalTeamCost"],
                team_stats=week["teamStats"],
                is_read_only=bool(week["isReadOnly"]),
                extras={k: v for k, v in week.items() if k not in _KNOWN_WEEK_KEYS},
            )
        )
        self._write_team_members(session, week_number, week["teamMembers"])

    def _write_root(self, session: Session, doc: RootDocument) -> None:
        session.merge(
            RootRecord(
                id=ROOT_ID,
                version=doc["version"],
                current_week=int(doc["currentWeek"]),
                extras={k: v for k, v in doc.items() if k not in _KNOWN_ROOT_KEYS},
            )
        )

    def _write_document(self, session: Session, doc: RootDocument) -> None:
        keep = [int(key) for key in doc["weeks"]]
        session.execute(delete(TeamMemberRow).where(TeamMemberRow.week_number.not_in(keep)))
        session.execute(delete(WeekRow).where(WeekRow.week_number.not_in(keep)))
        for key, week in doc["weeks"].items():
            self._write_week(session, int(key), week)
        self._write_root(session, doc)

    # -- document operations ------------------------------------------------------------

    def _get_root_sync(self) -> RootDocument:
        with self._read_session() as session:
            stored = self._read_document(session)
        if stored is not None:
            return normalize(stored)
        document = default_root_document()
        with self._transaction() as session:
            self._write_document(session, document)
        return document

    async def get_root_data(self) -> RootDocument:
        return await self._run(self._get_root_sync)

    def _set_root_sync(self, doc: RootDocument) -> RootDocument:
        normalized = normalize(doc)
        with self._transaction() as session:
            self._write_document(session, normalized)
        logger.debug(f"Document store wrote {len(normalized['weeks'])} weeks (currentWeek={normalized['currentWeek']})")
        return normalized

    async def set_root_data(self, doc: RootDocument) -> RootDocument:
        return await self._run(self._set_root_sync, doc)

    def _save_week_sync(self, week_number: int, week: WeekRecord, current_week: int) -> WeekRecord:
        record = compute_derived_fields(normalize_week(week), week_number)
        record["isReadOnly"] = False
        with self._transaction() as session:
            self._write_week(session, week_number, record)
            root = session.get(RootRecord, ROOT_ID)
            session.merge(
                RootRecord(
                    id=ROOT_ID,
                    version=root.version if root else default_root_document()["version"],
                    current_week=current_week,
                    extras=root.extras if root else {},
                )
            )
        return record

    async def save_week(self, week_number: int, week: WeekRecord, current_week: int) -> WeekRecord:
        """Write one week and the root pointer in a single transaction.

        Team members for the week are cleared and re-inserted from the players
        list; derived fields are recomputed before writing.
        """
        return await self._run(self._save_week_sync, int(week_number), week, int(current_week))

    def _get_week_sync(self, week_number: int) -> WeekRecord:
        with self._read_session() as session:
            row = session.get(WeekRow, week_number)
            if row is None:
                return default_week_record()
            return normalize_week(self._read_week(session, row))

    async def get_week_snapshot(self, week_number: int) -> WeekRecord:
        """Return one week's record, or an empty week when it does not exist."""
        return await self._run(self._get_week_sync, int(week_number))

    def _count_weeks_sync(self) -> int:
        with self._read_session() as session:
            return session.execute(select(func.count()).select_from(WeekRow)).scalar_one()

    async def get_week_count(self) -> int:
        return await self._run(self._count_weeks_sync)

    async def import_document(self, data: str | dict[str, Any]) -> RootDocument:
        """Replace everything with an imported v2 document.

        Raises:
            ValueError: If the payload has no weeks mapping
        """
        parsed = json.loads(data) if isinstance(data, str) else data
        if not isinstance(parsed, dict) or not isinstance(parsed.get("weeks"), dict):
            raise ValueError("Invalid JSON format: missing weeks object")
        return await self.set_root_data(parsed)

    # -- key-value operations ------------------------------------------------------------

    def _get_sync(self, key: str) -> Any:
        with self._read_session() as session:
            entry = session.get(KeyValueEntry, key)
            return json.loads(entry.value_json) if entry is not None else None

    async def get(self, key: str) -> Any:
        return await self._run(self._get_sync, assert_valid_key(key))

    def _set_sync(self, key: str, value: Any) -> None:
        value_json = json.dumps(value)
        with self._transaction() as session:
            session.merge(KeyValueEntry(key=key, value_json=value_json))

    async def set(self, key: str, value: Any) -> None:
        await self._run(self._set_sync, assert_valid_key(key), value)

    def _remove_sync(self, key: str) -> None:
        with self._transaction() as session:
            session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))

    async def remove(self, key: str) -> None:
        await self._run(self._remove_sync, assert_valid_key(key))

    def _get_all_sync(self) -> dict[str, Any]:
        with self._read_session() as session:
            entries = session.execute(select(KeyValueEntry)).scalars().all()
            return {entry.key: json.loads(entry.value_json) for entry in entries}

    async def get_all(self) -> dict[str, Any]:
        return await self._run(self._get_all_sync)

    def _clear_sync(self) -> None:
        with self._transaction() as session:
            session.execute(delete(KeyValueEntry))

    async def clear(self) -> None:
        await self._run(self._clear_sync)
