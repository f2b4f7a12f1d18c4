from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class DocumentStoreBase(DeclarativeBase):
    """Base class for the transactional document store's tables."""


class RootRecord(DocumentStoreBase):
    """Singleton document metadata.

    Stores:
    - id: Always "singleton"
    - version: Schema tag of the stored document
    - current_week: The editable week
    - extras: Unknown top-level document keys, carried verbatim
    """

    __tablename__ = "root"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    version: Mapped[str] = mapped_column(String, nullable=False)
    current_week: Mapped[int] = mapped_column(Integer, nullable=False)
    extras: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class WeekRow(DocumentStoreBase):
    """One row per week number.

    The players list is stored serialized; team-derived fields are columns.
    Captain ids are JSON so non-string legacy ids survive a round trip.
    """

    __tablename__ = "weeks"

    week_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    players_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    captain: Mapped[Any] = mapped_column(JSON, nullable=True)
    vice_captain: Mapped[Any] = mapped_column(JSON, nullable=True)
    total_team_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    team_stats: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    is_read_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extras: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class TeamMemberRow(DocumentStoreBase):
    """One row per (week, player) in the squad, queryable by week.

    player_key is the JSON encoding of the player id; position keeps the
    order of the players list.
    """

    __tablename__ = "team_members"

    week_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_key: Mapped[str] = mapped_column(String, primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    added_at: Mapped[Any] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_team_members_by_week", "week_number"),)


class KeyValueEntry(DocumentStoreBase):
    """Generic key-value entries (values stored as JSON text)."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)


class ServerBase(DeclarativeBase):
    """Base class for the remote storage endpoint's relational tables."""


class MetaEntry(ServerBase):
    """Key/value metadata; the root document is stored under key "root"."""

    __tablename__ = "meta"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)


class WeekPayload(ServerBase):
    """Per-week rows mirroring the root document's weeks."""

    __tablename__ = "weeks"

    week_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
