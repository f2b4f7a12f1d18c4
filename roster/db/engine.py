"""Engine construction shared by the document store and the server store."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    prefix = "sqlite:///"
    if url.startswith(prefix) and url not in MEMORY_URLS:
        Path(url[len(prefix) :]).parent.mkdir(parents=True, exist_ok=True)


def build_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    kwargs: dict[str, Any] = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in MEMORY_URLS:
            kwargs["poolclass"] = StaticPool
        else:
            ensure_sqlite_directory(url)
            logger.debug(f"Using SQLite database file for {url}")
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(url, echo=False, **kwargs)
