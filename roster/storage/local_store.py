"""Process-local string store, optionally backed by a JSON file.

Plays the role browser local storage plays for a web client: a flat
str -> str mapping holding the key-value backend's data, the legacy v1
payload and the backend preference.
"""

import json
import os
from collections.abc import Iterator, MutableMapping
from pathlib import Path

from loguru import logger


class LocalStore(MutableMapping[str, str]):
    """Flat str -> str store. Writes are flushed to `path` when one is given."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.bind(path=str(self.path), error=str(e)).warning("Local store file unreadable; starting empty")
            return {}
        if not isinstance(raw, dict):
            logger.bind(path=str(self.path)).warning("Local store file is not an object; starting empty")
            return {}
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def _flush(self) -> None:
        if self.path is None:
            return
        os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(self._data, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"LocalStore values must be strings, got {type(value).__name__}")
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)


_process_store: LocalStore | None = None


def get_local_store() -> LocalStore:
    """Get or create the process-wide local store (lazy initialization)."""
    global _process_store
    if _process_store is None:
        from roster.config.settings import settings

        _process_store = LocalStore(settings.local_store_path)
        logger.debug(f"Local store initialized (path={settings.local_store_path or 'memory'})")
    return _process_store
