"""Synchronous key-value backend over a process-local string store.

Every value is serialized to a JSON string on write and parsed on read. The
namespace prefix scopes get/set/remove/get_all/clear so several logical
stores can share one underlying store. The root document lives under its own
key, outside the namespace.
"""

import json
from collections.abc import MutableMapping
from typing import Any

from loguru import logger

from roster.documents.migration import PRIMARY_STORAGE_KEY, migrate_v1_to_v2
from roster.documents.normalizer import normalize
from roster.documents.types import RootDocument
from roster.storage.base import StorageAdapter, assert_valid_key
from roster.storage.errors import StorageError
from roster.storage.local_store import get_local_store

DEFAULT_NAMESPACE = "db:"


def _serialize(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Value is not JSON-serializable: {e}") from e


class KeyValueStorageAdapter(StorageAdapter):
    """Key-value backend; the safe default every other backend falls back to."""

    backend = "keyvalue"

    def __init__(
        self,
        store: MutableMapping[str, str] | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        document_key: str = PRIMARY_STORAGE_KEY,
    ) -> None:
        self.store = store if store is not None else get_local_store()
        self.namespace = namespace
        self.document_key = document_key

    def _build_key(self, key: str) -> str:
        return f"{self.namespace}{assert_valid_key(key)}"

    async def get(self, key: str) -> Any:
        raw_value = self.store.get(self._build_key(key))
        if raw_value is None:
            return None
        return json.loads(raw_value)

    async def set(self, key: str, value: Any) -> None:
        self.store[self._build_key(key)] = _serialize(value)

    async def remove(self, key: str) -> None:
        self.store.pop(self._build_key(key), None)

    async def get_all(self) -> dict[str, Any]:
        prefix = self.namespace
        return {
            storage_key[len(prefix) :]: json.loads(raw_value)
            for storage_key, raw_value in list(self.store.items())
            if storage_key.startswith(prefix)
        }

    async def clear(self) -> None:
        keys_to_remove = [storage_key for storage_key in list(self.store) if storage_key.startswith(self.namespace)]
        for storage_key in keys_to_remove:
            del self.store[storage_key]
        logger.debug(f"Cleared {len(keys_to_remove)} keys in namespace {self.namespace!r}")

    async def get_root_data(self) -> RootDocument:
        raw_value = self.store.get(self.document_key)
        if raw_value is None:
            logger.info("No root document stored yet; materializing default document")
            return await self.set_root_data(normalize(None))

        try:
            parsed = json.loads(raw_value)
        except json.JSONDecodeError as e:
            logger.bind(document_key=self.document_key, error=str(e)).warning("Stored root document is not valid JSON; using default")
            parsed = None
        return migrate_v1_to_v2(parsed)

    async def set_root_data(self, doc: RootDocument) -> RootDocument:
        normalized = normalize(doc)
        self.store[self.document_key] = _serialize(normalized)
        return normalized
