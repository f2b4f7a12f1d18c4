"""Storage adapter contract.

Every backend implements the same asynchronous API: a small key-value surface
(get/set/remove/get_all/clear) plus document-level get_root_data and
set_root_data. The shared conformance suite in tests/storage runs once per
backend against this contract.
"""

from abc import ABC, abstractmethod
from typing import Any

from roster.documents.types import RootDocument

REQUIRED_STORAGE_METHODS = (
    "get",
    "set",
    "remove",
    "get_all",
    "clear",
    "get_root_data",
    "set_root_data",
)


def assert_valid_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise TypeError("Storage keys must be non-empty strings")
    return key


def assert_conforms_to_storage_contract(adapter: Any, adapter_name: str = "StorageAdapter") -> None:
    """Fail fast when an object does not implement the storage contract.

    Raises:
        TypeError: When a required method is missing or not callable
    """
    if adapter is None:
        raise TypeError(f"{adapter_name} must be an object, received None")
    for method in REQUIRED_STORAGE_METHODS:
        if not callable(getattr(adapter, method, None)):
            raise TypeError(f"{adapter_name} is missing required method: {method}")


class StorageAdapter(ABC):
    """Base class for storage backends.

    Attributes:
        backend: Identifier used in preferences and diagnostics
    """

    backend: str = "unknown"

    async def ready(self) -> None:
        """Wait until the backend can serve requests. Immediate by default."""
        return None

    async def close(self) -> None:
        """Release backend resources. Must not wait for readiness."""
        return None

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Persist a JSON-compatible value under key."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove key; removing an absent key is not an error."""

    @abstractmethod
    async def get_all(self) -> dict[str, Any]:
        """Return every key/value pair managed by this adapter."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key/value pair managed by this adapter."""

    @abstractmethod
    async def get_root_data(self) -> RootDocument:
        """Return the normalized (and, if needed, migrated) root document."""

    @abstractmethod
    async def set_root_data(self, doc: RootDocument) -> RootDocument:
        """Persist a root document and return the normalized document written."""
