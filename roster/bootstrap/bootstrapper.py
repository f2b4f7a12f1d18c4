"""Choose, initialize and (if needed) replace the storage backend at startup.

Startup never fails because a preferred backend is slow or broken: the
document store is raced against a timeout and replaced by the key-value
backend when it loses, and every decision lands in the diagnostics log.
"""

from __future__ import annotations

from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from roster.bootstrap.notifier import LogNotifier, Notifier
from roster.bootstrap.race import race_with_timeout
from roster.core.diagnostics import record_event
from roster.documents.migration import MigrationReport, migrate_storage_if_needed
from roster.storage.base import StorageAdapter
from roster.storage.document_store import DocumentStoreAdapter
from roster.storage.errors import AdapterInitError
from roster.storage.key_value import KeyValueStorageAdapter
from roster.storage.local_store import get_local_store
from roster.storage.remote import RemoteStorageAdapter

if TYPE_CHECKING:
    from roster.config.settings import Settings

BACKEND_PREFERENCE_KEY = "fpl-storage-backend"
STAGE = "storage"

AdapterFactory = Callable[[], StorageAdapter]


class BackendKind(str, Enum):
    KEYVALUE = "keyvalue"
    DOCSTORE = "docstore"
    REMOTE = "remote"


@dataclass(frozen=True)
class BootstrapResult:
    """What bootstrap_storage settled on.

    Attributes:
        adapter: Ready-to-use storage adapter
        backend: Backend actually in use
        requested: Backend that was asked for
        fell_back: True when the requested backend was replaced
        reason: Why it was replaced (timeout, error, disabled), else None
        migration: Outcome of the legacy data migration run before startup
    """

    adapter: StorageAdapter
    backend: BackendKind
    requested: BackendKind
    fell_back: bool = False
    reason: str | None = None
    migration: MigrationReport | None = None


def _parse_kind(value: str | BackendKind | None) -> BackendKind | None:
    if value is None:
        return None
    try:
        return BackendKind(value.strip().lower() if isinstance(value, str) else value)
    except ValueError:
        logger.warning(f"Unknown storage backend '{value}'; ignoring")
        return None


def select_backend(kind: str | BackendKind, store: MutableMapping[str, str] | None = None) -> BackendKind:
    """Persist the user's backend choice for the next startup.

    Raises:
        ValueError: If kind is not a known backend
    """
    parsed = _parse_kind(kind)
    if parsed is None:
        raise ValueError(f"Unknown storage backend: {kind}")
    store = store if store is not None else get_local_store()
    store[BACKEND_PREFERENCE_KEY] = parsed.value
    logger.info(f"Storage backend preference set to {parsed.value}")
    return parsed


def resolve_requested_backend(
    requested: str | BackendKind | None,
    store: MutableMapping[str, str],
    settings: Settings,
) -> BackendKind:
    """Argument first, then the stored preference, then configuration."""
    return (
        _parse_kind(requested)
        or _parse_kind(store.get(BACKEND_PREFERENCE_KEY))
        or _parse_kind(settings.storage_backend)
        or BackendKind.KEYVALUE
    )


def default_adapter_factories(settings: Settings, store: MutableMapping[str, str]) -> dict[BackendKind, AdapterFactory]:
    return {
        BackendKind.KEYVALUE: lambda: KeyValueStorageAdapter(store=store, namespace=settings.storage_namespace),
        BackendKind.DOCSTORE: lambda: DocumentStoreAdapter(settings.docstore_url),
        BackendKind.REMOTE: lambda: RemoteStorageAdapter(
            settings.remote_base_url,
            namespace=settings.storage_namespace,
            timeout_s=settings.remote_timeout_s,
        ),
    }


class _Bootstrap:
    def __init__(
        self,
        settings: Settings,
        store: MutableMapping[str, str],
        notifier: Notifier,
        timeout_s: float,
        factories: dict[BackendKind, AdapterFactory],
    ) -> None:
        self.settings = settings
        self.store = store
        self.notifier = notifier
        self.timeout_s = timeout_s
        self.factories = factories

    async def _teardown(self, adapter: StorageAdapter, kind: BackendKind) -> None:
        try:
            await adapter.close()
        except Exception as e:
            logger.bind(backend=kind.value, error=str(e)).warning("Teardown of failed backend raised; continuing")
            record_event(STAGE, "teardown-error", backend=kind.value, detail=str(e))

    async def _fall_back(
        self,
        failed: StorageAdapter,
        kind: BackendKind,
        reason: str,
        elapsed_ms: float | None,
    ) -> StorageAdapter:
        await self._teardown(failed, kind)
        select_backend(BackendKind.KEYVALUE, self.store)
        fallback = self.factories[BackendKind.KEYVALUE]()
        await fallback.ready()
        self.notifier.show_alert(
            f"The {kind.value} storage backend could not be started ({reason}). "
            "Your data is being saved to the key-value store instead."
        )
        record_event(
            STAGE,
            "fallback",
            from_=kind.value,
            to=BackendKind.KEYVALUE.value,
            reason=reason,
            elapsed_ms=elapsed_ms,
        )
        logger.bind(backend=kind.value, reason=reason, elapsed_ms=elapsed_ms).warning(
            "Storage backend replaced by key-value fallback"
        )
        return fallback

    async def race_path(self, kind: BackendKind) -> tuple[StorageAdapter, BackendKind, str | None]:
        adapter = self.factories[kind]()
        outcome = await race_with_timeout(adapter.ready(), self.timeout_s)
        if outcome.status == "success":
            record_event(STAGE, "success", backend=kind.value, elapsed_ms=outcome.elapsed_ms)
            return adapter, kind, None

        record_event(
            STAGE,
            outcome.status,
            backend=kind.value,
            elapsed_ms=outcome.elapsed_ms,
            detail=str(outcome.error) if outcome.error else None,
        )
        fallback = await self._fall_back(adapter, kind, outcome.status, outcome.elapsed_ms)
        return fallback, BackendKind.KEYVALUE, outcome.status

    async def direct_path(self, kind: BackendKind) -> tuple[StorageAdapter, BackendKind, str | None]:
        if kind is BackendKind.DOCSTORE:
            logger.info("Document store is disabled; using the key-value backend")
            record_event(STAGE, "fallback", from_=kind.value, to=BackendKind.KEYVALUE.value, reason="disabled")
            return self.factories[BackendKind.KEYVALUE](), BackendKind.KEYVALUE, "disabled"

        adapter = self.factories[kind]()
        outcome = await race_with_timeout(adapter.ready(), self.timeout_s)
        if outcome.status == "success":
            record_event(STAGE, "success", backend=kind.value, elapsed_ms=outcome.elapsed_ms)
            return adapter, kind, None
        if outcome.status == "timeout":
            logger.warning(f"{kind.value} backend not ready after {self.timeout_s}s; using it anyway")
            record_event(STAGE, "timeout", backend=kind.value, elapsed_ms=outcome.elapsed_ms)
            return adapter, kind, None

        record_event(STAGE, "error", backend=kind.value, elapsed_ms=outcome.elapsed_ms, detail=str(outcome.error))
        if kind is BackendKind.REMOTE:
            fallback = await self._fall_back(adapter, kind, "error", outcome.elapsed_ms)
            return fallback, BackendKind.KEYVALUE, "error"
        raise AdapterInitError(kind.value, outcome.error if isinstance(outcome.error, Exception) else None)


async def bootstrap_storage(
    requested: str | BackendKind | None = None,
    *,
    settings: Settings | None = None,
    local_store: MutableMapping[str, str] | None = None,
    notifier: Notifier | None = None,
    timeout_s: float | None = None,
    adapter_factories: dict[BackendKind, AdapterFactory] | None = None,
) -> BootstrapResult:
    """Initialize the storage backend for this process.

    Legacy v1 data in the local store is migrated first. The document store,
    when enabled, is raced against `timeout_s`; losing (timeout or error)
    tears it down, persists the key-value preference, alerts the user and
    records a fallback event. Other backends are raced once and used as-is on
    timeout; a remote backend that errors falls back the same way.

    Args:
        requested: Backend to use; defaults to the stored preference, then settings
        settings: Configuration (defaults to the process settings)
        local_store: String store holding legacy data and the preference
        notifier: Receives the user-facing fallback alert
        timeout_s: Initialization deadline (defaults to settings.bootstrap_timeout_s)
        adapter_factories: Overrides for how each backend is built

    Returns:
        BootstrapResult with a ready adapter
    """
    if settings is None:
        from roster.config.settings import settings as process_settings

        settings = process_settings
    store = local_store if local_store is not None else get_local_store()
    factories = {**default_adapter_factories(settings, store), **(adapter_factories or {})}
    bootstrap = _Bootstrap(
        settings=settings,
        store=store,
        notifier=notifier or LogNotifier(),
        timeout_s=timeout_s if timeout_s is not None else settings.bootstrap_timeout_s,
        factories=factories,
    )

    kind = resolve_requested_backend(requested, store, settings)
    migration = migrate_storage_if_needed(store)
    record_event(STAGE, "attempt", backend=kind.value)
    logger.info(f"Bootstrapping storage backend: {kind.value}")

    if kind is BackendKind.DOCSTORE and settings.docstore_enabled:
        adapter, backend, reason = await bootstrap.race_path(kind)
    else:
        adapter, backend, reason = await bootstrap.direct_path(kind)

    return BootstrapResult(
        adapter=adapter,
        backend=backend,
        requested=kind,
        fell_back=backend is not kind,
        reason=reason,
        migration=migration,
    )
