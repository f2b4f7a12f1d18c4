"""Root conftest for all tests.

Shared fixtures: a fresh local store, one adapter per backend (the remote
backend talks to the real FastAPI app over an ASGI transport, backed by
in-memory SQLite), and a diagnostics reset around every test.
"""

import httpx
import pytest
import pytest_asyncio

from roster.config.settings import settings
from roster.core.diagnostics import reset_diagnostics
from roster.db.root_store import RelationalRootStore
from roster.main import create_app
from roster.storage.document_store import DocumentStoreAdapter
from roster.storage.key_value import KeyValueStorageAdapter
from roster.storage.local_store import LocalStore
from roster.storage.remote import RemoteStorageAdapter

BACKEND_IDS = ["keyvalue", "docstore", "remote"]


@pytest.fixture(autouse=True)
def clean_diagnostics():
    """Diagnostics are process-wide; isolate them per test."""
    reset_diagnostics()
    yield
    reset_diagnostics()


@pytest.fixture(autouse=True)
def in_memory_docstore(monkeypatch):
    """Document stores built from settings stay in memory unless a test says otherwise."""
    monkeypatch.setattr(settings, "docstore_url", "sqlite://")


@pytest.fixture
def local_store() -> LocalStore:
    return LocalStore()


@pytest.fixture
def root_store():
    store = RelationalRootStore("sqlite://")
    yield store
    store.close()


@pytest.fixture
def storage_app(root_store):
    return create_app(root_store)


@pytest_asyncio.fixture
async def keyvalue_adapter(local_store):
    adapter = KeyValueStorageAdapter(store=local_store)
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def docstore_adapter():
    adapter = DocumentStoreAdapter("sqlite://")
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def remote_adapter(storage_app):
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=storage_app), base_url="http://test/api/storage")
    adapter = RemoteStorageAdapter(base_url="http://test/api/storage", client=client)
    yield adapter
    await client.aclose()


@pytest_asyncio.fixture(params=BACKEND_IDS)
async def any_adapter(request):
    """Each backend in turn, for the shared contract suite."""
    if request.param == "keyvalue":
        adapter = KeyValueStorageAdapter(store=LocalStore())
        yield adapter
    elif request.param == "docstore":
        adapter = DocumentStoreAdapter("sqlite://")
        yield adapter
        await adapter.close()
    else:
        store = RelationalRootStore("sqlite://")
        app = create_app(store)
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test/api/storage")
        yield RemoteStorageAdapter(base_url="http://test/api/storage", client=client)
        await client.aclose()
        store.close()
