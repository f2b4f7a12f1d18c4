"""Remote relational backend over the storage HTTP endpoint.

Talks to the routes served by roster.api.storage. The root document is read
and written with GET/PUT /root; the per-week routes are exposed for callers
that only need one week. Key-value entries live as namespaced top-level keys
of the remote root document, so they never surface in get_root_data and are
carried over by set_root_data.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from roster.documents.migration import migrate_v1_to_v2
from roster.documents.types import RootDocument, WeekRecord
from roster.storage.base import StorageAdapter, assert_valid_key
from roster.storage.errors import RemoteProtocolError

DEFAULT_NAMESPACE = "db:"


def _handle_response(response: httpx.Response) -> Any:
    """Parse a response body, raising RemoteProtocolError on bad status or body.

    An empty body parses to None.
    """
    text = response.text
    try:
        data = json.loads(text) if text else None
    except json.JSONDecodeError as e:
        raise RemoteProtocolError(response.status_code, f"Failed to parse JSON response: {e}") from e

    if not response.is_success:
        message = data.get("message") if isinstance(data, dict) else None
        details = data.get("details") if isinstance(data, dict) else None
        raise RemoteProtocolError(response.status_code, message or response.reason_phrase, details)

    return data


class RemoteStorageAdapter(StorageAdapter):
    """HTTP client for the remote relational store."""

    backend = "remote"

    def __init__(
        self,
        base_url: str | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        client: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            base_url: Endpoint root (e.g. http://localhost:8000/api/storage).
                      Defaults to settings.remote_base_url.
            namespace: Prefix for key-value entries inside the root document
            client: Pre-built client (tests pass one bound to an ASGI transport)
            timeout_s: Request timeout when the adapter builds its own client
        """
        from roster.config.settings import settings

        self.base_url = base_url or settings.remote_base_url
        self.namespace = namespace
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s if timeout_s is not None else settings.remote_timeout_s,
            headers={"Accept": "application/json"},
        )

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        try:
            if payload is None:
                response = await self.client.request(method, path)
            else:
                response = await self.client.request(method, path, json=payload)
            return _handle_response(response)
        except RemoteProtocolError as e:
            logger.bind(method=method, path=path, status=e.status).error(f"Remote storage request failed: {e}")
            raise
        except httpx.HTTPError as e:
            logger.bind(method=method, path=path).error(f"Remote storage unreachable: {e}")
            raise

    async def ready(self) -> None:
        """Health check: the endpoint must answer GET /root."""
        await self._request("GET", "root")

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # -- raw root document -------------------------------------------------------------

    async def _get_raw_root(self) -> dict[str, Any]:
        data = await self._request("GET", "root")
        if isinstance(data, dict) and isinstance(data.get("payload"), dict):
            data = data["payload"]
        return data if isinstance(data, dict) else {}

    async def _put_raw_root(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("PUT", "root", payload)
        return data if isinstance(data, dict) else {}

    def _split(self, raw: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        document = {k: v for k, v in raw.items() if not k.startswith(self.namespace)}
        entries = {k: v for k, v in raw.items() if k.startswith(self.namespace)}
        return document, entries

    # -- key-value operations -------------------------------------------------------------

    def _build_key(self, key: str) -> str:
        return f"{self.namespace}{assert_valid_key(key)}"

    async def get(self, key: str) -> Any:
        storage_key = self._build_key(key)
        root = await self._get_raw_root()
        return root.get(storage_key)

    async def set(self, key: str, value: Any) -> None:
        storage_key = self._build_key(key)
        root = await self._get_raw_root()
        await self._put_raw_root({**root, storage_key: value})

    async def remove(self, key: str) -> None:
        storage_key = self._build_key(key)
        root = await self._get_raw_root()
        if storage_key not in root:
            return
        root.pop(storage_key)
        await self._put_raw_root(root)

    async def get_all(self) -> dict[str, Any]:
        _, entries = self._split(await self._get_raw_root())
        return {key[len(self.namespace) :]: value for key, value in entries.items()}

    async def clear(self) -> None:
        root = await self._get_raw_root()
        document, entries = self._split(root)
        if entries:
            await self._put_raw_root(document)

    # -- document operations -----------------------------------------------------------

    async def get_root_data(self) -> RootDocument:
        document, _ = self._split(await self._get_raw_root())
        return migrate_v1_to_v2(document or None)

    async def set_root_data(self, doc: RootDocument) -> RootDocument:
        document, _ = self._split(doc if isinstance(doc, dict) else {})
        _, entries = self._split(await self._get_raw_root())
        written = await self._put_raw_root({**document, **entries})
        stored, _ = self._split(written)
        return migrate_v1_to_v2(stored)

    # -- per-week routes ----------------------------------------------------------------

    async def list_weeks(self) -> list[WeekRecord]:
        return await self._request("GET", "weeks") or []

    async def get_week(self, week_number: int) -> WeekRecord:
        return await self._request("GET", f"weeks/{week_number}")

    async def create_week(self, week_number: int, payload: WeekRecord | None = None) -> WeekRecord:
        body: dict[str, Any] = {"weekNumber": week_number}
        if payload is not None:
            body["payload"] = payload
        return await self._request("POST", "weeks", body)

    async def save_week(self, week_number: int, payload: WeekRecord) -> WeekRecord:
        return await self._request("PUT", f"weeks/{week_number}", payload)

    async def delete_week(self, week_number: int) -> None:
        await self._request("DELETE", f"weeks/{week_number}")
