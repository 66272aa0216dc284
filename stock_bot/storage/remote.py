"""Supabase (PostgREST) async client for stock controls."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Default timeout for API requests
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

CONTROLS_TABLE = "stock_controls"
ITEMS_TABLE = "stock_items"


class StorageError(Exception):
    """Base error for storage backends."""


class RemoteStoreError(StorageError):
    """Remote store request failed."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class RemoteStore:
    """Async client for the Supabase REST API."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": anon_key,
                "Authorization": f"Bearer {anon_key}",
            },
            timeout=DEFAULT_TIMEOUT,
            transport=transport,
        )

    @property
    def config_name(self) -> str:
        """Project host shown in the status screen."""
        return httpx.URL(self.url).host or self.url

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        """Make a request, translating failures into RemoteStoreError."""
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(
                method,
                f"/{table}",
                params=params,
                json=json_data,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise RemoteStoreError(
                f"{method} {table} failed with {status}: {e.response.text[:200]}",
                status_code=status,
                retryable=status == 429 or status >= 500,
            ) from e
        except httpx.TransportError as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}", retryable=True) from e
        return response

    async def test_connection(self) -> bool:
        """Check that the controls table answers."""
        try:
            await self._request("GET", CONTROLS_TABLE, params={"select": "id", "limit": 1})
        except RemoteStoreError as e:
            logger.error("remote_connection_failed", extra={"error": str(e)})
            return False
        return True

    async def list_controls(self) -> list[dict[str, Any]]:
        """Get all controls with nested items, newest first."""
        response = await self._request(
            "GET",
            CONTROLS_TABLE,
            params={
                "select": f"*,{ITEMS_TABLE}(*)",
                "order": "created_at.desc",
                f"{ITEMS_TABLE}.order": "created_at.asc,id.asc",
            },
        )
        return response.json() or []

    async def get_control(self, control_id: str) -> dict[str, Any] | None:
        response = await self._request(
            "GET",
            CONTROLS_TABLE,
            params={
                "select": f"*,{ITEMS_TABLE}(*)",
                "id": f"eq.{control_id}",
                f"{ITEMS_TABLE}.order": "created_at.asc,id.asc",
            },
        )
        rows = response.json() or []
        return rows[0] if rows else None

    async def create_control(
        self,
        name: str,
        created_by: str,
        items: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Insert a control and its items. Returns the control with stock_items."""
        response = await self._request(
            "POST",
            CONTROLS_TABLE,
            json_data={"name": name, "created_by": created_by},
            prefer="return=representation",
        )
        control = response.json()[0]

        rows = [{**item, "control_id": control["id"]} for item in items]
        stock_items: list[dict[str, Any]] = []
        if rows:
            response = await self._request(
                "POST",
                ITEMS_TABLE,
                json_data=rows,
                prefer="return=representation",
            )
            stock_items = response.json() or []

        return {**control, ITEMS_TABLE: stock_items}

    async def update_item(self, item_id: str, fields: dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            ITEMS_TABLE,
            params={"id": f"eq.{item_id}"},
            json_data=fields,
        )

    async def delete_control(self, control_id: str) -> None:
        """Delete a control; items go with it through the foreign key cascade."""
        await self._request("DELETE", CONTROLS_TABLE, params={"id": f"eq.{control_id}"})

    async def fingerprint(self) -> tuple[Any, ...]:
        """Cheap change marker: control count plus the latest item update."""
        controls = await self._request(
            "GET",
            CONTROLS_TABLE,
            params={"select": "id", "order": "created_at.desc", "limit": 1},
            prefer="count=exact",
        )
        items = await self._request(
            "GET",
            ITEMS_TABLE,
            params={"select": "updated_at", "order": "updated_at.desc", "limit": 1},
        )
        latest_item = items.json() or [{}]
        latest_control = controls.json() or [{}]
        return (
            controls.headers.get("content-range", ""),
            latest_control[0].get("id"),
            latest_item[0].get("updated_at"),
        )

    async def close(self) -> None:
        await self._client.aclose()
