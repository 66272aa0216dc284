"""Hybrid storage facade: remote store first, local SQLite as the fallback."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from stock_bot.models import StockControl, StockLineRecord, StorageMode, StorageStatus
from stock_bot.monitoring import capture_exception, storage_retrying
from stock_bot.storage.local import LocalStore
from stock_bot.storage.remote import RemoteStore

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], Awaitable[None] | None]

LOCAL_CONFIG_NAME = "Local Storage"

# Domain field -> storage column
ITEM_FIELD_COLUMNS = {
    "user1_value": "user1_value",
    "user2_value": "user2_value",
    "corrected": "corregido",
    "result": "resultado",
}


@dataclass
class ConnectionState:
    """Which backend serves storage calls. Owned by the application, not the module."""

    use_remote: bool = False
    initialized: bool = False
    config_name: str = LOCAL_CONFIG_NAME

    @property
    def mode(self) -> StorageMode:
        return StorageMode.REMOTE if self.use_remote else StorageMode.LOCAL


class Subscription:
    """Handle returned by StorageFacade.subscribe()."""

    def __init__(self, watcher: ChangeWatcher, callback: ChangeCallback):
        self._watcher = watcher
        self._callback = callback

    def unsubscribe(self) -> None:
        self._watcher.remove(self._callback)


class ChangeWatcher:
    """Polls the remote store and notifies subscribers when its data changes."""

    def __init__(self, remote: RemoteStore, state: ConnectionState, interval: float):
        self.remote = remote
        self.state = state
        self.interval = interval
        self._callbacks: list[ChangeCallback] = []
        self._task: asyncio.Task[None] | None = None

    def add(self, callback: ChangeCallback) -> None:
        self._callbacks.append(callback)
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._poll())
            logger.info("change_watch_started", extra={"interval": self.interval})

    def remove(self, callback: ChangeCallback) -> None:
        with contextlib.suppress(ValueError):
            self._callbacks.remove(callback)
        if not self._callbacks:
            self.stop()

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info("change_watch_stopped")
        self._task = None

    async def _poll(self) -> None:
        previous: tuple[Any, ...] | None = None
        while self.state.use_remote:
            try:
                current = await self.remote.fingerprint()
            except Exception as e:
                logger.warning("change_watch_failed", extra={"error": str(e)})
            else:
                if previous is not None and current != previous:
                    await self.dispatch()
                previous = current
            await asyncio.sleep(self.interval)

    async def dispatch(self) -> None:
        """Run every subscriber callback; one failing callback does not stop the rest."""
        for callback in list(self._callbacks):
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("change_callback_failed", extra={"error": str(e)}, exc_info=True)


class StorageFacade:
    """Create/read/update/delete stock controls without caring where they live.

    Remote calls are retried a bounded number of times; once they keep
    failing the facade switches to the local store for the rest of the
    application lifetime. Callers never see remote errors.
    """

    def __init__(
        self,
        state: ConnectionState,
        local: LocalStore,
        remote: RemoteStore | None = None,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        watch_interval: float = 5.0,
    ):
        self.state = state
        self.local = local
        self.remote = remote
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._watcher = (
            ChangeWatcher(remote, state, watch_interval) if remote is not None else None
        )
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> bool:
        """Check the remote store once. Returns True when it will be used."""
        if self.state.initialized:
            return self.state.use_remote

        async with self._init_lock:
            if self.state.initialized:
                return self.state.use_remote

            await self.local.initialize()

            use_remote = False
            if self.remote is not None:
                try:
                    use_remote = await self.remote.test_connection()
                except Exception as e:
                    logger.error("storage_init_failed", extra={"error": str(e)}, exc_info=True)

            self.state.use_remote = use_remote
            self.state.config_name = (
                self.remote.config_name if use_remote and self.remote else LOCAL_CONFIG_NAME
            )
            self.state.initialized = True

        logger.info(
            "storage_initialized",
            extra={"mode": self.state.mode.value, "config_name": self.state.config_name},
        )
        return self.state.use_remote

    def _degrade(self, action: str, error: Exception) -> None:
        """Switch to the local store after the remote one kept failing."""
        self.state.use_remote = False
        self.state.config_name = LOCAL_CONFIG_NAME
        if self._watcher is not None:
            self._watcher.stop()
        logger.warning("storage_degraded", extra={"action": action, "error": str(error)})
        capture_exception(error, {"action": action})

    async def _remote_call(
        self,
        action: str,
        call: Callable[[RemoteStore], Awaitable[Any]],
    ) -> tuple[bool, Any]:
        """Run a remote call with retries. Returns (succeeded, value)."""
        await self.initialize()
        if not self.state.use_remote or self.remote is None:
            return False, None

        remote = self.remote
        try:
            async for attempt in storage_retrying(self.retry_attempts, self.retry_delay):
                with attempt:
                    value = await call(remote)
        except Exception as e:
            self._degrade(action, e)
            return False, None
        return True, value

    async def create_batch(
        self,
        name: str,
        created_by: str,
        records: list[StockLineRecord],
    ) -> StockControl:
        """Persist a new control with one item per parsed record."""
        rows = [
            {
                "codigo": record.code,
                "denominacion": record.name,
                "stock_sistema": record.system_quantity,
            }
            for record in records
        ]

        ok, data = await self._remote_call(
            "create_batch",
            lambda remote: remote.create_control(name, created_by, rows),
        )
        if not ok:
            data = await self.local.create_control(name, created_by, rows)

        control = StockControl.from_row(data)
        logger.info(
            "control_created",
            extra={
                "control_id": control.id,
                "items_count": len(control.items),
                "mode": self.state.mode.value,
            },
        )
        return control

    async def list_batches(self) -> list[StockControl]:
        """All controls, newest first."""
        ok, rows = await self._remote_call("list_batches", lambda remote: remote.list_controls())
        if not ok:
            rows = await self.local.list_controls()
        return [StockControl.from_row(row) for row in rows]

    async def get_batch(self, control_id: str) -> StockControl | None:
        ok, row = await self._remote_call(
            "get_batch",
            lambda remote: remote.get_control(control_id),
        )
        if not ok:
            row = await self.local.get_control(control_id)
        return StockControl.from_row(row) if row else None

    async def update_item(self, item_id: str, fields: dict[str, Any]) -> None:
        """Merge count/correction fields into one item."""
        unknown = set(fields) - set(ITEM_FIELD_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown item fields: {sorted(unknown)}")

        row = {ITEM_FIELD_COLUMNS[key]: value for key, value in fields.items()}
        row["updated_at"] = datetime.now().isoformat()

        ok, _ = await self._remote_call(
            "update_item",
            lambda remote: remote.update_item(item_id, row),
        )
        if not ok:
            await self.local.update_item(item_id, row)

        logger.debug("item_updated", extra={"item_id": item_id, "fields": sorted(fields)})

    async def delete_batch(self, control_id: str) -> None:
        """Delete a control and all of its items."""
        ok, _ = await self._remote_call(
            "delete_batch",
            lambda remote: remote.delete_control(control_id),
        )
        if not ok:
            await self.local.delete_control(control_id)

        logger.info("control_deleted", extra={"control_id": control_id})

    def subscribe(self, callback: ChangeCallback) -> Subscription | None:
        """Get notified when remote data changes. None in local mode."""
        if not self.state.use_remote or self._watcher is None:
            logger.info("change_watch_unavailable", extra={"mode": self.state.mode.value})
            return None

        self._watcher.add(callback)
        return Subscription(self._watcher, callback)

    async def status(self) -> StorageStatus:
        await self.initialize()
        return StorageStatus(
            mode=self.state.mode,
            config_name=self.state.config_name,
            real_time=self.state.use_remote,
            degraded=self.remote is not None and not self.state.use_remote,
        )

    async def close(self) -> None:
        """Stop watching and release the HTTP client."""
        if self._watcher is not None:
            self._watcher.stop()
        if self.remote is not None:
            await self.remote.close()
