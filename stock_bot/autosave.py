"""Debounced writes: one pending write per key, the latest one wins."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable

logger = logging.getLogger(__name__)


class CoalescingWriter:
    """Per-key delayed task scheduler.

    Every schedule() call (re)starts a timer for its key; when the key stays
    quiet for `delay` seconds the last scheduled write runs. A newer write
    for the same key cancels the pending one. Writes for one key never
    overlap: a write that comes due while an earlier one is still running
    waits for it, so the newest value is always stored last.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._pending: dict[Hashable, asyncio.Task[None]] = {}
        self._writes: dict[Hashable, Callable[[], Awaitable[None]]] = {}
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def schedule(self, key: Hashable, write: Callable[[], Awaitable[None]]) -> None:
        """Schedule `write` for `key`, superseding any pending write for it."""
        previous = self._pending.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug("autosave_superseded", extra={"key": str(key)})

        self._writes[key] = write
        self._pending[key] = asyncio.create_task(self._run_later(key))

    async def _run_later(self, key: Hashable) -> None:
        await asyncio.sleep(self.delay)
        await self._run(key)

    def _lock(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _run(self, key: Hashable) -> bool:
        write = self._writes.pop(key, None)
        # Drop our own task handle; from here on a newer schedule() leaves us alone
        self._pending.pop(key, None)
        if write is None:
            return False

        async with self._lock(key):
            try:
                await write()
            except Exception as e:
                logger.error(
                    "autosave_write_failed",
                    extra={"key": str(key), "error": str(e)},
                    exc_info=True,
                )
                return False
        return True

    def is_pending(self, key: Hashable) -> bool:
        return key in self._writes

    def is_writing(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @property
    def pending_count(self) -> int:
        return len(self._writes)

    def cancel(self, key: Hashable) -> bool:
        """Drop a pending write without running it. A running write is not interrupted."""
        task = self._pending.pop(key, None)
        self._writes.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def flush(self) -> int:
        """Run every pending write now and wait for running ones. Returns how many were written."""
        keys = list(self._writes)
        for key in keys:
            task = self._pending.pop(key, None)
            if task is not None:
                task.cancel()

        written = 0
        for key in keys:
            if await self._run(key):
                written += 1

        # Writes that were already in progress when flush() was called
        for lock in list(self._locks.values()):
            async with lock:
                pass

        if written:
            logger.info("autosave_flushed", extra={"count": written})
        return written
