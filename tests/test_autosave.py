"""Tests for the debounced writer."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from stock_bot.autosave import CoalescingWriter


@pytest.mark.asyncio
async def test_write_runs_after_delay():
    writer = CoalescingWriter(0.01)
    write = AsyncMock()

    writer.schedule("item_1", write)
    assert writer.is_pending("item_1")
    write.assert_not_called()

    await asyncio.sleep(0.05)

    write.assert_awaited_once()
    assert not writer.is_pending("item_1")


@pytest.mark.asyncio
async def test_newer_write_supersedes_pending():
    writer = CoalescingWriter(0.02)
    first = AsyncMock()
    second = AsyncMock()

    writer.schedule("item_1", first)
    writer.schedule("item_1", second)
    await asyncio.sleep(0.08)

    first.assert_not_called()
    second.assert_awaited_once()


@pytest.mark.asyncio
async def test_keys_are_independent():
    writer = CoalescingWriter(0.01)
    write_a = AsyncMock()
    write_b = AsyncMock()

    writer.schedule("a", write_a)
    writer.schedule("b", write_b)
    assert writer.pending_count == 2
    await asyncio.sleep(0.05)

    write_a.assert_awaited_once()
    write_b.assert_awaited_once()
    assert writer.pending_count == 0


@pytest.mark.asyncio
async def test_flush_runs_pending_writes_immediately():
    writer = CoalescingWriter(60)
    write = AsyncMock()

    writer.schedule("item_1", write)
    written = await writer.flush()

    assert written == 1
    write.assert_awaited_once()
    assert writer.pending_count == 0


@pytest.mark.asyncio
async def test_cancel_drops_write():
    writer = CoalescingWriter(0.01)
    write = AsyncMock()

    writer.schedule("item_1", write)
    assert writer.cancel("item_1") is True
    await asyncio.sleep(0.05)

    write.assert_not_called()
    assert writer.cancel("item_1") is False


@pytest.mark.asyncio
async def test_failed_write_is_logged_not_raised(caplog):
    writer = CoalescingWriter(60)
    write = AsyncMock(side_effect=RuntimeError("db down"))

    writer.schedule("item_1", write)
    written = await writer.flush()

    assert written == 0
    assert "autosave_write_failed" in caplog.text


@pytest.mark.asyncio
async def test_writes_for_same_key_never_overlap():
    writer = CoalescingWriter(0.01)
    calls = []

    async def slow_write():
        calls.append("a-start")
        await asyncio.sleep(0.1)
        calls.append("a-end")

    async def fast_write():
        calls.append("b")

    writer.schedule("item_1", slow_write)
    await asyncio.sleep(0.03)
    assert writer.is_writing("item_1")

    writer.schedule("item_1", fast_write)
    await asyncio.sleep(0.2)

    assert calls == ["a-start", "a-end", "b"]
    assert not writer.is_writing("item_1")


@pytest.mark.asyncio
async def test_flush_waits_for_running_write():
    writer = CoalescingWriter(0.01)
    done = []

    async def slow_write():
        await asyncio.sleep(0.1)
        done.append(True)

    writer.schedule("item_1", slow_write)
    await asyncio.sleep(0.03)
    await writer.flush()

    assert done == [True]
