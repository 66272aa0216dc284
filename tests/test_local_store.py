"""Tests for the SQLite store."""

import asyncio

import aiosqlite
import pytest

from stock_bot.storage import LocalStore


ITEMS = [
    {"codigo": "25", "denominacion": "ANIS 8 HERMANOS LITRO", "stock_sistema": 60},
    {"codigo": "275", "denominacion": "BEZIER CREMA DE CASSIS", "stock_sistema": 12},
    {"codigo": "265", "denominacion": "AMARULA 375CC CHICOOO", "stock_sistema": 0},
]


@pytest.mark.asyncio
async def test_create_and_get_control(local_store):
    created = await local_store.create_control("Licores", "Líder", ITEMS)

    assert created["id"].startswith("control_")
    assert len(created["stock_items"]) == 3

    control = await local_store.get_control(created["id"])
    assert control["name"] == "Licores"
    assert [i["codigo"] for i in control["stock_items"]] == ["25", "275", "265"]
    assert control["stock_items"][0]["user1_value"] is None


@pytest.mark.asyncio
async def test_get_missing_control(local_store):
    assert await local_store.get_control("control_missing") is None


@pytest.mark.asyncio
async def test_list_newest_first(local_store):
    first = await local_store.create_control("Primero", "Líder", ITEMS[:1])
    await asyncio.sleep(0.01)
    second = await local_store.create_control("Segundo", "Líder", ITEMS[1:])

    controls = await local_store.list_controls()

    assert [c["id"] for c in controls] == [second["id"], first["id"]]
    assert len(controls[0]["stock_items"]) == 2
    assert len(controls[1]["stock_items"]) == 1


@pytest.mark.asyncio
async def test_update_item_merges_fields(local_store):
    created = await local_store.create_control("Licores", "Líder", ITEMS)
    item_id = created["stock_items"][0]["id"]

    assert await local_store.update_item(item_id, {"user1_value": 58})
    assert await local_store.update_item(item_id, {"corregido": 55, "resultado": -5, "unknown": 1})

    control = await local_store.get_control(created["id"])
    item = control["stock_items"][0]
    assert item["user1_value"] == 58
    assert item["corregido"] == 55
    assert item["resultado"] == -5
    assert item["user2_value"] is None


@pytest.mark.asyncio
async def test_update_missing_item(local_store):
    assert await local_store.update_item("item_missing", {"user1_value": 1}) is False


@pytest.mark.asyncio
async def test_delete_cascades_items(local_store, db_path):
    created = await local_store.create_control("Licores", "Líder", ITEMS)

    assert await local_store.delete_control(created["id"])
    assert await local_store.get_control(created["id"]) is None

    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute("SELECT COUNT(*) FROM stock_items")
        (count,) = await cursor.fetchone()
    assert count == 0


@pytest.mark.asyncio
async def test_creates_missing_directory(tmp_path):
    store = LocalStore(str(tmp_path / "nested" / "dir" / "stock.db"))
    await store.initialize()
    assert (tmp_path / "nested" / "dir" / "stock.db").exists()
