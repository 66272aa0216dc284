"""SQLite storage for stock controls.

Used directly in local-only deployments and as the fallback when the
remote store is unreachable.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = "data/stock_control.db"

ITEM_COLUMNS = (
    "codigo",
    "denominacion",
    "stock_sistema",
    "user1_value",
    "user2_value",
    "corregido",
    "resultado",
)


class LocalStore:
    """SQLite-backed storage for controls and their items."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        self._initialized = False

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(self.db_path)

    async def _ensure_initialized(self) -> None:
        """Ensure database and tables exist."""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS stock_controls (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_by TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS stock_items (
                    id TEXT PRIMARY KEY,
                    control_id TEXT NOT NULL
                        REFERENCES stock_controls(id) ON DELETE CASCADE,
                    codigo TEXT NOT NULL,
                    denominacion TEXT NOT NULL,
                    stock_sistema INTEGER NOT NULL DEFAULT 0,
                    user1_value INTEGER,
                    user2_value INTEGER,
                    corregido INTEGER,
                    resultado INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_stock_items_control
                ON stock_items(control_id)
            """)
            await db.commit()

        self._initialized = True

    async def initialize(self) -> None:
        await self._ensure_initialized()

    async def list_controls(self) -> list[dict[str, Any]]:
        """Get all controls with nested stock_items, newest first."""
        await self._ensure_initialized()

        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM stock_controls ORDER BY created_at DESC, rowid DESC"
            )
            controls = [dict(row) for row in await cursor.fetchall()]

            cursor = await db.execute("SELECT * FROM stock_items ORDER BY rowid")
            items_by_control: dict[str, list[dict[str, Any]]] = {}
            for row in await cursor.fetchall():
                items_by_control.setdefault(row["control_id"], []).append(dict(row))

        for control in controls:
            control["stock_items"] = items_by_control.get(control["id"], [])
        return controls

    async def get_control(self, control_id: str) -> dict[str, Any] | None:
        await self._ensure_initialized()

        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM stock_controls WHERE id = ?",
                (control_id,),
            )
            row = await cursor.fetchone()
            if not row:
                return None

            control = dict(row)
            cursor = await db.execute(
                "SELECT * FROM stock_items WHERE control_id = ? ORDER BY rowid",
                (control_id,),
            )
            control["stock_items"] = [dict(item) for item in await cursor.fetchall()]

        return control

    async def create_control(
        self,
        name: str,
        created_by: str,
        items: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Insert a control and its items in one transaction."""
        await self._ensure_initialized()

        now = datetime.now().isoformat()
        control = {
            "id": f"control_{uuid.uuid4().hex}",
            "name": name,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        rows = [
            {
                "id": f"item_{uuid.uuid4().hex}",
                "control_id": control["id"],
                "codigo": item["codigo"],
                "denominacion": item["denominacion"],
                "stock_sistema": item.get("stock_sistema", 0),
                "user1_value": item.get("user1_value"),
                "user2_value": item.get("user2_value"),
                "corregido": item.get("corregido"),
                "resultado": item.get("resultado"),
                "created_at": now,
                "updated_at": now,
            }
            for item in items
        ]

        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO stock_controls (id, name, created_by, created_at, updated_at)
                VALUES (:id, :name, :created_by, :created_at, :updated_at)
                """,
                control,
            )
            await db.executemany(
                """
                INSERT INTO stock_items (
                    id, control_id, codigo, denominacion, stock_sistema,
                    user1_value, user2_value, corregido, resultado,
                    created_at, updated_at
                )
                VALUES (
                    :id, :control_id, :codigo, :denominacion, :stock_sistema,
                    :user1_value, :user2_value, :corregido, :resultado,
                    :created_at, :updated_at
                )
                """,
                rows,
            )
            await db.commit()

        logger.debug(
            "local_control_created",
            extra={"control_id": control["id"], "items_count": len(rows)},
        )
        return {**control, "stock_items": rows}

    async def update_item(self, item_id: str, fields: dict[str, Any]) -> bool:
        """Merge known columns into one item. Returns False if it does not exist."""
        await self._ensure_initialized()

        updates = {key: value for key, value in fields.items() if key in ITEM_COLUMNS}
        updates["updated_at"] = fields.get("updated_at") or datetime.now().isoformat()
        assignments = ", ".join(f"{column} = :{column}" for column in updates)

        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE stock_items SET {assignments} WHERE id = :item_id",
                {**updates, "item_id": item_id},
            )
            await db.commit()
            return cursor.rowcount > 0

    async def delete_control(self, control_id: str) -> bool:
        """Delete a control and, through the cascade, its items."""
        await self._ensure_initialized()

        async with self._connect() as db:
            await db.execute("PRAGMA foreign_keys = ON")
            cursor = await db.execute(
                "DELETE FROM stock_controls WHERE id = ?",
                (control_id,),
            )
            await db.commit()
            return cursor.rowcount > 0
