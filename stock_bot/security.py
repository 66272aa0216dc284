"""Role sessions, leader password check and role middleware.

There is no real authentication: a role is a label attached to a Telegram
user, and the leader role is guarded by a shared password only.
"""

import logging
import os
import secrets
from datetime import datetime
from typing import Any, Awaitable, Callable

import aiosqlite
from aiogram import BaseMiddleware
from aiogram.filters import BaseFilter
from aiogram.types import CallbackQuery, Message, TelegramObject

from stock_bot.config import get_settings
from stock_bot.models import Role

logger = logging.getLogger(__name__)


def check_leader_password(candidate: str) -> bool:
    """Compare a typed password with the configured leader password."""
    expected = get_settings().leader_password
    return secrets.compare_digest(candidate.strip().encode(), expected.encode())


class RoleSessionStore:
    """SQLite-backed mapping from Telegram user to chosen role."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Ensure database and table exist."""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS user_roles (
                    user_id INTEGER PRIMARY KEY,
                    role TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.commit()

        self._initialized = True

    async def get(self, user_id: int) -> Role | None:
        """Get the role a user logged in with."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT role FROM user_roles WHERE user_id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()

        if not row:
            return None
        try:
            return Role(row[0])
        except ValueError:
            logger.error("user_role_corrupted", extra={"user_id": user_id, "role": row[0]})
            return None

    async def set(self, user_id: int, role: Role, display_name: str) -> None:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO user_roles (user_id, role, display_name, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    role = excluded.role,
                    display_name = excluded.display_name,
                    updated_at = excluded.updated_at
                """,
                (user_id, role.value, display_name, datetime.now().isoformat()),
            )
            await db.commit()

        logger.info("user_role_set", extra={"user_id": user_id, "role": role.value})

    async def clear(self, user_id: int) -> bool:
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM user_roles WHERE user_id = ?",
                (user_id,),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def users_with_role(self, role: Role) -> list[int]:
        """Telegram user IDs currently logged in with a role."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT user_id FROM user_roles WHERE role = ?",
                (role.value,),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]


class RoleMiddleware(BaseMiddleware):
    """Outer middleware that puts the user's role into handler data as `role`."""

    def __init__(self, store: RoleSessionStore):
        self.store = store

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user_id: int | None = None

        if isinstance(event, Message) and event.from_user:
            user_id = event.from_user.id
        elif isinstance(event, CallbackQuery) and event.from_user:
            user_id = event.from_user.id

        data["role"] = await self.store.get(user_id) if user_id is not None else None
        data["role_store"] = self.store
        return await handler(event, data)


class RoleFilter(BaseFilter):
    """Let a handler run only for the given roles."""

    def __init__(self, *roles: Role):
        self.roles = set(roles)

    async def __call__(self, event: TelegramObject, role: Role | None = None) -> bool:
        return role in self.roles


LeaderOnly = RoleFilter(Role.LEADER)
CounterOnly = RoleFilter(Role.USER1, Role.USER2)
