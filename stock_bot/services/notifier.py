"""Tell leaders when both counters have finished a control."""

import logging

from aiogram import Bot

from stock_bot.models import Role, StockControl
from stock_bot.monitoring import alert_users, with_error_capture
from stock_bot.security import RoleSessionStore
from stock_bot.services.control_service import ControlService
from stock_bot.utils import escape_html

logger = logging.getLogger(__name__)


class CompletionNotifier:
    """Sends one message per control when it becomes fully counted."""

    def __init__(self, bot: Bot, control_service: ControlService, role_store: RoleSessionStore):
        self.bot = bot
        self.control_service = control_service
        self.role_store = role_store
        self._notified: set[str] = set()

    async def seed(self) -> None:
        """Remember controls that were already complete before startup."""
        controls = await self.control_service.list_controls()
        self._notified = {c.id for c in controls if c.is_fully_counted}
        logger.info("completion_notifier_seeded", extra={"complete_count": len(self._notified)})

    @with_error_capture
    async def check(self) -> int:
        """Notify leaders about newly completed controls. Returns how many."""
        controls = await self.control_service.list_controls()
        existing = {c.id for c in controls}
        # Forget deleted controls
        self._notified &= existing

        completed = [c for c in controls if c.is_fully_counted and c.id not in self._notified]
        if not completed:
            return 0

        leaders = await self.role_store.users_with_role(Role.LEADER)
        for control in completed:
            self._notified.add(control.id)
            await alert_users(self.bot, leaders, self.format_message(control))
            logger.info(
                "control_completed",
                extra={"control_id": control.id, "leaders_count": len(leaders)},
            )
        return len(completed)

    @staticmethod
    def format_message(control: StockControl) -> str:
        mismatches = sum(1 for item in control.items if not item.counts_match)
        text = f"✅ Conteo completo: <b>{escape_html(control.name)}</b> ({len(control.items)} productos)"
        if mismatches:
            text += f"\n⚠️ {mismatches} productos con conteos distintos."
        return text
