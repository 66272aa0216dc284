"""Business logic services."""

from stock_bot.services.control_service import ControlService, ControlServiceError
from stock_bot.services.notifier import CompletionNotifier

__all__ = ["CompletionNotifier", "ControlService", "ControlServiceError"]
