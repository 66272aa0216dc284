"""Monitoring utilities: alerts, retry logic, error tracking."""

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import httpx
import sentry_sdk
from aiogram import Bot
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from stock_bot.config import get_settings

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


async def alert_users(bot: Bot, user_ids: list[int], message: str) -> None:
    """Send a notification to a group of users, ignoring unreachable chats."""
    for user_id in user_ids:
        try:
            await bot.send_message(user_id, message)
        except Exception as e:
            logger.warning("alert_send_failed", extra={"user_id": user_id, "error": str(e)})


def capture_exception(error: Exception, context: dict | None = None) -> None:
    """Capture exception to Sentry if configured."""
    settings = get_settings()
    if settings.sentry_dsn:
        with sentry_sdk.new_scope() as scope:
            if context:
                for key, value in context.items():
                    scope.set_extra(key, value)
            sentry_sdk.capture_exception(error)
    logger.error("error_captured", extra={"error_type": type(error).__name__, "error": str(error)}, exc_info=error)


# Transient errors worth retrying (network issues, rate limits, server errors)
RETRYABLE_EXCEPTIONS = (
    httpx.TransportError,  # Connect/read failures and timeouts
    ConnectionError,       # Network connection issues
    TimeoutError,          # Request timeouts
)


def is_retryable(error: BaseException) -> bool:
    """Whether a storage failure is transient."""
    # RemoteStoreError decides from the HTTP status
    retryable = getattr(error, "retryable", None)
    if retryable is not None:
        return bool(retryable)
    return isinstance(error, RETRYABLE_EXCEPTIONS)


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "storage_retry",
        extra={
            "attempt": retry_state.attempt_number,
            "error": str(outcome.exception()) if outcome else "",
        },
    )


def storage_retrying(attempts: int, delay: float) -> AsyncRetrying:
    """Retry policy for remote storage: bounded attempts, linearly growing wait."""
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(start=delay, increment=delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    )


def with_error_capture(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """Decorator to capture errors to Sentry for async functions."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            capture_exception(e, {"function": func.__name__})
            raise

    return wrapper
