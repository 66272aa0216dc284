"""Telegram bot handlers."""

from aiogram import Router

from stock_bot.handlers.controls import router as controls_router
from stock_bot.handlers.critical import router as critical_router
from stock_bot.handlers.dashboard import router as dashboard_router
from stock_bot.handlers.fallback import router as fallback_router
from stock_bot.handlers.health import router as health_router
from stock_bot.handlers.login import router as login_router
from stock_bot.handlers.verification import router as verification_router


def get_main_router() -> Router:
    """Create and configure main router with all sub-routers."""
    main_router = Router()

    # Critical commands FIRST - always work regardless of FSM state
    main_router.include_router(critical_router)

    # Order matters: more specific handlers first
    main_router.include_router(health_router)
    main_router.include_router(login_router)
    main_router.include_router(dashboard_router)
    main_router.include_router(verification_router)
    main_router.include_router(controls_router)

    # Users without a role end up here
    main_router.include_router(fallback_router)

    return main_router


__all__ = ["get_main_router"]
