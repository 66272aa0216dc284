"""Main entry point for the Stock Control bot."""

import asyncio
import logging
import sys

import sentry_sdk
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from stock_bot.autosave import CoalescingWriter
from stock_bot.config import get_settings
from stock_bot.handlers import get_main_router
from stock_bot.security import RoleMiddleware, RoleSessionStore
from stock_bot.services import CompletionNotifier, ControlService
from stock_bot.stock_parser import ParserOptions
from stock_bot.storage import ConnectionState, LocalStore, RemoteStore, StorageFacade, Subscription


def setup_logging() -> None:
    """Configure logging based on settings."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    # Reduce noise from libraries
    logging.getLogger("aiogram").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def setup_sentry() -> None:
    """Initialize Sentry SDK if DSN is configured."""
    settings = get_settings()
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
            send_default_pii=False,
        )
        logging.getLogger(__name__).info(
            f"Sentry initialized for environment: {settings.environment}"
        )


def build_storage() -> StorageFacade:
    """Wire the local store and, when configured, the Supabase store."""
    settings = get_settings()
    remote = None
    if settings.remote_enabled:
        remote = RemoteStore(settings.supabase_url, settings.supabase_anon_key)

    return StorageFacade(
        ConnectionState(),
        LocalStore(str(settings.db_path)),
        remote,
        retry_attempts=settings.storage_retry_attempts,
        retry_delay=settings.storage_retry_delay,
        watch_interval=settings.watch_interval,
    )


async def on_startup(
    bot: Bot,
    storage: StorageFacade,
    notifier: CompletionNotifier,
    dispatcher: Dispatcher,
) -> None:
    """Startup tasks."""
    logger = logging.getLogger(__name__)

    use_remote = await storage.initialize()
    await notifier.seed()
    dispatcher["subscription"] = storage.subscribe(notifier.check)

    me = await bot.get_me()
    logger.info(
        "bot_started",
        extra={"username": me.username, "bot_id": me.id, "remote": use_remote},
    )


async def on_shutdown(
    bot: Bot,
    storage: StorageFacade,
    control_service: ControlService,
    dispatcher: Dispatcher,
) -> None:
    """Shutdown tasks."""
    logger = logging.getLogger(__name__)
    logger.info("Bot shutting down...")

    # Corrections still waiting for the autosave timer
    written = await control_service.writer.flush()
    if written:
        logger.info("pending_corrections_saved", extra={"count": written})

    subscription: Subscription | None = dispatcher.get("subscription")
    if subscription is not None:
        subscription.unsubscribe()
    await storage.close()

    await bot.session.close()


async def main() -> None:
    """Main async entry point."""
    setup_logging()
    setup_sentry()
    logger = logging.getLogger(__name__)

    settings = get_settings()

    # Create bot and dispatcher
    bot = Bot(
        token=settings.telegram_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    dp = Dispatcher(storage=MemoryStorage())

    storage = build_storage()
    control_service = ControlService(
        storage,
        CoalescingWriter(settings.autosave_delay),
        ParserOptions.from_settings(settings),
    )
    role_store = RoleSessionStore(str(settings.db_path))
    notifier = CompletionNotifier(bot, control_service, role_store)

    # Shared objects reach handlers as keyword arguments
    dp["storage"] = storage
    dp["control_service"] = control_service
    dp["notifier"] = notifier

    # Outer middleware so role filters can see the role
    dp.message.outer_middleware(RoleMiddleware(role_store))
    dp.callback_query.outer_middleware(RoleMiddleware(role_store))

    # Register routers
    dp.include_router(get_main_router())

    # Register lifecycle handlers
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    logger.info("Starting bot polling...")

    try:
        await dp.start_polling(
            bot,
            allowed_updates=["message", "callback_query"],
        )
    finally:
        await bot.session.close()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
