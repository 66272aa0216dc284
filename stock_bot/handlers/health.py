"""Storage status handlers."""

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message

from stock_bot.handlers.controls import LoggedIn
from stock_bot.keyboards import BTN_STATUS, menu_for
from stock_bot.models import Role, StorageMode
from stock_bot.storage import StorageFacade
from stock_bot.utils import escape_html

router = Router()


@router.message(F.text == BTN_STATUS, LoggedIn)
@router.message(Command("status"))
async def show_status(message: Message, storage: StorageFacade, role: Role | None = None) -> None:
    """Show which storage backend is in use."""
    status = await storage.status()
    config_name = escape_html(status.config_name)

    lines = ["🔧 <b>Estado del sistema</b>\n"]
    if status.mode == StorageMode.REMOTE:
        lines += [
            "✅ <b>Supabase</b>",
            f"   Proyecto: {config_name}",
            "   Sincronización: en tiempo real",
        ]
    else:
        lines += [
            "💾 <b>Almacenamiento local</b>",
            f"   Configuración: {config_name}",
            "   Sincronización: no disponible",
        ]
        if status.degraded:
            lines.append("\n⚠️ Supabase no respondió; los cambios se guardan solo en este servidor.")

    await message.answer("\n".join(lines), reply_markup=menu_for(role))


@router.message(Command("health"))
async def health_check(message: Message, storage: StorageFacade) -> None:
    """Simple health check for monitoring."""
    status = await storage.status()
    if status.degraded:
        await message.answer(f"⚠️ DEGRADED: {escape_html(status.config_name)}")
    else:
        await message.answer(f"✅ OK ({status.mode.value})")
