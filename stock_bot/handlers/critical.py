"""Critical commands that always work regardless of FSM state.

This router must be registered FIRST to ensure these commands
take priority over any FSM state handlers.
"""

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, ReplyKeyboardRemove

from stock_bot.config import get_settings
from stock_bot.keyboards import menu_for, role_keyboard
from stock_bot.models import Role
from stock_bot.security import RoleSessionStore

router = Router()


@router.message(Command("start"))
async def cmd_start(message: Message, state: FSMContext, role: Role | None = None) -> None:
    """Handle /start - clears state, shows the menu or the role choice."""
    await state.clear()
    settings = get_settings()

    if role is not None:
        await message.answer(
            "🏠 Menú principal.",
            reply_markup=menu_for(role),
        )
        return

    await message.answer(
        "📦 <b>Alfonsa Bebidas — Control de Stock</b>\n\n"
        "Elige tu rol para acceder al sistema:",
        reply_markup=role_keyboard(settings.counter1_name, settings.counter2_name),
    )


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext, role: Role | None = None) -> None:
    """Handle /cancel - emergency exit from any state."""
    await state.clear()
    await message.answer(
        "🏠 Acción cancelada. Volviendo al menú principal.",
        reply_markup=menu_for(role) or ReplyKeyboardRemove(),
    )


@router.message(Command("logout"))
async def cmd_logout(message: Message, state: FSMContext, role_store: RoleSessionStore) -> None:
    """Handle /logout - forget the role of this user."""
    await state.clear()
    if message.from_user:
        await role_store.clear(message.from_user.id)
    await message.answer(
        "👋 Sesión cerrada. Usa /start para volver a entrar.",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(Command("help"))
async def cmd_help(message: Message, state: FSMContext) -> None:
    """Handle /help - show help message."""
    await state.clear()
    await message.answer(
        "📖 <b>Ayuda</b>\n\n"
        "<b>Comandos:</b>\n"
        "/start — menú principal o elección de rol\n"
        "/cancel — cancelar la acción actual\n"
        "/status — estado del almacenamiento\n"
        "/logout — cerrar sesión\n"
        "/help — esta ayuda\n\n"
        "<b>Líder:</b> crea controles pegando los datos de Husky, "
        "corrige con líneas <code>código valor</code> y exporta a CSV.\n"
        "<b>Contadores:</b> abren un control y cargan la cantidad contada "
        "de cada producto, o envían líneas <code>código cantidad</code>."
    )
