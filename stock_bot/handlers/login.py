"""Role selection and leader password handlers."""

import contextlib

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message, ReplyKeyboardRemove

from stock_bot.config import get_settings
from stock_bot.keyboards import BTN_CANCEL, BTN_LOGOUT, cancel_keyboard, menu_for
from stock_bot.models import Role
from stock_bot.security import RoleSessionStore, check_leader_password
from stock_bot.utils import escape_html

router = Router()


class LoginState(StatesGroup):
    """FSM states for login."""

    waiting_for_password = State()


@router.callback_query(F.data.startswith("role_"))
async def choose_role(callback: CallbackQuery, state: FSMContext, role_store: RoleSessionStore) -> None:
    """Handle role buttons from /start."""
    try:
        chosen = Role(callback.data.removeprefix("role_"))
    except ValueError:
        await callback.answer("Rol desconocido", show_alert=True)
        return

    await callback.answer()

    if chosen == Role.LEADER:
        await state.set_state(LoginState.waiting_for_password)
        await callback.message.answer(
            "🔐 Ingresa la contraseña de líder:",
            reply_markup=cancel_keyboard(),
        )
        return

    name = get_settings().counter_name(chosen.value)
    await role_store.set(callback.from_user.id, chosen, name)
    await state.clear()
    await callback.message.answer(
        f"👋 Bienvenido, {escape_html(name)}.\n\nAbre un control para empezar a contar.",
        reply_markup=menu_for(chosen),
    )


@router.message(LoginState.waiting_for_password, F.text, ~F.text.startswith("/"), F.text != BTN_CANCEL)
async def process_password(message: Message, state: FSMContext, role_store: RoleSessionStore) -> None:
    """Check the leader password."""
    if not message.from_user or not message.text:
        return

    # Do not leave the password in the chat history
    with contextlib.suppress(TelegramBadRequest):
        await message.delete()

    if not check_leader_password(message.text):
        await message.answer("❌ Contraseña incorrecta. Intenta de nuevo o pulsa Cancelar.")
        return

    display_name = message.from_user.full_name or "Líder"
    await role_store.set(message.from_user.id, Role.LEADER, display_name)
    await state.clear()
    await message.answer(
        f"👑 Bienvenido, {escape_html(display_name)}.",
        reply_markup=menu_for(Role.LEADER),
    )


@router.message(F.text == BTN_CANCEL)
async def handle_cancel(message: Message, state: FSMContext, role: Role | None = None) -> None:
    """Handle cancel from reply keyboard."""
    await state.clear()
    await message.answer(
        "🏠 Acción cancelada.",
        reply_markup=menu_for(role) or ReplyKeyboardRemove(),
    )


@router.message(F.text == BTN_LOGOUT)
async def handle_logout(message: Message, state: FSMContext, role_store: RoleSessionStore) -> None:
    """Handle logout button."""
    await state.clear()
    if message.from_user:
        await role_store.clear(message.from_user.id)
    await message.answer(
        "👋 Sesión cerrada. Usa /start para volver a entrar.",
        reply_markup=ReplyKeyboardRemove(),
    )
