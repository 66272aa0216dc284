"""Catch-all handlers for users without a role. Registered LAST."""

from aiogram import F, Router
from aiogram.types import CallbackQuery, Message

from stock_bot.keyboards import BTN_CONTROLS, BTN_NEW_CONTROL, BTN_STATUS

router = Router()

NOT_LOGGED_IN = "🔐 Primero elige tu rol con /start."


@router.message(F.text.in_({BTN_CONTROLS, BTN_NEW_CONTROL, BTN_STATUS}))
async def menu_without_role(message: Message) -> None:
    """Menu buttons pressed after logout or by a counter on leader buttons."""
    await message.answer(NOT_LOGGED_IN)


@router.callback_query(F.data.startswith("ctl_") | F.data.startswith("count_") | F.data.startswith("import_"))
async def action_without_role(callback: CallbackQuery) -> None:
    await callback.answer(NOT_LOGGED_IN, show_alert=True)


@router.callback_query(F.data == "cancel")
async def cancel_callback(callback: CallbackQuery) -> None:
    """Inline cancel outside of any flow."""
    await callback.answer("Cancelado")
