"""Control list and control view, shared by leader and counters."""

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from stock_bot.config import get_settings
from stock_bot.keyboards import (
    BTN_CONTROLS,
    controls_list_keyboard,
    counter_control_keyboard,
    leader_control_keyboard,
)
from stock_bot.models import Role, StockControl
from stock_bot.security import RoleFilter
from stock_bot.services.control_service import ControlService, ControlServiceError
from stock_bot.utils import escape_html

router = Router()

ITEMS_PER_PAGE = 20

LoggedIn = RoleFilter(Role.LEADER, Role.USER1, Role.USER2)


async def show_controls_list(message: Message, control_service: ControlService, role: Role) -> None:
    """Send the list of controls with the caller's progress."""
    controls = await control_service.list_controls()

    if not controls:
        if role == Role.LEADER:
            text = "📭 No hay controles. Crea uno con «➕ Nuevo control»."
        else:
            text = "📭 No hay controles disponibles.\nEl líder aún no ha creado ningún control de stock."
        await message.answer(text)
        return

    await message.answer(
        f"📋 <b>Controles de stock</b> — {len(controls)}\n\nElige un control:",
        reply_markup=controls_list_keyboard(controls, role),
    )


def total_pages(control: StockControl) -> int:
    return max(1, (len(control.items) + ITEMS_PER_PAGE - 1) // ITEMS_PER_PAGE)


async def show_control(
    message: Message,
    control: StockControl,
    role: Role,
    control_service: ControlService,
    show_results: bool = False,
    page: int = 1,
    edit: bool = False,
) -> None:
    """Render a control for the given role."""
    settings = get_settings()
    summary = control_service.format_control_summary(
        control, settings.counter1_name, settings.counter2_name
    )

    if role == Role.LEADER:
        pages = total_pages(control)
        page = min(max(page, 1), pages)
        text = summary + "\n\n" + control_service.format_control_table(
            control, show_results, page=page, per_page=ITEMS_PER_PAGE
        )
        markup = leader_control_keyboard(control.id, show_results, page, pages)
    else:
        pending = len(control.pending_for(role))
        text = (
            f"📋 <b>{escape_html(control.name)}</b>\n"
            f"📦 Contados: {control.counted_by(role)}/{len(control.items)}\n"
        )
        text += "✅ Ya contaste todos los productos." if not pending else f"⏳ Pendientes: {pending}"
        markup = counter_control_keyboard(control.id, pending)

    if edit:
        try:
            await message.edit_text(text, reply_markup=markup)
            return
        except TelegramBadRequest:
            # "message is not modified" or too old to edit
            pass
    await message.answer(text, reply_markup=markup)


@router.message(F.text == BTN_CONTROLS, LoggedIn)
async def list_controls(message: Message, state: FSMContext, control_service: ControlService, role: Role) -> None:
    """Show all controls."""
    await state.clear()
    await show_controls_list(message, control_service, role)


@router.callback_query(F.data == "ctl_list", LoggedIn)
async def list_controls_callback(
    callback: CallbackQuery,
    state: FSMContext,
    control_service: ControlService,
    role: Role,
) -> None:
    await state.clear()
    await callback.answer()
    await show_controls_list(callback.message, control_service, role)


@router.callback_query(F.data.startswith("ctl_open_"), LoggedIn)
async def open_control(
    callback: CallbackQuery,
    state: FSMContext,
    control_service: ControlService,
    role: Role,
) -> None:
    """Open (or refresh) a control."""
    control_id = callback.data.removeprefix("ctl_open_")

    try:
        control = await control_service.get_control(control_id)
    except ControlServiceError as e:
        await callback.answer(e.user_message, show_alert=True)
        return

    data = await state.get_data()
    same_control = data.get("control_id") == control_id
    show_results = data.get("show_results", False) if same_control else False
    page = data.get("page", 1) if same_control else 1

    await state.clear()
    await state.update_data(control_id=control_id, show_results=show_results, page=page)
    await callback.answer()
    await show_control(
        callback.message,
        control,
        role,
        control_service,
        show_results=show_results,
        page=page,
        edit=same_control,
    )


@router.callback_query(F.data == "noop")
async def noop(callback: CallbackQuery) -> None:
    await callback.answer()

