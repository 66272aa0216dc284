"""Counter handlers: count the items of a control one by one."""

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from stock_bot.handlers.controls import show_control
from stock_bot.keyboards import BTN_CANCEL, count_item_keyboard, counter_menu_keyboard
from stock_bot.models import Role
from stock_bot.security import CounterOnly
from stock_bot.services import CompletionNotifier
from stock_bot.services.control_service import (
    ENTRY_LINE,
    AlreadyCountedError,
    ControlService,
    ControlServiceError,
    parse_quantity,
)
from stock_bot.utils import escape_html

router = Router()
router.message.filter(CounterOnly)
router.callback_query.filter(CounterOnly)


class CountState(StatesGroup):
    """FSM states while counting."""

    waiting_for_count = State()


async def _prompt_next(
    message: Message,
    state: FSMContext,
    control_service: ControlService,
    role: Role,
) -> None:
    """Ask for the next pending item, or finish."""
    data = await state.get_data()
    control_id = data.get("control_id")
    skipped = set(data.get("skipped_ids", []))

    try:
        control = await control_service.get_control(control_id)
    except ControlServiceError as e:
        await state.clear()
        await message.answer(e.user_message, reply_markup=counter_menu_keyboard())
        return

    pending = control.pending_for(role)
    candidates = [item for item in pending if item.id not in skipped]

    if not candidates and pending:
        # Everything left was skipped once: go around again
        await state.update_data(skipped_ids=[])
        candidates = pending

    if not candidates:
        await state.set_state(None)
        await message.answer("🎉 ¡Terminaste! Contaste todos los productos de este control.")
        await show_control(message, control, role, control_service)
        return

    item = candidates[0]
    await state.update_data(item_id=item.id)
    await state.set_state(CountState.waiting_for_count)
    await message.answer(
        control_service.format_item_prompt(item, remaining=len(pending)),
        reply_markup=count_item_keyboard(),
    )


@router.callback_query(F.data == "count_next")
async def start_counting(
    callback: CallbackQuery,
    state: FSMContext,
    control_service: ControlService,
    role: Role,
) -> None:
    if not (await state.get_data()).get("control_id"):
        await callback.answer("Abre un control primero", show_alert=True)
        return

    await callback.answer()
    await state.update_data(skipped_ids=[])
    await _prompt_next(callback.message, state, control_service, role)


@router.message(CountState.waiting_for_count, F.text, ~F.text.startswith("/"), F.text != BTN_CANCEL)
async def process_count(
    message: Message,
    state: FSMContext,
    control_service: ControlService,
    notifier: CompletionNotifier,
    role: Role,
) -> None:
    """Save the count for the prompted item, or apply "<code> <qty>" lines."""
    data = await state.get_data()
    control_id = data.get("control_id")

    if any(ENTRY_LINE.match(line) for line in message.text.split("\n") if line.strip()):
        try:
            outcomes = await control_service.apply_entries(control_id, role, message.text)
        except ControlServiceError as e:
            await message.answer(e.user_message)
            return
        await message.answer(control_service.format_outcomes(outcomes))
        await _prompt_next(message, state, control_service, role)
        await notifier.check()
        return

    try:
        value = parse_quantity(message.text)
        item = await control_service.record_count(control_id, role, data.get("item_id"), value)
    except ControlServiceError as e:
        await message.answer(e.user_message)
        if isinstance(e, AlreadyCountedError):
            await _prompt_next(message, state, control_service, role)
        return

    await message.answer(f"✅ <code>{escape_html(item.code)}</code> {escape_html(item.name)}: {value}")
    await _prompt_next(message, state, control_service, role)
    await notifier.check()


@router.callback_query(CountState.waiting_for_count, F.data == "count_skip")
async def skip_item(
    callback: CallbackQuery,
    state: FSMContext,
    control_service: ControlService,
    role: Role,
) -> None:
    data = await state.get_data()
    skipped = list(data.get("skipped_ids", []))
    if data.get("item_id"):
        skipped.append(data["item_id"])
    await state.update_data(skipped_ids=skipped)
    await callback.answer("Saltado")
    await _prompt_next(callback.message, state, control_service, role)


@router.callback_query(F.data == "count_stop")
async def stop_counting(
    callback: CallbackQuery,
    state: FSMContext,
    control_service: ControlService,
    role: Role,
) -> None:
    await state.set_state(None)
    await callback.answer()

    control_id = (await state.get_data()).get("control_id")
    try:
        control = await control_service.get_control(control_id)
    except ControlServiceError as e:
        await callback.message.answer(e.user_message, reply_markup=counter_menu_keyboard())
        return
    await show_control(callback.message, control, role, control_service)
