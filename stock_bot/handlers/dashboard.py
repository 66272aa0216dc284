"""Leader handlers: import a Husky dump, correct, export and delete controls."""

import logging

from aiogram import Bot, F, Router
from aiogram.filters import StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import BufferedInputFile, CallbackQuery, Message

from stock_bot.config import get_settings
from stock_bot.export import export_control_csv, export_filename
from stock_bot.handlers.controls import show_control, show_controls_list
from stock_bot.keyboards import (
    BTN_CANCEL,
    BTN_NEW_CONTROL,
    cancel_keyboard,
    confirm_delete_keyboard,
    confirm_import_keyboard,
    dump_done_keyboard,
    leader_menu_keyboard,
)
from stock_bot.models import Role
from stock_bot.monitoring import capture_exception
from stock_bot.security import LeaderOnly
from stock_bot.services.control_service import ControlService, ControlServiceError
from stock_bot.stock_parser import decode_dump, format_parse_preview
from stock_bot.utils import escape_html

logger = logging.getLogger(__name__)

router = Router()
router.message.filter(LeaderOnly)
router.callback_query.filter(LeaderOnly)

MAX_DUMP_FILE_SIZE = 1024 * 1024

EXAMPLE_DUMP = (
    "265             AMARULA 375CC CHICOOO\n"
    "8194            AMARULA CREAM ETHIOPIAN COFFE 750\n"
    "25              ANIS 8 HERMANOS LITRO                       60\n"
    "275             BEZIER CREMA DE CASSIS                      12"
)


class ImportState(StatesGroup):
    """FSM states for creating a control."""

    waiting_for_name = State()
    waiting_for_dump = State()
    preview_confirm = State()


class DashboardState(StatesGroup):
    """FSM states while a control is open."""

    correcting = State()


USER_TEXT = (F.text, ~F.text.startswith("/"), F.text != BTN_CANCEL)


@router.message(F.text == BTN_NEW_CONTROL)
async def start_import(message: Message, state: FSMContext) -> None:
    """Start creating a control."""
    await state.clear()
    await state.set_state(ImportState.waiting_for_name)
    await message.answer(
        "➕ <b>Nuevo control</b>\n\n"
        "Ingresa un nombre para el control.\n"
        "Ej: <code>Control Stock Licores</code>",
        reply_markup=cancel_keyboard(),
    )


@router.message(ImportState.waiting_for_name, *USER_TEXT)
async def process_name(message: Message, state: FSMContext) -> None:
    name = message.text.strip()
    if not name:
        await message.answer("❌ Ingresa un nombre para el control de stock.")
        return

    await state.update_data(control_name=name, dump_parts=[])
    await state.set_state(ImportState.waiting_for_dump)
    await message.answer(
        "📥 Pega los datos desde Husky (código, denominación y stock):\n\n"
        f"<pre>{escape_html(EXAMPLE_DUMP)}</pre>\n\n"
        "Si son muchas líneas, envíalas en varios mensajes o como archivo .txt "
        "y pulsa «✅ Listo» al terminar."
    )


async def add_dump_part(message: Message, state: FSMContext, text: str) -> None:
    """Keep one piece of the dump until the leader presses "Listo".

    Long pastes reach the bot split across several messages; every piece
    is kept and ordered by message id.
    """
    data = await state.get_data()
    parts = [*data.get("dump_parts", []), [message.message_id, text]]
    await state.update_data(dump_parts=parts)
    # A late piece after the preview reopens collection
    await state.set_state(ImportState.waiting_for_dump)

    lines = sum(1 for _, part in parts for line in part.split("\n") if line.strip())
    await message.answer(
        f"📥 Parte {len(parts)} recibida ({lines} líneas en total).\n"
        "Envía más datos o pulsa «✅ Listo».",
        reply_markup=dump_done_keyboard(),
    )


def joined_dump(parts: list[list]) -> str:
    """Join the collected pieces in the order they were sent."""
    return "\n".join(text for _, text in sorted(parts, key=lambda part: part[0]))


@router.message(StateFilter(ImportState.waiting_for_dump, ImportState.preview_confirm), *USER_TEXT)
async def process_dump(message: Message, state: FSMContext) -> None:
    """Collect a pasted piece of the dump."""
    await add_dump_part(message, state, message.text)


@router.message(StateFilter(ImportState.waiting_for_dump, ImportState.preview_confirm), F.document)
async def process_dump_file(message: Message, state: FSMContext, bot: Bot) -> None:
    """Collect a dump sent as a text file."""
    document = message.document
    is_text = (document.mime_type or "").startswith("text/") or (document.file_name or "").lower().endswith(".txt")
    if not is_text:
        await message.answer("❌ Envía un archivo de texto (.txt) exportado de Husky.")
        return
    if document.file_size and document.file_size > MAX_DUMP_FILE_SIZE:
        await message.answer("❌ El archivo es demasiado grande (máximo 1 MB).")
        return

    file = await bot.get_file(document.file_id)
    content = await bot.download_file(file.file_path)
    await add_dump_part(message, state, decode_dump(content.read()))


@router.callback_query(ImportState.waiting_for_dump, F.data == "import_dump_done")
async def finish_dump(callback: CallbackQuery, state: FSMContext, control_service: ControlService) -> None:
    """Parse every collected piece and show a preview."""
    await callback.answer()
    data = await state.get_data()
    dump_text = joined_dump(data.get("dump_parts", []))

    report = control_service.preview_import(dump_text)
    await callback.message.answer(format_parse_preview(report))

    if not report.ok:
        await state.update_data(dump_parts=[])
        await callback.message.answer("❌ No se encontró ningún producto. Pega los datos de nuevo:")
        return

    await state.update_data(dump_text=dump_text)
    await state.set_state(ImportState.preview_confirm)
    await callback.message.answer(
        "¿Crear el control con estos productos?",
        reply_markup=confirm_import_keyboard(),
    )


@router.callback_query(ImportState.preview_confirm, F.data == "import_confirm")
async def confirm_import(
    callback: CallbackQuery,
    state: FSMContext,
    control_service: ControlService,
) -> None:
    """Persist the control."""
    await callback.answer()
    data = await state.get_data()
    created_by = callback.from_user.full_name or "Líder"

    try:
        control, report = await control_service.create_control(
            data.get("control_name", ""),
            created_by,
            data.get("dump_text", ""),
        )
    except ControlServiceError as e:
        await callback.message.answer(e.user_message, reply_markup=leader_menu_keyboard())
        await state.clear()
        return
    except Exception as e:
        capture_exception(e, {"action": "create_control"})
        await callback.message.answer(
            "❌ Error al crear el control de stock.",
            reply_markup=leader_menu_keyboard(),
        )
        await state.clear()
        return

    await state.clear()
    await state.update_data(control_id=control.id, show_results=False, page=1)

    text = f"✅ Control de stock creado: <b>{escape_html(control.name)}</b> ({len(control.items)} productos)"
    if report.skipped:
        text += f"\n⚠️ {len(report.skipped)} líneas sin código fueron ignoradas."
    await callback.message.answer(text, reply_markup=leader_menu_keyboard())
    await show_control(callback.message, control, Role.LEADER, control_service)


@router.callback_query(F.data == "cancel")
async def cancel_inline(callback: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await callback.answer("Cancelado")
    await callback.message.answer("🏠 Acción cancelada.", reply_markup=leader_menu_keyboard())


async def _opened_control_id(callback: CallbackQuery, state: FSMContext) -> str | None:
    control_id = (await state.get_data()).get("control_id")
    if not control_id:
        await callback.answer("Abre un control primero", show_alert=True)
    return control_id


@router.callback_query(F.data.startswith("ctl_page_"))
async def change_page(callback: CallbackQuery, state: FSMContext, control_service: ControlService) -> None:
    control_id = await _opened_control_id(callback, state)
    if not control_id:
        return

    page = int(callback.data.removeprefix("ctl_page_"))
    try:
        control = await control_service.get_control(control_id)
    except ControlServiceError as e:
        await callback.answer(e.user_message, show_alert=True)
        return

    data = await state.update_data(page=page)
    await callback.answer()
    await show_control(
        callback.message,
        control,
        Role.LEADER,
        control_service,
        show_results=data.get("show_results", False),
        page=page,
        edit=True,
    )


@router.callback_query(F.data == "ctl_results")
async def toggle_results(callback: CallbackQuery, state: FSMContext, control_service: ControlService) -> None:
    """Show or hide the variance column."""
    control_id = await _opened_control_id(callback, state)
    if not control_id:
        return

    try:
        control = await control_service.get_control(control_id)
    except ControlServiceError as e:
        await callback.answer(e.user_message, show_alert=True)
        return

    data = await state.get_data()
    show_results = not data.get("show_results", False)
    data = await state.update_data(show_results=show_results)
    await callback.answer()
    await show_control(
        callback.message,
        control,
        Role.LEADER,
        control_service,
        show_results=show_results,
        page=data.get("page", 1),
        edit=True,
    )


@router.callback_query(F.data == "ctl_correct")
async def start_correcting(callback: CallbackQuery, state: FSMContext) -> None:
    control_id = await _opened_control_id(callback, state)
    if not control_id:
        return

    await state.set_state(DashboardState.correcting)
    await callback.answer()
    await callback.message.answer(
        "✏️ <b>Corrección</b>\n\n"
        "Envía una o varias líneas <code>código valor</code>:\n"
        "<code>25 55</code>\n"
        "<code>275 12</code>\n\n"
        "Usa <code>código -</code> para borrar una corrección.",
        reply_markup=cancel_keyboard(),
    )


@router.message(DashboardState.correcting, *USER_TEXT)
async def process_corrections(message: Message, state: FSMContext, control_service: ControlService) -> None:
    """Apply "<code> <value>" corrections (saved after a short pause)."""
    control_id = (await state.get_data()).get("control_id")
    if not control_id:
        await state.clear()
        await message.answer("❌ Abre un control primero.", reply_markup=leader_menu_keyboard())
        return

    try:
        outcomes = await control_service.apply_entries(control_id, Role.LEADER, message.text)
    except ControlServiceError as e:
        await state.clear()
        await message.answer(e.user_message, reply_markup=leader_menu_keyboard())
        return

    lines = [control_service.format_outcomes(outcomes)]
    for outcome in outcomes:
        if outcome.ok and outcome.item is not None:
            item = outcome.item
            corrected = "-" if item.corrected is None else item.corrected
            lines.append(f"<code>{escape_html(item.code)}</code> {escape_html(item.name[:30])}: {corrected}")
    lines.append("\nEnvía más líneas o pulsa «❌ Cancelar» para terminar.")
    await message.answer("\n".join(lines))


@router.callback_query(F.data == "ctl_export")
async def export_csv(callback: CallbackQuery, state: FSMContext, control_service: ControlService) -> None:
    """Send the control as a CSV document."""
    control_id = await _opened_control_id(callback, state)
    if not control_id:
        return

    # Corrections still waiting for the autosave timer go out first
    await control_service.writer.flush()

    try:
        control = await control_service.get_control(control_id)
    except ControlServiceError as e:
        await callback.answer(e.user_message, show_alert=True)
        return

    settings = get_settings()
    show_results = (await state.get_data()).get("show_results", False)
    content = export_control_csv(
        control,
        show_results,
        counter1_name=settings.counter1_name,
        counter2_name=settings.counter2_name,
    )

    await callback.answer()
    await callback.message.answer_document(
        BufferedInputFile(content, filename=export_filename(control)),
        caption=f"📄 {escape_html(control.name)}",
    )
    logger.info("control_exported", extra={"control_id": control_id, "show_results": show_results})


@router.callback_query(F.data == "ctl_delete")
async def request_delete(callback: CallbackQuery, state: FSMContext) -> None:
    control_id = await _opened_control_id(callback, state)
    if not control_id:
        return

    await callback.answer()
    await callback.message.answer(
        "🗑️ ¿Estás seguro de que quieres eliminar este control?\n"
        "Se borrarán también todos sus productos y conteos.",
        reply_markup=confirm_delete_keyboard(),
    )


@router.callback_query(F.data == "ctl_delete_confirm")
async def confirm_delete(callback: CallbackQuery, state: FSMContext, control_service: ControlService) -> None:
    control_id = await _opened_control_id(callback, state)
    if not control_id:
        return

    try:
        await control_service.delete_control(control_id)
    except Exception as e:
        capture_exception(e, {"action": "delete_control", "control_id": control_id})
        await callback.answer("Error al eliminar el control", show_alert=True)
        return

    await state.clear()
    await callback.answer("Control eliminado")
    await callback.message.edit_text("🗑️ Control eliminado.")
    await show_controls_list(callback.message, control_service, Role.LEADER)


@router.callback_query(F.data == "ctl_delete_cancel")
async def cancel_delete(callback: CallbackQuery) -> None:
    await callback.answer("Cancelado")
    await callback.message.delete()
