"""Telegram keyboard builders."""

from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)
from aiogram.utils.keyboard import InlineKeyboardBuilder

from stock_bot.models import Role, StockControl

BTN_NEW_CONTROL = "➕ Nuevo control"
BTN_CONTROLS = "📋 Controles"
BTN_STATUS = "🔧 Estado"
BTN_LOGOUT = "🚪 Salir"
BTN_CANCEL = "❌ Cancelar"


def role_keyboard(counter1_name: str, counter2_name: str) -> InlineKeyboardMarkup:
    """Role selection shown on /start."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="👑 Líder", callback_data=f"role_{Role.LEADER.value}")],
            [InlineKeyboardButton(text=f"👤 {counter1_name}", callback_data=f"role_{Role.USER1.value}")],
            [InlineKeyboardButton(text=f"👤 {counter2_name}", callback_data=f"role_{Role.USER2.value}")],
        ]
    )


def leader_menu_keyboard() -> ReplyKeyboardMarkup:
    """Main menu for the leader."""
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BTN_NEW_CONTROL), KeyboardButton(text=BTN_CONTROLS)],
            [KeyboardButton(text=BTN_STATUS), KeyboardButton(text=BTN_LOGOUT)],
        ],
        resize_keyboard=True,
        is_persistent=True,
    )


def counter_menu_keyboard() -> ReplyKeyboardMarkup:
    """Main menu for counters."""
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=BTN_CONTROLS), KeyboardButton(text=BTN_LOGOUT)]],
        resize_keyboard=True,
        is_persistent=True,
    )


def menu_for(role: Role | None) -> ReplyKeyboardMarkup | None:
    if role == Role.LEADER:
        return leader_menu_keyboard()
    if role is not None:
        return counter_menu_keyboard()
    return None


def cancel_keyboard() -> ReplyKeyboardMarkup:
    """Cancel action keyboard."""
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=BTN_CANCEL)]],
        resize_keyboard=True,
    )


def confirm_import_keyboard() -> InlineKeyboardMarkup:
    """Confirm creating a control from the parsed preview."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Crear control", callback_data="import_confirm"),
                InlineKeyboardButton(text="❌ Cancelar", callback_data="cancel"),
            ]
        ]
    )


def dump_done_keyboard() -> InlineKeyboardMarkup:
    """Finish collecting the pasted dump."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Listo", callback_data="import_dump_done"),
                InlineKeyboardButton(text="❌ Cancelar", callback_data="cancel"),
            ]
        ]
    )


def controls_list_keyboard(controls: list[StockControl], role: Role) -> InlineKeyboardMarkup:
    """One button per control with the caller's progress."""
    builder = InlineKeyboardBuilder()

    for control in controls[:30]:
        total = len(control.items)
        if role == Role.LEADER:
            done = control.corrected_count
            label = f"{control.name[:30]} | ✏️ {done}/{total}"
        else:
            done = control.counted_by(role)
            label = f"{control.name[:30]} | {done}/{total}"
        if control.is_fully_counted:
            label = f"✅ {label}"
        builder.button(text=label, callback_data=f"ctl_open_{control.id}")

    builder.button(text="🔄 Actualizar", callback_data="ctl_list")
    builder.adjust(1)
    return builder.as_markup()


def leader_control_keyboard(
    control_id: str,
    show_results: bool,
    page: int,
    total_pages: int,
) -> InlineKeyboardMarkup:
    """Actions for an opened control (leader)."""
    rows = []

    if total_pages > 1:
        nav = []
        if page > 1:
            nav.append(InlineKeyboardButton(text="◀️", callback_data=f"ctl_page_{page - 1}"))
        nav.append(InlineKeyboardButton(text=f"{page}/{total_pages}", callback_data="noop"))
        if page < total_pages:
            nav.append(InlineKeyboardButton(text="▶️", callback_data=f"ctl_page_{page + 1}"))
        rows.append(nav)

    rows.extend([
        [
            InlineKeyboardButton(text="✏️ Corregir", callback_data="ctl_correct"),
            InlineKeyboardButton(
                text="🙈 Ocultar resultados" if show_results else "📊 Ver resultados",
                callback_data="ctl_results",
            ),
        ],
        [
            InlineKeyboardButton(text="📄 Exportar CSV", callback_data="ctl_export"),
            InlineKeyboardButton(text="🔄 Actualizar", callback_data=f"ctl_open_{control_id}"),
        ],
        [
            InlineKeyboardButton(text="🗑️ Eliminar", callback_data="ctl_delete"),
            InlineKeyboardButton(text="⬅️ Volver", callback_data="ctl_list"),
        ],
    ])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def counter_control_keyboard(control_id: str, pending: int) -> InlineKeyboardMarkup:
    """Actions for an opened control (counter)."""
    rows = []
    if pending:
        rows.append([InlineKeyboardButton(text="▶️ Contar", callback_data="count_next")])
    rows.append([
        InlineKeyboardButton(text="🔄 Actualizar", callback_data=f"ctl_open_{control_id}"),
        InlineKeyboardButton(text="⬅️ Volver", callback_data="ctl_list"),
    ])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def count_item_keyboard() -> InlineKeyboardMarkup:
    """Skip / stop while counting item by item."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="⏭️ Saltar", callback_data="count_skip"),
                InlineKeyboardButton(text="⏹️ Terminar", callback_data="count_stop"),
            ]
        ]
    )


def confirm_delete_keyboard() -> InlineKeyboardMarkup:
    """Confirm deleting the opened control."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Sí, eliminar", callback_data="ctl_delete_confirm"),
                InlineKeyboardButton(text="❌ Cancelar", callback_data="ctl_delete_cancel"),
            ]
        ]
    )
