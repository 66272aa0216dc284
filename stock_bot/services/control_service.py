"""Stock control service: import, counting, corrections and formatting."""

import itertools
import logging
import re
from dataclasses import dataclass

from stock_bot.autosave import CoalescingWriter
from stock_bot.models import ParseReport, Role, StockControl, StockItem
from stock_bot.stock_parser import ParserOptions, parse_stock_report
from stock_bot.storage import StorageFacade
from stock_bot.utils import escape_html
from stock_bot.variance import compute_result, format_result

logger = logging.getLogger(__name__)

# "25 60" or "25 -" (clear a correction)
ENTRY_LINE = re.compile(r"^\s*([0-9]{2,5})\s+(-|[0-9]+)\s*$")


class ControlServiceError(Exception):
    """Base error with a message safe to show to the user."""

    user_message = "❌ No se pudo completar la operación."


class EmptyControlNameError(ControlServiceError):
    user_message = "❌ Ingresa un nombre para el control de stock."


class EmptyImportError(ControlServiceError):
    user_message = "❌ No se encontró ningún producto en los datos pegados."


class ControlNotFoundError(ControlServiceError):
    user_message = "❌ El control ya no existe."


class ItemNotFoundError(ControlServiceError):
    user_message = "❌ Producto no encontrado en este control."


class AlreadyCountedError(ControlServiceError):
    user_message = "⚠️ Ya registraste una cantidad para este producto."


class RoleNotAllowedError(ControlServiceError):
    user_message = "⛔ Tu rol no puede realizar esta acción."


class InvalidQuantityError(ControlServiceError):
    user_message = "❌ Cantidad inválida. Ingresa un número entero."


@dataclass
class EntryOutcome:
    """Result of applying one "<code> <value>" line."""

    line: str
    item: StockItem | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_quantity(text: str) -> int:
    """Parse a non-negative whole count typed by a user."""
    text = text.strip()
    if not (text.isascii() and text.isdecimal()):
        raise InvalidQuantityError(text)
    return int(text)


class ControlService:
    """Service wrapping the storage facade with the reconciliation rules."""

    def __init__(
        self,
        storage: StorageFacade,
        writer: CoalescingWriter,
        parser_options: ParserOptions | None = None,
    ):
        self.storage = storage
        self.writer = writer
        self.parser_options = parser_options or ParserOptions()
        # Corrections typed but not yet written: item id -> (edit number, value)
        self._pending_corrections: dict[str, tuple[int, int | None]] = {}
        self._edit_numbers = itertools.count(1)

    def preview_import(self, text: str) -> ParseReport:
        """Parse a Husky dump without saving anything."""
        return parse_stock_report(text, self.parser_options)

    async def create_control(self, name: str, created_by: str, text: str) -> tuple[StockControl, ParseReport]:
        """Validate, parse and persist a new control."""
        name = name.strip()
        if not name:
            raise EmptyControlNameError()

        report = self.preview_import(text)
        if not report.ok:
            raise EmptyImportError()

        if report.skipped:
            logger.warning(
                "import_lines_skipped",
                extra={"skipped_count": len(report.skipped), "control_name": name},
            )

        control = await self.storage.create_batch(name, created_by, report.records)
        return control, report

    async def list_controls(self) -> list[StockControl]:
        controls = await self.storage.list_batches()
        for control in controls:
            self._apply_pending(control)
        return controls

    async def get_control(self, control_id: str) -> StockControl:
        control = await self.storage.get_batch(control_id)
        if control is None:
            raise ControlNotFoundError(control_id)
        return self._apply_pending(control)

    def _apply_pending(self, control: StockControl) -> StockControl:
        """Overlay corrections still waiting for the autosave timer."""
        for item in control.items:
            if item.id in self._pending_corrections:
                item.corrected = self._pending_corrections[item.id][1]
        return control

    @staticmethod
    def _find_item(control: StockControl, item_id: str) -> StockItem:
        item = control.find_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    async def record_count(self, control_id: str, role: Role, item_id: str, value: int) -> StockItem:
        """Store a counter's physical count. A counter cannot change it afterwards."""
        if not role.is_counter:
            raise RoleNotAllowedError(role.value)
        if value < 0:
            raise InvalidQuantityError(str(value))

        control = await self.get_control(control_id)
        item = self._find_item(control, item_id)
        if item.value_for(role) is not None:
            raise AlreadyCountedError(item_id)

        field = f"{role.value}_value"
        setattr(item, field, value)
        await self.storage.update_item(item.id, {field: value})

        logger.info(
            "count_recorded",
            extra={"control_id": control_id, "item_id": item_id, "role": role.value},
        )
        return item

    async def set_corrected(self, control_id: str, item_id: str, value: int | None) -> StockItem:
        """Set (or clear with None) the leader's corrected value.

        The write is debounced; a newer correction for the same item replaces it.
        """
        control = await self.get_control(control_id)
        item = self._find_item(control, item_id)
        item.corrected = value

        edit = next(self._edit_numbers)
        self._pending_corrections[item.id] = (edit, value)
        fields = {"corrected": value, "result": compute_result(value, item.system_quantity)}

        async def write() -> None:
            try:
                await self.storage.update_item(item.id, fields)
            finally:
                # Keep the overlay while a newer correction is still on its way
                if self._pending_corrections.get(item.id, (edit, value))[0] == edit:
                    self._pending_corrections.pop(item.id, None)

        self.writer.schedule(item.id, write)
        return item

    async def apply_entries(self, control_id: str, role: Role, text: str) -> list[EntryOutcome]:
        """Apply "<code> <value>" lines: counts for counters, corrections for the leader."""
        control = await self.get_control(control_id)
        outcomes: list[EntryOutcome] = []

        for line in text.split("\n"):
            if not line.strip():
                continue

            match = ENTRY_LINE.match(line)
            if not match:
                outcomes.append(EntryOutcome(line=line.strip(), error="formato inválido"))
                continue

            code, raw_value = match.group(1), match.group(2)
            item = control.find_by_code(code)
            if item is None:
                outcomes.append(EntryOutcome(line=line.strip(), error="código no encontrado"))
                continue

            try:
                if role == Role.LEADER:
                    value = None if raw_value == "-" else int(raw_value)
                    item = await self.set_corrected(control_id, item.id, value)
                elif raw_value == "-":
                    raise InvalidQuantityError(raw_value)
                else:
                    item = await self.record_count(control_id, role, item.id, int(raw_value))
            except ControlServiceError as e:
                outcomes.append(EntryOutcome(line=line.strip(), item=item, error=e.user_message))
                continue

            outcomes.append(EntryOutcome(line=line.strip(), item=item))

        return outcomes

    async def delete_control(self, control_id: str) -> None:
        """Delete a control, dropping corrections still waiting to be written."""
        control = await self.storage.get_batch(control_id)
        if control is not None:
            for item in control.items:
                self.writer.cancel(item.id)
                self._pending_corrections.pop(item.id, None)
        await self.storage.delete_batch(control_id)

    def format_control_summary(self, control: StockControl, counter1_name: str, counter2_name: str) -> str:
        """One-paragraph progress summary."""
        total = len(control.items)
        lines = [
            f"📋 <b>{escape_html(control.name)}</b>",
            f"📦 {total} productos • Creado por {escape_html(control.created_by)} el {control.created_at:%d/%m/%Y}",
            f"👤 {escape_html(counter1_name)}: {control.counted_by(Role.USER1)}/{total}",
            f"👤 {escape_html(counter2_name)}: {control.counted_by(Role.USER2)}/{total}",
            f"✏️ Corregidos: {control.corrected_count}/{total}",
        ]
        if control.is_fully_counted:
            lines.append("✅ Conteo completo")
        return "\n".join(lines)

    def format_control_table(
        self,
        control: StockControl,
        show_results: bool,
        page: int = 1,
        per_page: int = 20,
    ) -> str:
        """Monospace table of items for the leader."""
        start = (page - 1) * per_page
        items = control.items[start:start + per_page]

        header = f"{'Cód':<6}{'Denominación':<24}{'Sis':>5}{'U1':>5}{'U2':>5}{'Corr':>6}"
        if show_results:
            header += f"{'Res':>6}"
        rows = [header]

        for item in items:
            row = (
                f"{item.code:<6}{item.name[:23]:<24}{item.system_quantity:>5}"
                f"{_cell(item.user1_value):>5}{_cell(item.user2_value):>5}{_cell(item.corrected):>6}"
            )
            if show_results:
                row += f"{format_result(item.result) or '-':>6}"
            rows.append(row)

        return "<pre>" + escape_html("\n".join(rows)) + "</pre>"

    @staticmethod
    def format_item_prompt(item: StockItem, remaining: int) -> str:
        """Ask a counter for the next item."""
        return (
            f"📦 <code>{escape_html(item.code)}</code> <b>{escape_html(item.name)}</b>\n\n"
            f"Ingresa la cantidad contada (quedan {remaining}):"
        )

    @staticmethod
    def format_outcomes(outcomes: list[EntryOutcome]) -> str:
        if not outcomes:
            return "⚠️ No se encontraron líneas para aplicar."
        applied = [o for o in outcomes if o.ok]
        failed = [o for o in outcomes if not o.ok]
        lines = [f"✅ Aplicadas: {len(applied)}"]
        if failed:
            lines.append(f"⚠️ Con errores: {len(failed)}")
            lines.extend(f"<code>{escape_html(o.line)}</code> — {o.error}" for o in failed[:10])
        return "\n".join(lines)


def _cell(value: int | None) -> str:
    return "-" if value is None else str(value)
