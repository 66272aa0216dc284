"""CSV export of a stock control."""

import csv
import io
from datetime import date

from stock_bot.models import StockControl
from stock_bot.variance import format_result

PENDING = "Pendiente"


def export_control_csv(
    control: StockControl,
    show_results: bool,
    counter1_name: str = "Usuario 1",
    counter2_name: str = "Usuario 2",
) -> bytes:
    """Render a control as CSV. UTF-8 with BOM so spreadsheets detect the encoding."""
    headers = ["Código", "Denominación", "Stock Sistema", counter1_name, counter2_name, "Corregido"]
    if show_results:
        headers.append("Resultado")

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)

    for item in control.items:
        row = [
            item.code,
            item.name,
            str(item.system_quantity),
            str(item.user1_value) if item.user1_value is not None else PENDING,
            str(item.user2_value) if item.user2_value is not None else PENDING,
            str(item.corrected) if item.corrected is not None else "",
        ]
        if show_results:
            row.append(format_result(item.result))
        writer.writerow(row)

    return ("\ufeff" + buffer.getvalue()).encode("utf-8")


def export_filename(control: StockControl, day: date | None = None) -> str:
    """stock_control_<name>_<YYYY-MM-DD>.csv"""
    day = day or date.today()
    safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in control.name.strip())
    return f"stock_control_{safe_name or 'control'}_{day.isoformat()}.csv"
