"""Tests for CSV export."""

import csv
import io
from datetime import date

import pytest

from stock_bot.export import PENDING, export_control_csv, export_filename
from stock_bot.models import StockControl, StockItem


@pytest.fixture
def control():
    return StockControl(
        id="c1",
        name="Licores Bar",
        created_by="Líder",
        items=[
            StockItem(
                id="a", control_id="c1", code="25", name="ANIS 8 HERMANOS LITRO",
                system_quantity=60, user1_value=58, user2_value=57, corrected=55,
            ),
            StockItem(id="b", control_id="c1", code="275", name="BEZIER, CASSIS", system_quantity=12),
            StockItem(id="c", control_id="c1", code="30", name="GIN", system_quantity=5, corrected=8),
        ],
    )


def read_rows(content: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content.decode("utf-8-sig"))))


def test_csv_starts_with_bom(control):
    assert export_control_csv(control, show_results=False).startswith(b"\xef\xbb\xbf")


def test_csv_without_results(control):
    rows = read_rows(export_control_csv(control, show_results=False, counter1_name="Ana", counter2_name="Beto"))

    assert rows[0] == ["Código", "Denominación", "Stock Sistema", "Ana", "Beto", "Corregido"]
    assert rows[1] == ["25", "ANIS 8 HERMANOS LITRO", "60", "58", "57", "55"]
    assert rows[2] == ["275", "BEZIER, CASSIS", "12", PENDING, PENDING, ""]


def test_csv_with_results(control):
    rows = read_rows(export_control_csv(control, show_results=True))

    assert rows[0][-1] == "Resultado"
    assert [row[-1] for row in rows[1:]] == ["-5", "", "+3"]


def test_export_filename(control):
    assert export_filename(control, date(2024, 5, 1)) == "stock_control_Licores_Bar_2024-05-01.csv"


def test_export_filename_blank_name(control):
    control.name = "   "
    assert export_filename(control, date(2024, 5, 1)) == "stock_control_control_2024-05-01.csv"
