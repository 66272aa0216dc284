"""Tests for the Husky dump parser."""

import pytest

from stock_bot.models import StockLineRecord
from stock_bot.stock_parser import (
    SKIP_NO_CODE,
    ParserOptions,
    decode_dump,
    format_parse_preview,
    parse_stock_line,
    parse_stock_report,
    parse_stock_text,
)


class TestParseStockLine:
    """Tests for single line parsing."""

    def test_wide_gap_quantity(self):
        record = parse_stock_line("25              ANIS 8 HERMANOS LITRO                       60")
        assert record == StockLineRecord(code="25", name="ANIS 8 HERMANOS LITRO", system_quantity=60)

    def test_wide_gap_large_quantity(self):
        """The column gap is trusted even above the sanity bound."""
        record = parse_stock_line("123  GIN BEEFEATER   1500")
        assert record.name == "GIN BEEFEATER"
        assert record.system_quantity == 1500

    @pytest.mark.parametrize("text", ["FERNET BRANCA", "VINO TINTO RESERVA", "X"])
    @pytest.mark.parametrize("quantity", [0, 7, 500, 99999])
    def test_wide_gap_determinism(self, text, quantity):
        record = parse_stock_line("123" + "  " + text + "   " + str(quantity))
        assert record == StockLineRecord(code="123", name=text, system_quantity=quantity)

    def test_narrow_gap_after_unit_word(self):
        record = parse_stock_line("25  ANIS 8 HERMANOS LITRO 60")
        assert record == StockLineRecord(code="25", name="ANIS 8 HERMANOS LITRO", system_quantity=60)

    def test_narrow_gap_unit_word_case_insensitive(self):
        record = parse_stock_line("40  LICOR DE MENTA 750 ml 12")
        assert record.name == "LICOR DE MENTA 750 ml"
        assert record.system_quantity == 12

    def test_narrow_gap_unit_word_with_punctuation(self):
        record = parse_stock_line("41  WHISKY 1 LT. 8")
        assert record.name == "WHISKY 1 LT."
        assert record.system_quantity == 8

    def test_number_glued_to_unit_stays_in_name(self):
        record = parse_stock_line("265  AMARULA 375CC CHICOOO")
        assert record == StockLineRecord(code="265", name="AMARULA 375CC CHICOOO", system_quantity=0)

    def test_trailing_volume_without_unit_stays_in_name(self):
        record = parse_stock_line("8194            AMARULA CREAM ETHIOPIAN COFFE 750")
        assert record.name == "AMARULA CREAM ETHIOPIAN COFFE 750"
        assert record.system_quantity == 0

    def test_narrow_gap_bound_rejection(self):
        record = parse_stock_line("30  SOME LITRO ITEM 900")
        assert record.system_quantity != 900
        assert record.name == "SOME LITRO ITEM 900"

    def test_narrow_gap_over_bound_after_unit(self):
        record = parse_stock_line("31  AGUA MINERAL LITRO 750")
        assert record.system_quantity == 0
        assert record.name == "AGUA MINERAL LITRO 750"

    def test_unit_must_be_whole_word(self):
        """"CLASICO" ends in neither CL nor LT as a whole word."""
        record = parse_stock_line("32  VERMOUTH CLASICO 20")
        assert record.system_quantity == 0
        assert record.name == "VERMOUTH CLASICO 20"

    def test_only_number_after_code(self):
        record = parse_stock_line("12345 60")
        assert record == StockLineRecord(code="12345", name="60", system_quantity=0)

    def test_name_without_quantity(self):
        record = parse_stock_line("275 BEZIER CREMA DE CASSIS")
        assert record.name == "BEZIER CREMA DE CASSIS"
        assert record.system_quantity == 0

    def test_whitespace_idempotence(self):
        line = "25  ANIS 8 HERMANOS LITRO 60"
        assert parse_stock_line("   " + line + "   ") == parse_stock_line(line)
        assert parse_stock_line("\t" + line + "\t") == parse_stock_line(line)

    @pytest.mark.parametrize(
        "line",
        [
            "AMARULA 750CC",
            "1 X",
            "123456 SIX DIGIT CODE",
            "25",
            "   ",
            "",
            "ABC123 FOO",
        ],
    )
    def test_no_code_returns_none(self, line):
        assert parse_stock_line(line) is None

    def test_code_kept_as_string(self):
        record = parse_stock_line("007  PETACA 200CC 3")
        assert record.code == "007"

    def test_custom_unit_tokens(self):
        options = ParserOptions(unit_tokens=("KG",), max_quantity=500)
        record = parse_stock_line("50  AZUCAR KG 30", options)
        assert record.system_quantity == 30

        record = parse_stock_line("25  ANIS 8 HERMANOS LITRO 60", options)
        assert record.system_quantity == 0

    def test_custom_max_quantity(self):
        options = ParserOptions(max_quantity=1000)
        record = parse_stock_line("31  AGUA MINERAL LITRO 750", options)
        assert record.system_quantity == 750


class TestParseStockText:
    """Tests for whole dump parsing."""

    def test_sample_dump(self, sample_dump):
        records = parse_stock_text(sample_dump)

        assert [r.code for r in records] == ["265", "8194", "25", "275"]
        assert [r.system_quantity for r in records] == [0, 0, 60, 12]
        assert records[3].name == "BEZIER CREMA DE CASSIS"

    def test_order_preserved_and_blanks_skipped(self):
        text = "\n10  PRIMERO   1\n\n   \n20  SEGUNDO   2\nbasura\n30  TERCERO   3\n\n"
        records = parse_stock_text(text)
        assert [r.code for r in records] == ["10", "20", "30"]

    def test_empty_input(self):
        assert parse_stock_text("") == []
        assert parse_stock_text("\n\n") == []

    def test_windows_line_endings(self):
        records = parse_stock_text("10  PRIMERO   1\r\n20  SEGUNDO   2\r\n")
        assert [(r.code, r.name, r.system_quantity) for r in records] == [
            ("10", "PRIMERO", 1),
            ("20", "SEGUNDO", 2),
        ]


class TestParseStockReport:
    """Tests for diagnostics on dropped lines."""

    def test_skipped_lines_reported(self):
        text = "CODIGO  DENOMINACION  STOCK\n\n25  ANIS LITRO   60\n1 X"
        report = parse_stock_report(text)

        assert report.ok
        assert len(report.records) == 1
        assert [(s.line_number, s.text, s.reason) for s in report.skipped] == [
            (1, "CODIGO  DENOMINACION  STOCK", SKIP_NO_CODE),
            (4, "1 X", SKIP_NO_CODE),
        ]

    def test_nothing_parsed(self):
        report = parse_stock_report("hola\nmundo")
        assert not report.ok
        assert len(report.skipped) == 2

    def test_format_preview(self):
        report = parse_stock_report("25  ANIS LITRO   60\nbasura")
        text = format_parse_preview(report)

        assert "<b>Productos detectados:</b> 1" in text
        assert "<code>25</code> ANIS LITRO — 60" in text
        assert "Línea 2" in text

    def test_format_preview_truncates(self):
        dump = "\n".join(f"{100 + i}  PRODUCTO {i}   {i}" for i in range(20))
        text = format_parse_preview(parse_stock_report(dump), limit=5)
        assert "… y 15 más" in text


def test_format_preview_escapes_html():
    report = parse_stock_report("25  GIN_BOMBAY <X> & CO   60\n<b>total</b> `x`")
    text = format_parse_preview(report)

    assert "<code>25</code> GIN_BOMBAY &lt;X&gt; &amp; CO — 60" in text
    assert "<code>&lt;b&gt;total&lt;/b&gt; `x`</code>" in text
    assert "<X>" not in text


@pytest.mark.parametrize(
    "line",
    [
        "١٢  FOO   5",
        "２５  ANIS LITRO   60",
    ],
)
def test_non_ascii_code_digits_are_not_codes(line):
    assert parse_stock_line(line) is None


def test_non_ascii_quantity_digits_stay_in_name():
    record = parse_stock_line("25  ANIS LITRO   ٦٠")
    assert record.system_quantity == 0
    assert record.name == "ANIS LITRO ٦٠"

    record = parse_stock_line("25  ANIS LITRO ٦٠")
    assert record.system_quantity == 0


class TestDecodeDump:
    """Tests for uploaded dump files."""

    def test_utf8_with_bom(self):
        content = "\ufeff25  AÑEJO LITRO   60\r\n275  CASSIS   12\r\n".encode("utf-8")
        text = decode_dump(content)

        assert text == "25  AÑEJO LITRO   60\n275  CASSIS   12\n"
        assert [r.code for r in parse_stock_text(text)] == ["25", "275"]

    def test_windows_1252(self):
        content = "25  AÑEJO LITRO   60".encode("cp1252")
        assert decode_dump(content) == "25  AÑEJO LITRO   60"
