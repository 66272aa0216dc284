"""Parser for Husky stock dumps pasted by the leader."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

from stock_bot.models import ParseReport, SkippedLine, StockLineRecord
from stock_bot.utils import escape_html

if TYPE_CHECKING:
    from stock_bot.config import Settings

# Unit words that make a trailing number a stock count rather than part of the name
DEFAULT_UNIT_TOKENS: tuple[str, ...] = ("CC", "ML", "LITRO", "LT", "CL")
# Largest trailing number the narrow-gap rule accepts as a stock count
DEFAULT_MAX_QUANTITY = 500

SKIP_NO_CODE = "no_code"

# "265             AMARULA 375CC CHICOOO"
CODE_PREFIX = re.compile(r"^([0-9]{2,5})\s+(.*)$")
# Husky pads names to a fixed column: 3+ spaces before the quantity column
WIDE_GAP = re.compile(r"^(.+?)\s{3,}([0-9]+)\s*$")
NARROW_GAP = re.compile(r"^(.+?)\s+([0-9]+)\s*$")


@dataclass(frozen=True)
class ParserOptions:
    """Tuning for the narrow-gap heuristic."""

    unit_tokens: tuple[str, ...] = DEFAULT_UNIT_TOKENS
    max_quantity: int = DEFAULT_MAX_QUANTITY

    @classmethod
    def from_settings(cls, settings: Settings) -> ParserOptions:
        return cls(
            unit_tokens=tuple(settings.parser_unit_tokens) or DEFAULT_UNIT_TOKENS,
            max_quantity=settings.parser_max_quantity,
        )


DEFAULT_OPTIONS = ParserOptions()


@lru_cache(maxsize=16)
def _unit_suffix_pattern(unit_tokens: tuple[str, ...]) -> re.Pattern[str]:
    """Whole-word unit at the end of a name, optionally followed by punctuation."""
    alternatives = "|".join(re.escape(token) for token in unit_tokens)
    return re.compile(rf"\b(?:{alternatives})\W*$", re.IGNORECASE)


def _split_remainder(remainder: str, options: ParserOptions) -> tuple[str, int]:
    """Recover (name, system_quantity) from the text after the code."""
    match = WIDE_GAP.match(remainder)
    if match:
        return match.group(1).strip(), int(match.group(2))

    match = NARROW_GAP.match(remainder)
    if match:
        name, number = match.group(1).strip(), int(match.group(2))
        if number <= options.max_quantity and _unit_suffix_pattern(options.unit_tokens).search(name):
            return name, number
        # "COFFE 750": the number belongs to the name
        return remainder.strip(), 0

    # Irregular spacing: crude tokenizer
    tokens = remainder.split()
    last = tokens[-1] if len(tokens) >= 2 else ""
    if last.isascii() and last.isdecimal() and int(last) <= options.max_quantity:
        return " ".join(tokens[:-1]), int(last)
    return " ".join(tokens), 0


def parse_stock_line(line: str, options: ParserOptions | None = None) -> StockLineRecord | None:
    """
    Parse one dump line into a record, or None if it has no code prefix.

    Examples:
    - "25   ANIS 8 HERMANOS LITRO         60" → ("25", "ANIS 8 HERMANOS LITRO", 60)
    - "25 ANIS 8 HERMANOS LITRO 60" → ("25", "ANIS 8 HERMANOS LITRO", 60)
    - "8194 AMARULA CREAM ETHIOPIAN COFFE 750" → ("8194", "... COFFE 750", 0)
    - "AMARULA 750CC" → None

    Heuristics, tried in order on the text after the code:
    - 3+ spaces before a trailing number: always a quantity
    - 1+ spaces before a trailing number: a quantity only if it is within
      the sanity bound and the name ends with a unit word (LITRO 60)
    - otherwise split on whitespace; a small numeric last token is a quantity
    """
    options = options or DEFAULT_OPTIONS
    line = line.strip()
    if not line:
        return None

    match = CODE_PREFIX.match(line)
    if not match:
        return None

    code, remainder = match.group(1), match.group(2)
    name, quantity = _split_remainder(remainder, options)
    return StockLineRecord(code=code, name=name, system_quantity=quantity)


def decode_dump(content: bytes) -> str:
    """Decode an uploaded dump file.

    Husky exports are UTF-8 (sometimes with a BOM) or Windows-1252.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("cp1252", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_stock_report(text: str, options: ParserOptions | None = None) -> ParseReport:
    """Parse a whole dump, keeping track of the non-blank lines that were dropped."""
    report = ParseReport()

    for line_number, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue

        record = parse_stock_line(line, options)
        if record is None:
            report.skipped.append(
                SkippedLine(line_number=line_number, text=line.strip(), reason=SKIP_NO_CODE)
            )
            continue

        report.records.append(record)

    return report


def parse_stock_text(text: str, options: ParserOptions | None = None) -> list[StockLineRecord]:
    """Parse a whole dump into records, preserving input order.

    Unparsable lines are dropped silently; use parse_stock_report() to see them.
    """
    return parse_stock_report(text, options).records


def format_parse_preview(report: ParseReport, limit: int = 15) -> str:
    """Format parse result for the leader to review before saving."""
    lines = [f"📋 <b>Productos detectados:</b> {len(report.records)}"]

    for record in report.records[:limit]:
        lines.append(
            f"<code>{escape_html(record.code)}</code> {escape_html(record.name)} — {record.system_quantity}"
        )
    if len(report.records) > limit:
        lines.append(f"… y {len(report.records) - limit} más")

    if report.skipped:
        lines.append("")
        lines.append(f"⚠️ <b>Líneas ignoradas:</b> {len(report.skipped)}")
        for skipped in report.skipped[:limit]:
            lines.append(
                f"Línea {skipped.line_number}: sin código — <code>{escape_html(skipped.text[:40])}</code>"
            )
        if len(report.skipped) > limit:
            lines.append(f"… y {len(report.skipped) - limit} más")

    return "\n".join(lines)
