"""Data models for the Stock Control bot."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from stock_bot.variance import compute_result


class Role(str, Enum):
    """Bot user role."""

    LEADER = "leader"
    USER1 = "user1"
    USER2 = "user2"

    @property
    def is_counter(self) -> bool:
        return self in (Role.USER1, Role.USER2)


class StorageMode(str, Enum):
    """Which backend currently serves storage calls."""

    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class StockLineRecord:
    """One line recovered from a Husky dump."""

    code: str
    name: str
    system_quantity: int = 0


@dataclass(frozen=True)
class SkippedLine:
    """A non-blank dump line that produced no record."""

    line_number: int
    text: str
    reason: str


@dataclass
class ParseReport:
    """Parsed records plus diagnostics for the lines that were dropped."""

    records: list[StockLineRecord] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.records)


def _parse_timestamp(value: Any) -> datetime:
    """Parse ISO timestamps coming from either store."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        with contextlib.suppress(ValueError):
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.now()


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class StockItem:
    """One line of a stock control with both counts and the correction."""

    id: str
    control_id: str
    code: str
    name: str
    system_quantity: int = 0
    user1_value: int | None = None
    user2_value: int | None = None
    corrected: int | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def result(self) -> int | None:
        """Live variance, never read back from storage."""
        return compute_result(self.corrected, self.system_quantity)

    def value_for(self, role: Role) -> int | None:
        """Get the count entered by a counter role."""
        if role == Role.USER1:
            return self.user1_value
        if role == Role.USER2:
            return self.user2_value
        raise ValueError(f"Role {role.value} does not count items")

    @property
    def counts_match(self) -> bool:
        """Both counters entered the same value."""
        return self.user1_value is not None and self.user1_value == self.user2_value

    @classmethod
    def from_row(cls, data: dict[str, Any]) -> StockItem:
        """Create StockItem from a storage row (remote column names)."""
        return cls(
            id=str(data["id"]),
            control_id=str(data["control_id"]),
            code=str(data.get("codigo", "")),
            name=str(data.get("denominacion", "")),
            system_quantity=int(data.get("stock_sistema") or 0),
            user1_value=_optional_int(data.get("user1_value")),
            user2_value=_optional_int(data.get("user2_value")),
            corrected=_optional_int(data.get("corregido")),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to a storage row; resultado is derived from corregido."""
        return {
            "id": self.id,
            "control_id": self.control_id,
            "codigo": self.code,
            "denominacion": self.name,
            "stock_sistema": self.system_quantity,
            "user1_value": self.user1_value,
            "user2_value": self.user2_value,
            "corregido": self.corrected,
            "resultado": self.result,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class StockControl:
    """A reconciliation batch created from one Husky import."""

    id: str
    name: str
    created_by: str
    created_at: datetime = field(default_factory=datetime.now)
    items: list[StockItem] = field(default_factory=list)

    @classmethod
    def from_row(cls, data: dict[str, Any]) -> StockControl:
        """Create StockControl from a row with nested stock_items."""
        items = [StockItem.from_row(item) for item in data.get("stock_items") or []]
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            created_by=str(data.get("created_by", "")),
            created_at=_parse_timestamp(data.get("created_at")),
            items=items,
        )

    def find_item(self, item_id: str) -> StockItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def find_by_code(self, code: str) -> StockItem | None:
        """Find the first item with the given Husky code."""
        return next((i for i in self.items if i.code == code), None)

    def counted_by(self, role: Role) -> int:
        """Number of items a counter has already counted."""
        return sum(1 for i in self.items if i.value_for(role) is not None)

    def pending_for(self, role: Role) -> list[StockItem]:
        """Items the counter still has to count, in import order."""
        return [i for i in self.items if i.value_for(role) is None]

    @property
    def is_fully_counted(self) -> bool:
        """Both counters have entered a value for every item."""
        return bool(self.items) and all(
            i.user1_value is not None and i.user2_value is not None for i in self.items
        )

    @property
    def corrected_count(self) -> int:
        return sum(1 for i in self.items if i.corrected is not None)


@dataclass
class StorageStatus:
    """Storage backend currently in use."""

    mode: StorageMode
    config_name: str
    real_time: bool
    # Remote store configured but unreachable
    degraded: bool = False
