"""Tests for variance computation and models built on it."""

import pytest

from stock_bot.models import Role, StockControl, StockItem
from stock_bot.variance import compute_result, format_result


def test_compute_result_shortage():
    assert compute_result(55, 60) == -5


def test_compute_result_excess():
    assert compute_result(70, 60) == 10


def test_compute_result_without_correction():
    assert compute_result(None, 60) is None


def test_compute_result_zero_system_quantity():
    assert compute_result(4, 0) == 4


@pytest.mark.parametrize(
    ("result", "expected"),
    [(5, "+5"), (0, "0"), (-3, "-3"), (None, "")],
)
def test_format_result(result, expected):
    assert format_result(result) == expected


class TestStockItem:
    """Tests for StockItem helpers."""

    def test_result_follows_corrected(self):
        item = StockItem(id="i1", control_id="c1", code="25", name="ANIS", system_quantity=60)
        assert item.result is None

        item.corrected = 55
        assert item.result == -5

    def test_value_for_counter_roles(self):
        item = StockItem(id="i1", control_id="c1", code="25", name="ANIS", user1_value=3, user2_value=4)
        assert item.value_for(Role.USER1) == 3
        assert item.value_for(Role.USER2) == 4

    def test_value_for_leader_raises(self):
        item = StockItem(id="i1", control_id="c1", code="25", name="ANIS")
        with pytest.raises(ValueError):
            item.value_for(Role.LEADER)

    def test_from_row_ignores_stored_result(self):
        item = StockItem.from_row({
            "id": 7,
            "control_id": 3,
            "codigo": "25",
            "denominacion": "ANIS",
            "stock_sistema": 60,
            "user1_value": None,
            "user2_value": "58",
            "corregido": 58,
            "resultado": 999,
            "created_at": "2024-05-01T10:00:00Z",
        })

        assert item.id == "7"
        assert item.control_id == "3"
        assert item.user2_value == 58
        assert item.result == -2
        assert item.to_row()["resultado"] == -2


class TestStockControl:
    """Tests for StockControl progress helpers."""

    @pytest.fixture
    def control(self):
        return StockControl(
            id="c1",
            name="Licores",
            created_by="Líder",
            items=[
                StockItem(id="a", control_id="c1", code="10", name="A", user1_value=1, user2_value=1),
                StockItem(id="b", control_id="c1", code="20", name="B", user1_value=2),
                StockItem(id="c", control_id="c1", code="30", name="C", corrected=5),
            ],
        )

    def test_progress(self, control):
        assert control.counted_by(Role.USER1) == 2
        assert control.counted_by(Role.USER2) == 1
        assert [i.id for i in control.pending_for(Role.USER2)] == ["b", "c"]
        assert control.corrected_count == 1
        assert not control.is_fully_counted

    def test_fully_counted(self, control):
        for item in control.items:
            item.user1_value = item.user1_value or 0
            item.user2_value = item.user2_value or 0
        assert control.is_fully_counted

    def test_empty_control_is_not_fully_counted(self):
        assert not StockControl(id="c", name="x", created_by="y").is_fully_counted

    def test_find_by_code(self, control):
        assert control.find_by_code("20").id == "b"
        assert control.find_by_code("99") is None
