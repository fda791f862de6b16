"""
Unit Tests - Stock Movement Ledger
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from stockledger.database.models import MovementDirection, UnitType
from stockledger.inventory.exceptions import InvalidMovementData, InvalidQuantity
from stockledger.inventory.ledger import (
    StockLedger,
    parse_direction,
    parse_unit_type,
    reference_number,
    validate_quantity,
)


class TestValidateQuantity:
    """Tests for movement quantity validation"""

    @pytest.mark.parametrize("value,expected", [(1, 1), (24, 24), (3.0, 3), (Decimal("2"), 2)])
    def test_accepts_positive_whole_numbers(self, value, expected):
        """Test whole quantities come back as int"""
        result = validate_quantity(value)

        assert result == expected
        assert isinstance(result, int)

    @pytest.mark.parametrize(
        "value,constraint",
        [
            (0, "must be greater than 0"),
            (-3, "must be greater than 0"),
            (1.5, "must be a whole number"),
            (float("nan"), "must be finite"),
            (float("inf"), "must be finite"),
            ("2", "must be a number"),
            (None, "must be a number"),
            (True, "must be a number"),
        ],
    )
    def test_rejects_invalid_quantities(self, value, constraint):
        """Test the violated constraint is reported"""
        with pytest.raises(InvalidQuantity) as exc_info:
            validate_quantity(value)

        assert exc_info.value.field == "quantity"
        assert exc_info.value.constraint == constraint


class TestParsing:
    """Tests for direction and unit type parsing"""

    def test_parse_known_values(self):
        """Test string values map to enums"""
        assert parse_direction("outbound") is MovementDirection.OUTBOUND
        assert parse_unit_type("pieces") is UnitType.PIECES

    def test_unknown_direction(self):
        """Test unknown directions are rejected with the field name"""
        with pytest.raises(InvalidMovementData) as exc_info:
            parse_direction("sideways")

        assert exc_info.value.field == "direction"

    def test_unknown_unit_type(self):
        """Test unknown unit types are rejected with the field name"""
        with pytest.raises(InvalidMovementData) as exc_info:
            parse_unit_type("crates")

        assert exc_info.value.field == "unit_type"


class TestReferenceNumber:
    """Tests for movement reference numbers"""

    def test_inbound_prefix(self):
        """Test inbound references use epoch milliseconds"""
        created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert reference_number(MovementDirection.INBOUND, created_at) == "STOCK-1704067200000"

    def test_outbound_prefix(self):
        """Test outbound references carry the reduce prefix"""
        created_at = datetime(2024, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)

        assert reference_number(MovementDirection.OUTBOUND, created_at) == "REDUCE-1704067201500"


class TestStockLedger:
    """Tests for StockLedger persistence"""

    async def test_append_records_piece_equivalent(self, test_db, product, stockist):
        """Test base-unit movements store their piece count"""
        movement = await StockLedger(test_db).append(
            product.id, "inbound", 2, "base_unit", product.pcs_per_base_unit, stockist, notes="Restock"
        )

        assert movement.id is not None
        assert movement.quantity == 2
        assert movement.quantity_pcs == 24
        assert movement.direction is MovementDirection.INBOUND
        assert movement.reference_number.startswith("STOCK-")
        assert movement.created_by == "user-stockist"
        assert movement.notes == "Restock"
        assert movement.created_at.tzinfo is not None

    async def test_append_rejects_bad_quantity(self, test_db, product, stockist):
        """Test nothing is written for invalid quantities"""
        ledger = StockLedger(test_db)

        with pytest.raises(InvalidQuantity):
            await ledger.append(product.id, "inbound", 0, "pieces", 12, stockist)

        assert await ledger.list_by_product(product.id) == []

    async def test_history_order(self, test_db, product, stockist):
        """Test history is newest first and replay order oldest first"""
        ledger = StockLedger(test_db)
        for qty in (1, 2, 3):
            await ledger.append(product.id, "inbound", qty, "pieces", 12, stockist)

        history = await ledger.list_by_product(product.id)
        timestamps = [m.created_at for m in history]

        assert len(history) == 3
        assert timestamps == sorted(timestamps, reverse=True)
        assert await ledger.replay_order(product.id) == list(reversed(history))
