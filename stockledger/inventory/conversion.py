"""
Unit Conversion

Pure conversions between a product's base-unit quantity and its piece
quantity. Pieces are the canonical resolution: base units derived from a
piece count are floor-rounded and the remainder is dropped.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from numbers import Real
from typing import List, Optional, Union

from stockledger.inventory.exceptions import InvalidConversionFactor, InvalidQuantity

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class StockPair:
    """A stock figure expressed in both units"""
    base_quantity: Number
    pieces: Number


@dataclass(frozen=True)
class UnitPreset:
    name: str
    label: str
    pieces: Optional[int] = None


COMMON_UNITS: List[UnitPreset] = [
    UnitPreset("pcs", "Pieces", 1),
    UnitPreset("dus", "Dus/Box"),
    UnitPreset("lusin", "Lusin (12 pcs)", 12),
    UnitPreset("kodi", "Kodi (20 pcs)", 20),
    UnitPreset("gross", "Gross (144 pcs)", 144),
    UnitPreset("kg", "Kilogram"),
    UnitPreset("gram", "Gram"),
    UnitPreset("liter", "Liter"),
    UnitPreset("ml", "Mililiter"),
    UnitPreset("meter", "Meter"),
    UnitPreset("cm", "Centimeter"),
]


def _is_number(value) -> bool:
    return isinstance(value, (Real, Decimal)) and not isinstance(value, bool)


def validate_factor(factor, field: str = "conversion_factor") -> Number:
    """Return factor unchanged if it is a finite number > 0."""
    if not _is_number(factor):
        raise InvalidConversionFactor(factor, field=field)
    if isinstance(factor, Decimal):
        if not factor.is_finite() or factor <= 0:
            raise InvalidConversionFactor(factor, field=field)
    elif not math.isfinite(factor) or factor <= 0:
        raise InvalidConversionFactor(factor, field=field)
    return factor


def _validate_quantity(value, field: str) -> Number:
    if not _is_number(value):
        raise InvalidQuantity(value, field=field, constraint="must be a number")
    if isinstance(value, Decimal):
        finite = value.is_finite()
    else:
        finite = math.isfinite(value)
    if not finite:
        raise InvalidQuantity(value, field=field, constraint="must be finite")
    return value


def to_pieces(base_qty: Number, factor: Number) -> Number:
    """Pieces in base_qty base units. Exact, no rounding."""
    validate_factor(factor)
    _validate_quantity(base_qty, "base_quantity")
    return base_qty * factor


def to_base_units(piece_qty: Number, factor: Number) -> int:
    """Whole base units contained in piece_qty pieces (floor)."""
    validate_factor(factor)
    _validate_quantity(piece_qty, "pieces")
    if isinstance(piece_qty, Decimal) or isinstance(factor, Decimal):
        return int((Decimal(piece_qty) / Decimal(factor)).to_integral_value(rounding=ROUND_FLOOR))
    if isinstance(piece_qty, int) and isinstance(factor, int):
        return piece_qty // factor
    return math.floor(piece_qty / factor)


def recalculate_from_base(base_qty: Number, factor: Number) -> StockPair:
    """Base-unit field edited: pieces follow exactly."""
    return StockPair(base_quantity=base_qty, pieces=to_pieces(base_qty, factor))


def recalculate_from_pieces(piece_qty: Number, factor: Number) -> StockPair:
    """Piece field edited: base units follow with floor rounding."""
    return StockPair(base_quantity=to_base_units(piece_qty, factor), pieces=piece_qty)
