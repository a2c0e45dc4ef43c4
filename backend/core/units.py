"""Unit conversion between stock units.

Units live in three families: mass (grams/kilograms), volume (ml/liters) and
count (pieces). Conversion only happens inside a family.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Tuple, Union

from core.errors import UnitMismatchError, ValidationError


MASS = "mass"
VOLUME = "volume"
COUNT = "count"

# unit -> (family, factor to the family's base unit)
_UNITS: Dict[str, Tuple[str, Decimal]] = {
    "grams": (MASS, Decimal("1")),
    "kilograms": (MASS, Decimal("1000")),
    "ml": (VOLUME, Decimal("1")),
    "liters": (VOLUME, Decimal("1000")),
    "pieces": (COUNT, Decimal("1")),
}

SUPPORTED_UNITS = tuple(_UNITS.keys())

_ALIASES = {
    "g": "grams",
    "gram": "grams",
    "gr": "grams",
    "kg": "kilograms",
    "kilogram": "kilograms",
    "l": "liters",
    "liter": "liters",
    "litre": "liters",
    "litres": "liters",
    "milliliter": "ml",
    "milliliters": "ml",
    "pc": "pieces",
    "pcs": "pieces",
    "piece": "pieces",
}

Number = Union[Decimal, int, float, str]


def normalize_unit(unit: str) -> str:
    u = (unit or "").strip().lower()
    u = _ALIASES.get(u, u)
    if u not in _UNITS:
        raise ValidationError(
            "Invalid unit. Must be one of: " + ", ".join(SUPPORTED_UNITS),
            field="unit",
        )
    return u


def is_supported(unit: str) -> bool:
    try:
        normalize_unit(unit)
    except ValidationError:
        return False
    return True


def unit_family(unit: str) -> str:
    return _UNITS[normalize_unit(unit)][0]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their printed value (0.1 -> Decimal("0.1"))
    return Decimal(str(value))


def convert(quantity: Number, from_unit: str, to_unit: str) -> Decimal:
    """Convert ``quantity`` expressed in ``from_unit`` into ``to_unit``.

    Raises UnitMismatchError when the units belong to different families.
    """
    src = normalize_unit(from_unit)
    dst = normalize_unit(to_unit)
    q = to_decimal(quantity)
    if src == dst:
        return q

    src_family, src_factor = _UNITS[src]
    dst_family, dst_factor = _UNITS[dst]
    if src_family != dst_family:
        raise UnitMismatchError(src, dst)
    return q * src_factor / dst_factor


QUANTITY_STEP = Decimal("0.001")


def quantize_quantity(value: Number) -> Decimal:
    """Round to the precision stock quantities are stored with (3 decimals)."""
    return to_decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
