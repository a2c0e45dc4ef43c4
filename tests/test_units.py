"""Unit conversion between stock units."""

from decimal import Decimal

import pytest

from core.errors import UnitMismatchError, ValidationError
from core.units import (
    SUPPORTED_UNITS,
    convert,
    is_supported,
    normalize_unit,
    quantize_quantity,
    unit_family,
)


class TestNormalizeUnit:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("grams", "grams"),
            ("G", "grams"),
            (" kg ", "kilograms"),
            ("Liters", "liters"),
            ("l", "liters"),
            ("ML", "ml"),
            ("pcs", "pieces"),
            ("piece", "pieces"),
        ],
    )
    def test_aliases(self, raw, expected):
        assert normalize_unit(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "cups", "oz"])
    def test_unknown_unit_rejected(self, raw):
        with pytest.raises(ValidationError) as exc:
            normalize_unit(raw)
        assert exc.value.field == "unit"
        assert "Must be one of" in exc.value.message

    def test_is_supported(self):
        assert all(is_supported(u) for u in SUPPORTED_UNITS)
        assert not is_supported("tablespoons")

    def test_families(self):
        assert unit_family("kg") == unit_family("grams") == "mass"
        assert unit_family("liters") == unit_family("ml") == "volume"
        assert unit_family("pieces") == "count"


class TestConvert:
    def test_same_unit_is_identity(self):
        assert convert(Decimal("12.5"), "grams", "grams") == Decimal("12.5")

    @pytest.mark.parametrize(
        "qty,src,dst,expected",
        [
            ("0.2", "kilograms", "grams", "200"),
            ("250", "grams", "kilograms", "0.25"),
            ("1.5", "liters", "ml", "1500"),
            ("30", "ml", "liters", "0.03"),
        ],
    )
    def test_within_family(self, qty, src, dst, expected):
        assert convert(qty, src, dst) == Decimal(expected)

    @pytest.mark.parametrize(
        "src,dst",
        [(s, d) for s in SUPPORTED_UNITS for d in SUPPORTED_UNITS if unit_family(s) == unit_family(d)],
    )
    @pytest.mark.parametrize("qty", ["0.375", "1", "2500"])
    def test_round_trip(self, src, dst, qty):
        q = Decimal(qty)
        assert convert(convert(q, src, dst), dst, src) == q

    @pytest.mark.parametrize("src,dst", [("grams", "ml"), ("pieces", "kilograms"), ("liters", "pieces")])
    def test_cross_family_raises(self, src, dst):
        with pytest.raises(UnitMismatchError) as exc:
            convert(1, src, dst)
        assert exc.value.from_unit == src
        assert exc.value.to_unit == dst

    def test_floats_keep_printed_value(self):
        assert convert(0.1, "kilograms", "grams") == Decimal("100.0")


def test_quantize_rounds_half_up():
    assert quantize_quantity("1.0005") == Decimal("1.001")
    assert quantize_quantity(Decimal("2")) == Decimal("2.000")
