"""
Unit tests for the unit conversion system.

Tests cover:
- Unit normalization and family detection
- Conversions within a family
- Permissive no-op on family mismatch and unknown units
- Strict mode
- Base-unit helpers
"""

import pytest

from src.services.exceptions import UnitMismatchError
from src.services.unit_converter import (
    base_unit_for,
    convert,
    format_quantity,
    get_unit_type,
    normalize_unit,
    to_base_unit,
    units_compatible,
)


# ============================================================================
# Unit Type Detection Tests
# ============================================================================


class TestUnitTypeDetection:
    """Test unit normalization, family detection and compatibility checking."""

    def test_normalize_canonical_units(self):
        assert normalize_unit("g") == "g"
        assert normalize_unit("kg") == "kg"
        assert normalize_unit("ml") == "ml"
        assert normalize_unit("L") == "L"
        assert normalize_unit("units") == "units"

    def test_normalize_aliases_case_insensitive(self):
        """Test aliases and mixed case map to canonical tags."""
        assert normalize_unit("Grams") == "g"
        assert normalize_unit("KILOGRAM") == "kg"
        assert normalize_unit("l") == "L"
        assert normalize_unit("Litre") == "L"
        assert normalize_unit(" each ") == "units"

    def test_normalize_unknown_and_empty(self):
        assert normalize_unit("cup") is None
        assert normalize_unit("") is None
        assert normalize_unit(None) is None

    def test_get_unit_type(self):
        assert get_unit_type("g") == "mass"
        assert get_unit_type("kg") == "mass"
        assert get_unit_type("ml") == "volume"
        assert get_unit_type("L") == "volume"
        assert get_unit_type("units") == "count"
        assert get_unit_type("oz") == "unknown"

    def test_units_compatible(self):
        assert units_compatible("g", "kg") is True
        assert units_compatible("ml", "liter") is True
        assert units_compatible("g", "ml") is False
        assert units_compatible("units", "g") is False
        assert units_compatible("bag", "bag") is False


# ============================================================================
# Conversion Tests
# ============================================================================


class TestConvert:
    """Test conversions within and across families."""

    def test_mass_conversions(self):
        assert convert(2.5, "kg", "g") == pytest.approx(2500.0)
        assert convert(250, "g", "kg") == pytest.approx(0.25)

    def test_volume_conversions(self):
        assert convert(1.5, "L", "ml") == pytest.approx(1500.0)
        assert convert(750, "ml", "L") == pytest.approx(0.75)

    def test_same_unit_returns_value(self):
        assert convert(12, "units", "units") == 12
        assert convert(3.2, "G", "g") == 3.2

    def test_round_trip_within_family(self):
        """Converting there and back returns the original value."""
        for value in (0.001, 1.0, 123.456, 98765.4321):
            assert convert(convert(value, "kg", "g"), "g", "kg") == pytest.approx(value)
            assert convert(convert(value, "L", "ml"), "ml", "L") == pytest.approx(value)

    def test_mass_to_volume_is_noop(self):
        """Mismatched families pass the value through unchanged."""
        assert convert(100, "g", "ml") == 100
        assert convert(2, "L", "kg") == 2

    def test_count_to_mass_is_noop(self):
        assert convert(6, "units", "g") == 6

    def test_unknown_unit_is_noop(self):
        assert convert(3, "cup", "ml") == 3
        assert convert(3, "g", "pinch") == 3

    def test_strict_mode_raises_on_mismatch(self):
        with pytest.raises(UnitMismatchError) as exc_info:
            convert(100, "g", "ml", strict=True)
        assert exc_info.value.from_unit == "g"
        assert exc_info.value.to_unit == "ml"

    def test_strict_mode_raises_on_unknown(self):
        with pytest.raises(UnitMismatchError):
            convert(1, "cup", "ml", strict=True)

    def test_strict_mode_converts_compatible(self):
        assert convert(1, "kg", "g", strict=True) == pytest.approx(1000.0)


# ============================================================================
# Base Unit Helpers
# ============================================================================


class TestBaseUnits:
    def test_base_unit_for(self):
        assert base_unit_for("kg") == "g"
        assert base_unit_for("L") == "ml"
        assert base_unit_for("units") == "units"
        assert base_unit_for("oz") is None

    def test_to_base_unit(self):
        assert to_base_unit(1.5, "L") == (pytest.approx(1500.0), "ml")
        assert to_base_unit(0.2, "kg") == (pytest.approx(200.0), "g")
        assert to_base_unit(4, "bag") == (4, "bag")

    def test_format_quantity(self):
        assert format_quantity(2.5, "kg") == "2.5 kg"
        assert format_quantity(100.0, "g") == "100 g"
