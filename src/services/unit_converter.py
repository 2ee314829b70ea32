"""
Unit conversion for the Jerky Ledger.

This module provides:
- Unit tag normalization (case-insensitive, with aliases)
- Unit family detection (mass, volume, count)
- Conversion between units of the same family
- Base-unit helpers used when totalling mixed quantities

Conversion Strategy:
- Mass units convert through grams (base unit)
- Volume units convert through milliliters (base unit)
- Count units only convert to themselves

Conversion is permissive by default: converting across families, or
involving a unit the ledger does not know, returns the value unchanged.
Callers that need to fail instead pass ``strict=True`` (or the ledger
enables strict mode through configuration) and get UnitMismatchError.
"""

from typing import Optional

from src.utils.constants import (
    FAMILY_BASE_UNITS,
    UNIT_ALIASES,
    UNIT_FAMILY_COUNT,
    UNIT_FAMILY_MASS,
    UNIT_FAMILY_UNKNOWN,
    UNIT_FAMILY_VOLUME,
)

from .exceptions import UnitMismatchError


# ============================================================================
# Standard Conversion Tables
# ============================================================================

# Mass conversions to grams (base unit)
MASS_TO_GRAMS = {
    "g": 1.0,
    "kg": 1000.0,
}

# Volume conversions to milliliters (base unit)
VOLUME_TO_ML = {
    "ml": 1.0,
    "L": 1000.0,
}

# Count conversions to individual items (base unit)
COUNT_TO_UNITS = {
    "units": 1.0,
}

_FAMILY_TABLES = {
    UNIT_FAMILY_MASS: MASS_TO_GRAMS,
    UNIT_FAMILY_VOLUME: VOLUME_TO_ML,
    UNIT_FAMILY_COUNT: COUNT_TO_UNITS,
}


# ============================================================================
# Unit Type Detection
# ============================================================================


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """
    Map a unit tag to its canonical form.

    Args:
        unit: Unit string as entered (e.g., "Grams", "KG", "liter")

    Returns:
        Canonical tag ("g", "kg", "ml", "L", "units"), or None if the tag
        is empty or unknown

    Example:
        >>> normalize_unit("Kilograms")
        'kg'
        >>> normalize_unit("l")
        'L'
    """
    if unit is None:
        return None
    key = str(unit).strip().lower()
    if not key:
        return None
    return UNIT_ALIASES.get(key)


def get_unit_type(unit: Optional[str]) -> str:
    """
    Determine the family of a unit.

    Args:
        unit: Unit string

    Returns:
        Unit family: "mass", "volume", "count", or "unknown"
    """
    canonical = normalize_unit(unit)
    if canonical is None:
        return UNIT_FAMILY_UNKNOWN

    for family, table in _FAMILY_TABLES.items():
        if canonical in table:
            return family

    return UNIT_FAMILY_UNKNOWN


def units_compatible(unit1: Optional[str], unit2: Optional[str]) -> bool:
    """
    Check if two units are of the same family and can be converted.

    Args:
        unit1: First unit
        unit2: Second unit

    Returns:
        True if units are compatible for conversion
    """
    type1 = get_unit_type(unit1)
    type2 = get_unit_type(unit2)

    if type1 == UNIT_FAMILY_UNKNOWN or type2 == UNIT_FAMILY_UNKNOWN:
        return False

    return type1 == type2


def is_mass_unit(unit: Optional[str]) -> bool:
    return get_unit_type(unit) == UNIT_FAMILY_MASS


def base_unit_for(unit: Optional[str]) -> Optional[str]:
    """
    Get the base unit of a unit's family.

    Returns:
        "g", "ml" or "units"; None for unknown units
    """
    return FAMILY_BASE_UNITS.get(get_unit_type(unit))


# ============================================================================
# Conversions
# ============================================================================


def convert(value: float, from_unit: Optional[str], to_unit: Optional[str], strict: bool = False) -> float:
    """
    Convert a quantity between units of the same family.

    Args:
        value: Quantity to convert
        from_unit: Source unit (e.g., "kg")
        to_unit: Target unit (e.g., "g")
        strict: If True, raise instead of passing the value through unchanged

    Returns:
        Converted value. In permissive mode, the input value unchanged when
        the units are of different families or either unit is unknown.

    Raises:
        UnitMismatchError: In strict mode, when the units cannot be converted

    Example:
        >>> convert(2.5, "kg", "g")
        2500.0
        >>> convert(100, "g", "ml")
        100
    """
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)

    if source is not None and source == target:
        return value

    if not units_compatible(source, target):
        if strict:
            raise UnitMismatchError(str(from_unit), str(to_unit))
        return value

    table = _FAMILY_TABLES[get_unit_type(source)]

    # Convert: value -> base unit -> target unit
    base_value = value * table[source]
    return base_value / table[target]


def to_base_unit(value: float, unit: Optional[str]):
    """
    Express a quantity in its family's base unit.

    Args:
        value: Quantity
        unit: Unit of value

    Returns:
        Tuple of (base_value, base_unit). Unknown units are returned as given.

    Example:
        >>> to_base_unit(1.5, "L")
        (1500.0, 'ml')
    """
    base = base_unit_for(unit)
    if base is None:
        return value, unit
    return convert(value, unit, base), base


def format_quantity(value: float, unit: Optional[str], precision: int = 3) -> str:
    """
    Format a quantity for log messages and error text.

    Returns:
        String like "2.5 kg"; trailing zeros are dropped
    """
    text = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    return f"{text} {unit}" if unit else text
