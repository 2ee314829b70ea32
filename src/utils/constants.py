"""
Constants for the Jerky Ledger application.

This module defines system-wide constants including:
- Unit tags and unit families (mass, volume, count)
- Ledger numeric tolerances
- Cure dosing defaults
- Application metadata
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Jerky Ledger"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "jerky_ledger.db"

# ============================================================================
# Unit Types
# ============================================================================

UNIT_FAMILY_MASS = "mass"
UNIT_FAMILY_VOLUME = "volume"
UNIT_FAMILY_COUNT = "count"
UNIT_FAMILY_UNKNOWN = "unknown"

# Base unit of each family (what totals are reported in)
FAMILY_BASE_UNITS: Dict[str, str] = {
    UNIT_FAMILY_MASS: "g",
    UNIT_FAMILY_VOLUME: "ml",
    UNIT_FAMILY_COUNT: "units",
}

# Legacy and free-form tags seen on received lots and recipe lines
UNIT_ALIASES: Dict[str, str] = {
    "g": "g",
    "gr": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kgs": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "l": "L",
    "liter": "L",
    "liters": "L",
    "litre": "L",
    "litres": "L",
    "units": "units",
    "unit": "units",
    "count": "units",
    "each": "units",
    "ea": "units",
    "pcs": "units",
}

# ============================================================================
# Ledger Tolerances
# ============================================================================

# Absorbs floating-point drift when comparing balances
DEFAULT_BALANCE_EPSILON = 1e-6

# Used when a recipe line carries no tolerance of its own
DEFAULT_TOLERANCE_PERCENTAGE = 5.0

# Re-reads allowed when putting a reversed allocation back on a lot that
# another write changed in the meantime
BALANCE_RESTORE_ATTEMPTS = 3

# ============================================================================
# Cure Dosing
# ============================================================================

DEFAULT_CURE_PPM_MIN = 110.0
DEFAULT_CURE_PPM_TARGET = 125.0
DEFAULT_CURE_PPM_MAX = 125.0

CURE_SETTING_KEYS: List[str] = [
    "cure_ppm_min",
    "cure_ppm_target",
    "cure_ppm_max",
]

# Key used in the JSON note attached to cure recipe lines
CURE_NOTE_KEY = "cure_type"
