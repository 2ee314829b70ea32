"""Cure Dosing Calculator - ppm-based dosing of curing agents.

Curing agents are dosed by target nitrite concentration rather than by a
fixed recipe quantity:

    required_grams = (target_ppm * base_mass_grams) / (active_fraction * 1_000_000)

where active_fraction is the cure type's nitrite percentage / 100 and
base_mass_grams is the mass of product the cure is dosed into.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from src.utils.constants import CURE_NOTE_KEY

from .unit_converter import convert, is_mass_unit


CURE_STATUS_LOW = "LOW"
CURE_STATUS_OK = "OK"
CURE_STATUS_HIGH = "HIGH"


@dataclass(frozen=True)
class CureOption:
    id: str
    label: str
    nitrite_percent: float

    @property
    def active_fraction(self) -> float:
        return self.nitrite_percent / 100.0


CURE_OPTIONS = (
    CureOption("denkurit", "Denkurit", 11.0),
    CureOption("prague1", "Prague Powder #1", 6.25),
)

CURE_BY_ID = {option.id: option for option in CURE_OPTIONS}


@dataclass(frozen=True)
class CureSettings:
    """Cure ppm limits used for dosing and for LOW/OK/HIGH evaluation."""

    ppm_min: float
    ppm_target: float
    ppm_max: float

    def to_dict(self) -> dict:
        return {
            "cure_ppm_min": self.ppm_min,
            "cure_ppm_target": self.ppm_target,
            "cure_ppm_max": self.ppm_max,
        }


def _recognized(value: Any) -> Optional[str]:
    if isinstance(value, str) and value in CURE_BY_ID:
        return value
    return None


def parse_cure_note(note: Any) -> Optional[str]:
    """
    Extract a cure type from a recipe line note.

    Notes written by the ledger are JSON (``{"cure_type": "prague1"}``).
    Older free-text notes are matched by substring when they are not JSON.

    Args:
        note: Note text, or an already-decoded mapping

    Returns:
        "denkurit", "prague1", or None when no cure type is recognized

    Example:
        >>> parse_cure_note('{"cure_type": "denkurit"}')
        'denkurit'
        >>> parse_cure_note("Prague powder, pre-mix with salt")
        'prague1'
    """
    if not note:
        return None

    if isinstance(note, str):
        try:
            parsed = json.loads(note)
        except ValueError:
            lowered = note.lower()
            if "denkurit" in lowered:
                return "denkurit"
            if "prague" in lowered:
                return "prague1"
            return None
        if isinstance(parsed, dict):
            return _recognized(parsed.get(CURE_NOTE_KEY))
        return None

    if isinstance(note, Mapping):
        return _recognized(note.get(CURE_NOTE_KEY))

    return None


def encode_cure_note(cure_type: Optional[str]) -> Optional[str]:
    """Encode a cure type as the JSON note parse_cure_note() reads back."""
    if not cure_type:
        return None
    return json.dumps({CURE_NOTE_KEY: cure_type})


def resolve_cure_type(cure_type: Optional[str], notes: Any = None) -> Optional[str]:
    """Cure type of a recipe line: the explicit column first, then the note."""
    return _recognized(cure_type) or parse_cure_note(notes)


def required_cure_mass(
    base_product_mass_grams: float, cure_type: str, target_ppm: float
) -> Optional[float]:
    """
    Mass of curing agent needed to reach target_ppm.

    Args:
        base_product_mass_grams: Mass of product the cure is dosed into
        cure_type: Key of CURE_BY_ID
        target_ppm: Target nitrite concentration

    Returns:
        Required grams, or None when the base mass is not a finite number > 0

    Raises:
        KeyError: If cure_type is not a known cure type

    Example:
        >>> required_cure_mass(10000, "prague1", 150)
        24.0
    """
    if base_product_mass_grams is None or not math.isfinite(base_product_mass_grams):
        return None
    if base_product_mass_grams <= 0:
        return None

    option = CURE_BY_ID[cure_type]
    return (target_ppm * base_product_mass_grams) / (option.active_fraction * 1_000_000)


def calculate_ppm(cure_grams: float, total_mass_grams: float, cure_type: str) -> float:
    """
    Nitrite concentration produced by a cure dose.

    Returns:
        ppm, or 0.0 when either mass is not a finite number > 0
    """
    if cure_grams is None or not math.isfinite(cure_grams) or cure_grams <= 0:
        return 0.0
    if total_mass_grams is None or not math.isfinite(total_mass_grams) or total_mass_grams <= 0:
        return 0.0

    nitrite_grams = cure_grams * CURE_BY_ID[cure_type].active_fraction
    return (nitrite_grams / total_mass_grams) * 1_000_000


def evaluate_cure_status(ppm: float, settings: CureSettings) -> str:
    """Classify a ppm against the configured limits: LOW, OK or HIGH."""
    if ppm is None or not math.isfinite(ppm):
        return CURE_STATUS_LOW
    if ppm < settings.ppm_min:
        return CURE_STATUS_LOW
    if ppm > settings.ppm_max:
        return CURE_STATUS_HIGH
    return CURE_STATUS_OK


def is_cure_line(line: Any) -> bool:
    """A recipe line is a cure line when flagged, or when its material is a cure."""
    if getattr(line, "is_cure", False):
        return True
    material = getattr(line, "material", None)
    return bool(material is not None and material.is_cure)


def cure_base_mass_grams(
    raw_mass_grams: float,
    lines: Iterable[Any],
    scale: float,
    actuals_by_material: Optional[Mapping[int, Any]] = None,
) -> float:
    """
    Mass of product a cure is dosed into.

    The batch's raw (beef) mass plus every non-cure, non-beef ingredient
    measured in a mass unit: its recorded actual when there is one,
    otherwise its scaled recipe quantity.

    Args:
        raw_mass_grams: Batch raw-material mass in grams
        lines: Recipe lines (objects with material_id, quantity, unit,
            is_cure and an optional material with is_beef)
        scale: Batch scale factor
        actuals_by_material: material_id -> object with actual_amount and unit

    Returns:
        Base mass in grams
    """
    actuals_by_material = actuals_by_material or {}
    total = raw_mass_grams if raw_mass_grams and math.isfinite(raw_mass_grams) else 0.0

    for line in lines:
        if is_cure_line(line):
            continue
        material = getattr(line, "material", None)
        if material is not None and material.is_beef:
            continue
        if not is_mass_unit(line.unit):
            continue

        actual = actuals_by_material.get(line.material_id)
        if actual is not None and actual.actual_amount is not None:
            total += convert(actual.actual_amount, actual.unit or line.unit, "g")
        else:
            total += convert(line.quantity * scale, line.unit, "g")

    return total
