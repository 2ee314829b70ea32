"""Tests for cure dosing: required mass, ppm, status and note parsing."""

import math
from types import SimpleNamespace

import pytest

from src.services.cure_calculator import (
    CURE_BY_ID,
    CureSettings,
    calculate_ppm,
    cure_base_mass_grams,
    encode_cure_note,
    evaluate_cure_status,
    parse_cure_note,
    required_cure_mass,
    resolve_cure_type,
)


SETTINGS = CureSettings(ppm_min=110, ppm_target=125, ppm_max=125)


class TestRequiredCureMass:
    def test_formula(self):
        """150 ppm at 6.25 % into 10 kg needs exactly 24 g."""
        assert required_cure_mass(10000, "prague1", 150) == pytest.approx(24.0)

    def test_denkurit(self):
        expected = (125 * 2500) / (0.11 * 1_000_000)
        assert required_cure_mass(2500, "denkurit", 125) == pytest.approx(expected)

    def test_non_positive_base_returns_none(self):
        assert required_cure_mass(0, "prague1", 125) is None
        assert required_cure_mass(-5, "prague1", 125) is None

    def test_non_finite_base_returns_none(self):
        assert required_cure_mass(math.nan, "prague1", 125) is None
        assert required_cure_mass(math.inf, "prague1", 125) is None

    def test_unknown_cure_type(self):
        with pytest.raises(KeyError):
            required_cure_mass(1000, "saltpeter", 125)

    def test_table(self):
        assert CURE_BY_ID["denkurit"].active_fraction == pytest.approx(0.11)
        assert CURE_BY_ID["prague1"].active_fraction == pytest.approx(0.0625)


class TestPpm:
    def test_calculate_ppm_inverts_dose(self):
        grams = required_cure_mass(10000, "prague1", 150)
        assert calculate_ppm(grams, 10000, "prague1") == pytest.approx(150)

    def test_calculate_ppm_guards(self):
        assert calculate_ppm(0, 1000, "prague1") == 0.0
        assert calculate_ppm(1, 0, "prague1") == 0.0
        assert calculate_ppm(math.nan, 1000, "prague1") == 0.0

    def test_evaluate_status(self):
        assert evaluate_cure_status(100, SETTINGS) == "LOW"
        assert evaluate_cure_status(110, SETTINGS) == "OK"
        assert evaluate_cure_status(125, SETTINGS) == "OK"
        assert evaluate_cure_status(140, SETTINGS) == "HIGH"
        assert evaluate_cure_status(math.nan, SETTINGS) == "LOW"


class TestCureNotes:
    def test_json_note(self):
        assert parse_cure_note('{"cure_type": "denkurit"}') == "denkurit"
        assert parse_cure_note({"cure_type": "prague1"}) == "prague1"

    def test_json_note_with_unknown_type(self):
        assert parse_cure_note('{"cure_type": "saltpeter"}') is None

    def test_free_text_fallback(self):
        assert parse_cure_note("Denkurit, pre-mixed") == "denkurit"
        assert parse_cure_note("prague powder #1") == "prague1"
        assert parse_cure_note("just salt") is None

    def test_empty(self):
        assert parse_cure_note(None) is None
        assert parse_cure_note("") is None

    def test_encode_round_trip(self):
        assert parse_cure_note(encode_cure_note("prague1")) == "prague1"
        assert encode_cure_note(None) is None

    def test_column_wins_over_note(self):
        assert resolve_cure_type("denkurit", '{"cure_type": "prague1"}') == "denkurit"
        assert resolve_cure_type(None, '{"cure_type": "prague1"}') == "prague1"


def _line(material_id, quantity, unit="g", is_cure=False, category="spice"):
    material = SimpleNamespace(
        is_beef=category == "beef", is_cure=category == "cure", name=str(material_id)
    )
    return SimpleNamespace(
        material_id=material_id, quantity=quantity, unit=unit, is_cure=is_cure, material=material
    )


class TestCureBaseMass:
    def test_raw_mass_plus_scaled_non_cure_lines(self):
        lines = [
            _line(1, 20),
            _line(2, 5),
            _line(3, 2.5, is_cure=True, category="cure"),
        ]
        assert cure_base_mass_grams(2500, lines, 2.5) == pytest.approx(2500 + 50 + 12.5)

    def test_actual_replaces_scaled_target(self):
        lines = [_line(1, 20), _line(2, 5)]
        actuals = {1: SimpleNamespace(actual_amount=0.06, unit="kg")}
        assert cure_base_mass_grams(2500, lines, 2.5, actuals) == pytest.approx(2500 + 60 + 12.5)

    def test_skips_volume_and_beef_lines(self):
        lines = [
            _line(1, 20),
            _line(2, 100, unit="ml", category="additive"),
            _line(3, 1000, category="beef"),
        ]
        assert cure_base_mass_grams(1000, lines, 1.0) == pytest.approx(1020)
