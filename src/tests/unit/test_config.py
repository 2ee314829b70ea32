"""Unit tests for Config ledger properties.

Each property is tested for:
- Default values when no environment variables set
- Environment variable overrides
- Invalid value handling (fallback to defaults with warning)
"""

import logging

from src.utils.config import Config, get_config, reset_config


class TestLedgerConfigProperties:
    """Tests for balance epsilon, tolerance and unit strictness."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_balance_epsilon_default(self):
        assert Config().balance_epsilon == 1e-6

    def test_balance_epsilon_env_override(self, monkeypatch):
        monkeypatch.setenv("JERKY_LEDGER_BALANCE_EPSILON", "0.001")
        assert Config().balance_epsilon == 0.001

    def test_balance_epsilon_negative_uses_default(self, monkeypatch, caplog):
        monkeypatch.setenv("JERKY_LEDGER_BALANCE_EPSILON", "-1")
        with caplog.at_level(logging.WARNING):
            assert Config().balance_epsilon == 1e-6
        assert "Invalid JERKY_LEDGER_BALANCE_EPSILON" in caplog.text

    def test_default_tolerance(self, monkeypatch):
        assert Config().default_tolerance_percentage == 5.0
        monkeypatch.setenv("JERKY_LEDGER_DEFAULT_TOLERANCE", "7.5")
        assert Config().default_tolerance_percentage == 7.5

    def test_default_tolerance_invalid_uses_default(self, monkeypatch, caplog):
        monkeypatch.setenv("JERKY_LEDGER_DEFAULT_TOLERANCE", "nan")
        with caplog.at_level(logging.WARNING):
            assert Config().default_tolerance_percentage == 5.0
        assert "Invalid JERKY_LEDGER_DEFAULT_TOLERANCE" in caplog.text

    def test_strict_units_default_off(self):
        assert Config().strict_unit_conversion is False

    def test_strict_units_env_override(self, monkeypatch):
        monkeypatch.setenv("JERKY_LEDGER_STRICT_UNITS", "yes")
        assert Config().strict_unit_conversion is True

    def test_strict_units_invalid_uses_default(self, monkeypatch, caplog):
        monkeypatch.setenv("JERKY_LEDGER_STRICT_UNITS", "sometimes")
        with caplog.at_level(logging.WARNING):
            assert Config().strict_unit_conversion is False
        assert "Invalid JERKY_LEDGER_STRICT_UNITS" in caplog.text


class TestCureConfigProperties:
    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_cure_defaults(self):
        config = Config()
        assert (config.cure_ppm_min, config.cure_ppm_target, config.cure_ppm_max) == (
            110.0,
            125.0,
            125.0,
        )

    def test_cure_env_override(self, monkeypatch):
        monkeypatch.setenv("JERKY_LEDGER_CURE_PPM_MAX", "156")
        assert Config().cure_ppm_max == 156.0


class TestDatabaseConfig:
    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_sqlite_url_from_path(self, monkeypatch):
        monkeypatch.delenv("JERKY_LEDGER_DATABASE_URL", raising=False)
        config = Config("development")
        assert config.database_url.startswith("sqlite:///")
        assert config.database_url.endswith("data/jerky_ledger.db")

    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv("JERKY_LEDGER_DATABASE_URL", "postgresql://ledger@localhost/ledger")
        assert Config().database_url == "postgresql://ledger@localhost/ledger"

    def test_production_uses_home_directory(self):
        assert Config("production").database_path.parent.name == ".jerky_ledger"


class TestConfigSingleton:
    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_singleton_keeps_environment(self, caplog):
        first = get_config("development")
        with caplog.at_level(logging.WARNING):
            second = get_config("production")
        assert second is first
        assert second.is_development
        assert "Returning existing singleton" in caplog.text

    def test_environment_from_env_var(self, monkeypatch):
        monkeypatch.setenv("JERKY_LEDGER_ENV", "development")
        assert get_config().is_development
