"""
Configuration management for the Jerky Ledger application.

This module handles:
- Database path and URL configuration
- Ledger tolerances (balance epsilon, default ingredient tolerance)
- Unit conversion strictness
- Cure ppm defaults used when the settings store has no value
- Environment-specific configuration (development vs. production)

Every numeric or boolean setting can be overridden through a
``JERKY_LEDGER_*`` environment variable. Invalid values fall back to the
default and log a warning.
"""

import logging
import math
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_BALANCE_EPSILON,
    DEFAULT_CURE_PPM_MAX,
    DEFAULT_CURE_PPM_MIN,
    DEFAULT_CURE_PPM_TARGET,
    DEFAULT_TOLERANCE_PERCENTAGE,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "JERKY_LEDGER_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_float(name: str, default: float, minimum: Optional[float] = None) -> float:
    """Read a float override from the environment, falling back on bad input."""
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {ENV_PREFIX}{name}={raw!r}; using default {default}")
        return default
    if not math.isfinite(value):
        logger.warning(f"Invalid {ENV_PREFIX}{name}={raw!r}; using default {default}")
        return default
    if minimum is not None and value < minimum:
        logger.warning(
            f"Invalid {ENV_PREFIX}{name}={raw!r} (must be >= {minimum}); using default {default}"
        )
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean override from the environment, falling back on bad input."""
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning(f"Invalid {ENV_PREFIX}{name}={raw!r}; using default {default}")
    return default


class Config:
    """
    Application configuration manager.

    Handles database location, ledger tolerances and cure defaults.
    Values are read once at construction time.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(ENV_PREFIX + "DATABASE_URL") or None

        self._balance_epsilon = _env_float(
            "BALANCE_EPSILON", DEFAULT_BALANCE_EPSILON, minimum=0.0
        )
        self._default_tolerance = _env_float(
            "DEFAULT_TOLERANCE", DEFAULT_TOLERANCE_PERCENTAGE, minimum=0.0
        )
        self._strict_unit_conversion = _env_bool("STRICT_UNITS", False)
        self._cure_ppm_min = _env_float("CURE_PPM_MIN", DEFAULT_CURE_PPM_MIN, minimum=0.0)
        self._cure_ppm_target = _env_float(
            "CURE_PPM_TARGET", DEFAULT_CURE_PPM_TARGET, minimum=0.0
        )
        self._cure_ppm_max = _env_float("CURE_PPM_MAX", DEFAULT_CURE_PPM_MAX, minimum=0.0)

    def _get_project_data_dir(self) -> Path:
        """
        Get the project's data directory for development.

        Returns:
            Path to project data/ directory
        """
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """
        Get the per-user data directory for production.

        Returns:
            Path to ~/.jerky_ledger
        """
        return Path.home() / ".jerky_ledger"

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
        self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the SQLite database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        JERKY_LEDGER_DATABASE_URL wins over the SQLite file path.
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def balance_epsilon(self) -> float:
        """Tolerance used when comparing lot balances."""
        return self._balance_epsilon

    @property
    def default_tolerance_percentage(self) -> float:
        """Tolerance applied to recipe lines that carry none."""
        return self._default_tolerance

    @property
    def strict_unit_conversion(self) -> bool:
        """When True, mismatched unit families raise instead of passing through."""
        return self._strict_unit_conversion

    @property
    def cure_ppm_min(self) -> float:
        return self._cure_ppm_min

    @property
    def cure_ppm_target(self) -> float:
        return self._cure_ppm_target

    @property
    def cure_ppm_max(self) -> float:
        return self._cure_ppm_max

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """
        Check if the SQLite database file exists.

        Returns:
            True if database file exists, False otherwise
        """
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents accidental database
    switching mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    JERKY_LEDGER_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_PREFIX + "ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
