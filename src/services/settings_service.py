"""Settings Service - project-wide key/value settings.

Cure ppm limits are stored as ProjectSetting rows (cure_ppm_min,
cure_ppm_target, cure_ppm_max). get_cure_settings() resolves them once per
call into an immutable CureSettings; a missing or unparseable row falls
back to the configured default.

Usage:
    from src.services.settings_service import get_cure_settings

    settings = get_cure_settings()
    grams = required_cure_mass(base_mass, "prague1", settings.ppm_target)
"""

import logging
import math
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.utils.config import get_config
from src.utils.constants import CURE_SETTING_KEYS

from ..models import ProjectSetting
from .cure_calculator import CureSettings
from .database import session_scope
from .exceptions import DatabaseError, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


def _parse_setting(key: str, raw: Optional[str], default: float) -> float:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = None
    if value is None or not math.isfinite(value) or value < 0:
        logger.warning(f"Invalid project setting {key}={raw!r}; using default {default}")
        return default
    return value


def _get_cure_settings_impl(session: Session) -> CureSettings:
    config = get_config()
    rows = (
        session.query(ProjectSetting)
        .filter(ProjectSetting.key.in_(CURE_SETTING_KEYS))
        .all()
    )
    stored: Dict[str, Optional[str]] = {row.key: row.value for row in rows}

    return CureSettings(
        ppm_min=_parse_setting("cure_ppm_min", stored.get("cure_ppm_min"), config.cure_ppm_min),
        ppm_target=_parse_setting(
            "cure_ppm_target", stored.get("cure_ppm_target"), config.cure_ppm_target
        ),
        ppm_max=_parse_setting("cure_ppm_max", stored.get("cure_ppm_max"), config.cure_ppm_max),
    )


def get_cure_settings(session: Optional[Session] = None) -> CureSettings:
    """Resolve the cure ppm limits.

    Args:
        session: Optional database session

    Returns:
        CureSettings with stored values, or configured defaults
    """
    if session is not None:
        return _get_cure_settings_impl(session)
    with session_scope() as sess:
        return _get_cure_settings_impl(sess)


def get_setting(key: str, session: Optional[Session] = None) -> Optional[str]:
    """Raw stored value for a key, or None."""

    def _impl(sess: Session) -> Optional[str]:
        row = sess.query(ProjectSetting).filter(ProjectSetting.key == key).first()
        return row.value if row else None

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def set_setting(key: str, value, session: Optional[Session] = None) -> Dict[str, Optional[str]]:
    """Create or overwrite a setting.

    Args:
        key: Setting key
        value: Value; stored as text (None clears it)
        session: Optional database session

    Returns:
        Dict with key and stored value
    """
    if not key or not str(key).strip():
        raise ValidationError(["Setting key is required"])

    def _impl(sess: Session) -> Dict[str, Optional[str]]:
        row = sess.query(ProjectSetting).filter(ProjectSetting.key == key).first()
        text = None if value is None else str(value)
        if row is None:
            row = ProjectSetting(key=key, value=text)
            sess.add(row)
        else:
            row.value = text
        sess.flush()
        log_operation(logger, operation="set_setting", outcome="success", setting_key=key)
        return {"key": row.key, "value": row.value}

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to store setting {key}", original_error=e)


def update_cure_settings(
    ppm_min: Optional[float] = None,
    ppm_target: Optional[float] = None,
    ppm_max: Optional[float] = None,
    session: Optional[Session] = None,
) -> CureSettings:
    """Update some or all cure ppm limits.

    The resulting limits must satisfy 0 <= min <= target <= max.

    Raises:
        ValidationError: If the resulting limits are inconsistent
    """

    def _impl(sess: Session) -> CureSettings:
        current = _get_cure_settings_impl(sess)
        merged = CureSettings(
            ppm_min=current.ppm_min if ppm_min is None else float(ppm_min),
            ppm_target=current.ppm_target if ppm_target is None else float(ppm_target),
            ppm_max=current.ppm_max if ppm_max is None else float(ppm_max),
        )

        errors = []
        for key, value in merged.to_dict().items():
            if not math.isfinite(value) or value < 0:
                errors.append(f"{key} must be a finite number >= 0")
        if not errors and not (merged.ppm_min <= merged.ppm_target <= merged.ppm_max):
            errors.append("cure ppm limits must satisfy min <= target <= max")
        if errors:
            log_operation(
                logger,
                operation="update_cure_settings",
                outcome="validation_failed",
                level=logging.WARNING,
                errors=errors,
            )
            raise ValidationError(errors)

        for key, value in merged.to_dict().items():
            set_setting(key, value, session=sess)
        return merged

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
