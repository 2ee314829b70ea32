"""
ProjectSetting model - generic key/value settings store.

Cure ppm limits live here (cure_ppm_min, cure_ppm_target, cure_ppm_max);
values are stored as text and parsed by the settings service.
"""

from sqlalchemy import Column, String, Text

from .base import BaseModel


class ProjectSetting(BaseModel):
    __tablename__ = "project_settings"

    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"ProjectSetting(key='{self.key}', value={self.value!r})"
