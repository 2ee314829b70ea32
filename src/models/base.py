"""
Base model class for all ledger models.

Provides common fields and helpers for every table:
- Integer primary key plus a UUID column for external references
- Timestamp fields (created_at, updated_at)
- to_dict() for service-layer payloads
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base, validates

from src.utils.datetime_utils import utc_now

# Create the declarative base for all models
Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields and methods.

    All models inherit from this class to get:
    - id: Integer primary key
    - uuid: Stable external identifier
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last modified
      (append-only models set this to None)
    """

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Dates become ISO strings and enum values become their string value,
        so the result can be handed straight to a JSON transport.

        Args:
            include_relationships: If True, include loaded many-to-one relations

        Returns:
            Dictionary representation of the model
        """
        result = {}

        for column in self.__table__.columns:
            result[column.name] = _plain(getattr(self, column.name))

        if include_relationships:
            for relationship in self.__mapper__.relationships:
                if relationship.uselist:
                    continue
                related = getattr(self, relationship.key)
                result[relationship.key] = related.to_dict() if related is not None else None

        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "ClassName(id=1, ...)"
        """
        class_name = self.__class__.__name__
        attrs = []

        if getattr(self, "id", None) is not None:
            attrs.append(f"id={self.id}")

        if getattr(self, "name", None) is not None:
            attrs.append(f"name='{self.name}'")

        return f"{class_name}({', '.join(attrs)})"


def _plain(value: Any) -> Any:
    """Reduce a column value to a JSON-friendly primitive."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
