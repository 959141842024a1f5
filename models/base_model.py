#!/usr/bin/env python3
"""
Shared SQLAlchemy base and helpers for the ModernAPI models.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- UTC helpers: every "now" in the code base comes from utcnow(), and values
  read back from databases that drop the offset (SQLite) go through as_utc()
  before they are compared.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BaseModel:
    """
    Base mixin for all persistent models.

    - id, created_at, updated_at
    - kwargs initialisation without requiring a session
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        Subclasses set created_at/updated_at from their clock; DB defaults cover the rest.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if user passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        """Human-friendly representation including id and public fields."""
        fields = {k: v for k, v in self.__dict__.items() if not k.startswith("_")}
        return f"[{self.__class__.__name__}] ({self.id}) {fields}"

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or utcnow()
