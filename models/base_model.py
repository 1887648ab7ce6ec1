#!/usr/bin/env python3
"""
Shared SQLAlchemy base for the clinic backend.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- save() and delete() that go through DBStorage

Timestamps are set on the Python side (naive UTC) so they are available on
freshly inserted objects without a refresh round trip.
"""

from __future__ import annotations

from datetime import datetime
import uuid

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
import models

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.utcnow()


class BaseModel:
    """
    Base mixin for all persistent models.

    Provides id, created_at, updated_at and the save()/delete() helpers
    wired to DBStorage.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, *args, **kwargs):
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] ({self.id}) {self.__dict__}"

    def save(self):
        """Stamp updated_at and commit the instance through DBStorage."""
        self.updated_at = utcnow()
        models.storage.new(self)
        models.storage.save()

    def delete(self):
        """Hard delete; the caller decides when to commit."""
        models.storage.delete(self)
