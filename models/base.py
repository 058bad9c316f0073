"""
SQLAlchemy base configuration for Identity Reconciliation System
This module sets up the SQLAlchemy declarative base and the shared
columns every table carries (id, timestamps, soft delete marker)
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase


def utc_now() -> datetime:
    """Timezone-aware current time used for every timestamp column"""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models"""
    pass


class BaseModel(Base):
    """
    Abstract model with the columns shared by all tables

    ``created_at`` is assigned once on insert and is part of the ordering
    key used by identity reconciliation, so it is never updated afterwards.
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="Creation time, never modified"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    deleted_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Soft delete marker; rows with this set are ignored"
    )

    def to_dict(self):
        """Convert model columns to a plain dictionary"""
        return {
            column.name: getattr(self, column.key)
            for column in self.__table__.columns
        }
