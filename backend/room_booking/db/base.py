"""
Declarative base and shared column mixins.
"""

from datetime import datetime, timezone

from sqlalchemy import Column
from sqlalchemy.orm import declarative_base

from room_booking.db.types import UTCDateTime

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    # Python-side default so the value is populated on flush without a refresh
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
