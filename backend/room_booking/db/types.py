"""
Column types used at the persistence boundary.

UTCDateTime keeps every stored timestamp in UTC and hands back aware
datetimes regardless of backend (SQLite drops offsets on the way in).
EnumSet stores a small set of enum members as a JSON list instead of an
ad-hoc encoded string column.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes are not accepted; attach a UTC offset")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class EnumSet(TypeDecorator):
    impl = JSON
    cache_ok = True

    def __init__(self, enum_class: type[Enum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        members = {self.enum_class(item) for item in value}
        return sorted(member.value for member in members)

    def process_result_value(self, value, dialect):
        if value is None:
            return frozenset()
        return frozenset(self.enum_class(item) for item in value)
