"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Uuid
from sqlalchemy.types import TypeDecorator

# Use JSON instead of JSONB for cross-database compatibility
JSONType = JSON

# Native UUID on PostgreSQL, CHAR(32) elsewhere
UUIDType = Uuid


class TZDateTime(TypeDecorator):
    """Timezone-aware datetime that is always returned in UTC.

    SQLite drops tzinfo on the way in, so naive values read back are
    treated as UTC.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
