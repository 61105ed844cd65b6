# app/models/mixins.py
from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


def generate_uuid():
    """Generate a UUID string for use as a primary key"""
    return str(uuid.uuid4())


def utcnow():
    """Timezone-aware current time with microsecond precision"""
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin to add created_at and updated_at columns to models"""
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
