"""Declarative base and shared column helpers."""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def prefixed_id(prefix: str, length: int = 8) -> str:
    """Generate a short human-readable id such as ``APR-1A2B3C4D``."""
    return f"{prefix}-{uuid.uuid4().hex[:length].upper()}"
