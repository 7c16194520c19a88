"""Database module."""
from catalog_matching.db.base import (
    Base,
    UUIDMixin,
    TimestampMixin,
    build_engine,
    build_session_maker,
    get_session_maker,
    dispose_engine,
    utcnow,
)

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "build_engine",
    "build_session_maker",
    "get_session_maker",
    "dispose_engine",
    "utcnow",
]
