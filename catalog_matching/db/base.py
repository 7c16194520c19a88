"""Base SQLAlchemy configuration and mixins."""
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import DateTime
from datetime import datetime, timezone
from typing import Optional
import uuid

from catalog_matching.config import settings


def utcnow() -> datetime:
    """Timezone-aware current time used for Python-side column defaults."""
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models with async support."""
    pass


class UUIDMixin:
    """Mixin for UUID primary key."""
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps.

    Timestamps are set Python-side so catalog ordering (created_at, id)
    keeps sub-second resolution on every backend.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


def build_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Create an async engine, applying pool settings only where supported."""
    url = database_url or settings.database_url
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_size", settings.db_pool_size)
        kwargs.setdefault("max_overflow", settings.db_max_overflow)
        kwargs.setdefault("pool_recycle", 3600)  # Recycle connections after 1 hour
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=False, **kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the given engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory, creating the engine lazily."""
    global _engine, _session_maker
    if _session_maker is None:
        _engine = build_engine()
        _session_maker = build_session_maker(_engine)
    return _session_maker


async def dispose_engine() -> None:
    """Close pooled connections of the process-wide engine."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
