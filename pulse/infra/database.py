from datetime import UTC, datetime
from typing import Any, AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from pulse.config.settings import Settings


class UTCDateTime(TypeDecorator):
    """Timestamp stored as naive UTC and always returned timezone-aware.

    SQLite keeps no offset, so every value is normalised to UTC on the way in
    and tagged with UTC on the way out. Naive inputs are rejected.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime is not allowed: {value!r}")
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


class Database:
    """Database connection and session management."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
        )
        self.SessionLocal = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table registered on the metadata."""
        # Model modules register their tables on import
        from pulse.v1.jobs import models as _jobs  # noqa: F401
        from pulse.v1.notifications import models as _notifications  # noqa: F401
        from pulse.v1.reminders import models as _reminders  # noqa: F401
        from pulse.v1.webhooks import models as _webhooks  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """Close database connections."""
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """Database attached to the running app."""
    return request.app.state.database


async def get_session(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency injection for database sessions."""
    async with database.SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Convenience type alias for dependency injection
SessionDep = Depends(get_session)
