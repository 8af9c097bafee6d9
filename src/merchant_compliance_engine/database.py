"""Primary database engine, session dependency and ORM base classes.

Key exports:
- Base               — declarative base for all ORM models
- TimestampedModel   — mixin adding UUID id, created_at and updated_at
- init_database(...) — call at startup to create the engine and session factory
- close_database()   — call at shutdown to dispose the engine
- create_schema()    — create missing tables, for development databases
- session_scope()    — unit of work outside a request, e.g. startup seeding
- get_db_session()   — FastAPI dependency yielding a session per request
- BaseRepository     — holds the session and the mapped model for repositories
"""

import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Generic, TypeVar

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from merchant_compliance_engine.errors import NotFoundError
from merchant_compliance_engine.observability import get_logger

logger = get_logger(__name__)

# Module-level engine and session factory — initialized by init_database()
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model."""


class TimestampedModel(Base):
    """Abstract model with a UUID primary key and audit timestamps."""

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared plumbing for SQLAlchemy repositories.

    Args:
        session: The async session for the current unit of work.
        model: The mapped class this repository manages.
    """

    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self._session = session
        self._model = model

    async def _persist(self, instance: ModelT) -> ModelT:
        """Add, flush and refresh an instance so generated columns are populated."""
        self._session.add(instance)
        await self._session.flush()
        await self._session.refresh(instance)
        return instance

    async def _get_or_raise(self, entity_id: uuid.UUID, resource: str) -> ModelT:
        """Load a row by primary key.

        Raises:
            NotFoundError: If no row exists with the given ID.
        """
        instance = await self._session.get(self._model, entity_id)
        if instance is None:
            raise NotFoundError(resource=resource, resource_id=str(entity_id))
        return instance


def init_database(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 5,
    echo: bool = False,
) -> None:
    """Initialize the database engine and session factory.

    Must be called once at application startup before any session is requested.

    Args:
        database_url: SQLAlchemy async connection URL.
        pool_size: Connection pool size.
        max_overflow: Max overflow connections above pool_size.
        echo: Whether SQL statements are echoed to the log.
    """
    global _engine, _session_factory  # noqa: PLW0603

    logger.info("Initializing database engine", pool_size=pool_size, max_overflow=max_overflow)

    _engine = create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
        pool_pre_ping=True,
    )
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def close_database() -> None:
    """Dispose the database engine. Safe to call when it was never initialized."""
    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None:
        logger.info("Disposing database engine")
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def create_schema() -> None:
    """Create any tables missing from the database. Existing tables are left alone."""
    if _engine is None:
        raise RuntimeError("Database has not been initialized. Call init_database() first.")

    async with _engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured", tables=len(Base.metadata.tables))


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Open a session that commits on success and rolls back on error.

    Raises:
        RuntimeError: If init_database() has not been called yet.
    """
    if _session_factory is None:
        raise RuntimeError(
            "Database has not been initialized. "
            "Call init_database() in the application lifespan handler."
        )

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a database session.

    The session is committed when the request handler returns and rolled back
    when it raises.

    Yields:
        AsyncSession bound to the primary database.

    Raises:
        RuntimeError: If init_database() has not been called yet.
    """
    async with session_scope() as session:
        yield session
