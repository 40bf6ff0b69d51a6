"""Declarative base plus the process-wide async engine and session factory.

``init_db`` runs once from the app lifespan; request handlers and services get
sessions from ``get_session_factory()``. Tests build their own engine and pass
an ``async_sessionmaker`` to the stores directly.
"""

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from vision_builder.core.config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Async engine for ``url``; SQLite skips the connection health ping."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


async def init_db(url: str | None = None, create_tables: bool = True) -> None:
    """Create the engine and session factory; no-op if already initialized.

    Args:
        url: Database URL (defaults to settings.database_url)
        create_tables: Run ``Base.metadata.create_all`` for every model
    """
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    db_url = url or settings.database_url

    _engine = create_engine_for(db_url, echo=settings.debug)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    if create_tables:
        # Models register themselves on Base.metadata at import
        import vision_builder.db.models  # noqa: F401

        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info("database_ready", dialect=_engine.dialect.name, create_tables=create_tables)


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """The initialized session factory.

    Raises:
        RuntimeError: If init_db() has not run
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
