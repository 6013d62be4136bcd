"""
Database connection and session management

Provides an async SQLAlchemy engine (asyncpg for PostgreSQL, aiosqlite for
SQLite) with SQLModel metadata. The ``Database`` object is built from
``Settings`` at the application edge and passed to repositories.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from core.config import Settings, normalize_database_url
from core.logging import get_logger

# Register table models on SQLModel.metadata
from core import models_sql  # noqa: F401

logger = get_logger(__name__)


class Database:
    """
    Async engine plus session factory.

    Usage:
        database = Database.from_settings(settings)
        await database.init()
        async with database.session() as session:
            record = await session.get(CertificateRecord, certificate_id)
    """

    def __init__(self, url: str, echo: bool = False, pool_size: int = 5,
                 max_overflow: int = 10, use_pgbouncer: bool = False):
        self.url = normalize_database_url(url)

        engine_kwargs: Dict[str, Any] = {"echo": echo}
        # SQLite: one short-lived connection per session, no pool sizing
        if self.url.startswith("sqlite") or use_pgbouncer:
            engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,  # Verify connections before using
            )

        self.engine = create_async_engine(self.url, **engine_kwargs)
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Settings, use_pgbouncer: bool = False) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            use_pgbouncer=use_pgbouncer,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager yielding a session that commits on success

        Usage:
            async with database.session() as session:
                session.add(record)
        """
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init(self) -> None:
        """
        Create tables that do not exist yet
        Should only be called once during app startup
        """
        url = self.engine.url
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database tables ensured", extra={"database": self.engine.url.render_as_string(hide_password=True)})

    async def close(self) -> None:
        """
        Close database connections
        Should be called during app shutdown
        """
        await self.engine.dispose()
