"""Database session management."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from musicshelf.config import Settings
from musicshelf.domain.exceptions import StorageException

logger = logging.getLogger(__name__)


class Database:
    """Database connection and session manager.

    Hey future me - this is the storage handle! ONE engine per process, and every
    library operation runs on a session handed out by session_scope(). A session is
    a single logical connection: never await two statements on it concurrently.
    If several tasks need the library at once, give each its own session_scope().
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize database with settings."""
        self.settings = settings
        self.url = settings.database.connection_url

        engine_kwargs: dict[str, Any] = {
            "echo": settings.database.echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.database.busy_timeout,
            },
        }

        self._engine = create_async_engine(self.url, **engine_kwargs)
        self._enable_sqlite_foreign_keys()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def _enable_sqlite_foreign_keys(self) -> None:
        """Enable foreign key constraints for SQLite.

        SQLite has foreign keys disabled by default. The manual cascades in the
        repositories rely on them to catch dangling directory/url references.
        """

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            """Set SQLite pragmas on connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            logger.debug("Enabled foreign keys for SQLite connection")

    def ensure_parent_directory(self) -> None:
        """Create the directory holding the database file, if it is file-backed."""
        database = make_url(self.url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    async def check_connection(self) -> None:
        """Open a connection and run a trivial statement.

        Raises:
            StorageException: If the database cannot be opened
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Can't open database '%s': %s", self.url, e)
            raise StorageException(f"Can't open database: {e}") from e

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for library operations."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                # Rollback on any exception, then re-raise for the caller to handle.
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self) -> None:
        """Close database connection."""
        await self._engine.dispose()

    async def create_tables(self) -> None:
        """Create all tables that do not exist yet."""
        from musicshelf.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
