"""Shared fixtures: a throwaway file-backed library database per test."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from musicshelf.config import DatabaseSettings, Settings
from musicshelf.domain.entities import Track
from musicshelf.infrastructure.persistence.database import Database
from musicshelf.infrastructure.persistence.repositories import (
    DirectoryRepository,
    TrackRepository,
    UrlRepository,
)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a database file inside tmp_path."""
    return Settings(database=DatabaseSettings(db_file=tmp_path / "library.db"))


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created; disposed after the test."""
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """One transactional session, committed when the test finishes."""
    async with database.session_scope() as session:
        yield session


class LibraryBuilder:
    """Small helper for populating directories, urls and tracks in tests."""

    def __init__(self, session: AsyncSession) -> None:
        self.directories = DirectoryRepository(session)
        self.urls = UrlRepository(session)
        self.tracks = TrackRepository(session)

    async def directory(self, path: str, parent_id: int | None = None) -> int:
        return await self.directories.get_or_create(path, parent_id)

    async def url(self, path: str, directory_id: int | None = None) -> int:
        return await self.urls.get_or_create(path, directory_id)

    async def track(self, url_id: int, **fields: object) -> int:
        return await self.tracks.add(Track(**fields), url_id)  # type: ignore[arg-type]


@pytest.fixture
def builder(session: AsyncSession) -> LibraryBuilder:
    """LibraryBuilder bound to the test session."""
    return LibraryBuilder(session)
