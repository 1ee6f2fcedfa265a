# Hey future me - this is the ONE door the scanner and the serving layer use to reach the
# library index. It owns nothing itself: every method delegates to a repository, the sync
# index or a TrackQuery, all sharing the single session handed in by library_scope().
# Typical scanner pass:
#   1. database = await open_library(settings)
#   2. async with library_scope(database) as library: ... add_directory/add_url/add_track ...
#   3. leaving the block commits; an exception rolls the whole pass back
"""Library service: the entity, sync and query surface of the library index."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from musicshelf.config import Settings, get_settings
from musicshelf.domain.entities import Directory, Image, Lyrics, Track, Url
from musicshelf.domain.exceptions import ValidationException
from musicshelf.infrastructure.persistence.database import Database
from musicshelf.infrastructure.persistence.repositories import (
    AlbumRepository,
    DirectoryRepository,
    ImageRepository,
    LyricsRepository,
    TrackRepository,
    UrlRepository,
)
from musicshelf.infrastructure.persistence.statements import Cursor
from musicshelf.infrastructure.persistence.sync_index import SyncIndex
from musicshelf.infrastructure.persistence.track_query import TrackQuery

logger = logging.getLogger(__name__)


async def open_library(settings: Settings | None = None) -> Database:
    """Open (and if needed create) the library database.

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        A ready Database whose tables exist

    Raises:
        ValidationException: If no database file is configured
        StorageException: If the database can't be opened or the schema can't be created
    """
    settings = settings or get_settings()
    db_settings = settings.database
    # Path("") collapses to Path("."), which is never a usable database file
    if not db_settings.url and db_settings.db_file == Path(""):
        logger.error("db-file not set")
        raise ValidationException("db-file not set")

    database = Database(settings)
    database.ensure_parent_directory()
    await database.check_connection()
    await database.create_tables()

    logger.info("Library database opened: %s", database.url)
    return database


@asynccontextmanager
async def library_scope(database: Database) -> AsyncGenerator["LibraryService", None]:
    """Yield a LibraryService bound to one transactional session.

    Commits when the block exits normally, rolls back on any exception.
    """
    async with database.session_scope() as session:
        yield LibraryService(session)


class LibraryService:
    """Entity mutation, read, sync and query operations over one session."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize library service.

        Args:
            session: Database session; all operations run on it, one at a time
        """
        self._session = session
        self.urls = UrlRepository(session)
        self.directories = DirectoryRepository(session)
        self.tracks = TrackRepository(session)
        self.albums = AlbumRepository(session)
        self.images = ImageRepository(session)
        self.lyrics_repo = LyricsRepository(session)
        self.index = SyncIndex(session)

    # =========================================================================
    # URLS AND DIRECTORIES
    # =========================================================================

    async def add_url(self, path: str, directory_id: int | None = None) -> int:
        """Get-or-create a url by path; directory_id only applies when it is new."""
        return await self.urls.get_or_create(path, directory_id)

    async def url_id(self, path: str) -> int | None:
        """Id of the url with this path, or None."""
        return await self.urls.get_id(path)

    async def url(self, url_id: int) -> Url | None:
        """Get a url by id."""
        return await self.urls.get_by_id(url_id)

    async def add_directory(self, path: str, parent_id: int | None = None) -> int:
        """Get-or-create a directory by path; None parent makes a root directory."""
        return await self.directories.get_or_create(path, parent_id)

    async def directory_id(self, path: str) -> int | None:
        """Id of the directory with this path, or None."""
        return await self.directories.get_id(path)

    async def directory(self, directory_id: int) -> Directory | None:
        """Get a directory by id."""
        return await self.directories.get_by_id(directory_id)

    async def clear_url(self, url_id: int) -> None:
        """Remove a url's tracks and images, keeping the url itself."""
        await self.urls.clear(url_id)

    async def delete_url(self, url_id: int) -> None:
        """Remove a url together with its tracks and images."""
        await self.urls.delete(url_id)

    async def delete_directory(self, directory_id: int) -> None:
        """Remove a directory, its urls and its whole subtree."""
        await self.directories.delete(directory_id)

    # =========================================================================
    # TRACKS, IMAGES, LYRICS
    # =========================================================================

    async def add_track(self, track: Track, url_id: int) -> int:
        """Add a track to a url; artist/album names are get-or-created."""
        return await self.tracks.add(track, url_id)

    async def track_by_id(self, track_id: int) -> Track | None:
        """Fully resolved track, or None."""
        return await self.tracks.get_by_id(track_id)

    async def random_track_id(self) -> int | None:
        """Id of a random track, or None when the library is empty."""
        return await self.tracks.random_id()

    async def add_image(self, url_id: int) -> int:
        """Register a url as a cover image."""
        return await self.images.add(url_id)

    async def set_album_image(self, album_id: int, image_id: int | None) -> None:
        """Set or clear an album's cover image.

        Raises:
            EntityNotFoundException: If the album does not exist
        """
        await self.albums.set_image(album_id, image_id)

    async def album_image_path(self, album_id: int) -> str | None:
        """Path of an album's cover image file, or None."""
        return await self.albums.image_path(album_id)

    async def lyrics(self, track_id: int) -> Lyrics | None:
        """Lyrics of a track, or None."""
        return await self.lyrics_repo.get(track_id)

    async def set_lyrics(self, track_id: int, text: str | None) -> None:
        """Replace a track's lyrics, stamped with the current time."""
        await self.lyrics_repo.set(track_id, text)

    # =========================================================================
    # SYNC INDEX
    # =========================================================================

    async def url_mtime(self, url_id: int) -> int | None:
        """Stored mtime checkpoint of a url."""
        return await self.index.url_mtime(url_id)

    async def set_url_mtime(self, url_id: int, mtime: int) -> None:
        """Record a url's mtime checkpoint."""
        await self.index.set_url_mtime(url_id, mtime)

    async def directory_mtime(self, directory_id: int) -> int | None:
        """Stored mtime checkpoint of a directory."""
        return await self.index.directory_mtime(directory_id)

    async def set_directory_mtime(self, directory_id: int, mtime: int) -> None:
        """Record a directory's mtime checkpoint."""
        await self.index.set_directory_mtime(directory_id, mtime)

    async def count_directory_tracks(self, directory_id: int) -> int:
        """Number of tracks in the urls directly inside a directory."""
        return await self.index.count_tracks(directory_id)

    def iterate_urls(self, directory_id: int | None) -> Cursor[Url]:
        """Cursor over the urls directly inside a directory."""
        return self.index.iterate_urls(directory_id)

    def iterate_directories(self, parent_id: int | None) -> Cursor[Directory]:
        """Cursor over the child directories of a directory."""
        return self.index.iterate_directories(parent_id)

    def iterate_images_by_directory(self, directory_id: int) -> Cursor[Image]:
        """Cursor over the images inside a directory."""
        return self.index.iterate_images_by_directory(directory_id)

    def iterate_images_by_album(self, album_id: int) -> Cursor[Image]:
        """Cursor over the images of an album."""
        return self.index.iterate_images_by_album(album_id)

    async def dominant_album(self, directory_id: int) -> int | None:
        """Album most of a directory's tracks belong to, or None."""
        return await self.index.dominant_album(directory_id)

    async def set_images_album(self, directory_id: int, album_id: int | None) -> None:
        """Associate all images inside a directory with an album."""
        await self.index.set_images_album(directory_id, album_id)

    # Yo, this is the cover-art step the scanner runs after a directory is (re)indexed:
    # the images lying next to the tracks belong to whatever album most of those tracks
    # are on. An album that already has a cover keeps it.
    async def assign_directory_cover(self, directory_id: int) -> int | None:
        """Attach a directory's images to its dominant album.

        Returns:
            The dominant album id, or None when the directory has no album tracks
        """
        album_id = await self.index.dominant_album(directory_id)
        if album_id is None:
            return None

        await self.index.set_images_album(directory_id, album_id)

        if await self.albums.image_id(album_id) is None:
            async with self.index.iterate_images_by_directory(directory_id) as images:
                first = await images.next()
            if first is not None:
                await self.albums.set_image(album_id, first.id)
                logger.debug("Album %s got cover image %s", album_id, first.id)

        return album_id

    # =========================================================================
    # QUERIES
    # =========================================================================

    def query(self) -> TrackQuery:
        """New, empty track query on this session."""
        return TrackQuery(self._session)
