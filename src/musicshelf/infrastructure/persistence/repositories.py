"""Repository implementations for library entities."""

from __future__ import annotations

import logging
import time
from typing import Any, ClassVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from musicshelf.domain.entities import Directory, Lyrics, Track, Url
from musicshelf.domain.exceptions import (
    EntityNotFoundException,
    StorageException,
    ValidationException,
)

from .models import (
    AlbumModel,
    ArtistModel,
    DirectoryModel,
    ImageModel,
    LyricsModel,
    TrackModel,
    UrlModel,
)
from .projections import row_to_track, track_select
from .statements import execute, execute_scalar
from .sync_index import SyncIndex

logger = logging.getLogger(__name__)


def _require_id(value: int | None, what: str) -> int:
    """Reject missing or non-positive row ids."""
    if value is None or value <= 0:
        raise ValidationException(f"A valid {what} id is required, got {value!r}")
    return value


# Hey future me, this is the get-or-create core for every table with a UNIQUE text column
# (artists.name, albums.name, urls.path, directories.path). Subclasses only declare WHICH
# model and WHICH column - no table/field names are ever pasted into SQL strings.
#
# get_or_create() is: lookup -> INSERT ... ON CONFLICT DO NOTHING -> lookup again.
# If another writer inserted the same value between our lookup and our insert, the insert
# is a silent no-op and the second lookup returns THEIR row id. Same value in, same id out,
# no matter how often it's called.
class UniqueFieldRepository:
    """Base repository for entities identified by one unique text column."""

    model: ClassVar[type[Any]]
    unique_field: ClassVar[str]
    entity_type: ClassVar[str]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @property
    def _unique_column(self) -> Any:
        return getattr(self.model, self.unique_field)

    async def get_id(self, value: str) -> int | None:
        """Id of the row whose unique field equals value, or None."""
        stmt = select(self.model.id).where(self._unique_column == value)
        return await execute_scalar(self.session, stmt)

    async def _get_or_create(self, value: str, **extra: Any) -> int:
        existing = await self.get_id(value)
        if existing is not None:
            return existing

        stmt = (
            insert(self.model)
            .values({self.unique_field: value, **extra})
            .on_conflict_do_nothing(index_elements=[self.unique_field])
        )
        await execute(self.session, stmt)

        created = await self.get_id(value)
        if created is None:
            # Insert "succeeded" but the row is not visible - the engine is misbehaving
            logger.error("Can't resolve %s '%s' after insert", self.entity_type, value)
            raise StorageException(f"Can't resolve {self.entity_type} '{value}'")
        return created


class ArtistRepository(UniqueFieldRepository):
    """Artists, shared by name."""

    model = ArtistModel
    unique_field = "name"
    entity_type = "Artist"

    async def get_or_create(self, name: str) -> int:
        """Id of the artist with this name, creating it on first reference."""
        return await self._get_or_create(name)


class AlbumRepository(UniqueFieldRepository):
    """Albums, shared by name, with an optional cover image."""

    model = AlbumModel
    unique_field = "name"
    entity_type = "Album"

    async def get_or_create(self, name: str) -> int:
        """Id of the album with this name, creating it on first reference."""
        return await self._get_or_create(name)

    async def image_id(self, album_id: int) -> int | None:
        """Id of the album's cover image, or None."""
        stmt = select(AlbumModel.image).where(AlbumModel.id == album_id)
        return await execute_scalar(self.session, stmt)

    async def set_image(self, album_id: int, image_id: int | None) -> None:
        """Set (or clear, with None) the album's cover image.

        Raises:
            EntityNotFoundException: If no album has this id
        """
        stmt = (
            update(AlbumModel)
            .where(AlbumModel.id == _require_id(album_id, "album"))
            .values(image=image_id)
            .execution_options(synchronize_session=False)
        )
        result = await execute(self.session, stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException("Album", album_id)

    async def image_path(self, album_id: int) -> str | None:
        """File path of the album's cover image, or None if it has none."""
        stmt = (
            select(UrlModel.path)
            .select_from(AlbumModel)
            .join(ImageModel, AlbumModel.image == ImageModel.id)
            .join(UrlModel, ImageModel.url == UrlModel.id)
            .where(AlbumModel.id == album_id)
        )
        return await execute_scalar(self.session, stmt)


class UrlRepository(UniqueFieldRepository):
    """Indexed files."""

    model = UrlModel
    unique_field = "path"
    entity_type = "Url"

    async def get_or_create(self, path: str, directory_id: int | None = None) -> int:
        """Id of the url with this path, creating it inside directory_id if absent.

        An existing url keeps its directory; directory_id only applies on creation.
        """
        if directory_id is not None:
            _require_id(directory_id, "directory")
        return await self._get_or_create(path, directory=directory_id)

    async def get_by_id(self, url_id: int) -> Url | None:
        """Get a url by id."""
        stmt = select(
            UrlModel.id, UrlModel.path, UrlModel.directory, UrlModel.mtime
        ).where(UrlModel.id == url_id)
        row = (await execute(self.session, stmt)).first()
        if row is None:
            return None
        return Url(id=row.id, path=row.path, directory=row.directory, mtime=row.mtime)

    # Yo, clear() is what the scanner calls before re-extracting a changed file: the url row
    # (and its mtime checkpoint) stays, only tracks and images go. Artists, albums and lyrics
    # are NOT touched - other tracks may still reference them.
    async def clear(self, url_id: int) -> None:
        """Remove every track and image that references a url."""
        await execute(
            self.session,
            delete(TrackModel)
            .where(TrackModel.url == url_id)
            .execution_options(synchronize_session=False),
        )
        await execute(
            self.session,
            delete(ImageModel)
            .where(ImageModel.url == url_id)
            .execution_options(synchronize_session=False),
        )

    async def delete(self, url_id: int) -> None:
        """Clear a url, then delete the url row itself."""
        await self.clear(url_id)
        await execute(
            self.session,
            delete(UrlModel)
            .where(UrlModel.id == url_id)
            .execution_options(synchronize_session=False),
        )


class DirectoryRepository(UniqueFieldRepository):
    """Indexed directories and their cascading delete."""

    model = DirectoryModel
    unique_field = "path"
    entity_type = "Directory"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        super().__init__(session)
        self.urls = UrlRepository(session)
        self.index = SyncIndex(session)

    async def get_or_create(self, path: str, parent_id: int | None = None) -> int:
        """Id of the directory with this path, creating it under parent_id if absent.

        parent_id None creates a root directory. An existing directory keeps its parent.
        """
        if parent_id is not None:
            _require_id(parent_id, "parent directory")
        return await self._get_or_create(path, parent=parent_id)

    async def get_by_id(self, directory_id: int) -> Directory | None:
        """Get a directory by id."""
        stmt = select(
            DirectoryModel.id,
            DirectoryModel.path,
            DirectoryModel.parent,
            DirectoryModel.mtime,
        ).where(DirectoryModel.id == directory_id)
        row = (await execute(self.session, stmt)).first()
        if row is None:
            return None
        return Directory(id=row.id, path=row.path, parent=row.parent, mtime=row.mtime)

    # Hey future me - cascade order matters because of the foreign keys:
    #   1. every url directly inside (tracks/images first, then the url)
    #   2. every child directory, recursively (children before parents)
    #   3. the directory row itself
    # Each cursor is read to the END before the first DELETE runs; never mutate a table while
    # a cursor over it is still open on the same connection. Recursion depth = tree depth;
    # a cyclic parent chain is not a valid tree and would not terminate.
    async def delete(self, directory_id: int) -> None:
        """Delete a directory with all its urls and descendant directories."""
        async with self.index.iterate_urls(directory_id) as urls:
            url_ids = [url.id async for url in urls]
        for url_id in url_ids:
            await self.urls.delete(url_id)

        async with self.index.iterate_directories(directory_id) as children:
            child_ids = [child.id async for child in children]
        for child_id in child_ids:
            await self.delete(child_id)

        await execute(
            self.session,
            delete(DirectoryModel)
            .where(DirectoryModel.id == directory_id)
            .execution_options(synchronize_session=False),
        )
        logger.debug(
            "Deleted directory %s (%d urls, %d subdirectories)",
            directory_id,
            len(url_ids),
            len(child_ids),
        )


class TrackRepository:
    """Tracks and their denormalized display projection."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session
        self.artists = ArtistRepository(session)
        self.albums = AlbumRepository(session)

    async def add(self, track: Track, url_id: int) -> int:
        """Add a track to a url, resolving artist/album names to shared rows.

        Returns:
            The new track id

        Raises:
            ValidationException: If url_id is missing
            StorageException: If any statement fails
        """
        _require_id(url_id, "url")

        artist_id = await self.artists.get_or_create(track.artist) if track.artist else None
        album_id = await self.albums.get_or_create(track.album) if track.album else None

        stmt = insert(TrackModel).values(
            url=url_id,
            track=track.track,
            title=track.title,
            artist=artist_id,
            album=album_id,
            start=track.start,
            duration=track.duration,
        ).returning(TrackModel.id)
        result = await execute(self.session, stmt)
        return int(result.scalar_one())

    async def get_by_id(self, track_id: int) -> Track | None:
        """Get a track with artist/album/url resolved in one join, or None."""
        stmt = track_select().where(TrackModel.id == track_id)
        row = (await execute(self.session, stmt)).first()
        if row is None:
            return None

        track = row_to_track(row)
        logger.debug(
            "Track %s: %s - %s (%s) from %s",
            track.id,
            track.artist,
            track.title,
            track.album,
            track.url,
        )
        return track

    async def random_id(self) -> int | None:
        """Id of a random track, or None when the library is empty."""
        stmt = select(TrackModel.id).order_by(func.random()).limit(1)
        return await execute_scalar(self.session, stmt)


class ImageRepository:
    """Cover art images."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, url_id: int) -> int:
        """Register the file behind url_id as an image; returns the image id."""
        stmt = (
            insert(ImageModel)
            .values(url=_require_id(url_id, "url"))
            .returning(ImageModel.id)
        )
        result = await execute(self.session, stmt)
        return int(result.scalar_one())


class LyricsRepository:
    """At most one lyrics record per track."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get(self, track_id: int) -> Lyrics | None:
        """Get the lyrics stored for a track, or None."""
        stmt = select(LyricsModel.lyrics, LyricsModel.mtime).where(
            LyricsModel.track == track_id
        )
        row = (await execute(self.session, stmt)).first()
        if row is None:
            return None
        return Lyrics(track=track_id, text=row.lyrics, mtime=row.mtime)

    async def set(self, track_id: int, text: str | None) -> None:
        """Replace a track's lyrics wholesale, stamping the current time."""
        now = int(time.time())
        stmt = insert(LyricsModel).values(
            track=_require_id(track_id, "track"), lyrics=text, mtime=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LyricsModel.track],
            set_={"lyrics": stmt.excluded.lyrics, "mtime": stmt.excluded.mtime},
        )
        await execute(self.session, stmt)
