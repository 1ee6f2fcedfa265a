"""Hierarchical sync index: the directory/url tree plus mtime checkpoints.

Hey future me - this is what the external scanner talks to while walking the filesystem:

1. iterate_directories()/iterate_urls() list what was indexed last time
2. directory_mtime()/url_mtime() hand back the stored checkpoint
3. the SCANNER compares that with the fresh stat() mtime and decides to re-scan
4. set_*_mtime() records the new checkpoint after a successful re-scan

The index never decides staleness itself! It also never deletes - cascading deletes live
in DirectoryRepository/UrlRepository and only use the cursors here to find children.
"""

import logging
from typing import Any

from sqlalchemy import Row, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from musicshelf.domain.entities import Directory, Image, Url

from .models import DirectoryModel, ImageModel, TrackModel, UrlModel
from .statements import Cursor, execute, execute_scalar

logger = logging.getLogger(__name__)


def _row_to_url(row: Row[Any]) -> Url:
    return Url(id=row.id, path=row.path, directory=row.directory, mtime=row.mtime)


def _row_to_directory(row: Row[Any]) -> Directory:
    return Directory(id=row.id, path=row.path, parent=row.parent, mtime=row.mtime)


def _row_to_image(row: Row[Any]) -> Image:
    return Image(id=row.id, path=row.path, album=row.album, directory=row.directory)


def _children_of(column: Any, parent_id: int | None) -> Any:
    # None means "root level": top-level urls / directories without parent
    if parent_id is None:
        return column.is_(None)
    return column == parent_id


class SyncIndex:
    """Directory/url tree reads and mtime bookkeeping over one session."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize index with session."""
        self.session = session

    # =========================================================================
    # TREE ITERATION
    # =========================================================================

    def iterate_urls(self, directory_id: int | None) -> Cursor[Url]:
        """Cursor over the urls directly inside a directory (None = top level)."""
        stmt = (
            select(UrlModel.id, UrlModel.path, UrlModel.mtime, UrlModel.directory)
            .where(_children_of(UrlModel.directory, directory_id))
            .order_by(UrlModel.id)
        )
        return Cursor(self.session, stmt, _row_to_url)

    def iterate_directories(self, parent_id: int | None) -> Cursor[Directory]:
        """Cursor over the child directories of a directory (None = roots)."""
        stmt = (
            select(
                DirectoryModel.id,
                DirectoryModel.path,
                DirectoryModel.mtime,
                DirectoryModel.parent,
            )
            .where(_children_of(DirectoryModel.parent, parent_id))
            .order_by(DirectoryModel.id)
        )
        return Cursor(self.session, stmt, _row_to_directory)

    def iterate_images_by_directory(self, directory_id: int) -> Cursor[Image]:
        """Cursor over the images whose url lies directly inside a directory."""
        stmt = (
            select(
                ImageModel.id,
                UrlModel.path,
                ImageModel.album,
                UrlModel.directory,
            )
            .select_from(UrlModel)
            .join(ImageModel, ImageModel.url == UrlModel.id)
            .where(UrlModel.directory == directory_id)
            .order_by(ImageModel.id)
        )
        return Cursor(self.session, stmt, _row_to_image)

    def iterate_images_by_album(self, album_id: int) -> Cursor[Image]:
        """Cursor over the images associated with an album."""
        stmt = (
            select(
                ImageModel.id,
                UrlModel.path,
                ImageModel.album,
                UrlModel.directory,
            )
            .select_from(ImageModel)
            .join(UrlModel, ImageModel.url == UrlModel.id)
            .where(ImageModel.album == album_id)
            .order_by(ImageModel.id)
        )
        return Cursor(self.session, stmt, _row_to_image)

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    async def count_tracks(self, directory_id: int) -> int:
        """Count the tracks of the urls directly inside a directory."""
        stmt = (
            select(func.count(TrackModel.id))
            .select_from(DirectoryModel)
            .join(UrlModel, UrlModel.directory == DirectoryModel.id)
            .join(TrackModel, TrackModel.url == UrlModel.id)
            .where(DirectoryModel.id == directory_id)
        )
        return await execute_scalar(self.session, stmt) or 0

    # Hey future me - "dominant album" = the album most of the directory's tracks point at.
    # Ties go to the LOWEST album id so repeated scans always pick the same album.
    # Tracks without an album don't vote.
    async def dominant_album(self, directory_id: int) -> int | None:
        """Album referenced by the largest number of tracks in a directory."""
        track_count = func.count(TrackModel.id)
        stmt = (
            select(TrackModel.album)
            .select_from(UrlModel)
            .join(TrackModel, TrackModel.url == UrlModel.id)
            .where(UrlModel.directory == directory_id, TrackModel.album.is_not(None))
            .group_by(TrackModel.album)
            .order_by(track_count.desc(), TrackModel.album.asc())
            .limit(1)
        )
        return await execute_scalar(self.session, stmt)

    async def set_images_album(self, directory_id: int, album_id: int | None) -> None:
        """Associate every image under a directory's urls with an album."""
        urls_in_directory = select(UrlModel.id).where(UrlModel.directory == directory_id)
        stmt = (
            update(ImageModel)
            .where(ImageModel.url.in_(urls_in_directory))
            .values(album=album_id)
            .execution_options(synchronize_session=False)
        )
        await execute(self.session, stmt)
        logger.debug("Images of directory %s now belong to album %s", directory_id, album_id)

    # =========================================================================
    # MTIME CHECKPOINTS
    # =========================================================================

    async def url_mtime(self, url_id: int) -> int | None:
        """Stored mtime of a url; None when never scanned or unknown."""
        stmt = select(UrlModel.mtime).where(UrlModel.id == url_id)
        return await execute_scalar(self.session, stmt)

    async def set_url_mtime(self, url_id: int, mtime: int) -> None:
        """Record the mtime a url was last indexed at."""
        stmt = (
            update(UrlModel)
            .where(UrlModel.id == url_id)
            .values(mtime=mtime)
            .execution_options(synchronize_session=False)
        )
        await execute(self.session, stmt)

    async def directory_mtime(self, directory_id: int) -> int | None:
        """Stored mtime of a directory; None when never scanned or unknown."""
        stmt = select(DirectoryModel.mtime).where(DirectoryModel.id == directory_id)
        return await execute_scalar(self.session, stmt)

    async def set_directory_mtime(self, directory_id: int, mtime: int) -> None:
        """Record the mtime a directory was last scanned at."""
        stmt = (
            update(DirectoryModel)
            .where(DirectoryModel.id == directory_id)
            .values(mtime=mtime)
            .execution_options(synchronize_session=False)
        )
        await execute(self.session, stmt)
