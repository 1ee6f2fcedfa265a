"""Tests for the directory/url tree, cascading deletes and mtime checkpoints.

Hey future me - the cascade tests build a small tree and check the row counts of
every table afterwards. A leftover url, track, image or child directory means the
cascade order in DirectoryRepository.delete() is broken.
"""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from musicshelf.infrastructure.persistence.models import (
    DirectoryModel,
    ImageModel,
    TrackModel,
    UrlModel,
)
from musicshelf.infrastructure.persistence.repositories import (
    AlbumRepository,
    ImageRepository,
)
from musicshelf.infrastructure.persistence.sync_index import SyncIndex


async def _count(session: AsyncSession, model: Any) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestTreeIteration:
    """Test cursors over urls and directories."""

    async def test_iterate_urls_in_directory(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        other = await builder.directory("/other")
        first = await builder.url("/music/a.flac", music)
        second = await builder.url("/music/b.flac", music)
        await builder.url("/other/c.flac", other)

        async with SyncIndex(session).iterate_urls(music) as urls:
            found = [url async for url in urls]

        assert [url.id for url in found] == [first, second]
        assert all(url.directory == music for url in found)

    async def test_iterate_top_level(self, session: AsyncSession, builder: Any) -> None:
        """Test that None selects root directories and urls without directory."""
        root = await builder.directory("/music")
        await builder.directory("/music/lp", root)
        loose = await builder.url("/loose.mp3")
        await builder.url("/music/a.flac", root)
        index = SyncIndex(session)

        async with index.iterate_directories(None) as roots:
            assert [d.id async for d in roots] == [root]
        async with index.iterate_urls(None) as urls:
            assert [u.id async for u in urls] == [loose]

    async def test_iterate_child_directories(self, session: AsyncSession, builder: Any) -> None:
        root = await builder.directory("/music")
        first = await builder.directory("/music/a", root)
        second = await builder.directory("/music/b", root)
        await builder.directory("/music/a/deep", first)

        async with SyncIndex(session).iterate_directories(root) as children:
            found = [child async for child in children]

        assert [d.id for d in found] == [first, second]
        assert found[0].path == "/music/a"
        assert found[0].parent == root

    async def test_early_break_closes_cursor(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        for name in ("a", "b", "c"):
            await builder.url(f"/music/{name}.flac", music)

        cursor = SyncIndex(session).iterate_urls(music)
        async with cursor:
            async for url in cursor:
                assert url.path == "/music/a.flac"
                break

        assert cursor.exhausted
        assert await cursor.next() is None

    async def test_next_until_end(self, session: AsyncSession, builder: Any) -> None:
        """Test the explicit next() protocol: entity, then None forever."""
        music = await builder.directory("/music")
        url_id = await builder.url("/music/a.flac", music)

        cursor = SyncIndex(session).iterate_urls(music)
        first = await cursor.next()

        assert first is not None and first.id == url_id
        assert await cursor.next() is None
        assert cursor.exhausted
        assert await cursor.next() is None

    async def test_empty_directory_yields_nothing(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        async with SyncIndex(session).iterate_urls(music) as urls:
            assert [u async for u in urls] == []


class TestCascadeDelete:
    """Test that deleting a directory removes its whole subtree."""

    async def _populate(self, session: AsyncSession, builder: Any, root_path: str) -> int:
        images = ImageRepository(session)
        root = await builder.directory(root_path)
        child = await builder.directory(f"{root_path}/child", root)
        grandchild = await builder.directory(f"{root_path}/child/grand", child)
        for directory_id, path in (
            (root, root_path),
            (child, f"{root_path}/child"),
            (grandchild, f"{root_path}/child/grand"),
        ):
            url_id = await builder.url(f"{path}/song.flac", directory_id)
            await builder.track(url_id, title="Song", artist="Band", album="LP")
            await images.add(await builder.url(f"{path}/cover.jpg", directory_id))
        return root

    async def test_delete_removes_everything_below(
        self, session: AsyncSession, builder: Any
    ) -> None:
        root = await self._populate(session, builder, "/music")

        await builder.directories.delete(root)

        assert await _count(session, DirectoryModel) == 0
        assert await _count(session, UrlModel) == 0
        assert await _count(session, TrackModel) == 0
        assert await _count(session, ImageModel) == 0

    async def test_delete_leaves_sibling_tree_alone(
        self, session: AsyncSession, builder: Any
    ) -> None:
        doomed = await self._populate(session, builder, "/music")
        await self._populate(session, builder, "/other")

        await builder.directories.delete(doomed)

        assert await _count(session, DirectoryModel) == 3
        assert await _count(session, UrlModel) == 6
        assert await _count(session, TrackModel) == 3
        assert await _count(session, ImageModel) == 3
        assert await builder.directories.get_id("/other/child/grand") is not None

    async def test_delete_subdirectory_keeps_parent(
        self, session: AsyncSession, builder: Any
    ) -> None:
        root = await self._populate(session, builder, "/music")
        child = await builder.directories.get_id("/music/child")

        await builder.directories.delete(child)

        assert await builder.directories.get_by_id(root) is not None
        assert await _count(session, DirectoryModel) == 1
        assert await SyncIndex(session).count_tracks(root) == 1

    async def test_deleted_cover_image_unsets_album_cover(
        self, session: AsyncSession, builder: Any
    ) -> None:
        albums = AlbumRepository(session)
        music = await builder.directory("/music")
        url_id = await builder.url("/music/cover.jpg", music)
        album_id = await albums.get_or_create("LP")
        await albums.set_image(album_id, await ImageRepository(session).add(url_id))

        await builder.directories.delete(music)

        assert await albums.image_id(album_id) is None


class TestMtimeCheckpoints:
    """Test stored modification times."""

    async def test_never_stamped_url_is_none(self, session: AsyncSession, builder: Any) -> None:
        url_id = await builder.url("/music/a.flac")
        assert await SyncIndex(session).url_mtime(url_id) is None

    async def test_unknown_url_is_none(self, session: AsyncSession) -> None:
        assert await SyncIndex(session).url_mtime(999) is None

    async def test_url_mtime_round_trip(self, session: AsyncSession, builder: Any) -> None:
        index = SyncIndex(session)
        url_id = await builder.url("/music/a.flac")

        await index.set_url_mtime(url_id, 1000)
        assert await index.url_mtime(url_id) == 1000

        await index.set_url_mtime(url_id, 2000)
        assert await index.url_mtime(url_id) == 2000

    async def test_directory_mtime_round_trip(self, session: AsyncSession, builder: Any) -> None:
        index = SyncIndex(session)
        music = await builder.directory("/music")
        assert await index.directory_mtime(music) is None

        await index.set_directory_mtime(music, 1234)

        assert await index.directory_mtime(music) == 1234
        directory = await builder.directories.get_by_id(music)
        assert directory is not None and directory.mtime == 1234


class TestAggregates:
    """Test track counts, dominant album and image association."""

    async def test_count_tracks_is_direct_only(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        child = await builder.directory("/music/lp", music)
        top = await builder.url("/music/a.cue", music)
        await builder.track(top, title="One")
        await builder.track(top, title="Two")
        await builder.track(await builder.url("/music/lp/b.flac", child), title="Three")

        index = SyncIndex(session)
        assert await index.count_tracks(music) == 2
        assert await index.count_tracks(child) == 1

    async def test_count_tracks_of_empty_directory(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        assert await SyncIndex(session).count_tracks(music) == 0

    async def test_dominant_album_by_majority(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        for index, album in enumerate(["Single", "LP", "LP"]):
            url_id = await builder.url(f"/music/{index}.flac", music)
            await builder.track(url_id, title=f"t{index}", album=album)

        lp = await AlbumRepository(session).get_id("LP")
        assert await SyncIndex(session).dominant_album(music) == lp

    async def test_dominant_album_tie_goes_to_lowest_id(
        self, session: AsyncSession, builder: Any
    ) -> None:
        music = await builder.directory("/music")
        albums = AlbumRepository(session)
        first = await albums.get_or_create("First")
        second = await albums.get_or_create("Second")
        # Second gets its track first so insertion order can't decide the tie
        await builder.track(await builder.url("/music/1.flac", music), album="Second")
        await builder.track(await builder.url("/music/2.flac", music), album="First")

        assert first < second
        assert await SyncIndex(session).dominant_album(music) == first

    async def test_tracks_without_album_do_not_vote(
        self, session: AsyncSession, builder: Any
    ) -> None:
        music = await builder.directory("/music")
        for index in range(3):
            await builder.track(await builder.url(f"/music/{index}.flac", music), title="x")
        await builder.track(await builder.url("/music/lp.flac", music), album="LP")

        lp = await AlbumRepository(session).get_id("LP")
        assert await SyncIndex(session).dominant_album(music) == lp

    async def test_no_dominant_album(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        assert await SyncIndex(session).dominant_album(music) is None

    async def test_set_images_album(self, session: AsyncSession, builder: Any) -> None:
        images = ImageRepository(session)
        index = SyncIndex(session)
        music = await builder.directory("/music")
        other = await builder.directory("/other")
        front = await images.add(await builder.url("/music/front.jpg", music))
        back = await images.add(await builder.url("/music/back.jpg", music))
        elsewhere = await images.add(await builder.url("/other/cover.jpg", other))
        album_id = await AlbumRepository(session).get_or_create("LP")

        await index.set_images_album(music, album_id)

        async with index.iterate_images_by_album(album_id) as found:
            assert [image.id async for image in found] == [front, back]
        async with index.iterate_images_by_directory(other) as found:
            untouched = [image async for image in found]
        assert [image.id for image in untouched] == [elsewhere]
        assert untouched[0].album is None

    async def test_iterate_images_by_directory(self, session: AsyncSession, builder: Any) -> None:
        music = await builder.directory("/music")
        image_id = await ImageRepository(session).add(
            await builder.url("/music/cover.jpg", music)
        )

        async with SyncIndex(session).iterate_images_by_directory(music) as found:
            images = [image async for image in found]

        assert len(images) == 1
        assert images[0].id == image_id
        assert images[0].path == "/music/cover.jpg"
        assert images[0].directory == music
