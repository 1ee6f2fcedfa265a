"""End-to-end tests of the library service on a real database file.

Hey future me - these walk the scanner's point of view: open the library, index a
directory, come back in a later session and compare mtimes, search, and tear down.
"""

from pathlib import Path

import pytest

from musicshelf.application.services.library_service import (
    LibraryService,
    library_scope,
    open_library,
)
from musicshelf.config import DatabaseSettings, Settings
from musicshelf.domain.entities import Track
from musicshelf.domain.exceptions import UnknownFieldException, ValidationException
from musicshelf.domain.value_objects import TrackField
from musicshelf.infrastructure.persistence.database import Database


@pytest.fixture
async def library_db(tmp_path: Path):
    """Library opened through open_library() in a nested, not yet existing folder."""
    settings = Settings(
        database=DatabaseSettings(db_file=tmp_path / "state" / "library.db")
    )
    database = await open_library(settings)
    yield database
    await database.close()


async def _index_album(library: LibraryService) -> dict[str, int]:
    music = await library.add_directory("/music")
    lp = await library.add_directory("/music/lp", music)
    song = await library.add_url("/music/lp/a.flac", lp)
    other = await library.add_url("/music/lp/b.flac", lp)
    cover = await library.add_url("/music/lp/cover.jpg", lp)
    return {
        "music": music,
        "lp": lp,
        "song": song,
        "first": await library.add_track(
            Track(title="Song", artist="Band", album="LP", track=1, duration=180), song
        ),
        "second": await library.add_track(
            Track(title="Other Song", artist="Band", album="LP", track=2, duration=200),
            other,
        ),
        "image": await library.add_image(cover),
    }


class TestOpenLibrary:
    """Test opening the library database."""

    async def test_open_creates_parent_folder(self, tmp_path: Path, library_db: Database) -> None:
        assert (tmp_path / "state").is_dir()
        async with library_scope(library_db) as library:
            assert await library.random_track_id() is None

    async def test_empty_db_file_is_rejected(self) -> None:
        settings = Settings(database=DatabaseSettings(db_file=Path("")))
        with pytest.raises(ValidationException, match="db-file not set"):
            await open_library(settings)

    async def test_reopen_keeps_data(self, tmp_path: Path) -> None:
        settings = Settings(database=DatabaseSettings(db_file=tmp_path / "library.db"))
        database = await open_library(settings)
        async with library_scope(database) as library:
            await library.add_url("/music/a.flac")
        await database.close()

        reopened = await open_library(settings)
        try:
            async with library_scope(reopened) as library:
                assert await library.url_id("/music/a.flac") is not None
        finally:
            await reopened.close()


class TestScannerScenarios:
    """Test the indexing flows a scanner drives."""

    async def test_new_file_indexed(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            directory = await library.add_directory("/music")
            url = await library.add_url("/music/a.flac", directory)
            track_id = await library.add_track(
                Track(title="Song", artist="Band", album="LP", track=1, duration=180), url
            )

            track = await library.track_by_id(track_id)

            assert track is not None
            assert track.artist == "Band"
            assert track.album == "LP"
            assert track.url == "/music/a.flac"
            assert await library.count_directory_tracks(directory) == 1

    async def test_rescan_sees_stored_mtime(self, library_db: Database) -> None:
        """Test that a checkpoint written in one session is read back in the next."""
        async with library_scope(library_db) as library:
            url = await library.add_url("/music/a.flac")
            await library.set_url_mtime(url, 1000)

        async with library_scope(library_db) as library:
            assert await library.url_id("/music/a.flac") == url
            assert await library.url_mtime(url) == 1000

    async def test_rescan_changed_file(self, library_db: Database) -> None:
        """Test clear-and-reextract of a changed file."""
        async with library_scope(library_db) as library:
            ids = await _index_album(library)
            await library.set_url_mtime(ids["song"], 1000)

        async with library_scope(library_db) as library:
            await library.clear_url(ids["song"])
            new_id = await library.add_track(
                Track(title="Song (Remaster)", artist="Band", album="LP", track=1), ids["song"]
            )
            await library.set_url_mtime(ids["song"], 2000)

            assert await library.track_by_id(ids["first"]) is None
            track = await library.track_by_id(new_id)
            assert track is not None and track.title == "Song (Remaster)"
            assert await library.count_directory_tracks(ids["lp"]) == 2
            assert await library.url_mtime(ids["song"]) == 2000

    async def test_directory_mtime(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            music = await library.add_directory("/music")
            assert await library.directory_mtime(music) is None
            await library.set_directory_mtime(music, 55)
            assert await library.directory_mtime(music) == 55
            assert await library.directory_id("/music") == music

    async def test_failed_pass_rolls_back(self, library_db: Database) -> None:
        with pytest.raises(RuntimeError):
            async with library_scope(library_db) as library:
                await library.add_url("/music/a.flac")
                raise RuntimeError("scanner crashed")

        async with library_scope(library_db) as library:
            assert await library.url_id("/music/a.flac") is None

    async def test_directory_removed_from_disk(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            ids = await _index_album(library)

        async with library_scope(library_db) as library:
            await library.delete_directory(ids["music"])

            assert await library.directory(ids["lp"]) is None
            assert await library.url(ids["song"]) is None
            assert await library.track_by_id(ids["second"]) is None
            assert await library.random_track_id() is None
            async with library.iterate_directories(None) as roots:
                assert [root async for root in roots] == []

    async def test_delete_single_url(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            ids = await _index_album(library)

            await library.delete_url(ids["song"])

            assert await library.url(ids["song"]) is None
            assert await library.count_directory_tracks(ids["lp"]) == 1
            async with library.iterate_urls(ids["lp"]) as urls:
                assert [u.path async for u in urls] == [
                    "/music/lp/b.flac",
                    "/music/lp/cover.jpg",
                ]


class TestCoverArt:
    """Test album cover assignment from directory images."""

    async def test_assign_directory_cover(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            ids = await _index_album(library)

            album_id = await library.assign_directory_cover(ids["lp"])

            track = await library.track_by_id(ids["first"])
            assert track is not None
            assert album_id == track.album_id
            assert await library.dominant_album(ids["lp"]) == album_id
            assert await library.album_image_path(album_id) == "/music/lp/cover.jpg"
            async with library.iterate_images_by_album(album_id) as images:
                assert [image.id async for image in images] == [ids["image"]]

    async def test_existing_cover_is_kept(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            ids = await _index_album(library)
            album_id = (await library.track_by_id(ids["first"])).album_id
            elsewhere = await library.add_url("/covers/lp.png")
            chosen = await library.add_image(elsewhere)
            await library.set_album_image(album_id, chosen)

            await library.assign_directory_cover(ids["lp"])

            assert await library.album_image_path(album_id) == "/covers/lp.png"
            async with library.iterate_images_by_directory(ids["lp"]) as images:
                assert [image.album async for image in images] == [album_id]

    async def test_directory_without_album(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            music = await library.add_directory("/music")
            await library.add_image(await library.add_url("/music/cover.jpg", music))

            assert await library.assign_directory_cover(music) is None

    async def test_set_images_album_directly(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            ids = await _index_album(library)
            album_id = (await library.track_by_id(ids["first"])).album_id

            await library.set_images_album(ids["lp"], album_id)

            async with library.iterate_images_by_album(album_id) as images:
                assert [image.path async for image in images] == ["/music/lp/cover.jpg"]


class TestLyricsAndSearch:
    """Test lyrics and queries through the service."""

    async def test_lyrics(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            ids = await _index_album(library)
            assert await library.lyrics(ids["first"]) is None

            await library.set_lyrics(ids["first"], "words")

            lyrics = await library.lyrics(ids["first"])
            assert lyrics is not None and lyrics.text == "words"

    async def test_query(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            await _index_album(library)

            async with library.query() as query:
                query.filter(TrackField.ARTIST, "band").sort_from_string("-track")
                await query.start()
                titles = [track.title async for track in query]

            assert titles == ["Other Song", "Song"]

    async def test_query_rejects_unknown_sort(self, library_db: Database) -> None:
        async with library_scope(library_db) as library:
            query = library.query()
            with pytest.raises(UnknownFieldException):
                query.sort_from_string("bogusfield")
            assert query.sort_keys == []
