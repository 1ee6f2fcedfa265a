"""SQLAlchemy ORM models for the library index."""

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Yo, Base is THE foundation of all ORM models! DeclarativeBase is SQLAlchemy 2.0 style.
# ALL models inherit from this - it owns the shared metadata (create_tables + alembic).
class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - ids are plain INTEGER PRIMARY KEY columns, which SQLite turns into the
# native rowid. Never 0, never negative, so None is the only "absent" we need.
#
# Parent/child references (urls.directory, directories.parent, tracks.url, images.url) are
# real foreign keys WITHOUT ondelete actions: with PRAGMA foreign_keys=ON, deleting a row
# that still has children FAILS. The repositories cascade by hand
# (tracks/images -> url -> child dirs -> dir).
class DirectoryModel(Base):
    """A scanned directory; forms a tree via parent."""

    __tablename__ = "directories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    path: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    parent: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("directories.id"), nullable=True, index=True
    )
    # Filesystem mtime (epoch seconds) recorded at the last scan, None = never scanned
    mtime: Mapped[int | None] = mapped_column(Integer, nullable=True)


class UrlModel(Base):
    """A scanned file."""

    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    path: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    directory: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("directories.id"), nullable=True, index=True
    )
    mtime: Mapped[int | None] = mapped_column(Integer, nullable=True)


# Listen up, artist and album names are UNIQUE at the storage layer. That constraint is what
# keeps get-or-create correct when two writers race - the app never locks anything.
class ArtistModel(Base):
    """An artist, shared by every track with the same name."""

    __tablename__ = "artists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)


class AlbumModel(Base):
    """An album, optionally carrying one representative cover image."""

    __tablename__ = "albums"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    image: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("images.id", ondelete="SET NULL"), nullable=True
    )


class TrackModel(Base):
    """A track inside a url (one per file, or several for cue-sheet files)."""

    __tablename__ = "tracks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    url: Mapped[int] = mapped_column(
        Integer, ForeignKey("urls.id"), nullable=False, index=True
    )
    track: Mapped[int | None] = mapped_column(Integer, nullable=True)
    title: Mapped[str | None] = mapped_column(String, nullable=True)
    artist: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("artists.id"), nullable=True, index=True
    )
    album: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("albums.id"), nullable=True, index=True
    )
    start: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)


class ImageModel(Base):
    """A cover art file."""

    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    url: Mapped[int] = mapped_column(
        Integer, ForeignKey("urls.id"), nullable=False, index=True
    )
    # use_alter breaks the albums.image <-> images.album cycle for CREATE TABLE ordering
    album: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey(
            "albums.id", ondelete="SET NULL", use_alter=True, name="fk_images_album"
        ),
        nullable=True,
        index=True,
    )


# Hey future me - lyrics.track has NO foreign key! Clearing a url deletes its tracks but
# never their lyrics rows.
class LyricsModel(Base):
    """Lyrics of one track, replaced wholesale on update."""

    __tablename__ = "lyrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    track: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    lyrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    mtime: Mapped[int | None] = mapped_column(Integer, nullable=True)
