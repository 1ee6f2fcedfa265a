"""Domain entities.

Hey future me - these are plain dataclasses, NOT ORM models! Repositories map ORM rows to
these so callers never hold a live SQLAlchemy object (no lazy loads after the session closes).
Ids are the storage rowids; None means "absent" everywhere (no 0-means-missing tricks).
"""

from dataclasses import dataclass


# Yo, Url is one indexed FILE on disk. directory is None for top-level files. mtime is the
# filesystem mtime the scanner saw last time it indexed this file - None = never scanned.
@dataclass
class Url:
    """An indexed file."""

    id: int
    path: str
    directory: int | None = None
    mtime: int | None = None


@dataclass
class Directory:
    """An indexed directory; parent is None for tree roots."""

    id: int
    path: str
    parent: int | None = None
    mtime: int | None = None


# Hey future me, Track is the DENORMALIZED display record - artist/album are names, url is the
# file path. The *_id fields carry the row ids. When adding a track only title/track/artist/
# album/start/duration are read; the owning url id is passed separately to TrackRepository.add().
# start is the offset inside the file (cue sheets: many tracks share one url).
@dataclass
class Track:
    """A track with every display field resolved."""

    id: int | None = None
    url: str = ""
    track: int = 0
    title: str = ""
    artist_id: int | None = None
    artist: str = ""
    album_id: int | None = None
    album: str = ""
    start: int = 0
    duration: int = 0


@dataclass
class Image:
    """A cover art file, with the path of its url and its album association."""

    id: int
    path: str
    album: int | None = None
    directory: int | None = None


@dataclass
class Lyrics:
    """Lyrics of one track; mtime is when they were stored (epoch seconds)."""

    track: int
    text: str | None
    mtime: int | None = None


__all__ = ["Url", "Directory", "Track", "Image", "Lyrics"]
