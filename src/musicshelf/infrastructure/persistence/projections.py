"""The track display projection: one join resolving every denormalized field.

Hey future me - TrackRepository.get_by_id() and TrackQuery both read tracks through
track_select() so a Track always looks the same no matter where it came from.
Artist/album are LEFT OUTER joins (a track may have neither); the url join is inner
because every track has an owning url.
"""

from typing import Any

from sqlalchemy import ColumnElement, Row, Select, func, select

from musicshelf.domain.entities import Track
from musicshelf.domain.value_objects import TrackField

from .models import AlbumModel, ArtistModel, TrackModel, UrlModel

# Column expression behind each TrackField, for filtering and sorting
FIELD_COLUMNS: dict[TrackField, ColumnElement[Any]] = {
    TrackField.TRACK_ID: TrackModel.id,
    TrackField.URL: UrlModel.path,
    TrackField.TRACK: TrackModel.track,
    TrackField.TITLE: TrackModel.title,
    TrackField.ARTIST_ID: TrackModel.artist,
    TrackField.ARTIST: ArtistModel.name,
    TrackField.ALBUM_ID: TrackModel.album,
    TrackField.ALBUM: AlbumModel.name,
    TrackField.START: TrackModel.start,
    TrackField.DURATION: TrackModel.duration,
    TrackField.ALL: (
        func.coalesce(TrackModel.title, "")
        + func.coalesce(ArtistModel.name, "")
        + func.coalesce(AlbumModel.name, "")
    ),
}


def track_select() -> Select[Any]:
    """SELECT over the fixed track/url/artist/album join, without any WHERE."""
    return (
        select(
            TrackModel.id.label("trackid"),
            UrlModel.path.label("url"),
            TrackModel.track.label("track"),
            TrackModel.title.label("title"),
            TrackModel.artist.label("artistid"),
            ArtistModel.name.label("artist"),
            TrackModel.album.label("albumid"),
            AlbumModel.name.label("album"),
            TrackModel.start.label("start"),
            TrackModel.duration.label("duration"),
        )
        .select_from(TrackModel)
        .join(UrlModel, TrackModel.url == UrlModel.id)
        .outerjoin(ArtistModel, TrackModel.artist == ArtistModel.id)
        .outerjoin(AlbumModel, TrackModel.album == AlbumModel.id)
    )


def row_to_track(row: Row[Any]) -> Track:
    """Map a track_select() row to a Track; missing text becomes ""."""
    return Track(
        id=row.trackid,
        url=row.url or "",
        track=row.track or 0,
        title=row.title or "",
        artist_id=row.artistid,
        artist=row.artist or "",
        album_id=row.albumid,
        album=row.album or "",
        start=row.start or 0,
        duration=row.duration or 0,
    )
