"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    AlbumModel,
    ArtistModel,
    Base,
    DirectoryModel,
    ImageModel,
    LyricsModel,
    TrackModel,
    UrlModel,
)
from .repositories import (
    AlbumRepository,
    ArtistRepository,
    DirectoryRepository,
    ImageRepository,
    LyricsRepository,
    TrackRepository,
    UrlRepository,
)
from .statements import Cursor, execute, execute_scalar, stream
from .sync_index import SyncIndex
from .track_query import QueryState, TrackQuery

__all__ = [
    # Database
    "Database",
    "Base",
    # Models
    "AlbumModel",
    "ArtistModel",
    "DirectoryModel",
    "ImageModel",
    "LyricsModel",
    "TrackModel",
    "UrlModel",
    # Repositories
    "AlbumRepository",
    "ArtistRepository",
    "DirectoryRepository",
    "ImageRepository",
    "LyricsRepository",
    "TrackRepository",
    "UrlRepository",
    # Statements
    "Cursor",
    "execute",
    "execute_scalar",
    "stream",
    # Sync index and queries
    "SyncIndex",
    "QueryState",
    "TrackQuery",
]
