"""Track field enumeration and sort-string parsing.

Hey future me - this is the ONE place where external field names ("artist", "-title", ...)
become something the query builder understands. The serving layer passes user-supplied
strings here, so anything unknown is rejected loudly (UnknownFieldException) - never skipped!

Declaration order of TrackField is significant: the query builder emits filter predicates
in this order.
"""

from dataclasses import dataclass
from enum import Enum

from musicshelf.domain.exceptions import UnknownFieldException


class TrackField(str, Enum):
    """Fields of the track/url/artist/album join that can be filtered or sorted."""

    TRACK_ID = "trackid"
    URL = "url"
    TRACK = "track"
    TITLE = "title"
    ARTIST_ID = "artistid"
    ARTIST = "artist"
    ALBUM_ID = "albumid"
    ALBUM = "album"
    START = "start"
    DURATION = "duration"
    # Synthetic free-text field: title + artist name + album name
    ALL = "all"


# ALL is deliberately not nameable from strings - it only exists as a filter target.
_NAMED_FIELDS: dict[str, TrackField] = {
    field.value: field for field in TrackField if field is not TrackField.ALL
}


def field_from_string(name: str) -> TrackField:
    """Resolve an external field name to a TrackField.

    Args:
        name: Field name, e.g. "artist" or "trackid"

    Returns:
        The matching TrackField

    Raises:
        UnknownFieldException: If the name is not a known field
    """
    try:
        return _NAMED_FIELDS[name]
    except KeyError:
        raise UnknownFieldException(name) from None


@dataclass(frozen=True)
class SortKey:
    """One ORDER BY key."""

    field: TrackField
    descending: bool = False


def parse_sort_string(text: str) -> list[SortKey]:
    """Parse a comma-separated sort string like "artist,-album,track".

    A leading "-" makes a key descending. Parsing is all-or-nothing: the first
    unknown or empty token fails the whole string. An empty string yields no
    keys and a single trailing comma is tolerated.

    Raises:
        UnknownFieldException: If any token does not name a field
    """
    if not text:
        return []

    tokens = text.split(",")
    if len(tokens) > 1 and tokens[-1] == "":
        tokens.pop()

    keys: list[SortKey] = []
    for token in tokens:
        descending = token.startswith("-")
        name = token[1:] if descending else token
        keys.append(SortKey(field_from_string(name), descending))
    return keys
