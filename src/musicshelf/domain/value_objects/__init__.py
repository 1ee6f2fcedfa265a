"""Domain value objects."""

from .track_fields import SortKey, TrackField, field_from_string, parse_sort_string

__all__ = ["TrackField", "SortKey", "field_from_string", "parse_sort_string"]
