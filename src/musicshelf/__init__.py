"""musicshelf - metadata index and query engine for a personal media library."""

__version__ = "0.1.0"
