"""Application services."""

from musicshelf.application.services.library_service import (
    LibraryService,
    library_scope,
    open_library,
)

__all__ = [
    "LibraryService",
    "library_scope",
    "open_library",
]
