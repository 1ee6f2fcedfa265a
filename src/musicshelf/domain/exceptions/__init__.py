"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - always use a specific subclass so callers
    # can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity required by an operation does not exist."""

    # Yo, lookups that legitimately find nothing return None - that's the common case during
    # a re-scan! Only raise this when the caller NEEDED the row (e.g. cover of an unknown album).
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input to a library operation is malformed.

    Example: adding a track without an owning url, or a non-positive id.
    """

    pass


class UnknownFieldException(ValidationException):
    """Raised when a sort or filter field name is not part of the field enumeration."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown track field '{name}'")
        self.name = name


class InvalidStateException(DomainException):
    """Raised when an object is in the wrong state for the requested operation.

    Example: adding a filter to a query that was already started.
    """

    pass


class StorageException(DomainException):
    """Raised when the storage engine rejects or fails a statement.

    Hey future me - this is the "database is broken" outcome, NOT "row not found"!
    The statement text is kept so operators can see which SQL failed. The original
    SQLAlchemy error is chained as __cause__.
    """

    def __init__(self, message: str, statement: str | None = None) -> None:
        super().__init__(message)
        self.statement = statement


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "ValidationException",
    "UnknownFieldException",
    "InvalidStateException",
    "StorageException",
]
