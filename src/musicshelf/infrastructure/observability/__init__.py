"""Observability infrastructure for structured logging."""

from musicshelf.infrastructure.observability.logging import (
    configure_logging,
    get_scan_id,
    set_scan_id,
)

__all__ = [
    "configure_logging",
    "get_scan_id",
    "set_scan_id",
]
