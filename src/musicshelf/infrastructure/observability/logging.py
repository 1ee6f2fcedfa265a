"""Structured logging configuration with JSON formatting and scan IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Hey future me, a scan ID tags every log line written during ONE pass of the scanner over
# the library. When a directory cascade or a failed statement shows up in the logs, grep for
# its scan_id and you see the whole pass. contextvars is asyncio-safe - each task gets its
# own value. Default "" covers startup logs and one-off calls outside a scan.
scan_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("scan_id", default="")


def get_scan_id() -> str:
    """Get the current scan ID from context.

    Returns:
        Current scan ID or empty string if not set
    """
    return scan_id_var.get()


# Yo, this AUTO-GENERATES a short ID when called with None. Call it once at the top of a
# scan, not per file!
def set_scan_id(scan_id: str | None = None) -> str:
    """Set scan ID in context.

    Args:
        scan_id: Scan ID to set. If None, generates a new one

    Returns:
        The scan ID that was set
    """
    if scan_id is None:
        scan_id = uuid.uuid4().hex[:12]
    scan_id_var.set(scan_id)
    return scan_id


class ScanIdFilter(logging.Filter):
    """Add scan ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add scan_id to record; never blocks the record."""
        record.scan_id = get_scan_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Formatter that prints exception chains root cause first, one marker per exception.

    Hey future me - a failed statement arrives as StorageException chained from a
    SQLAlchemy error chained from a sqlite3 error. The stock traceback repeats "The above
    exception was the direct cause..." for each link. This prints:

    ERROR   │ musicshelf...statements:43 │ Statement failed for 'INSERT ...': ...
    ╰─► OperationalError: no such table: urls
    ╰─► OperationalError: (sqlite3.OperationalError) no such table: urls
    ╰─► StorageException: Statement failed: ...
        File "statements.py", line 56, in execute
          raise _failure(stmt, e) from e

    Only frames from our own package are shown.
    """

    package_marker = "musicshelf"

    def formatException(self, ei: Any) -> str:
        """Format exception chain in a compact, readable way."""
        _exc_type, exc_value, _exc_tb = ei
        if exc_value is None:
            return ""

        chain: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__ or current.__context__
        chain.reverse()

        lines: list[str] = []
        for exc in chain:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")
            if exc.__traceback__ is None:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                if "/site-packages/" in frame.filename:
                    continue
                if self.package_marker not in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")

        return "\n".join(lines)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """JSON formatter adding location fields and the scan ID."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        scan_id = getattr(record, "scan_id", "")
        if scan_id:
            log_record["scan_id"] = scan_id

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


# Listen future me, call this ONCE at startup - it replaces every handler on the root logger
# (tests call it repeatedly, that's fine). json_format=True for log shippers, False for a
# terminal. SQLAlchemy's engine logger is held at WARNING: with echo off we don't want
# every statement twice; our own DEBUG lines already carry the SQL we care about.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "musicshelf",
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for logs
        app_name: Application name to include in logs
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ScanIdFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
        },
    )
