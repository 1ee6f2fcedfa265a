"""Dynamic track query: filters, multi-key sort, limit/offset, forward-only results.

Hey future me - this is what the serving layer uses for search and browse. Lifecycle:

    async with TrackQuery(session) as query:
        query.filter(TrackField.ARTIST, "beatles")
        query.sort_from_string("album,track")
        query.limit(50)
        await query.start()
        while (track := await query.next()) is not None:
            ...

BUILT --start()--> STARTED --last row--> EXHAUSTED, and close() --> CLOSED from anywhere.
Once started, filters and sort are FROZEN: touching them raises InvalidStateException.

Filters are kept as (field, pattern) pairs and each becomes its own `column LIKE :param`
clause. SQLAlchemy binds the value together with its clause, so the parameter order can't
drift away from the SQL, however many filters are set. No user text ever lands in the
SQL string itself.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import TracebackType
from typing import Any

from sqlalchemy import Select, String, UnaryExpression
from sqlalchemy.ext.asyncio import AsyncSession

from musicshelf.domain.entities import Track
from musicshelf.domain.exceptions import InvalidStateException
from musicshelf.domain.value_objects import (
    SortKey,
    TrackField,
    parse_sort_string,
)

from .projections import FIELD_COLUMNS, row_to_track, track_select
from .statements import Cursor, statement_text

logger = logging.getLogger(__name__)


class QueryState(str, Enum):
    """Lifecycle state of a TrackQuery."""

    BUILT = "built"
    STARTED = "started"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class TrackQuery:
    """Accumulating track search and its result cursor."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize an empty query (no filters, no sort, unbounded)."""
        self.session = session
        self.state = QueryState.BUILT
        self._filters: dict[TrackField, str] = {}
        self._sort: list[SortKey] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._cursor: Cursor[Track] | None = None
        self._first: Track | None = None

    def _ensure_building(self) -> None:
        if self.state is not QueryState.BUILT:
            raise InvalidStateException(
                f"Query can't be modified once started (state: {self.state.value})"
            )

    # =========================================================================
    # BUILDING
    # =========================================================================

    def filter(self, field: TrackField, value: str | None) -> TrackQuery:
        """Require field to contain value (substring match); None removes the filter."""
        self._ensure_building()
        if value is None:
            self._filters.pop(field, None)
        else:
            self._filters[field] = f"%{value}%"
        return self

    def sort(self, field: TrackField, descending: bool = False) -> TrackQuery:
        """Append a sort key; keys apply in the order they were added."""
        self._ensure_building()
        self._sort.append(SortKey(field, descending))
        return self

    def sort_from_string(self, text: str) -> TrackQuery:
        """Append sort keys parsed from e.g. "artist,-album,track".

        All or nothing: on an unknown field the UnknownFieldException propagates and
        the sort keys are left exactly as they were.
        """
        self._ensure_building()
        self._sort.extend(parse_sort_string(text))
        return self

    def limit(self, limit: int | None) -> TrackQuery:
        """Return at most limit rows; None or a negative value means unbounded."""
        self._ensure_building()
        self._limit = limit
        return self

    def offset(self, offset: int | None) -> TrackQuery:
        """Skip the first offset rows."""
        self._ensure_building()
        self._offset = offset
        return self

    @property
    def filters(self) -> dict[TrackField, str]:
        """Copy of the active filters as field -> LIKE pattern."""
        return dict(self._filters)

    @property
    def sort_keys(self) -> list[SortKey]:
        """Copy of the sort keys."""
        return list(self._sort)

    # =========================================================================
    # COMPILATION
    # =========================================================================

    def compile(self) -> Select[Any]:
        """Build the SELECT for the current filters, sort and paging."""
        stmt = track_select()

        # Filters in enumeration order, not insertion order
        predicates = [
            FIELD_COLUMNS[field].like(self._filters[field])
            for field in TrackField
            if field in self._filters
        ]
        if predicates:
            stmt = stmt.where(*predicates)

        if self._sort:
            stmt = stmt.order_by(*(self._order_clause(key) for key in self._sort))

        limit = self._limit if self._limit is not None and self._limit > 0 else None
        offset = self._offset if self._offset is not None and self._offset > 0 else None
        if limit is not None or offset is not None:
            # SQLite renders a missing limit next to an offset as LIMIT -1
            stmt = stmt.limit(limit).offset(offset)

        return stmt

    @staticmethod
    def _order_clause(key: SortKey) -> UnaryExpression[Any]:
        column = FIELD_COLUMNS[key.field]
        # NOCASE only exists for text; numeric columns sort by value
        if isinstance(column.type, String):
            column = column.collate("NOCASE")
        return column.desc() if key.descending else column.asc()

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def start(self) -> None:
        """Compile and execute the query; afterwards only next()/close() are allowed.

        Raises:
            InvalidStateException: If the query was already started or closed
            StorageException: If the statement fails
        """
        self._ensure_building()
        stmt = self.compile()
        logger.debug("Starting track query: %s", statement_text(stmt))

        self._cursor = Cursor(self.session, stmt, row_to_track)
        self.state = QueryState.STARTED
        try:
            # Execute now so statement errors surface from start(), not the first next()
            self._first = await self._cursor.next()
        except Exception:
            await self.close()
            raise

    async def next(self) -> Track | None:
        """Next track, or None once the results are exhausted.

        Raises:
            InvalidStateException: If the query was never started or already closed
            StorageException: If fetching the row fails
        """
        if self.state is QueryState.BUILT:
            raise InvalidStateException("Query must be started before fetching tracks")
        if self.state is QueryState.CLOSED:
            raise InvalidStateException("Query is closed")
        if self.state is QueryState.EXHAUSTED:
            return None

        assert self._cursor is not None
        if self._first is not None:
            track, self._first = self._first, None
        else:
            track = await self._cursor.next()

        if track is None:
            self.state = QueryState.EXHAUSTED
            await self._cursor.close()
        return track

    async def close(self) -> None:
        """Release the result cursor. Safe to call in any state, more than once."""
        if self._cursor is not None:
            await self._cursor.close()
        self._first = None
        self.state = QueryState.CLOSED

    def __aiter__(self) -> TrackQuery:
        return self

    async def __anext__(self) -> Track:
        track = await self.next()
        if track is None:
            raise StopAsyncIteration
        return track

    async def __aenter__(self) -> TrackQuery:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
