"""Statement execution helpers shared by repositories, the sync index and queries.

Hey future me - EVERY statement the library core runs goes through one of these
helpers. They do three things and nothing more:

1. run the statement on the session
2. on a SQLAlchemyError: log the SQL text at ERROR and raise StorageException
3. hand back the result in the shape the caller wants (nothing / scalar / cursor)

That keeps "the database is broken" (StorageException) and "the row does not
exist" (None / empty cursor) cleanly apart. Nothing here retries - the scanner
decides whether to re-scan.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Generic, TypeVar

from sqlalchemy import Executable, Result, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncResult, AsyncSession

from musicshelf.domain.exceptions import StorageException

logger = logging.getLogger(__name__)

T = TypeVar("T")


def statement_text(stmt: Executable) -> str:
    """Render a statement as SQL text for diagnostics."""
    try:
        return str(stmt)
    except SQLAlchemyError:
        return repr(stmt)


def _failure(stmt: Executable, error: SQLAlchemyError) -> StorageException:
    sql = statement_text(stmt)
    logger.error("Statement failed for '%s': %s", sql, error)
    return StorageException(f"Statement failed: {error}", statement=sql)


async def execute(session: AsyncSession, stmt: Executable) -> Result[Any]:
    """Execute a statement, translating engine errors.

    Raises:
        StorageException: If the statement cannot be prepared or executed
    """
    try:
        return await session.execute(stmt)
    except SQLAlchemyError as e:
        raise _failure(stmt, e) from e


async def execute_scalar(session: AsyncSession, stmt: Executable) -> Any | None:
    """Execute a statement and return the first column of the first row.

    Returns:
        The value, or None when the statement produced no row

    Raises:
        StorageException: If the statement cannot be prepared or executed
    """
    result = await execute(session, stmt)
    try:
        return result.scalars().first()
    except SQLAlchemyError as e:
        raise _failure(stmt, e) from e


async def stream(session: AsyncSession, stmt: Executable) -> AsyncResult[Any]:
    """Start a statement whose rows are fetched lazily.

    Raises:
        StorageException: If the statement cannot be prepared or executed
    """
    try:
        return await session.stream(stmt)
    except SQLAlchemyError as e:
        raise _failure(stmt, e) from e


# Yo, Cursor is the pull-based replacement for "call me back for every row, return False
# to stop". Callers loop and break:
#
#     async with index.iterate_urls(directory_id) as urls:
#         async for url in urls:
#             if done:
#                 break
#
# The async with is what guarantees the statement gets closed on an early break. A Cursor
# is single-pass: once exhausted or closed it only ever yields end-of-sequence.
class Cursor(Generic[T]):
    """Forward-only cursor mapping result rows to entities one at a time."""

    def __init__(
        self,
        session: AsyncSession,
        stmt: Executable,
        mapper: Callable[[Row[Any]], T],
    ) -> None:
        self._session = session
        self._stmt = stmt
        self._mapper = mapper
        self._result: AsyncResult[Any] | None = None
        self._done = False

    @property
    def exhausted(self) -> bool:
        """True once the last row was consumed or the cursor was closed."""
        return self._done

    async def next(self) -> T | None:
        """Advance by exactly one row.

        Returns:
            The next entity, or None at end of sequence

        Raises:
            StorageException: If fetching the row fails
        """
        if self._done:
            return None
        if self._result is None:
            self._result = await stream(self._session, self._stmt)

        try:
            row = await self._result.fetchone()
        except SQLAlchemyError as e:
            await self.close()
            raise _failure(self._stmt, e) from e

        if row is None:
            await self.close()
            return None
        return self._mapper(row)

    async def close(self) -> None:
        """Release the underlying statement. Safe to call more than once."""
        self._done = True
        if self._result is not None:
            result, self._result = self._result, None
            await result.close()

    def __aiter__(self) -> Cursor[T]:
        return self

    async def __anext__(self) -> T:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Cursor[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
