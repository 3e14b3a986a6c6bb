"""
This module provides the SQLite-specific implementation of the `StorageHandle`
protocol. It is responsible for all direct database interactions: the
version-gated update of the `views` row, the append to the `events` table, and
the reads used to verify one against the other.

Every write runs inside `BEGIN IMMEDIATE`, so SQLite's write lock serializes
writers across connections and processes. The version check itself is the
`WHERE version = ?` clause of a single UPDATE statement.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List

import aiosqlite
import pydantic_core

from ...errors import ConflictError, RepoError, StorageFault
from ...models import Widget, WidgetEvent
from ...protocols import StorageHandle


# Strings that cannot be encoded as UTF-8 fail inside the driver call with UnicodeError.
DRIVER_ERRORS = (aiosqlite.Error, UnicodeError)


def _translate_error(
    error: Exception, widget_id: str, expected_version: int | None = None
) -> RepoError:
    """Maps a driver error to the repository's error taxonomy."""
    if isinstance(error, aiosqlite.IntegrityError) and "UNIQUE" in str(error):
        return ConflictError(widget_id, expected_version)
    return StorageFault(f"Storage failure for widget {widget_id}: {error}")


class SQLiteStorageHandle(StorageHandle):
    """
    A handle that runs each operation on a connection checked out from a pool.
    Writes use the write pool, reads use the read pool. For an in-memory
    database both names refer to the same single-connection pool.
    """

    def __init__(self, write_pool: asyncio.Queue, read_pool: asyncio.Queue):
        self.write_pool = write_pool
        self.read_pool = read_pool

    @asynccontextmanager
    async def _checkout(self, pool: asyncio.Queue) -> AsyncIterator[aiosqlite.Connection]:
        conn = await pool.get()
        try:
            yield conn
        finally:
            pool.put_nowait(conn)

    async def create(self, widget_id: str, value: str) -> Widget:
        """Inserts the view row and the first event in one transaction."""
        async with self._checkout(self.write_pool) as conn:
            async with sqlite_open_adapter(conn, widget_id) as handle:
                await handle.create_view(value)
                await handle.save_event(1, value)
        return Widget(id=widget_id, version=1, value=value)

    async def update(self, widget_id: str, expected_version: int, value: str) -> Widget:
        """
        Advances the view from `expected_version` and appends the matching event.
        Raises `ConflictError` if the view is not at `expected_version`.
        """
        async with self._checkout(self.write_pool) as conn:
            async with sqlite_open_adapter(conn, widget_id) as handle:
                await handle.update_view(expected_version, value)
                await handle.save_event(expected_version + 1, value)
                widget = await handle.find_view()
        return widget

    async def find(self, widget_id: str) -> Widget | None:
        async with self._checkout(self.read_pool) as conn:
            async with sqlite_read_adapter(conn, widget_id) as handle:
                return await handle.find_view()

    async def get_events(self, widget_id: str, start_version: int = 0) -> AsyncIterator[WidgetEvent]:
        """Yields events after `start_version`. The connection is released before the first yield."""
        async with self._checkout(self.read_pool) as conn:
            async with sqlite_read_adapter(conn, widget_id) as handle:
                events = await handle.get_events(start_version)
        for event in events:
            yield event

    async def close(self):
        """Closes every pooled connection. Connections still checked out are not waited for."""
        pools = [self.write_pool]
        if self.read_pool is not self.write_pool:
            pools.append(self.read_pool)
        connection_tasks = []
        for pool in pools:
            while not pool.empty():
                conn = pool.get_nowait()
                connection_tasks.append(conn.close())
        await asyncio.gather(*connection_tasks)


class SQLiteHandle:
    """
    Encapsulates the SQL for one widget on one connection.

    Write methods assume the caller has opened a transaction with
    `sqlite_open_adapter`; they raise `ConflictError` or `StorageFault` and
    leave the rollback to the adapter.
    """

    def __init__(self, conn: aiosqlite.Connection, widget_id: str):
        self.conn = conn
        self.widget_id = widget_id

    async def create_view(self, value: str):
        try:
            await self.conn.execute(
                "INSERT INTO views (widget_id, version, value) VALUES (?, ?, ?)",
                (self.widget_id, 1, value),
            )
        except DRIVER_ERRORS as e:
            raise _translate_error(e, self.widget_id) from e

    async def update_view(self, expected_version: int, value: str):
        """
        Compare-and-swap on the view row: bump the version and append the value
        only where the stored version still equals `expected_version`.
        """
        try:
            cursor = await self.conn.execute(
                "UPDATE views SET version = version + 1, value = value || ? WHERE widget_id = ? AND version = ?",
                (value, self.widget_id, expected_version),
            )
            count = cursor.rowcount
            await cursor.close()
        except DRIVER_ERRORS as e:
            raise _translate_error(e, self.widget_id, expected_version) from e
        if count == 0:
            raise ConflictError(self.widget_id, expected_version)

    async def save_event(self, version: int, value: str):
        try:
            await self.conn.execute(
                "INSERT INTO events (widget_id, version, value, timestamp) VALUES (?, ?, ?, ?)",
                (self.widget_id, version, value, datetime.now(timezone.utc).isoformat()),
            )
        except DRIVER_ERRORS as e:
            # A collision on the first event means the widget already exists.
            expected_version = None if version == 1 else version - 1
            raise _translate_error(e, self.widget_id, expected_version) from e

    async def find_view(self) -> Widget | None:
        try:
            async with self.conn.execute(
                "SELECT version, value FROM views WHERE widget_id = ?", (self.widget_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except DRIVER_ERRORS as e:
            raise _translate_error(e, self.widget_id) from e
        if row is None:
            return None
        version, value = row
        return Widget(id=self.widget_id, version=version, value=value)

    async def get_events(self, start_version: int = 0) -> List[WidgetEvent]:
        """Returns the widget's events with a version greater than `start_version`, oldest first."""
        try:
            async with self.conn.execute(
                "SELECT id, version, value, timestamp FROM events WHERE widget_id = ? AND version > ? ORDER BY version",
                (self.widget_id, start_version),
            ) as cursor:
                rows = await cursor.fetchall()
        except DRIVER_ERRORS as e:
            raise _translate_error(e, self.widget_id) from e

        events = []
        for sequence_id, version, value, timestamp_str in rows:
            try:
                events.append(
                    WidgetEvent(
                        sequence_id=sequence_id,
                        widget_id=self.widget_id,
                        version=version,
                        value=value,
                        timestamp=datetime.fromisoformat(timestamp_str),
                    )
                )
            except (pydantic_core.ValidationError, TypeError, ValueError) as e:
                logging.warning(f"Skipping invalid event row {sequence_id} for widget {self.widget_id}: {e}")
        return events


async def _rollback(conn: aiosqlite.Connection, widget_id: str):
    try:
        await conn.rollback()
    except aiosqlite.Error as e:
        logging.error(f"Rollback failed for widget {widget_id}: {e}")


@asynccontextmanager
async def sqlite_open_adapter(conn: aiosqlite.Connection, widget_id: str) -> AsyncIterator[SQLiteHandle]:
    """
    Adapter that runs a write transaction on `conn`.
    It begins an immediate transaction on entry, commits on successful exit and
    rolls back on any exception before re-raising it.
    """
    try:
        await conn.execute("BEGIN IMMEDIATE")
    except aiosqlite.Error as e:
        raise StorageFault(f"Could not begin transaction for widget {widget_id}: {e}") from e
    except BaseException:
        # Cancelled while waiting for the write lock: the driver still runs BEGIN,
        # and the rollback is queued behind it on the same connection.
        await _rollback(conn, widget_id)
        raise

    handle = SQLiteHandle(conn, widget_id)
    try:
        yield handle
        await conn.commit()
    except ConflictError:
        await _rollback(conn, widget_id)
        raise
    except aiosqlite.Error as e:
        await _rollback(conn, widget_id)
        logging.error(f"Failed to commit transaction for widget {widget_id}: {e}")
        raise StorageFault(f"Could not commit transaction for widget {widget_id}: {e}") from e
    except BaseException as e:
        # Cancellation included: the pooled connection must not stay inside a transaction.
        await _rollback(conn, widget_id)
        logging.error(f"Transaction for widget {widget_id} rolled back: {e!r}")
        raise


@asynccontextmanager
async def sqlite_read_adapter(conn: aiosqlite.Connection, widget_id: str) -> AsyncIterator[SQLiteHandle]:
    """
    Adapter that provides a handle for read-only operations.
    No transaction is started or committed.
    """
    yield SQLiteHandle(conn, widget_id)
