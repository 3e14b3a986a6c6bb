import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from ...protocols import Repo
from ...repo import RepoImpl
from .handle import SQLiteStorageHandle
from .schema import create_schema


@asynccontextmanager
async def sqlite_repo_factory(
    db_path: str = ":memory:",
    *,
    pool_size: int = 10,
    cache_size_kib: int = -16384,
    busy_timeout_ms: int = 5000,
) -> AsyncIterator[Repo]:
    """
    Opens a widget repository backed by the SQLite database at `db_path`.

    Used as an async context manager: every connection is opened on entry and
    closed on exit, so the repository's lifetime is explicit and nothing is
    shared through module globals. An in-memory database lives exactly as long
    as the context and is served by a single connection.
    """
    if not db_path:
        raise ValueError("`db_path` must be provided in the configuration.")
    if pool_size < 1:
        raise ValueError("`pool_size` must be at least 1.")

    is_memory_db = db_path == ":memory:"
    if is_memory_db:
        pool_size = 1

    write_pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=pool_size)
    read_pool: asyncio.Queue[aiosqlite.Connection] = (
        write_pool if is_memory_db else asyncio.Queue(maxsize=pool_size)
    )
    handle = SQLiteStorageHandle(write_pool=write_pool, read_pool=read_pool)

    async def _connect(connect_string: str, *, uri: bool = False, writer: bool = True):
        # isolation_level=None: transactions are opened explicitly with BEGIN IMMEDIATE.
        conn = await aiosqlite.connect(connect_string, uri=uri, isolation_level=None)
        try:
            if writer and not is_memory_db:
                await conn.execute("PRAGMA journal_mode=WAL;")
                await conn.execute("PRAGMA synchronous = NORMAL;")
            await conn.execute(f"PRAGMA cache_size = {int(cache_size_kib)};")
            await conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        except BaseException:
            await conn.close()
            raise
        return conn

    try:
        for i in range(pool_size):
            conn = await _connect(db_path)
            write_pool.put_nowait(conn)
            if i == 0:
                await create_schema(conn)

        if not is_memory_db:
            # The schema exists by now, so read connections can open the file read-only.
            read_connect_string = f"{Path(db_path).resolve().as_uri()}?mode=ro"
            for _ in range(pool_size):
                conn = await _connect(read_connect_string, uri=True, writer=False)
                read_pool.put_nowait(conn)

        logging.info(f"Widget repository opened on {db_path} with {pool_size} connection(s) per pool")
        yield RepoImpl(handle)
    finally:
        await handle.close()
        logging.info(f"Widget repository on {db_path} closed")
