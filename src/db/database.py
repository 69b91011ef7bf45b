# manages connection to db, provides helper methods internal to db package
import asyncio
import os.path
import sqlite3
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import AsyncIterator

import aiosqlite

from register.errors import PersistenceError
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = config.DB_PATH
DB_INIT_SCRIPTS = [
    os.path.join(os.path.dirname(__file__), "schema.sql"),
    os.path.join(os.path.dirname(__file__), "seed-data.sql"),
]
# seconds sqlite waits on a locked database before giving up
BUSY_TIMEOUT = 5.0

_initialized = False
_init_lock = asyncio.Lock()


def _as_persistence_error(exc: sqlite3.Error) -> PersistenceError:
    text = str(exc)
    retryable = isinstance(exc, sqlite3.OperationalError) and (
        "locked" in text or "busy" in text
    )
    return PersistenceError(f"Storage failure: {text}", retryable=retryable)


async def _init_db(conn: aiosqlite.Connection) -> None:
    await conn.execute("PRAGMA journal_mode = WAL;")
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r", encoding="utf-8") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Ensures the database is initialized (tables and seed data) on first use.
    sqlite errors raised inside the block surface as PersistenceError.
    """
    global _initialized
    folder = os.path.dirname(DB_PATH)
    if folder:
        os.makedirs(folder, exist_ok=True)
    try:
        conn = await aiosqlite.connect(DB_PATH, timeout=BUSY_TIMEOUT)
    except sqlite3.Error as e:
        raise _as_persistence_error(e) from e

    try:
        conn.row_factory = Row
        await conn.execute("PRAGMA foreign_keys = ON;")

        if not _initialized:
            async with _init_lock:
                if not _initialized:
                    exists = await _table_exists(conn, "orders")
                    if not exists:
                        _logger.info("Initializing database...")
                        await _init_db(conn)
                    _initialized = True
        yield conn
    except sqlite3.Error as e:
        raise _as_persistence_error(e) from e
    finally:
        await conn.close()


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Connection inside BEGIN IMMEDIATE; commit on success, rollback otherwise.

    IMMEDIATE takes the write lock up front so read-then-write units cannot
    interleave with another writer.
    """
    async with connect() as conn:
        await conn.execute("BEGIN IMMEDIATE;")
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()
