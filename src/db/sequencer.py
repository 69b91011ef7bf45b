"""
Receipt numbers.

`next(event_id)` hands out (receipt_no, short_no) pairs. Short numbers grow
by exactly one per call and are never issued twice for the same event, no
matter how many registers finalize at the same moment. The increment and the
read happen under one exclusive lock: the sqlite write lock for the
persistent counter, an asyncio.Lock for the in-process one.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Protocol, Tuple

from db import database
from register.errors import PersistenceError, SequencingFailure
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)


def format_receipt_no(prefix: str, short_no: int) -> str:
    return f"{prefix}-{short_no:06d}"


class Sequencer(Protocol):
    async def next(self, event_id: str) -> Tuple[str, int]: ...


class SqliteSequencer:
    """One counter row per event, incremented inside BEGIN IMMEDIATE."""

    def __init__(self, prefix: str = config.RECEIPT_PREFIX):
        self.prefix = prefix

    async def next(self, event_id: str) -> Tuple[str, int]:
        try:
            async with database.transaction() as conn:
                await conn.execute(
                    "INSERT OR IGNORE INTO event_counters(event_id, prefix, last_no) VALUES (?, ?, 0);",
                    (event_id, self.prefix),
                )
                await conn.execute(
                    "UPDATE event_counters SET last_no = last_no + 1 WHERE event_id = ?;",
                    (event_id,),
                )
                cur = await conn.execute(
                    "SELECT prefix, last_no FROM event_counters WHERE event_id = ?;",
                    (event_id,),
                )
                row = await cur.fetchone()
                await cur.close()
                if not row or row[1] is None:
                    # rolls the increment back as well
                    raise SequencingFailure("Receipt counter returned no value.")
        except PersistenceError as e:
            _logger.error(f"Receipt counter unavailable for event {event_id}: {e}")
            raise SequencingFailure(f"Receipt counter unavailable: {e.message}") from e

        prefix, short_no = row[0], int(row[1])
        return format_receipt_no(prefix, short_no), short_no


class LocalSequencer:
    """In-process counter for a single-instance register (and tests)."""

    def __init__(self, prefix: str = config.RECEIPT_PREFIX, start: int = 0):
        self.prefix = prefix
        self._start = start
        self._counters: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def next(self, event_id: str) -> Tuple[str, int]:
        async with self._lock:
            short_no = self._counters.get(event_id, self._start) + 1
            self._counters[event_id] = short_no
        return format_receipt_no(self.prefix, short_no), short_no
