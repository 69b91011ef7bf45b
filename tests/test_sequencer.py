import asyncio
import unittest
from unittest import mock

from db import database as db_database
from db.sequencer import LocalSequencer, SqliteSequencer, format_receipt_no
from register.errors import PersistenceError, SequencingFailure
from dbcase import EVENT_ID, DbTestCase


class FormatTestCase(unittest.TestCase):
    def test_format_receipt_no(self):
        self.assertEqual(format_receipt_no("FK", 42), "FK-000042")
        self.assertEqual(format_receipt_no("FK", 1234567), "FK-1234567")


class LocalSequencerTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_concurrent_callers_get_consecutive_numbers(self):
        seq = LocalSequencer(prefix="FK")
        results = await asyncio.gather(*(seq.next(EVENT_ID) for _ in range(50)))
        self.assertEqual(sorted(n for _, n in results), list(range(1, 51)))

    async def test_events_are_independent(self):
        seq = LocalSequencer(prefix="FK", start=100)
        self.assertEqual(await seq.next("a"), ("FK-000101", 101))
        self.assertEqual(await seq.next("b"), ("FK-000101", 101))
        self.assertEqual(await seq.next("a"), ("FK-000102", 102))


class SqliteSequencerTestCase(DbTestCase):
    async def test_first_numbers(self):
        seq = SqliteSequencer(prefix="FK")
        self.assertEqual(await seq.next(EVENT_ID), ("FK-000001", 1))
        self.assertEqual(await seq.next(EVENT_ID), ("FK-000002", 2))
        self.assertEqual(await seq.next("other-event"), ("FK-000001", 1))

    async def test_concurrent_callers_get_consecutive_numbers(self):
        seq = SqliteSequencer(prefix="FK")
        k = 20
        results = await asyncio.gather(*(seq.next(EVENT_ID) for _ in range(k)))
        numbers = sorted(n for _, n in results)
        self.assertEqual(numbers, list(range(1, k + 1)))
        self.assertEqual(len({r for r, _ in results}), k)

    async def test_two_instances_share_the_counter(self):
        a, b = SqliteSequencer(prefix="FK"), SqliteSequencer(prefix="FK")
        await a.next(EVENT_ID)
        self.assertEqual(await b.next(EVENT_ID), ("FK-000002", 2))

    async def test_prefix_is_fixed_per_event(self):
        await SqliteSequencer(prefix="FK").next(EVENT_ID)
        # a later instance with another prefix keeps the stored one
        self.assertEqual(await SqliteSequencer(prefix="XY").next(EVENT_ID), ("FK-000002", 2))

    async def test_storage_failure_becomes_sequencing_failure(self):
        seq = SqliteSequencer(prefix="FK")

        def broken():
            raise PersistenceError("Storage failure: disk I/O error", retryable=True)

        with mock.patch.object(db_database, "transaction", side_effect=broken):
            with self.assertRaises(SequencingFailure):
                await seq.next(EVENT_ID)

        # nothing was consumed
        self.assertEqual(await seq.next(EVENT_ID), ("FK-000001", 1))


if __name__ == "__main__":
    unittest.main()
