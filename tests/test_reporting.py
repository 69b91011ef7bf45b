from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from db import crud
from db import database as db_database
from db.models import UNKNOWN_BAR
from db.sequencer import SqliteSequencer
from register.cart import Cart
from register.lifecycle import OrderLifecycle
from register.reporting import build_report, range_start, report_markdown
from dbcase import ANNA, BAR, BEER, COLA, DEVICE_A, EVENT_ID, VELTLINER, WINE, DbTestCase


class ReportingTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.now = datetime(2026, 7, 4, 20, 0, 0)
        self.lifecycle = OrderLifecycle(
            sequencer=SqliteSequencer(prefix="FK"),
            event_id=EVENT_ID,
            tax_rate=Decimal("0.20"),
            clock=lambda: self.now,
        )
        self.bars = await crud.list_bars()

    async def _sell(self, bar, *products):
        cart = Cart()
        for p in products:
            cart.add(p)
        return await self.lifecycle.finalize(bar, cart, "cash", False, ANNA, DEVICE_A)

    def test_range_start(self):
        now = datetime(2026, 7, 4, 20, 15, 3)
        self.assertIsNone(range_start("all", now))
        self.assertEqual(range_start("today", now), datetime(2026, 7, 4, 0, 0, 0))
        with self.assertRaises(ValueError):
            range_start("week", now)

    async def test_empty_report(self):
        report = await build_report(EVENT_ID, "all", self.bars, now=self.now)
        self.assertEqual(report.totals.count, 0)
        self.assertEqual(report.totals.gross, Decimal("0.00"))
        self.assertEqual(report.by_bar, [])
        self.assertIn("_No sales._", report_markdown(report))

    async def test_totals_and_rollups(self):
        await self._sell(BAR, BEER, BEER, COLA)  # 8.00
        await self._sell(BAR, COLA)  # 3.00
        await self._sell(WINE, VELTLINER, VELTLINER)  # 7.60

        report = await build_report(EVENT_ID, "all", self.bars, now=self.now)
        self.assertEqual(report.totals.count, 3)
        self.assertEqual(report.totals.gross, Decimal("18.60"))
        self.assertEqual(report.totals.tax + report.totals.net, report.totals.gross)

        self.assertEqual(
            [(b.bar, b.gross, b.count) for b in report.by_bar],
            [("Hauptbar", Decimal("11.00"), 2), ("Weinlaube", Decimal("7.60"), 1)],
        )
        self.assertEqual(
            [(p.product, p.qty, p.gross) for p in report.by_product],
            [
                ("Grüner Veltliner 1/8", 2, Decimal("7.60")),
                ("Cola 0,33", 2, Decimal("6.00")),
                ("Bier 0,5", 2, Decimal("5.00")),
            ],
        )

    async def test_voided_orders_drop_out(self):
        keep = await self._sell(BAR, BEER)
        gone = await self._sell(BAR, COLA)
        before = await build_report(EVENT_ID, "all", self.bars, now=self.now)
        self.assertEqual(before.totals.count, 2)

        await self.lifecycle.void("admin:Chris", gone.receipt_no, "test")
        after = await build_report(EVENT_ID, "all", self.bars, now=self.now)
        self.assertEqual(after.totals.count, 1)
        self.assertEqual(after.totals.gross, keep.gross)
        self.assertEqual([p.product for p in after.by_product], ["Bier 0,5"])

    async def test_today_range(self):
        self.now = datetime(2026, 7, 3, 23, 59, 0)
        await self._sell(BAR, BEER)
        self.now = datetime(2026, 7, 4, 0, 0, 0)
        await self._sell(BAR, COLA)
        self.now = datetime(2026, 7, 4, 12, 0, 0)

        today = await build_report(EVENT_ID, "today", self.bars, now=self.now)
        self.assertEqual(today.since, datetime(2026, 7, 4))
        self.assertEqual(today.totals.count, 1)
        self.assertEqual(today.totals.gross, Decimal("3.00"))

        everything = await build_report(EVENT_ID, "all", self.bars, now=self.now)
        self.assertEqual(everything.totals.count, 2)

    async def test_other_events_and_unknown_bars(self):
        await self._sell(BAR, BEER)
        report = await build_report("other-event", "all", self.bars, now=self.now)
        self.assertEqual(report.totals.count, 0)

        # a bar missing from the list is still counted under its stored name
        report = await build_report(EVENT_ID, "all", [], now=self.now)
        self.assertEqual([b.bar for b in report.by_bar], ["Hauptbar"])

        # a renamed bar stays one row under its current name
        renamed = [replace(b, name="Festbar") if b.id == BAR.id else b for b in self.bars]
        report = await build_report(EVENT_ID, "all", renamed, now=self.now)
        self.assertEqual([b.bar for b in report.by_bar], ["Festbar"])

        async with db_database.transaction() as conn:
            await conn.execute("UPDATE orders SET bar_name_snapshot = '';")
        report = await build_report(EVENT_ID, "all", [], now=self.now)
        self.assertEqual([b.bar for b in report.by_bar], [UNKNOWN_BAR])

    async def test_top_n(self):
        await self._sell(BAR, BEER, COLA)
        await self._sell(WINE, VELTLINER)
        report = await build_report(EVENT_ID, "all", self.bars, now=self.now, top_n=1)
        self.assertEqual([p.product for p in report.by_product], ["Grüner Veltliner 1/8"])

    async def test_markdown(self):
        await self._sell(BAR, BEER, BEER, COLA)
        md = report_markdown(await build_report(EVENT_ID, "today", self.bars, now=self.now))
        self.assertIn("Sales report: Today", md)
        self.assertIn("- Gross: € 8,00", md)
        self.assertIn("| Hauptbar | 1 | € 8,00 |", md)
        self.assertIn("| Bier 0,5 | 2 | € 5,00 |", md)
