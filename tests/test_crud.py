import hashlib
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

from db import crud
from db import database as db_database
from db.models import Order, OrderItem
from register.errors import PersistenceError
from dbcase import ADMIN_PIN, ANNA_PIN, DEVICE_A, DEVICE_B, EVENT_ID, FIXED_NOW, INACTIVE_PIN, DbTestCase


def make_order(n: int, device_id: str = DEVICE_A, **overrides) -> Order:
    order = Order(
        id=f"order-{n}",
        event_id=EVENT_ID,
        bar_id="bar-main",
        bar_name="Hauptbar",
        device_id=device_id,
        cashier_id="st-anna",
        cashier_name="Anna",
        cashier_role="staff",
        receipt_no=f"FK-{n:06d}",
        short_no=n,
        public_token=f"token{n:035d}",
        payment_method="cash",
        status="completed",
        gross_total=Decimal("4.50"),
        tax_total=Decimal("0.75"),
        net_total=Decimal("3.75"),
        tax_rate=Decimal("0.20"),
        print_requested=False,
        created_at=FIXED_NOW,
    )
    return replace(order, **overrides)


def make_item(order: Order, line_no: int = 1, qty: int = 1) -> OrderItem:
    return OrderItem(
        order_id=order.id,
        line_no=line_no,
        product_id="p-beer",
        name_snapshot="Bier 0,5",
        unit_price_gross=Decimal("4.50"),
        qty=qty,
        line_total_gross=Decimal("4.50") * qty,
    )


class CrudTestCase(DbTestCase):
    # ---------- Stalls & menu ----------

    async def test_bars_in_display_order(self):
        bars = await crud.list_bars()
        self.assertEqual([b.name for b in bars], ["Hauptbar", "Weinlaube", "Grillstand"])
        self.assertEqual((await crud.get_bar("bar-wine")).name, "Weinlaube")
        self.assertIsNone(await crud.get_bar("bar-nope"))

    async def test_products(self):
        menu = await crud.list_products("bar-main")
        self.assertEqual(menu[0].id, "p-beer")
        self.assertEqual(menu[0].price_gross, Decimal("4.50"))
        self.assertNotIn("p-shot", [p.id for p in menu])
        self.assertTrue(all(p.is_active and p.bar_id == "bar-main" for p in menu))

        full = await crud.list_products("bar-main", include_inactive=True)
        self.assertEqual(len(full), len(menu) + 1)

        self.assertFalse([p for p in full if p.id == "p-shot"][0].is_active)
        self.assertEqual(await crud.list_products("bar-nope"), [])

    # ---------- Staff PIN check ----------

    async def test_check_pin(self):
        anna = await crud.check_pin(ANNA_PIN)
        self.assertEqual((anna.id, anna.name, anna.role), ("st-anna", "Anna", "staff"))
        self.assertEqual((await crud.check_pin(f" {ADMIN_PIN} ")).role, "admin")
        for pin in ["", "   ", None, "0000", INACTIVE_PIN]:
            with self.subTest(pin=pin):
                self.assertIsNone(await crud.check_pin(pin))

    def test_hash_pin(self):
        self.assertEqual(crud.hash_pin("1111"), hashlib.sha256(b"1111").hexdigest())

    # ---------- Orders ----------

    async def test_insert_and_fetch_order(self):
        order = make_order(1)
        await crud.insert_order(order, [make_item(order)])

        self.assertEqual(await crud.get_order(order.id), order)
        self.assertEqual(await crud.get_order_by_receipt_no(EVENT_ID, "FK-000001"), order)
        self.assertEqual(await crud.get_order_by_token(order.public_token), order)
        self.assertIsNone(await crud.get_order_by_receipt_no("other-event", "FK-000001"))
        self.assertIsNone(await crud.get_order("order-404"))
        self.assertEqual(await crud.get_order_items(order.id), [make_item(order)])

    async def test_insert_order_is_atomic(self):
        order = make_order(1)
        # second item violates qty >= 1, the whole order must be rolled back
        with self.assertRaises(PersistenceError):
            await crud.insert_order(order, [make_item(order), make_item(order, 2, qty=0)])
        self.assertIsNone(await crud.get_order(order.id))
        self.assertEqual(await crud.get_order_items(order.id), [])

    async def test_totals_must_add_up(self):
        order = make_order(1, net_total=Decimal("3.70"))
        with self.assertRaises(PersistenceError):
            await crud.insert_order(order, [make_item(order)])

    async def test_receipt_numbers_are_unique_per_event(self):
        first = make_order(1)
        await crud.insert_order(first, [make_item(first)])
        dup = make_order(1, id="order-dup", public_token="t" * 40)
        with self.assertRaises(PersistenceError):
            await crud.insert_order(dup, [make_item(dup)])

        other_event = make_order(1, id="order-other", event_id="other-event", public_token="u" * 40)
        await crud.insert_order(other_event, [make_item(other_event)])

    async def test_latest_order_for_device(self):
        for n, device in [(1, DEVICE_A), (2, DEVICE_B), (3, DEVICE_A), (4, DEVICE_B)]:
            order = make_order(n, device_id=device)
            await crud.insert_order(order, [make_item(order)])
        self.assertEqual((await crud.get_latest_order_for_device(EVENT_ID, DEVICE_A)).short_no, 3)
        self.assertEqual((await crud.get_latest_order_for_device(EVENT_ID, DEVICE_B)).short_no, 4)
        self.assertIsNone(await crud.get_latest_order_for_device(EVENT_ID, "device-c"))

    # ---------- Voids ----------

    async def test_void_order(self):
        order = make_order(1)
        await crud.insert_order(order, [make_item(order)])
        when = FIXED_NOW + timedelta(minutes=5)

        record = await crud.void_order(order.id, "admin:Chris", "typo", when)
        self.assertEqual((record.voided_by, record.reason, record.created_at), ("admin:Chris", "typo", when))
        stored = await crud.get_order(order.id)
        self.assertEqual((stored.status, stored.voided_at), ("voided", when))
        # totals and items are untouched
        self.assertEqual(stored.gross_total, order.gross_total)
        self.assertEqual(len(await crud.get_order_items(order.id)), 1)

        self.assertIsNone(await crud.void_order(order.id, "admin:Chris", "again", when))
        self.assertIsNone(await crud.void_order("order-404", "admin:Chris", "x", when))
        self.assertEqual(await crud.list_void_records(order.id), [record])

    # ---------- Print Queue ----------

    async def test_print_queue_order(self):
        order = make_order(1)
        await crud.insert_order(order, [make_item(order)])
        first = await crud.enqueue_print_job(EVENT_ID, order.id, "first", FIXED_NOW)
        second = await crud.enqueue_print_job(
            EVENT_ID, order.id, "second", FIXED_NOW + timedelta(seconds=1)
        )

        self.assertEqual(await crud.next_queued_print_job(EVENT_ID), first)
        self.assertIsNone(await crud.next_queued_print_job("other-event"))

        printed_at = FIXED_NOW + timedelta(seconds=10)
        self.assertTrue(await crud.mark_print_job_printed(first.id, printed_at))
        self.assertFalse(await crud.mark_print_job_printed(first.id, printed_at))
        self.assertEqual(await crud.next_queued_print_job(EVENT_ID), second)

        jobs = await crud.list_print_jobs(order.id)
        self.assertEqual([(j.payload, j.status) for j in jobs], [("first", "printed"), ("second", "queued")])
        self.assertEqual(jobs[0].printed_at, printed_at)

    # ---------- Sales Reports ----------

    async def test_list_completed_orders(self):
        for n in range(1, 4):
            order = make_order(n, created_at=FIXED_NOW + timedelta(hours=n))
            await crud.insert_order(order, [make_item(order)])
        await crud.void_order("order-2", "admin:Chris", "x", FIXED_NOW)

        self.assertEqual([o.short_no for o in await crud.list_completed_orders(EVENT_ID)], [1, 3])
        since = FIXED_NOW + timedelta(hours=3)
        self.assertEqual([o.short_no for o in await crud.list_completed_orders(EVENT_ID, since)], [3])

    async def test_items_for_many_orders(self):
        order = make_order(1)
        await crud.insert_order(order, [make_item(order), make_item(order, 2, qty=3)])
        ids = [f"missing-{i}" for i in range(1200)] + [order.id]
        items = await crud.list_items_for_orders(ids)
        self.assertEqual([(i.order_id, i.qty) for i in items], [(order.id, 1), (order.id, 3)])
        self.assertEqual(await crud.list_items_for_orders([]), [])

    # ---------- Connection ----------

    async def test_sqlite_errors_become_persistence_errors(self):
        with self.assertRaises(PersistenceError) as ctx:
            async with db_database.connect() as conn:
                await conn.execute("SELECT * FROM no_such_table;")
        self.assertFalse(ctx.exception.retryable)
        self.assertIn("no_such_table", ctx.exception.message)
