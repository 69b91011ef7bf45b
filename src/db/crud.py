# src/db/crud.py
from __future__ import annotations

import hashlib
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from db import models
from db.database import connect, transaction
from register.money import from_cents, to_cents

# sqlite caps bound parameters per statement
_IN_CHUNK = 500

ORDER_COLUMNS = """
    id, event_id, bar_id, bar_name_snapshot, device_id,
    cashier_staff_id, cashier_name_snapshot, cashier_role_snapshot,
    receipt_no, short_no, public_token, payment_method, status,
    gross_cents, tax_cents, net_cents, tax_rate, print_requested,
    created_at, voided_at
"""


def _ts(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="seconds")


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def hash_pin(pin: str) -> str:
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def _row_to_product(row) -> models.Product:
    return models.Product(
        id=row[0],
        bar_id=row[1],
        name=row[2],
        price_gross=from_cents(row[3]),
        sort_order=int(row[4]),
        is_active=bool(row[5]),
    )


def _row_to_order(row) -> models.Order:
    # rows come from ORDER_COLUMNS; sqlite3.Row allows access by name
    return models.Order(
        id=row["id"],
        event_id=row["event_id"],
        bar_id=row["bar_id"],
        bar_name=row["bar_name_snapshot"],
        device_id=row["device_id"],
        cashier_id=row["cashier_staff_id"],
        cashier_name=row["cashier_name_snapshot"],
        cashier_role=row["cashier_role_snapshot"],
        receipt_no=row["receipt_no"],
        short_no=int(row["short_no"]),
        public_token=row["public_token"],
        payment_method=row["payment_method"],
        status=row["status"],
        gross_total=from_cents(row["gross_cents"]),
        tax_total=from_cents(row["tax_cents"]),
        net_total=from_cents(row["net_cents"]),
        tax_rate=Decimal(row["tax_rate"]),
        print_requested=bool(row["print_requested"]),
        created_at=_dt(row["created_at"]),
        voided_at=_dt(row["voided_at"]),
    )


def _row_to_item(row) -> models.OrderItem:
    return models.OrderItem(
        order_id=row[0],
        line_no=int(row[1]),
        product_id=row[2],
        name_snapshot=row[3],
        unit_price_gross=from_cents(row[4]),
        qty=int(row[5]),
        line_total_gross=from_cents(row[6]),
    )


def _row_to_print_job(row) -> models.PrintJob:
    return models.PrintJob(
        id=int(row[0]),
        event_id=row[1],
        order_id=row[2],
        payload=row[3],
        status=row[4],
        created_at=_dt(row[5]),
        printed_at=_dt(row[6]),
    )


# ---------------------------
# Stalls & Menu
# ---------------------------


async def list_bars() -> List[models.Bar]:
    """All stalls in display order."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, name, sort_order FROM bars ORDER BY sort_order, name;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [models.Bar(id=row[0], name=row[1], sort_order=int(row[2])) for row in rows]


async def get_bar(bar_id: str) -> Optional[models.Bar]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, name, sort_order FROM bars WHERE id = ?;", (bar_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Bar(id=row[0], name=row[1], sort_order=int(row[2]))


async def list_products(
    bar_id: str, include_inactive: bool = False
) -> List[models.Product]:
    """Menu of a stall ordered by sort_order; only active products unless asked."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT id, bar_id, name, price_gross_cents, sort_order, is_active
            FROM products
            WHERE bar_id = ?
              AND (is_active = 1 OR ?)
            ORDER BY sort_order, name;
            """,
            (bar_id, 1 if include_inactive else 0),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


# ---------------------------
# Staff PIN check
# ---------------------------


async def check_pin(pin: str) -> Optional[models.StaffIdentity]:
    """Return the active staff member owning this PIN, otherwise None.

    Every failure (blank, unknown, inactive, unexpected role) looks the same
    to the caller.
    """
    clean = (pin or "").strip()
    if not clean:
        return None
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, name, role FROM staff WHERE pin_hash = ? AND is_active = 1;",
            (hash_pin(clean),),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row or row[2] not in models.ROLES or not row[0] or not row[1]:
        return None
    return models.StaffIdentity(id=row[0], name=row[1], role=row[2])


# ---------------------------
# Orders
# ---------------------------


async def insert_order(
    order: models.Order, items: Sequence[models.OrderItem]
) -> None:
    """Write the order and all of its items in a single transaction."""
    async with transaction() as conn:
        await conn.execute(
            f"""
            INSERT INTO orders({ORDER_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                order.id,
                order.event_id,
                order.bar_id,
                order.bar_name,
                order.device_id,
                order.cashier_id,
                order.cashier_name,
                order.cashier_role,
                order.receipt_no,
                order.short_no,
                order.public_token,
                order.payment_method,
                order.status,
                to_cents(order.gross_total),
                to_cents(order.tax_total),
                to_cents(order.net_total),
                str(order.tax_rate),
                1 if order.print_requested else 0,
                _ts(order.created_at),
                _ts(order.voided_at) if order.voided_at else None,
            ),
        )
        await conn.executemany(
            """
            INSERT INTO order_items(order_id, line_no, product_id, name_snapshot,
                                    unit_price_cents, qty, line_total_cents)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    order.id,
                    item.line_no,
                    item.product_id,
                    item.name_snapshot,
                    to_cents(item.unit_price_gross),
                    item.qty,
                    to_cents(item.line_total_gross),
                )
                for item in items
            ],
        )


async def _fetch_order(where: str, params: tuple) -> Optional[models.Order]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE {where} LIMIT 1;", params
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_order(row) if row else None


async def get_order(order_id: str) -> Optional[models.Order]:
    return await _fetch_order("id = ?", (order_id,))


async def get_order_by_receipt_no(
    event_id: str, receipt_no: str
) -> Optional[models.Order]:
    return await _fetch_order("event_id = ? AND receipt_no = ?", (event_id, receipt_no))


async def get_order_by_token(public_token: str) -> Optional[models.Order]:
    return await _fetch_order("public_token = ?", (public_token,))


async def get_latest_order_for_device(
    event_id: str, device_id: str
) -> Optional[models.Order]:
    """Most recently numbered order finalized on the given device."""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {ORDER_COLUMNS}
            FROM orders
            WHERE event_id = ? AND device_id = ?
            ORDER BY short_no DESC
            LIMIT 1;
            """,
            (event_id, device_id),
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_order(row) if row else None


async def get_order_items(order_id: str) -> List[models.OrderItem]:
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT order_id, line_no, product_id, name_snapshot,
                   unit_price_cents, qty, line_total_cents
            FROM order_items
            WHERE order_id = ?
            ORDER BY line_no;
            """,
            (order_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_item(row) for row in rows]


# ---------------------------
# Voids
# ---------------------------


async def void_order(
    order_id: str, voided_by: str, reason: str, when: datetime
) -> Optional[models.VoidRecord]:
    """
    Flip a completed order to voided and append the audit record, atomically.
    Returns None (and writes nothing) if the order is not in status completed.
    """
    async with transaction() as conn:
        cur = await conn.execute(
            """
            UPDATE orders
            SET status = 'voided', voided_at = ?
            WHERE id = ? AND status = 'completed';
            """,
            (_ts(when), order_id),
        )
        if cur.rowcount != 1:
            await cur.close()
            return None
        await cur.close()
        cur = await conn.execute(
            "INSERT INTO voids(order_id, voided_by, reason, created_at) VALUES (?, ?, ?, ?);",
            (order_id, voided_by, reason, _ts(when)),
        )
        void_id = cur.lastrowid
        await cur.close()
    return models.VoidRecord(
        id=int(void_id),
        order_id=order_id,
        voided_by=voided_by,
        reason=reason,
        created_at=_dt(_ts(when)),
    )


async def list_void_records(order_id: str) -> List[models.VoidRecord]:
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT id, order_id, voided_by, reason, created_at
            FROM voids WHERE order_id = ? ORDER BY id;
            """,
            (order_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.VoidRecord(
            id=int(row[0]),
            order_id=row[1],
            voided_by=row[2],
            reason=row[3],
            created_at=_dt(row[4]),
        )
        for row in rows
    ]


# ---------------------------
# Print Queue
# ---------------------------


async def enqueue_print_job(
    event_id: str, order_id: str, payload: str, when: datetime
) -> models.PrintJob:
    async with connect() as conn:
        cur = await conn.execute(
            """
            INSERT INTO print_jobs(event_id, order_id, payload, status, created_at)
            VALUES (?, ?, ?, 'queued', ?);
            """,
            (event_id, order_id, payload, _ts(when)),
        )
        job_id = cur.lastrowid
        await cur.close()
        await conn.commit()
    return models.PrintJob(
        id=int(job_id),
        event_id=event_id,
        order_id=order_id,
        payload=payload,
        status="queued",
        created_at=_dt(_ts(when)),
    )


async def next_queued_print_job(event_id: str) -> Optional[models.PrintJob]:
    """Oldest job still waiting for the printer."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT id, event_id, order_id, payload, status, created_at, printed_at
            FROM print_jobs
            WHERE event_id = ? AND status = 'queued'
            ORDER BY created_at, id
            LIMIT 1;
            """,
            (event_id,),
        )
        row = await cur.fetchone()
        await cur.close()
    return _row_to_print_job(row) if row else None


async def list_print_jobs(order_id: str) -> List[models.PrintJob]:
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT id, event_id, order_id, payload, status, created_at, printed_at
            FROM print_jobs WHERE order_id = ? ORDER BY id;
            """,
            (order_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_print_job(row) for row in rows]


async def mark_print_job_printed(job_id: int, when: datetime) -> bool:
    """Only the print bridge calls this. True if the job was still queued."""
    async with connect() as conn:
        res = await conn.execute(
            """
            UPDATE print_jobs SET status = 'printed', printed_at = ?
            WHERE id = ? AND status = 'queued';
            """,
            (_ts(when), job_id),
        )
        await conn.commit()
        return res.rowcount > 0


# ---------------------------
# Sales Reports
# ---------------------------


async def list_completed_orders(
    event_id: str, since: Optional[datetime] = None
) -> List[models.Order]:
    """Completed orders of the event, optionally created at/after `since`."""
    query = f"SELECT {ORDER_COLUMNS} FROM orders WHERE event_id = ? AND status = 'completed'"
    params: list = [event_id]
    if since is not None:
        query += " AND created_at >= ?"
        params.append(_ts(since))
    query += " ORDER BY short_no;"
    async with connect() as conn:
        cur = await conn.execute(query, tuple(params))
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_order(row) for row in rows]


async def list_items_for_orders(order_ids: Iterable[str]) -> List[models.OrderItem]:
    ids = list(order_ids)
    items: List[models.OrderItem] = []
    if not ids:
        return items
    async with connect() as conn:
        for start in range(0, len(ids), _IN_CHUNK):
            chunk = ids[start : start + _IN_CHUNK]
            marks = ", ".join("?" * len(chunk))
            cur = await conn.execute(
                f"""
                SELECT order_id, line_no, product_id, name_snapshot,
                       unit_price_cents, qty, line_total_cents
                FROM order_items
                WHERE order_id IN ({marks})
                ORDER BY order_id, line_no;
                """,
                tuple(chunk),
            )
            rows = await cur.fetchall()
            await cur.close()
            items.extend(_row_to_item(row) for row in rows)
    return items
