from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from typing import Dict, Iterable, List, Literal, Optional

from db import crud
from db.models import UNKNOWN_BAR, Bar
from register.money import euro, from_cents, to_cents
from utils.pure import generate_markdown_table

ReportRange = Literal["all", "today"]


@dataclass(frozen=True)
class ReportTotals:
    count: int
    gross: Decimal
    tax: Decimal
    net: Decimal


@dataclass(frozen=True)
class BarSales:
    bar: str
    gross: Decimal
    count: int


@dataclass(frozen=True)
class ProductSales:
    product: str
    qty: int
    gross: Decimal


@dataclass(frozen=True)
class SalesReport:
    range: ReportRange
    since: Optional[datetime]
    totals: ReportTotals
    by_bar: List[BarSales] = field(default_factory=list)
    by_product: List[ProductSales] = field(default_factory=list)


def range_start(range_: ReportRange, now: datetime) -> Optional[datetime]:
    if range_ == "all":
        return None
    if range_ == "today":
        return datetime.combine(now.date(), time.min)
    raise ValueError(f"Unknown report range: {range_}")


async def build_report(
    event_id: str,
    range_: ReportRange,
    bars: Iterable[Bar],
    now: Optional[datetime] = None,
    top_n: Optional[int] = None,
) -> SalesReport:
    """
    Totals, per-bar and per-product rollups over completed orders.

    Voided orders never reach this function: the status filter is part of the
    query. Products are grouped by their name snapshot so renamed or deleted
    products keep their history. Sums are kept in cents.
    """
    since = range_start(range_, now or datetime.now())
    orders = await crud.list_completed_orders(event_id, since)
    bar_names: Dict[str, str] = {b.id: b.name for b in bars}

    gross = tax = net = 0
    per_bar: Dict[str, List[int]] = {}  # name -> [gross_cents, count]
    for o in orders:
        gross += to_cents(o.gross_total)
        tax += to_cents(o.tax_total)
        net += to_cents(o.net_total)
        # live stall name first, so a renamed stall stays one row
        name = bar_names.get(o.bar_id, o.bar_name or UNKNOWN_BAR)
        entry = per_bar.setdefault(name, [0, 0])
        entry[0] += to_cents(o.gross_total)
        entry[1] += 1

    per_product: Dict[str, List[int]] = {}  # name -> [qty, gross_cents]
    for it in await crud.list_items_for_orders(o.id for o in orders):
        entry = per_product.setdefault(it.name_snapshot, [0, 0])
        entry[0] += it.qty
        entry[1] += to_cents(it.line_total_gross)

    by_bar = [
        BarSales(bar=name, gross=from_cents(cents), count=count)
        for name, (cents, count) in sorted(
            per_bar.items(), key=lambda kv: (-kv[1][0], kv[0])
        )
    ]
    by_product = [
        ProductSales(product=name, qty=qty, gross=from_cents(cents))
        for name, (qty, cents) in sorted(
            per_product.items(), key=lambda kv: (-kv[1][1], kv[0])
        )
    ]
    if top_n is not None:
        by_product = by_product[:top_n]

    return SalesReport(
        range=range_,
        since=since,
        totals=ReportTotals(
            count=len(orders),
            gross=from_cents(gross),
            tax=from_cents(tax),
            net=from_cents(net),
        ),
        by_bar=by_bar,
        by_product=by_product,
    )


def report_markdown(report: SalesReport) -> str:
    """Markdown for the admin report screen."""
    title = "Today" if report.range == "today" else "Whole event"
    t = report.totals
    md = (
        f"### Sales report: {title}\n\n"
        f"- Receipts: {t.count}\n"
        f"- Gross: {euro(t.gross)}\n"
        f"- Tax: {euro(t.tax)}\n"
        f"- Net: {euro(t.net)}\n\n"
    )
    md += "#### By bar\n\n"
    md += (
        generate_markdown_table(
            ["Bar", "Receipts", "Gross"],
            [[b.bar, b.count, euro(b.gross)] for b in report.by_bar],
            ["l", "r", "r"],
        )
        or "_No sales._"
    )
    md += "\n\n#### By product\n\n"
    md += (
        generate_markdown_table(
            ["Product", "Qty", "Gross"],
            [[p.product, p.qty, euro(p.gross)] for p in report.by_product],
            ["l", "r", "r"],
        )
        or "_No sales._"
    )
    return md + "\n"
