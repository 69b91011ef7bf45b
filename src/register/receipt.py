"""
Receipt text as printed on paper and shown on the public receipt page.

Rendering is a pure function of its arguments with fixed formatting (no
locale lookup, no current time), so rendering the same order again always
yields the same bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from register.money import euro, percent_label

RULE = "-" * 29

PAYMENT_LABELS = {
    "cash": "Bar",
    "card": "Karte",
}


@dataclass(frozen=True)
class ReceiptLine:
    qty: int
    name: str
    line_total: Decimal


def format_timestamp(ts: datetime) -> str:
    return ts.strftime("%d.%m.%Y, %H:%M:%S")


def render_receipt(
    bar_name: str,
    receipt_no: str,
    created_at: datetime,
    payment_method: str,
    cashier_label: Optional[str],
    lines: Iterable[ReceiptLine],
    gross: Decimal,
    tax: Decimal,
    net: Decimal,
    tax_rate: Decimal = Decimal("0.20"),
    status: Optional[str] = None,
) -> str:
    head = (
        f"*** {bar_name.upper()} ***\n"
        f"Bon-Nr: {receipt_no}\n"
        f"{format_timestamp(created_at)}\n"
        f"Kassier: {cashier_label or '—'}\n"
        f"Zahlung: {PAYMENT_LABELS.get(payment_method, payment_method)}\n"
    )
    if status == "voided":
        head += "*** STORNIERT ***\n"
    head += f"{RULE}\n"

    body = "".join(f"{l.qty}x {l.name}  {euro(l.line_total)}\n" for l in lines)

    tax_label = f"USt {percent_label(tax_rate)}"
    width = max(len("BRUTTO"), len("NETTO"), len(tax_label))
    foot = (
        f"{RULE}\n"
        f"{'BRUTTO'.ljust(width)} {euro(gross)}\n"
        f"{tax_label.ljust(width)} {euro(tax)}\n"
        f"{'NETTO'.ljust(width)} {euro(net)}\n"
    )
    return head + body + foot
