from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List

from db.models import Product
from register.money import line_total, round2, split_tax


@dataclass
class CartLine:
    product: Product
    qty: int

    @property
    def line_total(self) -> Decimal:
        return line_total(self.product.price_gross, self.qty)


class Cart:
    """
    Products picked for the sale in progress, keyed by product id.

    Lives only in the register session; nothing here touches storage.
    Unknown ids passed to increment/decrement are ignored so a double click
    on a line that just disappeared does no harm.
    """

    def __init__(self) -> None:
        self._lines: Dict[str, CartLine] = {}

    def add(self, product: Product) -> None:
        line = self._lines.get(product.id)
        if line:
            line.qty += 1
        else:
            self._lines[product.id] = CartLine(product=product, qty=1)

    def increment(self, product_id: str) -> None:
        line = self._lines.get(product_id)
        if line:
            line.qty += 1

    def decrement(self, product_id: str) -> None:
        line = self._lines.get(product_id)
        if not line:
            return
        line.qty -= 1
        if line.qty <= 0:
            del self._lines[product_id]

    def clear(self) -> None:
        self._lines.clear()

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def qty_of(self, product_id: str) -> int:
        line = self._lines.get(product_id)
        return line.qty if line else 0

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def gross_total(self) -> Decimal:
        # round once over the exact sum
        exact = sum(
            (line.product.price_gross * line.qty for line in self._lines.values()),
            Decimal("0"),
        )
        return round2(exact)

    def totals(self, tax_rate) -> tuple[Decimal, Decimal, Decimal]:
        """(gross, tax, net) as shown on the register."""
        gross = self.gross_total()
        tax, net = split_tax(gross, tax_rate)
        return gross, tax, net
