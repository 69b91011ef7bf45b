"""
Order lifecycle: cart (draft) -> completed order -> voided order.

A completed order carries a receipt number from the sequencer, frozen
totals and an unguessable public token; it is written together with its
items in one transaction. Voiding flips the status once and appends the
audit record in the same transaction. Nothing ever goes back to completed.
"""

from __future__ import annotations

import asyncio
import re
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from db import crud
from db.models import (
    PAYMENT_METHODS,
    UNKNOWN_BAR,
    Bar,
    Order,
    OrderItem,
    PrintJob,
    Receipt,
    StaffIdentity,
    VoidRecord,
)
from db.sequencer import Sequencer, SqliteSequencer
from register.cart import Cart
from register.errors import (
    AlreadyVoided,
    NotFound,
    PersistenceError,
    SequencingFailure,
    ValidationError,
)
from register.receipt import ReceiptLine, render_receipt
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits
MIN_TOKEN_LENGTH = 16
MAX_TOKEN_LENGTH = 128
_TOKEN_RE = re.compile(rf"^[A-Za-z0-9]{{{MIN_TOKEN_LENGTH},{MAX_TOKEN_LENGTH}}}$")


def generate_public_token(length: int = config.TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def receipt_url(public_token: str) -> str:
    return f"{config.PUBLIC_BASE_URL}/r/{public_token}"


@dataclass(frozen=True)
class PublicReceipt:
    order: Order
    items: List[OrderItem]
    bar_name: str
    text: str


class OrderLifecycle:
    def __init__(
        self,
        sequencer: Optional[Sequencer] = None,
        event_id: str = config.EVENT_ID,
        tax_rate: Decimal = config.TAX_RATE,
        require_login: bool = config.REQUIRE_LOGIN,
        clock: Callable[[], datetime] = datetime.now,
        token_length: int = config.TOKEN_LENGTH,
        sequencer_attempts: int = config.SEQUENCER_ATTEMPTS,
    ) -> None:
        self.sequencer = sequencer or SqliteSequencer()
        self.event_id = event_id
        self.tax_rate = tax_rate
        self.require_login = require_login
        self._clock = clock
        if not MIN_TOKEN_LENGTH <= token_length <= MAX_TOKEN_LENGTH:
            raise ValueError(
                f"Token length must be between {MIN_TOKEN_LENGTH} and {MAX_TOKEN_LENGTH}, got {token_length}"
            )
        self.token_length = token_length
        self.sequencer_attempts = max(1, sequencer_attempts)

    def now(self) -> datetime:
        return self._clock().replace(microsecond=0)

    async def _next_number(self) -> tuple[str, int]:
        # no side effect until a number comes back, so retrying is safe
        last_error: Optional[SequencingFailure] = None
        for attempt in range(1, self.sequencer_attempts + 1):
            try:
                return await self.sequencer.next(self.event_id)
            except SequencingFailure as e:
                last_error = e
                _logger.warning(
                    f"Receipt number attempt {attempt}/{self.sequencer_attempts} failed: {e}"
                )
                if attempt < self.sequencer_attempts:
                    await asyncio.sleep(0.05 * attempt)
        raise last_error

    # ---------------------------
    # Finalize
    # ---------------------------

    async def finalize(
        self,
        bar: Optional[Bar],
        cart: Cart,
        payment_method: str,
        print_requested: bool,
        cashier: Optional[StaffIdentity],
        device_id: str,
    ) -> Receipt:
        """
        Turn the cart into a completed, numbered order and clear the cart.

        Raises ValidationError before anything is issued or written,
        SequencingFailure if no number could be obtained (no order exists
        then), PersistenceError if the order could not be stored. A failed
        print enqueue does not undo the sale; it is reported on the Receipt.
        """
        if self.require_login and cashier is None:
            raise ValidationError("Please log in first.")
        if bar is None:
            raise ValidationError("Please select a bar first.")
        if cart.is_empty():
            raise ValidationError("Cart is empty.")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {payment_method}")
        if not device_id:
            raise ValidationError("Device id is missing.")

        receipt_no, short_no = await self._next_number()

        gross, tax, net = cart.totals(self.tax_rate)
        created_at = self.now()
        order = Order(
            id=str(uuid.uuid4()),
            event_id=self.event_id,
            bar_id=bar.id,
            bar_name=bar.name,
            device_id=device_id,
            cashier_id=cashier.id if cashier else None,
            cashier_name=cashier.name if cashier else None,
            cashier_role=cashier.role if cashier else None,
            receipt_no=receipt_no,
            short_no=short_no,
            public_token=generate_public_token(self.token_length),
            payment_method=payment_method,
            status="completed",
            gross_total=gross,
            tax_total=tax,
            net_total=net,
            tax_rate=self.tax_rate,
            print_requested=print_requested,
            created_at=created_at,
        )
        items = [
            OrderItem(
                order_id=order.id,
                line_no=i,
                product_id=line.product.id,
                name_snapshot=line.product.name,
                unit_price_gross=line.product.price_gross,
                qty=line.qty,
                line_total_gross=line.line_total,
            )
            for i, line in enumerate(cart.lines(), start=1)
        ]

        # a caller cancelled mid-write must not leave a stored sale with a
        # still filled cart behind
        return await asyncio.shield(self._store_sale(order, items, cart))

    async def _store_sale(
        self, order: Order, items: List[OrderItem], cart: Cart
    ) -> Receipt:
        try:
            await crud.insert_order(order, items)
        except PersistenceError as e:
            _logger.error(
                f"Order {order.receipt_no} could not be stored, number is lost: {e.message}"
            )
            raise

        _logger.info(
            f"Sale {order.receipt_no} at {order.bar_name}: {order.gross_total} "
            f"({order.payment_method}, {len(items)} lines)"
        )

        print_queued = False
        print_error = None
        if order.print_requested:
            try:
                await crud.enqueue_print_job(
                    self.event_id,
                    order.id,
                    self.render_order(order, items),
                    order.created_at,
                )
                print_queued = True
            except PersistenceError as e:
                print_error = (
                    f"Receipt {order.receipt_no} was booked but not printed: {e.message}"
                )
                _logger.error(print_error)

        cart.clear()
        return Receipt(
            order_id=order.id,
            receipt_no=order.receipt_no,
            short_no=order.short_no,
            public_token=order.public_token,
            receipt_url=receipt_url(order.public_token),
            gross=order.gross_total,
            tax=order.tax_total,
            net=order.net_total,
            device_id=order.device_id,
            print_queued=print_queued,
            print_error=print_error,
        )

    # ---------------------------
    # Lookup & rendering
    # ---------------------------

    def render_order(
        self,
        order: Order,
        items: List[OrderItem],
        show_status: bool = False,
    ) -> str:
        """Receipt text of a stored order, built only from its snapshots."""
        return render_receipt(
            bar_name=order.bar_name or UNKNOWN_BAR,
            receipt_no=order.receipt_no,
            created_at=order.created_at,
            payment_method=order.payment_method,
            cashier_label=order.cashier_label,
            lines=[
                ReceiptLine(qty=it.qty, name=it.name_snapshot, line_total=it.line_total_gross)
                for it in items
            ],
            gross=order.gross_total,
            tax=order.tax_total,
            net=order.net_total,
            tax_rate=order.tax_rate,
            status=order.status if show_status else None,
        )

    async def find_order(self, order_ref: str) -> Order:
        """Locate an order of this event by id or by receipt number."""
        ref = (order_ref or "").strip()
        if not ref:
            raise ValidationError("Please enter a receipt number.")
        order = await crud.get_order(ref)
        if order is None or order.event_id != self.event_id:
            order = await crud.get_order_by_receipt_no(self.event_id, ref)
        if order is None:
            raise NotFound(f"Receipt {ref} not found.")
        return order

    async def reprint(self, receipt_no: str) -> PrintJob:
        """Queue the stored receipt again; voided receipts say so on paper."""
        order = await self.find_order(receipt_no)
        items = await crud.get_order_items(order.id)
        text = self.render_order(order, items, show_status=True)
        job = await crud.enqueue_print_job(self.event_id, order.id, text, self.now())
        _logger.info(f"Reprint of {order.receipt_no} queued as job {job.id}")
        return job

    async def lookup_public_receipt(self, public_token: str) -> PublicReceipt:
        # malformed and unknown tokens are indistinguishable to the caller
        token = (public_token or "").strip()
        order = await crud.get_order_by_token(token) if _TOKEN_RE.match(token) else None
        if order is None:
            raise NotFound("Receipt not found.")
        items = await crud.get_order_items(order.id)
        return PublicReceipt(
            order=order,
            items=items,
            bar_name=order.bar_name or UNKNOWN_BAR,
            text=self.render_order(order, items, show_status=True),
        )

    # ---------------------------
    # Void
    # ---------------------------

    async def void(self, actor: str, order_ref: str, reason: str) -> VoidRecord:
        """
        completed -> voided plus one audit record. Callers do the
        authorization; see register.voiding.
        """
        order = await self.find_order(order_ref)
        if order.status == "voided":
            raise AlreadyVoided(f"Receipt {order.receipt_no} is already voided.")
        record = await crud.void_order(order.id, actor, reason, self.now())
        if record is None:
            # lost a race against another void
            raise AlreadyVoided(f"Receipt {order.receipt_no} is already voided.")
        _logger.info(f"Receipt {order.receipt_no} voided by {actor}")
        return record
