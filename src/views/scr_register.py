from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Grid, Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import (
    Button,
    DataTable,
    Label,
    Markdown,
    RadioButton,
    RadioSet,
    Select,
    Static,
)

from db import crud
from db.models import Bar, Product
from register.errors import RegisterError
from register.money import euro, percent_label
from utils.messages import CartChangedMessage, SaleCompletedMessage
from utils.pure import qr_text, totals_markdown
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, PinModal


class RegisterScreen(BaseScreen):
    """
    The till: pick a bar, tap products, choose payment, book the sale.
    Shows the last receipt of this session and allows voiding it.
    """

    def __init__(self) -> None:
        super().__init__()
        self._bars: Dict[str, Bar] = {}
        self._products: Dict[str, Product] = {}  # button id -> product
        self._cart_ids: List[str] = []  # product id per cart table row
        self._checkout_running = False

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="div-register"):
            with Vertical(id="div-menu"):
                yield Select([], prompt="Select bar", id="select-bar")
                yield Grid(id="grid-products")
            with Vertical(id="div-cart"):
                yield DataTable(id="table-cart")
                with Horizontal(id="div-qty-btns"):
                    yield Button("-", id="btn-dec")
                    yield Button("+", id="btn-inc")
                    yield Button("Clear", id="btn-clear-cart")
                yield Markdown("", id="md-cart-totals")
                with RadioSet(id="radio-payment"):
                    yield RadioButton("Cash", value=True, id="radio-cash")
                    yield RadioButton("Card", id="radio-card")
                with Horizontal(id="div-checkout-btns"):
                    yield Button("Checkout", id="btn-checkout", variant="primary")
                    yield Button("Checkout + Print", id="btn-checkout-print", variant="success")
                yield Label("No receipt yet.", id="label-last-receipt")
                yield Static("", id="static-receipt-qr")
                yield Button("Void last receipt", id="btn-void-last", variant="error")

    async def on_mount(self) -> None:
        table = self.query_one("#table-cart", DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Qty", "Product", "Total")
        self.load_bars()

    @work(exclusive=True, group="bars")
    async def load_bars(self) -> None:
        try:
            bars = await crud.list_bars()
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        self._bars = {b.id: b for b in bars}
        select = self.query_one("#select-bar", Select)
        select.set_options([(b.name, b.id) for b in bars])
        state = self.app.state
        if state.bar and state.bar.id in self._bars:
            select.value = state.bar.id
            self.load_products(state.bar.id)

    @on(Select.Changed, "#select-bar")
    def handle_bar_changed(self, event: Select.Changed) -> None:
        if not isinstance(event.value, str):
            return
        bar = self._bars.get(event.value)
        state = self.app.state
        if bar is None or (state.bar and state.bar.id == bar.id):
            return
        state.choose_bar(bar)
        self.query_one("#radio-cash", RadioButton).value = True
        self.render_last_receipt()
        self.post_message(CartChangedMessage())
        self.load_products(bar.id)

    @work(exclusive=True, group="products")
    async def load_products(self, bar_id: str) -> None:
        try:
            products = await crud.list_products(bar_id)
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        grid = self.query_one("#grid-products", Grid)
        await grid.remove_children()
        self._products = {f"prod-{i}": p for i, p in enumerate(products)}
        await grid.mount_all(
            [
                Button(self._product_label(p), id=key, classes="product")
                for key, p in self._products.items()
            ]
        )

    def _product_label(self, product: Product) -> str:
        label = f"{product.name}\n{euro(product.price_gross)}"
        qty = self.app.state.cart.qty_of(product.id)
        return f"{label}  ({qty}x)" if qty else label

    def refresh_product_labels(self) -> None:
        for key, product in self._products.items():
            for button in self.query(f"#{key}").results(Button):
                button.label = self._product_label(product)

    @on(Button.Pressed, ".product")
    def handle_product_pressed(self, event: Button.Pressed) -> None:
        product = self._products.get(event.button.id)
        if product is None:
            return
        self.app.state.cart.add(product)
        self.post_message(CartChangedMessage())

    def _selected_product_id(self):
        table = self.query_one("#table-cart", DataTable)
        if table.row_count == 0 or table.cursor_row is None:
            return None
        if table.cursor_row >= len(self._cart_ids):
            return None
        return self._cart_ids[table.cursor_row]

    @on(Button.Pressed, "#btn-inc")
    def handle_increment(self) -> None:
        product_id = self._selected_product_id()
        if product_id:
            self.app.state.cart.increment(product_id)
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-dec")
    def handle_decrement(self) -> None:
        product_id = self._selected_product_id()
        if product_id:
            self.app.state.cart.decrement(product_id)
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if self.app.state.cart.is_empty():
            self.app.notify("Cart is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(RadioSet.Changed, "#radio-payment")
    def handle_payment_changed(self, event: RadioSet.Changed) -> None:
        self.app.state.payment_method = "card" if event.pressed.id == "radio-card" else "cash"

    @on(CartChangedMessage)
    @on(ScreenResume)
    async def handle_cart_change(self) -> None:
        cart = self.app.state.cart
        table = self.query_one("#table-cart", DataTable)
        cursor = table.cursor_row
        table.clear()
        lines = cart.lines()
        self._cart_ids = [l.product.id for l in lines]
        for l in lines:
            table.add_row(l.qty, l.product.name, euro(l.line_total))
        if lines and cursor is not None:
            table.move_cursor(row=min(cursor, len(lines) - 1))
        self.refresh_product_labels()

        tax_rate = self.app.lifecycle.tax_rate
        gross, tax, net = cart.totals(tax_rate)
        await self.query_one("#md-cart-totals", Markdown).update(
            totals_markdown(gross, tax, net, f"USt {percent_label(tax_rate)}")
        )

    # checkout workers are never exclusive: cancelling a running finalize
    # would leave its cart behind for a second booking
    @on(Button.Pressed, "#btn-checkout")
    @work(group="checkout")
    async def handle_checkout(self) -> None:
        await self._checkout(print_requested=False)

    @on(Button.Pressed, "#btn-checkout-print")
    @work(group="checkout")
    async def handle_checkout_print(self) -> None:
        await self._checkout(print_requested=True)

    def _set_checkout_enabled(self, enabled: bool) -> None:
        for button in self.query("#div-checkout-btns Button").results(Button):
            button.disabled = not enabled

    async def _checkout(self, print_requested: bool) -> None:
        if self._checkout_running:
            return
        self._checkout_running = True
        self._set_checkout_enabled(False)
        state = self.app.state
        try:
            receipt = await self.app.lifecycle.finalize(
                state.bar,
                state.cart,
                state.payment_method,
                print_requested,
                state.staff,
                state.device_id,
            )
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        finally:
            self._checkout_running = False
            self._set_checkout_enabled(True)

        state.last_receipt = receipt
        self.notify(f"Receipt {receipt.receipt_no} booked: {euro(receipt.gross)}")
        if receipt.print_error:
            self.notify(receipt.print_error, severity="warning", timeout=10)
        self.post_message(CartChangedMessage())
        self.app.post_message(SaleCompletedMessage())
        self.render_last_receipt()

    def render_last_receipt(self) -> None:
        receipt = self.app.state.last_receipt
        label = self.query_one("#label-last-receipt", Label)
        qr = self.query_one("#static-receipt-qr", Static)
        if receipt is None:
            label.update("No receipt yet.")
            qr.update("")
            qr.display = False
            return
        label.update(
            f"Last receipt {receipt.receipt_no}\n"
            f"Gross {euro(receipt.gross)}  Tax {euro(receipt.tax)}  Net {euro(receipt.net)}\n"
            f"Public link: {receipt.receipt_url}"
        )
        qr.update(qr_text(receipt.receipt_url))
        qr.display = True

    @on(Button.Pressed, "#btn-void-last")
    @work(exclusive=True, group="void")
    async def handle_void_last(self) -> None:
        state = self.app.state
        if state.last_receipt is None:
            self.notify("No last receipt.", severity="warning")
            return
        pin = await self.app.push_screen_wait(
            PinModal(f"Void receipt {state.last_receipt.receipt_no}? Enter PIN", "Void")
        )
        if pin is None:
            return
        try:
            await self.app.voids.void_last_receipt(state.last_receipt, pin, state.device_id)
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        self.notify(f"Voided: {state.last_receipt.receipt_no}")
        self.app.post_message(SaleCompletedMessage())
