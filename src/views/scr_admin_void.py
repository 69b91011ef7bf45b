from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input, Label, MarkdownViewer

from register.errors import RegisterError
from utils.messages import SaleCompletedMessage
from views.base_screen import BaseScreen
from views.modal_dialog import PinModal


class AdminVoidScreen(BaseScreen):
    """
    Administrative storno and reprint of any receipt of the event.
    Every action, showing included, asks for an admin PIN first.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-admin-void"):
            yield Label("Receipt number", id="label-receipt-no")
            yield Input(placeholder="FK-000042", id="input-receipt-no")
            yield Label("Reason", id="label-reason")
            yield Input(placeholder="Why is this receipt voided?", id="input-reason")
            with Horizontal(id="div-admin-void-btns"):
                yield Button("Show", id="btn-show")
                yield Button("Reprint", id="btn-reprint", variant="primary")
                yield Button("Void", id="btn-void", variant="error")
            yield MarkdownViewer(id="md-receipt", show_table_of_contents=False)

    def _receipt_no(self) -> str:
        return self.query_one("#input-receipt-no", Input).value.strip()

    async def _ask_pin(self, caption: str, confirm_text: str):
        return await self.app.push_screen_wait(PinModal(caption, confirm_text))

    @on(Input.Submitted, "#input-receipt-no")
    @on(Button.Pressed, "#btn-show")
    @work(exclusive=True, group="admin")
    async def handle_show(self) -> None:
        receipt_no = self._receipt_no()
        if not receipt_no:
            self.notify("Please enter a receipt number.", severity="warning")
            return
        pin = await self._ask_pin(f"Show {receipt_no}? Admin PIN", "Show")
        if pin is None:
            return
        await self._show(pin, receipt_no)

    async def _show(self, pin: str, receipt_no: str) -> None:
        try:
            order, text = await self.app.voids.show_receipt(pin, receipt_no)
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        self.query_one("#md-receipt", MarkdownViewer).document.update(
            f"### {order.receipt_no} ({order.status})\n\n```\n{text}\n```\n"
        )

    @on(Button.Pressed, "#btn-reprint")
    @work(exclusive=True, group="admin")
    async def handle_reprint(self) -> None:
        receipt_no = self._receipt_no()
        if not receipt_no:
            self.notify("Please enter a receipt number.", severity="warning")
            return
        pin = await self._ask_pin(f"Reprint {receipt_no}? Admin PIN", "Reprint")
        if pin is None:
            return
        try:
            await self.app.voids.unlock_admin(pin)
            job = await self.app.lifecycle.reprint(receipt_no)
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        self.notify(f"Reprint queued (job {job.id}).")

    @on(Button.Pressed, "#btn-void")
    @work(exclusive=True, group="admin")
    async def handle_void(self) -> None:
        receipt_no = self._receipt_no()
        reason = self.query_one("#input-reason", Input).value
        pin = await self._ask_pin(f"Void {receipt_no or 'receipt'}? Admin PIN", "Void")
        if pin is None:
            return
        try:
            record = await self.app.voids.void_by_receipt_no(pin, receipt_no, reason)
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        self.notify(f"Voided: {receipt_no} by {record.voided_by}")
        self.query_one("#input-reason", Input).value = ""
        self.app.post_message(SaleCompletedMessage())
        await self._show(pin, receipt_no)
