from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, MarkdownViewer

import db.crud as crud
from register.errors import RegisterError
from register.reporting import ReportRange, build_report, report_markdown
from utils import config
from utils.messages import ModeSwitchedMessage, SaleCompletedMessage
from views.base_screen import BaseScreen
from views.modal_dialog import PinModal


class SalesReportScreen(BaseScreen):
    """
    Sales report over completed receipts: totals, by bar, top products.
    Locked behind an admin PIN per visit.
    """

    def __init__(self) -> None:
        super().__init__()
        self._range: ReportRange = "today"
        self._unlocked = False

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-report"):
            with Horizontal(id="div-report-btns"):
                yield Button("Unlock", id="btn-unlock", variant="warning")
                yield Button("Today", id="btn-today", variant="primary")
                yield Button("Whole event", id="btn-all")
            yield MarkdownViewer(
                "_Unlock with an admin PIN to see the report._",
                id="md-report",
                show_table_of_contents=False,
            )

    @on(Button.Pressed, "#btn-unlock")
    @work(exclusive=True, group="unlock")
    async def handle_unlock(self) -> None:
        pin = await self.app.push_screen_wait(PinModal("Admin PIN", "Unlock"))
        if pin is None:
            return
        try:
            admin = await self.app.voids.unlock_admin(pin)
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        self._unlocked = True
        self.notify(f"Report unlocked for {admin.name}.")
        self.handle_reload()

    @on(Button.Pressed, "#btn-today")
    def handle_today(self) -> None:
        self._range = "today"
        self.handle_reload()

    @on(Button.Pressed, "#btn-all")
    def handle_all(self) -> None:
        self._range = "all"
        self.handle_reload()

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, event: ModeSwitchedMessage) -> None:
        # leaving the report locks it again
        if event.old_mode == "admin_report":
            self._unlocked = False

    @on(SaleCompletedMessage)
    @on(ScreenResume)
    @work(exclusive=True, group="report")
    async def handle_reload(self) -> None:
        viewer = self.query_one("#md-report", MarkdownViewer)
        if not self._unlocked:
            await viewer.document.update("_Unlock with an admin PIN to see the report._")
            return
        try:
            report = await build_report(
                self.app.lifecycle.event_id,
                self._range,
                await crud.list_bars(),
                now=self.app.lifecycle.now(),
                top_n=config.REPORT_TOP_N,
            )
        except RegisterError as e:
            self.notify(e.message, severity="error")
            return
        await viewer.document.update(report_markdown(report))
