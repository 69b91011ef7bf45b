import argparse
import asyncio
import sys

from rich.console import Console
from rich.panel import Panel
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from register.errors import NotFound
from register.lifecycle import OrderLifecycle
from register.voiding import VoidPolicy
from utils.logger import get_logger
from utils.messages import ModeSwitchedMessage, QuitRequestedMessage, UserLogoutMessage
from utils.state import GlobalState, load_device_id
from views.scr_admin_void import AdminVoidScreen
from views.scr_login import LoginScreen
from views.scr_register import RegisterScreen
from views.scr_sales_report import SalesReportScreen

_logger = get_logger(__name__)


class FestkassaApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "register": RegisterScreen,
        "admin_void": AdminVoidScreen,
        "admin_report": SalesReportScreen,
    }

    MENU_MODES = {
        "register": "Register",
        "admin_void": "Void / Reprint",
        "admin_report": "Sales Report",
    }

    CSS_PATH = [
        "views/styles/index.tcss",
        "views/styles/login.tcss",
        "views/styles/register.tcss",
        "views/styles/admin.tcss",
    ]

    state: GlobalState
    lifecycle: OrderLifecycle
    voids: VoidPolicy

    def __init__(self):
        super().__init__()
        self.state = GlobalState(device_id=load_device_id())
        self.lifecycle = OrderLifecycle()
        self.voids = VoidPolicy(self.lifecycle)

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        _logger.info(f"Register {self.state.device_id} started")
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        if self.state.staff:
            _logger.info(f"{self.state.staff.name} logged out")
        self.state.logout()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.state.logout()
        self.exit()

    @work
    async def main_flow(self):
        await self.push_screen_wait(LoginScreen())
        self.post_message(ModeSwitchedMessage(self.current_mode, "register"))
        await self.switch_mode("register")


async def show_public_receipt(token: str, console: Console) -> int:
    """Print the receipt behind a public link; 1 when there is none."""
    try:
        receipt = await OrderLifecycle().lookup_public_receipt(token)
    except NotFound as e:
        console.print(f"[red]{e.message}[/red]")
        return 1
    title = receipt.order.receipt_no
    if receipt.order.status == "voided":
        title += " (voided)"
    console.print(Panel(receipt.text, title=title, expand=False))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Festkassa register")
    parser.add_argument(
        "--receipt",
        metavar="TOKEN",
        help="print the receipt behind a public receipt token and exit",
    )
    args = parser.parse_args(argv)

    if args.receipt is not None:
        return asyncio.run(show_public_receipt(args.receipt, Console()))

    FestkassaApp().run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
