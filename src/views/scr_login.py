from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input, Label

from register.errors import RegisterError
from utils.logger import get_logger
from utils.messages import UserLoginMessage
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal

_logger = get_logger(__name__)


class LoginScreen(BaseScreen):
    """
    PIN login. Dismisses once a cashier is logged in (or, when the deployment
    allows it, when the register is opened without a cashier).
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-login"):
            yield Label("Staff PIN")
            yield Input(placeholder="****", password=True, id="input-login-pin")
            with Horizontal(id="div-login-btns"):
                yield Button("Quit", id="btn-quit")
                if not self.app.lifecycle.require_login:
                    yield Button("Without login", id="btn-anonymous")
                yield Button("Login", id="btn-login", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-pin").focus()

    @on(Input.Submitted, "#input-login-pin")
    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        pin_input = self.query_one("#input-login-pin", Input)
        pin = pin_input.value.strip()

        if not pin:
            self.notify("PIN cannot be empty!", severity="error")
            return

        try:
            staff = await self.app.state.login(pin)
        except RegisterError as e:
            self.notify(f"{e.message} Please try again.", severity="error")
            return

        if staff:
            _logger.info(f"{staff.name} ({staff.role}) logged in")
            self.notify(f"Hello {staff.name}!")
            self.app.post_message(UserLoginMessage())
            self.dismiss()
        else:
            self.notify("Wrong PIN.", severity="error")
            pin_input.value = ""
            pin_input.focus()
            pin_input.add_class("-invalid")

    @on(Button.Pressed, "#btn-anonymous")
    def handle_anonymous(self) -> None:
        self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
