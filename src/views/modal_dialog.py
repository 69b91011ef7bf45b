from typing import Dict, Literal, Optional, Tuple, override

from textual import on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from utils.messages import QuitRequestedMessage


class DialogModal(ModalScreen[bool]):
    """
    A simple yes/no dialog box.
    """

    VARIANT_MAP: Dict[
        str, Tuple[Literal["primary", "default", "success", "warning", "error"], ...]
    ] = {
        "default": ("primary", "default"),
        "positive": ("success", "default"),
        "warning": ("warning", "default"),
        "error": ("error", "primary"),
    }

    def __init__(
        self,
        caption: str,
        primary_text: str = "OK",
        secondary_text: str = "",
        tone: Literal["default", "positive", "warning", "error"] = "default",
    ):
        super().__init__()
        self.caption = caption
        self.primary_text = primary_text
        self.secondary_text = secondary_text
        self.tone = tone

    def compose(self) -> ComposeResult:
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            with Horizontal(id="dialog"):
                if self.secondary_text:
                    yield Button(
                        self.secondary_text,
                        variant=DialogModal.VARIANT_MAP[self.tone][1],
                        id="btn-secondary",
                    )
                yield Button(
                    self.primary_text,
                    variant=DialogModal.VARIANT_MAP[self.tone][0],
                    id="btn-primary",
                )

    def on_mount(self):
        # destructive dialogs focus the safe choice
        if not self.secondary_text or not self.tone == "error":
            self.query_one("#btn-primary").focus()
        else:
            self.query_one("#btn-secondary").focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.dismiss(True)
        if event.button.id == "btn-secondary":
            self.dismiss(False)


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Are you sure you want to quit?", "Yes", "No", "error")

    @override
    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.post_message(QuitRequestedMessage())
            self.dismiss(True)
        else:
            self.dismiss(False)


class PinModal(ModalScreen[Optional[str]]):
    """
    Asks for a staff PIN. Returns the entered PIN, or None when cancelled.
    """

    def __init__(self, caption: str = "Enter PIN", confirm_text: str = "OK"):
        super().__init__()
        self.caption = caption
        self.confirm_text = confirm_text

    def compose(self) -> ComposeResult:
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            yield Input(placeholder="PIN", password=True, id="input-pin")
            with Horizontal(id="dialog"):
                yield Button("Cancel", id="btn-secondary")
                yield Button(self.confirm_text, variant="primary", id="btn-primary")

    def on_mount(self):
        self.query_one("#input-pin", Input).focus()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Input.Submitted, "#input-pin")
    @on(Button.Pressed, "#btn-primary")
    def handle_confirm(self) -> None:
        pin = self.query_one("#input-pin", Input).value.strip()
        if not pin:
            self.query_one("#input-pin", Input).add_class("-invalid")
            return
        self.dismiss(pin)

    @on(Button.Pressed, "#btn-secondary")
    def handle_cancel(self) -> None:
        self.dismiss(None)
