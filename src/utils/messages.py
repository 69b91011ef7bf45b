from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the cashier logs out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired when a cashier logged in, so the screen can refresh
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever a line was added, incremented, decremented or the cart was cleared.
    Triggers a refresh of the cart panel.
    """

    bubble = True


class SaleCompletedMessage(Message):
    """
    Fired when a sale was finalized or a receipt voided.
    Listened to by the report screen.
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
