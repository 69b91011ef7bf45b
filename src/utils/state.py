from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from typing import Literal, Optional

import db.crud as crud
from db.models import Bar, Receipt, StaffIdentity
from register.cart import Cart
from utils import config


def load_device_id(path: str = config.DEVICE_FILE) -> str:
    """Stable id of this register: env override, else a uuid kept in a file."""
    if config.DEVICE_ID:
        return config.DEVICE_ID
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            existing = f.read().strip()
        if existing:
            return existing
    device_id = str(uuid.uuid4())
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(device_id)
    return device_id


@dataclass
class GlobalState:
    """
    Register state shared by screens; belongs to this device only.

    Fields:
      - staff: logged-in cashier, None until the PIN login succeeded
      - bar: selected stall
      - cart: sale in progress
      - payment_method: "cash" | "card"
      - last_receipt: the most recent sale of this session (for self-service void)
      - device_id: stable register id
    """

    device_id: str = ""
    staff: Optional[StaffIdentity] = None
    bar: Optional[Bar] = None
    cart: Cart = field(default_factory=Cart)
    payment_method: Literal["cash", "card"] = "cash"
    last_receipt: Optional[Receipt] = None

    async def login(self, pin: str) -> Optional[StaffIdentity]:
        """Check the PIN and remember the cashier. Returns None on a wrong PIN."""
        identity = await crud.check_pin(pin)
        if identity is not None:
            self.staff = identity
        return identity

    def logout(self) -> None:
        # the bar stays selected so the device keeps its stall
        self.staff = None
        self.cart.clear()
        self.last_receipt = None

    def choose_bar(self, bar: Bar) -> None:
        self.bar = bar
        self.cart.clear()
        self.payment_method = "cash"
        self.last_receipt = None

    def reset_bar(self) -> None:
        self.bar = None
        self.cart.clear()
        self.payment_method = "cash"
        self.last_receipt = None
