"""
Who may void what.

Self-service: any valid PIN, only the receipt this register printed last,
no reason. Administrative: an admin PIN, any receipt by number, a reason is
mandatory. Both end in OrderLifecycle.void; they differ only in the checks
made before it, and a failed check never writes anything.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Tuple

from db import crud
from db.models import Order, Receipt, StaffIdentity, VoidRecord
from register.errors import Unauthorized, ValidationError
from register.lifecycle import OrderLifecycle
from utils.logger import get_logger

_logger = get_logger(__name__)

PinCheck = Callable[[str], Awaitable[Optional[StaffIdentity]]]


class VoidPolicy:
    def __init__(
        self, lifecycle: OrderLifecycle, check_pin: PinCheck = crud.check_pin
    ) -> None:
        self.lifecycle = lifecycle
        self._check_pin = check_pin

    async def _identify(self, pin: str) -> StaffIdentity:
        identity = await self._check_pin(pin)
        if identity is None:
            _logger.warning("PIN check failed")
            raise Unauthorized("Wrong PIN.")
        return identity

    async def unlock_admin(self, pin: str) -> StaffIdentity:
        identity = await self._identify(pin)
        if identity.role != "admin":
            _logger.warning(f"{identity.name} tried to open the admin area")
            raise Unauthorized("Not an admin PIN.")
        return identity

    async def show_receipt(self, pin: str, receipt_no: str) -> Tuple[Order, str]:
        """Any receipt of the event with its rendered text, for admins only."""
        receipt_no = (receipt_no or "").strip()
        if not receipt_no:
            raise ValidationError("Please enter a receipt number.")
        await self.unlock_admin(pin)
        order = await self.lifecycle.find_order(receipt_no)
        items = await crud.get_order_items(order.id)
        return order, self.lifecycle.render_order(order, items, show_status=True)

    async def void_last_receipt(
        self, last_receipt: Optional[Receipt], pin: str, device_id: str
    ) -> VoidRecord:
        """Storno of the receipt this register issued last."""
        if last_receipt is None:
            raise ValidationError("No last receipt on this register.")
        identity = await self._identify(pin)

        # the session's idea of "last receipt" is checked against storage
        latest = await crud.get_latest_order_for_device(
            self.lifecycle.event_id, device_id
        )
        if (
            latest is None
            or last_receipt.device_id != device_id
            or latest.id != last_receipt.order_id
        ):
            raise ValidationError(
                "Only the most recent receipt of this register can be voided here."
            )
        return await self.lifecycle.void(identity.actor, last_receipt.order_id, "")

    async def void_by_receipt_no(
        self, pin: str, receipt_no: str, reason: str
    ) -> VoidRecord:
        receipt_no = (receipt_no or "").strip()
        reason = (reason or "").strip()
        if not receipt_no:
            raise ValidationError("Please enter a receipt number.")
        if not reason:
            raise ValidationError("Please enter a reason for the void.")
        admin = await self.unlock_admin(pin)
        return await self.lifecycle.void(admin.actor, receipt_no, reason)
