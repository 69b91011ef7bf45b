# provide dataclass models

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

Role = Literal["staff", "admin"]
PaymentMethod = Literal["cash", "card"]
OrderStatus = Literal["completed", "voided"]
PrintJobStatus = Literal["queued", "printed"]

ROLES = ("staff", "admin")
PAYMENT_METHODS = ("cash", "card")

# stall name used when neither a snapshot nor a live stall exists
UNKNOWN_BAR = "Unbekannt"


@dataclass(frozen=True)
class StaffIdentity:
    id: str
    name: str
    role: Role

    @property
    def label(self) -> str:
        return f"{self.name} ({self.role})"

    @property
    def actor(self) -> str:
        """Actor string written to the void audit log."""
        return f"{self.role}:{self.name}"


@dataclass(frozen=True)
class Bar:
    id: str
    name: str
    sort_order: int


@dataclass(frozen=True)
class Product:
    id: str
    bar_id: str
    name: str
    price_gross: Decimal
    sort_order: int
    is_active: bool


@dataclass(frozen=True)
class Order:
    id: str
    event_id: str
    bar_id: str
    bar_name: str
    device_id: str
    cashier_id: Optional[str]
    cashier_name: Optional[str]
    cashier_role: Optional[Role]
    receipt_no: str
    short_no: int
    public_token: str
    payment_method: PaymentMethod
    status: OrderStatus
    gross_total: Decimal
    tax_total: Decimal
    net_total: Decimal
    tax_rate: Decimal
    print_requested: bool
    created_at: datetime
    voided_at: Optional[datetime] = None

    @property
    def cashier_label(self) -> Optional[str]:
        if not self.cashier_name:
            return None
        return f"{self.cashier_name} ({self.cashier_role})"


@dataclass(frozen=True)
class OrderItem:
    order_id: str
    line_no: int
    product_id: Optional[str]
    name_snapshot: str
    unit_price_gross: Decimal
    qty: int
    line_total_gross: Decimal


@dataclass(frozen=True)
class VoidRecord:
    id: int
    order_id: str
    voided_by: str
    reason: str
    created_at: datetime


@dataclass(frozen=True)
class PrintJob:
    id: int
    event_id: str
    order_id: str
    payload: str
    status: PrintJobStatus
    created_at: datetime
    printed_at: Optional[datetime] = None


@dataclass(frozen=True)
class Receipt:
    """What the register hands back after a successful sale."""

    order_id: str
    receipt_no: str
    short_no: int
    public_token: str
    receipt_url: str
    gross: Decimal
    tax: Decimal
    net: Decimal
    device_id: str
    print_queued: bool = False
    print_error: Optional[str] = None
