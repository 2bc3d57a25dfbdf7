"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the service boundary:
    receipt proposals and validated drafts (input side), order and receipt
    snapshots, pending items and statistics (output side).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ORM models convert themselves to these
    DTOs via ``to_dto()``; services and selectors never hand out ORM rows.

Data flow:
    ProposedReceiptItem -> ReceiptDraft -> PurchaseReceipt row
    -> ReceiptSnapshot / ConfirmationResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_kernel.domain.ledger import OrderItemStatus
from procurement_kernel.domain.order_status import OrderStatus

ZERO = Decimal("0")


class ReceiptStatus(str, Enum):
    """
    Status of a purchase receipt.

    Contract:
        DRAFT -> CONFIRMED.  Once CONFIRMED the receipt is append-only:
        it is never edited, deleted or reverted.
    """

    DRAFT = "draft"
    CONFIRMED = "confirmed"


# Input side


@dataclass(frozen=True)
class ProposedOrderItem:
    """One line of a purchase order as entered by the buyer."""

    product_id: str
    quantity: Decimal
    unit_price: Decimal
    discount_rate: Decimal = ZERO


@dataclass(frozen=True)
class ProposedReceiptItem:
    """
    One line of a receipt as submitted by the warehouse.

    ``unit_price`` defaults to the order line's price when omitted.
    """

    order_item_id: UUID
    quantity: Decimal
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ReceiptDraftLine:
    """A validated receipt line, ready to persist."""

    order_item_id: UUID
    product_id: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class ReceiptDraft:
    """
    Commit-ready receipt produced by the Receipt Builder.

    Guarantees:
        - At least one line.
        - At most one line per order item (duplicates are merged).
        - Each quantity was <= pending at validation time.
    """

    order_id: UUID
    supplier_id: str
    lines: tuple[ReceiptDraftLine, ...]
    total_quantity: Decimal
    total_amount: Decimal


# Output side


@dataclass(frozen=True)
class PendingItem:
    """Outstanding quantity on one order line."""

    order_item_id: UUID
    product_id: str
    pending_quantity: Decimal
    unit_price: Decimal

    @property
    def can_receive(self) -> bool:
        return self.pending_quantity > ZERO


@dataclass(frozen=True)
class OrderItemSnapshot:
    id: UUID
    order_id: UUID
    line_number: int
    product_id: str
    ordered_quantity: Decimal
    received_quantity: Decimal
    unit_price: Decimal
    discount_rate: Decimal
    amount: Decimal
    status: OrderItemStatus

    @property
    def pending_quantity(self) -> Decimal:
        return self.ordered_quantity - self.received_quantity


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable view of a purchase order and its lines."""

    id: UUID
    order_number: str
    supplier_id: str
    order_date: date
    expected_date: date | None
    status: OrderStatus
    currency: str
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    final_amount: Decimal
    creator: str | None = None
    remark: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    items: tuple[OrderItemSnapshot, ...] = field(default_factory=tuple)

    def item(self, order_item_id: UUID) -> OrderItemSnapshot:
        for item in self.items:
            if item.id == order_item_id:
                return item
        raise KeyError(order_item_id)


@dataclass(frozen=True)
class ReceiptItemSnapshot:
    id: UUID
    receipt_id: UUID
    order_item_id: UUID
    product_id: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class ReceiptSnapshot:
    """Immutable view of a purchase receipt and its lines."""

    id: UUID
    receipt_number: str
    order_id: UUID
    supplier_id: str
    warehouse_id: str
    receipt_date: date
    receiver: str
    status: ReceiptStatus
    total_quantity: Decimal
    total_amount: Decimal
    remark: str | None = None
    confirmed_at: datetime | None = None
    items: tuple[ReceiptItemSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of a successful receipt confirmation."""

    order: OrderSnapshot
    receipt: ReceiptSnapshot
    attempts: int = 1


@dataclass(frozen=True)
class ReceivableSummary:
    """Pending lines of an order plus whether it can accept a receipt now."""

    order_id: UUID
    order_number: str
    status: OrderStatus
    items: tuple[PendingItem, ...]
    can_receive: bool


# Statistics


@dataclass(frozen=True)
class OrderStats:
    total_orders: int
    by_status: dict[str, int]
    total_value: Decimal
    average_value: Decimal
    pending_orders: int
    overdue_orders: int


@dataclass(frozen=True)
class MonthlyOrderTotal:
    month: int
    order_count: int
    total_value: Decimal


@dataclass(frozen=True)
class ReceiptStats:
    total_receipts: int
    by_status: dict[str, int]
    total_quantity: Decimal
    total_value: Decimal
    average_value: Decimal


@dataclass(frozen=True)
class MonthlyReceiptTotal:
    month: int
    receipt_count: int
    total_quantity: Decimal
    total_value: Decimal


@dataclass(frozen=True)
class SupplierOrderTotal:
    supplier_id: str
    order_count: int
    total_value: Decimal
    average_value: Decimal
