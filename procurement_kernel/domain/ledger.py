"""
Ledger -- pure rules for ordered vs. received quantities.

Responsibility:
    Computes pending quantity and line status for one order item and
    decides whether a receipt delta may be applied or reversed.  The
    stateful side (loading, locking, mutating rows) lives in
    ``procurement_kernel.services.ledger_service``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    RECEIVED_WITHIN_ORDERED -- 0 <= received <= ordered after every delta.
    RECEIPT_WITHIN_PENDING  -- an applied delta never exceeds pending.

Failure modes:
    - InvalidQuantityError for a non-positive delta.
    - OverReceiptError when an apply exceeds the pending quantity.
    - InvariantViolation when a stored row is already out of range, or a
      reversal would drive received below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_kernel.exceptions import (
    InvalidQuantityError,
    InvariantViolation,
    OverReceiptError,
)
from procurement_kernel.invariants import KernelInvariant

ZERO = Decimal("0")


class OrderItemStatus(str, Enum):
    """Fulfilment status of one order line, derived from its ledger row."""

    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


@dataclass(frozen=True)
class LedgerLine:
    """Snapshot of one order item's ledger row."""

    order_item_id: UUID
    ordered_quantity: Decimal
    received_quantity: Decimal

    @property
    def pending_quantity(self) -> Decimal:
        return pending_quantity(
            self.ordered_quantity, self.received_quantity, self.order_item_id
        )

    @property
    def status(self) -> OrderItemStatus:
        return item_status(self.ordered_quantity, self.received_quantity)


def pending_quantity(
    ordered_quantity: Decimal,
    received_quantity: Decimal,
    order_item_id: UUID | str = "",
) -> Decimal:
    """
    Ordered minus received.

    Raises:
        InvariantViolation: if the stored row is out of range.  A negative
            pending quantity is never a user error.
    """
    if received_quantity < ZERO:
        raise InvariantViolation(
            KernelInvariant.RECEIVED_WITHIN_ORDERED.value,
            str(order_item_id),
            f"received quantity {received_quantity} is negative",
        )
    pending = ordered_quantity - received_quantity
    if pending < ZERO:
        raise InvariantViolation(
            KernelInvariant.RECEIVED_WITHIN_ORDERED.value,
            str(order_item_id),
            f"received {received_quantity} exceeds ordered {ordered_quantity}",
        )
    return pending


def item_status(ordered_quantity: Decimal, received_quantity: Decimal) -> OrderItemStatus:
    if received_quantity <= ZERO:
        return OrderItemStatus.PENDING
    if received_quantity >= ordered_quantity:
        return OrderItemStatus.COMPLETED
    return OrderItemStatus.PARTIAL


def received_after_apply(line: LedgerLine, quantity: Decimal) -> Decimal:
    """
    Return the received quantity after applying ``quantity``.

    Re-checks the pending quantity against the line as it is *now*, which
    may differ from what the receipt builder saw at validation time.
    """
    if quantity <= ZERO:
        raise InvalidQuantityError(quantity, item_id=str(line.order_item_id))
    pending = line.pending_quantity
    if quantity > pending:
        raise OverReceiptError(str(line.order_item_id), quantity, pending)
    return line.received_quantity + quantity


def received_after_reverse(line: LedgerLine, quantity: Decimal) -> Decimal:
    """
    Return the received quantity after reversing ``quantity``.

    Raises:
        InvariantViolation: if the reversal would drive received below zero.
    """
    if quantity <= ZERO:
        raise InvalidQuantityError(quantity, item_id=str(line.order_item_id))
    # Validates the current row before trusting it
    line.pending_quantity
    remaining = line.received_quantity - quantity
    if remaining < ZERO:
        raise InvariantViolation(
            KernelInvariant.RECEIVED_WITHIN_ORDERED.value,
            str(line.order_item_id),
            f"reversing {quantity} from received {line.received_quantity} "
            "would go negative",
        )
    return remaining
