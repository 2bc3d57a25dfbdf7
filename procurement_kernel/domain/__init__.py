"""Pure domain core: value objects, ledger rules, status resolution, amounts."""

from procurement_kernel.domain.amounts import (
    AmountCalculator,
    OrderTotals,
    PricedLine,
    ReceiptLine,
    ReceiptTotals,
)
from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.dtos import (
    ConfirmationResult,
    OrderSnapshot,
    PendingItem,
    ProposedReceiptItem,
    ReceiptDraft,
    ReceiptSnapshot,
    ReceiptStatus,
)
from procurement_kernel.domain.ledger import LedgerLine, OrderItemStatus
from procurement_kernel.domain.order_status import (
    PURCHASE_ORDER_WORKFLOW,
    OrderStatus,
    StatusFlags,
    request_transition,
    resolve_status,
)

__all__ = [
    "AmountCalculator",
    "OrderTotals",
    "PricedLine",
    "ReceiptLine",
    "ReceiptTotals",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ConfirmationResult",
    "OrderSnapshot",
    "PendingItem",
    "ProposedReceiptItem",
    "ReceiptDraft",
    "ReceiptSnapshot",
    "ReceiptStatus",
    "LedgerLine",
    "OrderItemStatus",
    "PURCHASE_ORDER_WORKFLOW",
    "OrderStatus",
    "StatusFlags",
    "request_transition",
    "resolve_status",
]
