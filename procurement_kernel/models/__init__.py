"""ORM models for the procurement kernel."""

from procurement_kernel.models.purchase_order import OrderItem, PurchaseOrder
from procurement_kernel.models.purchase_receipt import PurchaseReceipt, ReceiptItem
from procurement_kernel.models.sequence import SequenceCounter

__all__ = [
    "PurchaseOrder",
    "OrderItem",
    "PurchaseReceipt",
    "ReceiptItem",
    "SequenceCounter",
]
