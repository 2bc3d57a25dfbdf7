"""Read-only selectors returning DTOs."""

from procurement_kernel.selectors.order_selector import OrderSelector
from procurement_kernel.selectors.receipt_selector import ReceiptSelector

__all__ = ["OrderSelector", "ReceiptSelector"]
