"""Kernel services: ledger writer, receipt validation, order and receipt facades."""

from procurement_kernel.services.ledger_service import LedgerService
from procurement_kernel.services.order_lock import OrderLockRegistry
from procurement_kernel.services.order_service import OrderService
from procurement_kernel.services.receipt_builder import ReceiptBuilder
from procurement_kernel.services.reconciliation_service import ReconciliationService
from procurement_kernel.services.sequence_service import SequenceService

__all__ = [
    "LedgerService",
    "OrderLockRegistry",
    "OrderService",
    "ReceiptBuilder",
    "ReconciliationService",
    "SequenceService",
]
