"""
Kernel Invariants Contract.

These invariants are structural law for the order-to-receipt reconciliation
engine.  No ReconciliationConfig field may override them.

This module exists solely to declare the invariants explicitly.  The
enforcement is distributed across the ledger, the receipt builder, the
status resolver, the order lock and the DB check constraints.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    RECEIVED_WITHIN_ORDERED = "received_within_ordered"
    """0 <= received_quantity <= ordered_quantity for every order item.
    Enforced by LedgerService and ck_po_item_received_within_ordered."""

    RECEIPT_WITHIN_PENDING = "receipt_within_pending"
    """A receipt line never exceeds the pending quantity of its order item.
    Checked by ReceiptBuilder at validation and re-checked by LedgerService
    at application time."""

    DERIVED_STATUS = "derived_status"
    """Order status is a pure function of the ledger snapshot and the
    confirmed/cancelled flags.  Enforced by resolve_status()."""

    ATOMIC_CONFIRMATION = "atomic_confirmation"
    """Either every line of a receipt is applied and the status resolved,
    or none is.  Enforced by ReconciliationService.confirm_receipt()."""

    SERIALIZED_ORDER_MUTATION = "serialized_order_mutation"
    """Mutations of one order run one at a time.  Enforced by
    OrderLockRegistry and SELECT ... FOR UPDATE on the order row."""

    DECIMAL_MONEY = "decimal_money"
    """Quantities and amounts are Decimal, never float.  Enforced by
    to_decimal() and the stored_decimal() column type."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)
