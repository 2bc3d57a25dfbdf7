"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Receipt reconciliation errors are surfaced to warehouse staff, retried by the
service layer, or escalated as data corruption.  Callers must be able to tell
these apart without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has a CATEGORY that drives the handling policy
  4. Exceptions carry structured DATA (item ids, requested vs. allowed values)

Example - RIGHT way:
    try:
        service.confirm_receipt(receipt_id, actor_id=actor_id)
    except OverReceiptError as e:
        api_response(
            code=e.code,
            order_item_id=e.order_item_id,
            requested=e.requested_quantity,
            pending=e.pending_quantity,
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- ValidationError              category="validation"
    |   +-- InvalidQuantityError
    |   +-- InvalidUnitPriceError
    |   +-- InvalidDiscountRateError
    |   +-- NegativeAdjustmentError
    |   +-- EmptyReceiptError
    |   +-- EmptyOrderError
    |   +-- CrossOrderReferenceError
    |   +-- FieldTooLongError
    |
    +-- StateError                   category="state"
    |   +-- InvalidTransitionError
    |   +-- OrderNotReceivableError
    |   +-- ReceivedOrderCannotCancelError
    |   +-- OrderNotEditableError
    |   +-- ReceiptNotEditableError
    |
    +-- ConsistencyError             category="consistency"
    |   +-- OverReceiptError
    |   +-- InvariantViolation
    |
    +-- ConcurrencyError             category="concurrency"
    |   +-- ConcurrencyTimeoutError
    |
    +-- NotFoundError                category="not_found"
        +-- OrderNotFoundError
        +-- OrderItemNotFoundError
        +-- ReceiptNotFoundError
        +-- ReceiptItemNotFoundError

===============================================================================
HANDLING POLICY BY CATEGORY
===============================================================================

Category     | Policy
-------------|----------------------------------------------------------------
validation   | Reported to the caller with enough detail to correct and
             | resubmit.  No partial effect has occurred.
state        | Stale or contradictory client view.  User-visible rejection,
             | never retried automatically.
consistency  | Race or data corruption.  The service re-reads the ledger and
             | retries once; a second failure is escalated.  Never swallowed,
             | never leaves a partial ledger mutation.
concurrency  | Retryable by the caller with backoff (``retryable = True``).
not_found    | Unknown identifier.
"""

from decimal import Decimal


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must define a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"
    category: str = "internal"
    retryable: bool = False


# Validation errors


class ValidationError(ProcurementKernelError):
    """Base exception for input that can be corrected and resubmitted."""

    code: str = "VALIDATION_ERROR"
    category: str = "validation"


class InvalidQuantityError(ValidationError):
    """A quantity that must be strictly positive was not."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Decimal, field: str = "quantity", item_id: str | None = None):
        self.quantity = quantity
        self.field = field
        self.item_id = item_id
        target = f" on item {item_id}" if item_id else ""
        super().__init__(f"{field} must be greater than 0{target}, got {quantity}")


class InvalidUnitPriceError(ValidationError):
    """A unit price that must be strictly positive was not."""

    code: str = "INVALID_UNIT_PRICE"

    def __init__(self, unit_price: Decimal, item_id: str | None = None):
        self.unit_price = unit_price
        self.item_id = item_id
        target = f" on item {item_id}" if item_id else ""
        super().__init__(f"Unit price must be greater than 0{target}, got {unit_price}")


class InvalidDiscountRateError(ValidationError):
    """Discount rate outside the closed interval [0, 1]."""

    code: str = "INVALID_DISCOUNT_RATE"

    def __init__(self, discount_rate: Decimal):
        self.discount_rate = discount_rate
        super().__init__(f"Discount rate must be between 0 and 1, got {discount_rate}")


class NegativeAdjustmentError(ValidationError):
    """Order-level discount or tax amount is negative."""

    code: str = "NEGATIVE_ADJUSTMENT"

    def __init__(self, field: str, amount: Decimal):
        self.field = field
        self.amount = amount
        super().__init__(f"{field} must not be negative, got {amount}")


class EmptyReceiptError(ValidationError):
    """A receipt proposal contained no items."""

    code: str = "EMPTY_RECEIPT"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Receipt for order {order_id} must contain at least one item")


class EmptyOrderError(ValidationError):
    """An order cannot be confirmed without a positive-quantity item."""

    code: str = "EMPTY_ORDER"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} needs at least one item with ordered quantity > 0"
        )


class CrossOrderReferenceError(ValidationError):
    """A receipt item references an order item of a different order."""

    code: str = "CROSS_ORDER_REFERENCE"

    def __init__(self, order_id: str, order_item_id: str):
        self.order_id = order_id
        self.order_item_id = order_item_id
        super().__init__(
            f"Order item {order_item_id} does not belong to order {order_id}"
        )


class FieldTooLongError(ValidationError):
    """A free-text field exceeds its storage limit."""

    code: str = "FIELD_TOO_LONG"

    def __init__(self, field: str, max_length: int, actual_length: int):
        self.field = field
        self.max_length = max_length
        self.actual_length = actual_length
        super().__init__(
            f"{field} must be at most {max_length} characters, got {actual_length}"
        )


# State errors


class StateError(ProcurementKernelError):
    """Base exception for requests that contradict the current lifecycle state."""

    code: str = "STATE_ERROR"
    category: str = "state"


class InvalidTransitionError(StateError):
    """Explicitly requested status transition is not in the workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, order_id: str, current_state: str, requested_state: str):
        self.order_id = order_id
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(
            f"Order {order_id} cannot move from {current_state} to {requested_state}"
        )


class OrderNotReceivableError(StateError):
    """Receipts are not accepted against the order in its current state."""

    code: str = "ORDER_NOT_RECEIVABLE"

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status} and cannot accept receipts")


class ReceivedOrderCannotCancelError(StateError):
    """Cancellation requested after stock was already received."""

    code: str = "RECEIVED_ORDER_CANNOT_CANCEL"

    def __init__(self, order_id: str, received_quantity: Decimal):
        self.order_id = order_id
        self.received_quantity = received_quantity
        super().__init__(
            f"Order {order_id} has {received_quantity} units received "
            "and cannot be cancelled"
        )


class OrderNotEditableError(StateError):
    """Edit requested on an order whose state forbids it."""

    code: str = "ORDER_NOT_EDITABLE"

    def __init__(self, order_id: str, status: str, operation: str):
        self.order_id = order_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} on order {order_id} in status {status}")


class ReceiptNotEditableError(StateError):
    """Edit or confirmation requested on a receipt that is no longer a draft."""

    code: str = "RECEIPT_NOT_EDITABLE"

    def __init__(self, receipt_id: str, status: str, operation: str):
        self.receipt_id = receipt_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} receipt {receipt_id} in status {status}")


# Consistency errors


class ConsistencyError(ProcurementKernelError):
    """Base exception for races and ledger corruption."""

    code: str = "CONSISTENCY_ERROR"
    category: str = "consistency"


class OverReceiptError(ConsistencyError):
    """
    Requested receipt quantity exceeds what is still outstanding.

    Raised by the Receipt Builder at validation time and re-raised by the
    ledger at application time when a concurrent receipt consumed the
    pending quantity in between.  The message is shown to users verbatim.
    """

    code: str = "OVER_RECEIPT"

    def __init__(
        self,
        order_item_id: str,
        requested_quantity: Decimal,
        pending_quantity: Decimal,
    ):
        self.order_item_id = order_item_id
        self.requested_quantity = requested_quantity
        self.pending_quantity = pending_quantity
        super().__init__(
            f"Cannot receive {requested_quantity} of order item {order_item_id}: "
            f"only {pending_quantity} remaining"
        )


class InvariantViolation(ConsistencyError):
    """A ledger invariant would be broken.  Signals data corruption."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, entity_id: str, detail: str):
        self.invariant = invariant
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"Invariant {invariant} violated on {entity_id}: {detail}")


# Concurrency errors


class ConcurrencyError(ProcurementKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    category: str = "concurrency"
    retryable: bool = True


class ConcurrencyTimeoutError(ConcurrencyError):
    """The per-order lock could not be acquired in time."""

    code: str = "CONCURRENCY_TIMEOUT"

    def __init__(self, order_id: str, timeout_seconds: float):
        self.order_id = order_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for the lock on order {order_id}"
        )


# Lookup errors


class NotFoundError(ProcurementKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"
    category: str = "not_found"


class OrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Purchase order not found: {order_id}")


class OrderItemNotFoundError(NotFoundError):
    """Order item not found under the addressed order."""

    code: str = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, order_item_id: str, order_id: str | None = None):
        self.order_item_id = order_item_id
        self.order_id = order_id
        scope = f" on order {order_id}" if order_id else ""
        super().__init__(f"Order item not found{scope}: {order_item_id}")


class ReceiptNotFoundError(NotFoundError):
    """Purchase receipt with given ID was not found."""

    code: str = "RECEIPT_NOT_FOUND"

    def __init__(self, receipt_id: str):
        self.receipt_id = receipt_id
        super().__init__(f"Purchase receipt not found: {receipt_id}")


class ReceiptItemNotFoundError(NotFoundError):
    """Receipt item with given ID was not found."""

    code: str = "RECEIPT_ITEM_NOT_FOUND"

    def __init__(self, receipt_item_id: str):
        self.receipt_item_id = receipt_item_id
        super().__init__(f"Receipt item not found: {receipt_item_id}")
