"""
Order Status Resolver -- derived purchase order lifecycle.

Responsibility:
    Derives a purchase order's status from its ledger snapshot plus the two
    explicit user flags (confirmed, cancelled), and validates the explicit
    user actions (``confirm``, ``cancel``) against the declared workflow.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The ledger service
    calls ``resolve_status`` after every apply/reverse; the reconciliation
    service calls ``request_transition`` for user actions.

Invariants enforced:
    DERIVED_STATUS -- status is a pure, idempotent function of
        (flags, ledger lines).  The stored status column is a cache of
        ``resolve_status`` and is written by nothing else.

Failure modes:
    - InvalidTransitionError for any action not in the workflow.
    - EmptyOrderError when confirming an order with no ordered quantity.
    - ReceivedOrderCannotCancelError when cancelling a PARTIAL order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from procurement_kernel.domain.ledger import ZERO, LedgerLine
from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.exceptions import (
    EmptyOrderError,
    InvalidTransitionError,
    ReceivedOrderCannotCancelError,
)


class OrderStatus(str, Enum):
    """
    Lifecycle status of a purchase order.

    Contract:
        DRAFT -> CONFIRMED -> PARTIAL -> COMPLETED, with CANCELLED reachable
        from DRAFT and CONFIRMED only.  COMPLETED and CANCELLED are terminal.
    """

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PARTIAL = "partial"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Orders in these states accept receipts
RECEIVABLE_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.PARTIAL})

# Orders in these states accept edits of any kind
EDITABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.CONFIRMED})

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


@dataclass(frozen=True)
class StatusFlags:
    """The only two facts about an order that a user sets directly."""

    confirmed: bool = False
    cancelled: bool = False


HAS_ORDERED_ITEMS = Guard(
    name="has_ordered_items",
    description="At least one order item with ordered quantity > 0",
)
NOTHING_RECEIVED = Guard(
    name="nothing_received",
    description="No order item has a received quantity > 0",
)
SOME_PENDING = Guard(
    name="some_pending",
    description="Some received, some still pending",
)
ALL_RECEIVED = Guard(
    name="all_received",
    description="Every order item has pending quantity == 0",
)

_D = OrderStatus.DRAFT.value
_C = OrderStatus.CONFIRMED.value
_P = OrderStatus.PARTIAL.value
_X = OrderStatus.COMPLETED.value
_K = OrderStatus.CANCELLED.value

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle driven by receipts",
    initial_state=_D,
    states=(_D, _C, _P, _X, _K),
    transitions=(
        Transition(_D, _C, action="confirm", guard=HAS_ORDERED_ITEMS),
        Transition(_D, _K, action="cancel"),
        Transition(_C, _K, action="cancel", guard=NOTHING_RECEIVED),
        Transition(_C, _P, action="receive", guard=SOME_PENDING, automatic=True),
        Transition(_C, _X, action="receive", guard=ALL_RECEIVED, automatic=True),
        Transition(_P, _X, action="receive", guard=ALL_RECEIVED, automatic=True),
        # Compensation of a failed confirmation restores the prior state
        Transition(_P, _C, action="reverse", guard=NOTHING_RECEIVED, automatic=True),
    ),
    terminal_states=(_X, _K),
)

ACTION_TARGETS: dict[str, OrderStatus] = {
    "confirm": OrderStatus.CONFIRMED,
    "cancel": OrderStatus.CANCELLED,
}


def total_received(lines: Sequence[LedgerLine]) -> Decimal:
    return sum((line.received_quantity for line in lines), ZERO)


def resolve_status(flags: StatusFlags, lines: Sequence[LedgerLine]) -> OrderStatus:
    """
    Derive the order status from flags and the ledger snapshot.

    Evaluated in order, first match wins:
        cancelled                         -> CANCELLED
        not confirmed                     -> DRAFT
        every line pending == 0           -> COMPLETED
        any line received > 0             -> PARTIAL
        otherwise                         -> CONFIRMED

    An order with no lines never reaches COMPLETED; confirmation requires
    at least one line, so an empty confirmed order stays CONFIRMED.
    """
    if flags.cancelled:
        return OrderStatus.CANCELLED
    if not flags.confirmed:
        return OrderStatus.DRAFT
    if lines and all(line.pending_quantity == ZERO for line in lines):
        return OrderStatus.COMPLETED
    if any(line.received_quantity > ZERO for line in lines):
        return OrderStatus.PARTIAL
    return OrderStatus.CONFIRMED


def request_transition(
    flags: StatusFlags,
    lines: Sequence[LedgerLine],
    action: str,
    order_id: str = "",
) -> OrderStatus:
    """
    Validate an explicit user action and return the resulting status.

    Preconditions:
        ``action`` is one of ``ACTION_TARGETS``; anything else is rejected
        as an invalid transition.

    Postconditions:
        Returns the target status.  The caller applies it by setting the
        matching flag and re-running ``resolve_status``.

    Raises:
        ReceivedOrderCannotCancelError: cancel of a PARTIAL order.
        EmptyOrderError: confirm with no ordered quantity.
        InvalidTransitionError: any action on a COMPLETED or CANCELLED
            order, and anything else outside the workflow.
    """
    current = resolve_status(flags, lines)
    target = ACTION_TARGETS.get(action)
    if target is None:
        raise InvalidTransitionError(order_id, current.value, action)

    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(order_id, current.value, target.value)

    received = total_received(lines)
    if action == "cancel" and current is not OrderStatus.DRAFT and received > ZERO:
        raise ReceivedOrderCannotCancelError(order_id, received)

    transition = PURCHASE_ORDER_WORKFLOW.find(current.value, action)
    if transition is None:
        raise InvalidTransitionError(order_id, current.value, target.value)

    if transition.guard is HAS_ORDERED_ITEMS and not any(
        line.ordered_quantity > ZERO for line in lines
    ):
        raise EmptyOrderError(order_id)

    return target
