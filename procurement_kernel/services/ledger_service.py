"""
LedgerService -- the order aggregate's ledger writer.

Responsibility:
    Loads the order aggregate under a row lock, applies and reverses
    received quantities on its items, re-derives the order status after
    every delta, and recomputes the order's monetary totals.

Architecture position:
    Kernel > Services -- imperative shell.  Pure rules live in
    ``domain/ledger.py``, ``domain/order_status.py`` and
    ``domain/amounts.py``; this service only loads, mutates and flushes.

Invariants enforced:
    RECEIVED_WITHIN_ORDERED -- every delta goes through
        ``received_after_apply`` / ``received_after_reverse``.
    RECEIPT_WITHIN_PENDING -- re-checked here at application time, not
        only at validation time.
    DERIVED_STATUS -- ``resolve()`` runs before apply/reverse returns.
    This is the only code that writes ``OrderItem.received_quantity`` or
    ``PurchaseOrder.status``.

Failure modes:
    - OrderNotFoundError if the order does not exist.
    - OrderItemNotFoundError if the item is not part of the addressed order.
    - OverReceiptError / InvariantViolation from the domain rules.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from procurement_kernel.domain.amounts import AmountCalculator, OrderTotals, PricedLine
from procurement_kernel.domain.ledger import (
    item_status,
    received_after_apply,
    received_after_reverse,
)
from procurement_kernel.domain.order_status import OrderStatus, resolve_status
from procurement_kernel.exceptions import OrderItemNotFoundError, OrderNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.purchase_order import OrderItem, PurchaseOrder
from procurement_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService[OrderItem]):
    """
    Stateful side of the line-item ledger.

    Contract:
        Callers hold the order's serialization scope and pass in the
        aggregate returned by ``load_order_for_update``.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT validate receipt proposals (ReceiptBuilder does).
    """

    def __init__(self, session: Session, calculator: AmountCalculator | None = None):
        super().__init__(session)
        self._calculator = calculator or AmountCalculator()

    def load_order_for_update(self, order_id: UUID) -> PurchaseOrder:
        """
        Lock and re-read the order row, discarding any cached state.

        Items are reloaded in the same pass so a delta committed by another
        transaction is visible before pending quantities are checked.

        Raises:
            OrderNotFoundError: if no such order exists.
        """
        order = self.session.execute(
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .where(PurchaseOrder.id == order_id)
            .with_for_update(of=PurchaseOrder)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def find_item(self, order: PurchaseOrder, order_item_id: UUID) -> OrderItem:
        for item in order.items:
            if item.id == order_item_id:
                return item
        raise OrderItemNotFoundError(str(order_item_id), str(order.id))

    def pending_quantity(self, order: PurchaseOrder, order_item_id: UUID) -> Decimal:
        return self.find_item(order, order_item_id).ledger_line().pending_quantity

    def apply_receipt(
        self,
        order: PurchaseOrder,
        order_item_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
    ) -> OrderItem:
        """
        Increase an item's received quantity by ``quantity``.

        Postconditions:
            - received_quantity grew by exactly ``quantity``.
            - Item status and order status are re-derived.

        Raises:
            OrderItemNotFoundError: item not on this order.
            OverReceiptError: ``quantity`` exceeds the current pending quantity.
        """
        item = self.find_item(order, order_item_id)
        before = item.received_quantity
        item.received_quantity = received_after_apply(item.ledger_line(), quantity)
        item.status = item_status(item.ordered_quantity, item.received_quantity).value
        item.updated_by_id = actor_id

        logger.info(
            "ledger_receipt_applied",
            extra={
                "order_item_id": str(item.id),
                "quantity": str(quantity),
                "received_before": str(before),
                "received_after": str(item.received_quantity),
                "ordered_quantity": str(item.ordered_quantity),
            },
        )
        self.resolve(order, actor_id)
        return item

    def reverse_receipt(
        self,
        order: PurchaseOrder,
        order_item_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
    ) -> OrderItem:
        """
        Decrease an item's received quantity by ``quantity``.

        Only used to compensate a confirmation that failed part-way.

        Raises:
            InvariantViolation: the reversal would drive received below zero.
        """
        item = self.find_item(order, order_item_id)
        before = item.received_quantity
        item.received_quantity = received_after_reverse(item.ledger_line(), quantity)
        item.status = item_status(item.ordered_quantity, item.received_quantity).value
        item.updated_by_id = actor_id

        logger.warning(
            "ledger_receipt_reversed",
            extra={
                "order_item_id": str(item.id),
                "quantity": str(quantity),
                "received_before": str(before),
                "received_after": str(item.received_quantity),
            },
        )
        self.resolve(order, actor_id)
        return item

    def resolve(self, order: PurchaseOrder, actor_id: UUID) -> OrderStatus:
        """Re-derive and store the order status from flags and ledger."""
        previous = order.status
        resolved = resolve_status(order.status_flags(), order.ledger_lines())
        if resolved.value != previous:
            order.status = resolved.value
            order.updated_by_id = actor_id
            logger.info(
                "order_status_resolved",
                extra={
                    "order_id": str(order.id),
                    "from_status": previous,
                    "to_status": resolved.value,
                },
            )
        self.session.flush()
        return resolved

    def recompute_totals(self, order: PurchaseOrder) -> OrderTotals:
        """Recompute every line amount plus subtotal and final amount."""
        lines = []
        for item in order.items:
            item.amount = self._calculator.line_amount(
                item.ordered_quantity, item.unit_price, item.discount_rate
            )
            lines.append(
                PricedLine(item.ordered_quantity, item.unit_price, item.discount_rate)
            )
        totals = self._calculator.order_totals(
            lines, order.discount_amount, order.tax_amount
        )
        order.subtotal = totals.subtotal
        order.final_amount = totals.final_amount
        self.session.flush()
        logger.debug(
            "order_totals_recomputed",
            extra={
                "order_id": str(order.id),
                "subtotal": str(totals.subtotal),
                "final_amount": str(totals.final_amount),
            },
        )
        return totals
