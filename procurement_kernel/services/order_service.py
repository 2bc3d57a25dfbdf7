"""
OrderService -- purchase order authoring.

Responsibility:
    Creates purchase orders and edits their header and lines while the
    order is still editable, keeping line amounts, subtotal and final
    amount consistent after every edit.

Architecture position:
    Kernel > Services -- facade, owns transaction boundaries
    (commit on success, rollback on failure when ``auto_commit``).
    Delegates numbering to SequenceService and every totals/status write
    to LedgerService.

Edit rules:
    DRAFT      -- anything: header, add/remove lines, quantity, price,
                  discount rate.
    CONFIRMED  -- header, unit price and discount rate only.  The line
                  structure and ordered quantities are locked.
    PARTIAL, COMPLETED, CANCELLED -- nothing.

Failure modes:
    - OrderNotFoundError / OrderItemNotFoundError for unknown ids.
    - OrderNotEditableError when the edit rules above forbid the change.
    - InvalidQuantityError, InvalidUnitPriceError, InvalidDiscountRateError,
      NegativeAdjustmentError, FieldTooLongError for bad input.
    - ConcurrencyTimeoutError when the order lock is busy.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.config import ReconciliationConfig
from procurement_kernel.db.types import REMARK_LENGTH
from procurement_kernel.domain.amounts import ONE, ZERO, AmountCalculator
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import OrderSnapshot, ProposedOrderItem
from procurement_kernel.domain.ledger import OrderItemStatus
from procurement_kernel.domain.money import to_decimal
from procurement_kernel.domain.order_status import EDITABLE_STATUSES, OrderStatus
from procurement_kernel.exceptions import (
    FieldTooLongError,
    InvalidDiscountRateError,
    InvalidQuantityError,
    InvalidUnitPriceError,
    NegativeAdjustmentError,
    OrderNotEditableError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.purchase_order import OrderItem, PurchaseOrder
from procurement_kernel.services.ledger_service import LedgerService
from procurement_kernel.services.order_lock import OrderLockRegistry, default_registry
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.order")

REMARK_MAX_LENGTH = REMARK_LENGTH

_UNSET = object()


def check_remark(remark: str | None) -> None:
    if remark is not None and len(remark) > REMARK_MAX_LENGTH:
        raise FieldTooLongError("remark", REMARK_MAX_LENGTH, len(remark))


def _check_line(quantity: Decimal, unit_price: Decimal, discount_rate: Decimal) -> None:
    if quantity <= ZERO:
        raise InvalidQuantityError(quantity, field="ordered_quantity")
    if unit_price <= ZERO:
        raise InvalidUnitPriceError(unit_price)
    if discount_rate < ZERO or discount_rate > ONE:
        raise InvalidDiscountRateError(discount_rate)


def _check_adjustment(field: str, amount: Decimal) -> None:
    if amount < ZERO:
        raise NegativeAdjustmentError(field, amount)


class OrderService:
    """
    Facade for creating and editing purchase orders.

    Usage:
        service = OrderService(session, clock=clock)
        order = service.create_order(
            "SUP-001",
            [ProposedOrderItem("SKU-A", Decimal("10"), Decimal("5.00"))],
            actor_id=actor_id,
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReconciliationConfig | None = None,
        lock_registry: OrderLockRegistry | None = None,
        auto_commit: bool = True,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._config = config or ReconciliationConfig.with_defaults()
        self._locks = lock_registry or default_registry()
        self._auto_commit = auto_commit
        self._calculator = AmountCalculator(self._config.money_decimal_places)
        self._ledger = LedgerService(session, self._calculator)
        self._sequences = SequenceService(session, self._config.document_number_width)

    def create_order(
        self,
        supplier_id: str,
        items: Sequence[ProposedOrderItem],
        *,
        actor_id: UUID,
        order_date: date | None = None,
        expected_date: date | None = None,
        discount_amount: Decimal = ZERO,
        tax_amount: Decimal = ZERO,
        currency: str | None = None,
        remark: str | None = None,
        creator: str | None = None,
    ) -> OrderSnapshot:
        """
        Create a DRAFT order with a fresh ``PO{yyyymmdd}{seq}`` number.

        An order may be created without lines; it cannot be confirmed
        until it has at least one.
        """
        discount_amount = to_decimal(discount_amount)
        tax_amount = to_decimal(tax_amount)
        _check_adjustment("discount_amount", discount_amount)
        _check_adjustment("tax_amount", tax_amount)
        check_remark(remark)
        for proposal in items:
            _check_line(
                to_decimal(proposal.quantity),
                to_decimal(proposal.unit_price),
                to_decimal(proposal.discount_rate),
            )

        resolved_date = order_date or self._clock.today()
        with LogContext.bind(actor_id=actor_id):
            try:
                order = PurchaseOrder(
                    order_number=self._sequences.next_document_number(
                        self._config.order_number_prefix, resolved_date
                    ),
                    supplier_id=supplier_id,
                    order_date=resolved_date,
                    expected_date=expected_date,
                    status=OrderStatus.DRAFT.value,
                    currency=currency or self._config.default_currency,
                    discount_amount=discount_amount,
                    tax_amount=tax_amount,
                    subtotal=ZERO,
                    final_amount=ZERO,
                    remark=remark,
                    creator=creator,
                    created_by_id=actor_id,
                )
                for line_number, proposal in enumerate(items, start=1):
                    order.items.append(self._new_item(proposal, line_number, actor_id))
                self.session.add(order)
                self.session.flush()
                self._ledger.recompute_totals(order)
                snapshot = order.to_dto()
                if self._auto_commit:
                    self.session.commit()
            except Exception:
                if self._auto_commit:
                    self.session.rollback()
                logger.error("order_create_failed", exc_info=True)
                raise

            logger.info(
                "order_created",
                extra={
                    "order_id": str(snapshot.id),
                    "order_number": snapshot.order_number,
                    "supplier_id": supplier_id,
                    "line_count": len(snapshot.items),
                    "final_amount": str(snapshot.final_amount),
                },
            )
        return snapshot

    def _new_item(
        self, proposal: ProposedOrderItem, line_number: int, actor_id: UUID
    ) -> OrderItem:
        return OrderItem(
            line_number=line_number,
            product_id=proposal.product_id,
            ordered_quantity=to_decimal(proposal.quantity),
            received_quantity=ZERO,
            unit_price=to_decimal(proposal.unit_price),
            discount_rate=to_decimal(proposal.discount_rate),
            amount=ZERO,
            status=OrderItemStatus.PENDING.value,
            created_by_id=actor_id,
        )

    def _edit(self, order_id: UUID, actor_id: UUID, operation: str, mutate, structural: bool):
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            with self._locks.transaction(
                self.session,
                order_id,
                self._config.lock_timeout_seconds,
                self._auto_commit,
            ):
                order = self._ledger.load_order_for_update(order_id)
                status = OrderStatus(order.status)
                allowed = (
                    status is OrderStatus.DRAFT if structural
                    else status in EDITABLE_STATUSES
                )
                if not allowed:
                    logger.warning(
                        "order_edit_rejected",
                        extra={"operation": operation, "status": status.value},
                    )
                    raise OrderNotEditableError(str(order_id), status.value, operation)

                mutate(order)
                order.updated_by_id = actor_id
                self.session.flush()
                self._ledger.recompute_totals(order)
                self._ledger.resolve(order, actor_id)
                snapshot = order.to_dto()

            logger.info(
                "order_edited",
                extra={
                    "operation": operation,
                    "subtotal": str(snapshot.subtotal),
                    "final_amount": str(snapshot.final_amount),
                },
            )
        return snapshot

    def add_order_item(
        self,
        order_id: UUID,
        item: ProposedOrderItem,
        *,
        actor_id: UUID,
    ) -> OrderSnapshot:
        """Append a line to a DRAFT order."""
        _check_line(
            to_decimal(item.quantity),
            to_decimal(item.unit_price),
            to_decimal(item.discount_rate),
        )

        def mutate(order: PurchaseOrder) -> None:
            order.items.append(
                self._new_item(item, order.next_line_number(), actor_id)
            )

        return self._edit(order_id, actor_id, "add item", mutate, structural=True)

    def update_order_item(
        self,
        order_id: UUID,
        order_item_id: UUID,
        *,
        actor_id: UUID,
        quantity: Decimal | None = None,
        unit_price: Decimal | None = None,
        discount_rate: Decimal | None = None,
    ) -> OrderSnapshot:
        """
        Change a line's quantity, price or discount rate.

        A quantity change is structural (DRAFT only); price and discount
        rate may also change while CONFIRMED.
        """

        def mutate(order: PurchaseOrder) -> None:
            line = self._ledger.find_item(order, order_item_id)
            new_quantity = line.ordered_quantity if quantity is None else to_decimal(quantity)
            new_price = line.unit_price if unit_price is None else to_decimal(unit_price)
            new_rate = (
                line.discount_rate if discount_rate is None else to_decimal(discount_rate)
            )
            _check_line(new_quantity, new_price, new_rate)
            line.ordered_quantity = new_quantity
            line.unit_price = new_price
            line.discount_rate = new_rate
            line.updated_by_id = actor_id

        return self._edit(
            order_id, actor_id, "update item", mutate, structural=quantity is not None
        )

    def remove_order_item(
        self,
        order_id: UUID,
        order_item_id: UUID,
        *,
        actor_id: UUID,
    ) -> OrderSnapshot:
        """Delete a line from a DRAFT order."""

        def mutate(order: PurchaseOrder) -> None:
            order.items.remove(self._ledger.find_item(order, order_item_id))

        return self._edit(order_id, actor_id, "remove item", mutate, structural=True)

    def update_order_header(
        self,
        order_id: UUID,
        *,
        actor_id: UUID,
        discount_amount: Decimal | None = None,
        tax_amount: Decimal | None = None,
        expected_date=_UNSET,
        remark=_UNSET,
    ) -> OrderSnapshot:
        """
        Change order-level adjustments, expected date or remark.

        ``expected_date`` and ``remark`` accept ``None`` to clear the field.
        """
        if discount_amount is not None:
            discount_amount = to_decimal(discount_amount)
            _check_adjustment("discount_amount", discount_amount)
        if tax_amount is not None:
            tax_amount = to_decimal(tax_amount)
            _check_adjustment("tax_amount", tax_amount)
        if remark is not _UNSET:
            check_remark(remark)

        def mutate(order: PurchaseOrder) -> None:
            if discount_amount is not None:
                order.discount_amount = discount_amount
            if tax_amount is not None:
                order.tax_amount = tax_amount
            if expected_date is not _UNSET:
                order.expected_date = expected_date
            if remark is not _UNSET:
                order.remark = remark

        return self._edit(order_id, actor_id, "update header", mutate, structural=False)
