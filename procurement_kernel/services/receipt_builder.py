"""
ReceiptBuilder -- validates a proposed receipt against an order.

Responsibility:
    Turns a list of ``ProposedReceiptItem`` into a commit-ready
    ``ReceiptDraft``, or rejects it with a typed error.  Never mutates the
    ledger.

Architecture position:
    Kernel > Services -- reads the order aggregate through the session,
    then applies pure checks.  Used by ReconciliationService at receipt
    creation, at every draft edit, and again inside the locked scope at
    confirmation.

Checks, in order (first failure wins):
    1. order exists                           OrderNotFoundError
    2. every item belongs to the order        CrossOrderReferenceError
    3. every quantity > 0                     InvalidQuantityError
    4. every captured unit price > 0          InvalidUnitPriceError
    5. merged quantity <= pending (per item)  OverReceiptError
    6. proposal is non-empty                  EmptyReceiptError
    7. order is CONFIRMED or PARTIAL          OrderNotReceivableError

    Against a COMPLETED order every line fails check 5 (nothing is pending).
    Proposals naming the same order item are merged (quantities summed)
    before check 5, so a split proposal cannot bypass the pending limit.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from procurement_kernel.domain.amounts import AmountCalculator, ReceiptLine
from procurement_kernel.domain.dtos import (
    ProposedReceiptItem,
    ReceiptDraft,
    ReceiptDraftLine,
)
from procurement_kernel.domain.money import to_decimal
from procurement_kernel.domain.order_status import RECEIVABLE_STATUSES, resolve_status
from procurement_kernel.exceptions import (
    CrossOrderReferenceError,
    EmptyReceiptError,
    InvalidQuantityError,
    InvalidUnitPriceError,
    OrderNotFoundError,
    OrderNotReceivableError,
    OverReceiptError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.purchase_order import PurchaseOrder

logger = get_logger("services.receipt_builder")

ZERO = Decimal("0")


class ReceiptBuilder:
    """
    Validator for receipt proposals.

    Contract:
        ``validate`` either returns a draft or raises; it performs reads
        only.  The pending quantity it checks against is the one visible
        in the caller's session at call time.
    """

    def __init__(self, session: Session, calculator: AmountCalculator | None = None):
        self._session = session
        self._calculator = calculator or AmountCalculator()

    def validate(
        self,
        order_id: UUID,
        proposed_items: Sequence[ProposedReceiptItem],
        order: PurchaseOrder | None = None,
    ) -> ReceiptDraft:
        """
        Validate ``proposed_items`` against the order.

        Args:
            order_id: The order the receipt is recorded against.
            proposed_items: Lines as submitted.
            order: Already-loaded (and usually locked) aggregate.  Loaded
                through the session when omitted.
        """
        if order is None:
            order = self._session.execute(
                select(PurchaseOrder)
                .options(selectinload(PurchaseOrder.items))
                .where(PurchaseOrder.id == order_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))

        items_by_id = {item.id: item for item in order.items}

        for proposal in proposed_items:
            if proposal.order_item_id not in items_by_id:
                raise CrossOrderReferenceError(str(order_id), str(proposal.order_item_id))

        # (item, quantity, captured price) per proposal, in submission order
        checked = []
        for proposal in proposed_items:
            item = items_by_id[proposal.order_item_id]
            quantity = to_decimal(proposal.quantity)
            if quantity <= ZERO:
                raise InvalidQuantityError(quantity, item_id=str(item.id))
            checked.append((item, quantity, proposal.unit_price))

        priced = []
        for item, quantity, captured_price in checked:
            if captured_price is None:
                unit_price = item.unit_price
            else:
                unit_price = to_decimal(captured_price)
            if unit_price <= ZERO:
                raise InvalidUnitPriceError(unit_price, item_id=str(item.id))
            priced.append((item, quantity, unit_price))

        # order_item_id -> [quantity, unit_price]; insertion order kept
        merged: dict[UUID, list[Decimal]] = {}
        for item, quantity, unit_price in priced:
            if item.id in merged:
                # First captured price wins for a merged line
                merged[item.id][0] += quantity
            else:
                merged[item.id] = [quantity, unit_price]

        lines = []
        for order_item_id, (quantity, unit_price) in merged.items():
            item = items_by_id[order_item_id]
            pending = item.ledger_line().pending_quantity
            if quantity > pending:
                logger.warning(
                    "receipt_over_receipt_rejected",
                    extra={
                        "order_id": str(order_id),
                        "order_item_id": str(order_item_id),
                        "requested_quantity": str(quantity),
                        "pending_quantity": str(pending),
                    },
                )
                raise OverReceiptError(str(order_item_id), quantity, pending)
            lines.append(
                ReceiptDraftLine(
                    order_item_id=order_item_id,
                    product_id=item.product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    amount=self._calculator.receipt_line_amount(quantity, unit_price),
                )
            )

        if not lines:
            raise EmptyReceiptError(str(order_id))

        status = resolve_status(order.status_flags(), order.ledger_lines())
        if status not in RECEIVABLE_STATUSES:
            raise OrderNotReceivableError(str(order_id), status.value)

        totals = self._calculator.receipt_totals(
            ReceiptLine(line.quantity, line.unit_price) for line in lines
        )
        logger.debug(
            "receipt_validated",
            extra={
                "order_id": str(order_id),
                "line_count": len(lines),
                "total_quantity": str(totals.total_quantity),
            },
        )
        return ReceiptDraft(
            order_id=order.id,
            supplier_id=order.supplier_id,
            lines=tuple(lines),
            total_quantity=totals.total_quantity,
            total_amount=totals.total_amount,
        )
