"""
ReconciliationService -- order-to-receipt reconciliation entry point.

Responsibility:
    Records warehouse receipts against purchase orders and confirms them
    into the line-item ledger; confirms and cancels orders; edits and
    deletes draft receipts; answers "what is still pending".

Architecture position:
    Kernel > Services -- facade, owns transaction boundaries and the
    per-order serialization scope.  Pure rules live in the domain layer;
    ReceiptBuilder validates, LedgerService mutates.

Confirmation flow (all inside the order's lock, all-or-nothing):
    1. Re-read the receipt and lock + re-read the order aggregate.
    2. Re-validate the receipt through ReceiptBuilder (pending may have
       shrunk since the draft was created).
    3. Apply each line through LedgerService.apply_receipt.  If a line
       fails, the lines already applied are reversed before re-raising.
    4. Mark the receipt CONFIRMED, recompute totals, resolve status.
    5. Commit.

    A ConsistencyError (over-receipt race, invariant violation) is retried
    ``consistency_retry_limit`` times after re-reading the ledger, then
    escalated to the caller.

Invariants enforced:
    ATOMIC_CONFIRMATION, SERIALIZED_ORDER_MUTATION, RECEIPT_WITHIN_PENDING.

Failure modes:
    - ReceiptNotFoundError / OrderNotFoundError for unknown ids.
    - ReceiptNotEditableError when confirming or editing a confirmed receipt.
    - Every ReceiptBuilder error (validation, state, OverReceiptError).
    - InvalidTransitionError, EmptyOrderError,
      ReceivedOrderCannotCancelError from order actions.
    - ConcurrencyTimeoutError when the order lock is busy.
"""

import time
from collections.abc import Callable, Sequence
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from procurement_kernel.config import ReconciliationConfig
from procurement_kernel.domain.amounts import AmountCalculator
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import (
    ConfirmationResult,
    OrderSnapshot,
    PendingItem,
    ProposedReceiptItem,
    ReceiptDraft,
    ReceiptDraftLine,
    ReceiptSnapshot,
    ReceiptStatus,
)
from procurement_kernel.domain.order_status import request_transition
from procurement_kernel.exceptions import (
    ConsistencyError,
    ProcurementKernelError,
    ReceiptItemNotFoundError,
    ReceiptNotEditableError,
    ReceiptNotFoundError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.purchase_order import PurchaseOrder
from procurement_kernel.models.purchase_receipt import PurchaseReceipt, ReceiptItem
from procurement_kernel.selectors.order_selector import OrderSelector
from procurement_kernel.services.ledger_service import LedgerService
from procurement_kernel.services.order_lock import OrderLockRegistry, default_registry
from procurement_kernel.services.order_service import check_remark
from procurement_kernel.services.receipt_builder import ReceiptBuilder
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """
    Facade for receipts and order lifecycle actions.

    Contract:
        Every mutating method runs in its own transaction and, except
        ``create_receipt``, inside the order's serialization scope.
        Returned values are frozen DTOs, never ORM rows.

    Usage:
        service = ReconciliationService(session, clock=clock)
        receipt_id = service.create_receipt(
            order.id, "J. Doe",
            [ProposedReceiptItem(item_id, Decimal("4"))],
            warehouse_id="WH-1", actor_id=actor_id,
        )
        result = service.confirm_receipt(receipt_id, actor_id=actor_id)
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
        calculator = AmountCalculator(self._config.money_decimal_places)
        self._builder = ReceiptBuilder(session, calculator)
        self._ledger = LedgerService(session, calculator)
        self._sequences = SequenceService(session, self._config.document_number_width)

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def create_receipt(
        self,
        order_id: UUID,
        receiver: str,
        items: Sequence[ProposedReceiptItem],
        *,
        warehouse_id: str,
        actor_id: UUID,
        receipt_date: date | None = None,
        remark: str | None = None,
    ) -> UUID:
        """
        Validate ``items`` against the order and store a DRAFT receipt.

        Does not touch the ledger; received quantities change only at
        confirmation.

        Returns:
            The new receipt's id.
        """
        check_remark(remark)
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                draft = self._builder.validate(order_id, items)
                resolved_date = receipt_date or self._clock.today()
                receipt = PurchaseReceipt(
                    receipt_number=self._sequences.next_document_number(
                        self._config.receipt_number_prefix, resolved_date
                    ),
                    order_id=draft.order_id,
                    supplier_id=draft.supplier_id,
                    warehouse_id=warehouse_id,
                    receipt_date=resolved_date,
                    receiver=receiver,
                    status=ReceiptStatus.DRAFT.value,
                    remark=remark,
                    created_by_id=actor_id,
                )
                self._write_draft(receipt, draft, actor_id)
                self.session.add(receipt)
                self.session.flush()
                receipt_id = receipt.id
                receipt_number = receipt.receipt_number
                if self._auto_commit:
                    self.session.commit()
            except Exception:
                if self._auto_commit:
                    self.session.rollback()
                logger.warning("receipt_create_failed", exc_info=True)
                raise

            logger.info(
                "receipt_created",
                extra={
                    "receipt_id": str(receipt_id),
                    "receipt_number": receipt_number,
                    "line_count": len(draft.lines),
                    "total_quantity": str(draft.total_quantity),
                    "total_amount": str(draft.total_amount),
                },
            )
        return receipt_id

    def confirm_receipt(self, receipt_id: UUID, *, actor_id: UUID) -> ConfirmationResult:
        """
        Apply a DRAFT receipt to the ledger, all-or-nothing.

        Postconditions (success):
            - Every line's quantity was added to its order item.
            - The receipt is CONFIRMED; the order status is re-derived.
        Postconditions (failure):
            - No ledger change is visible; the receipt stays DRAFT.
        """
        order_id = self._order_id_for(receipt_id)
        correlation_id = str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=actor_id,
            order_id=order_id,
            receipt_id=receipt_id,
        ):
            logger.info("receipt_confirmation_started")
            t0 = time.monotonic()
            attempts = 0
            while True:
                attempts += 1
                try:
                    with self._locks.transaction(
                        self.session,
                        order_id,
                        self._config.lock_timeout_seconds,
                        self._auto_commit,
                    ):
                        order, receipt = self._confirm_once(receipt_id, actor_id)
                        result = ConfirmationResult(
                            order=order.to_dto(),
                            receipt=receipt.to_dto(),
                            attempts=attempts,
                        )
                    break
                except ConsistencyError as exc:
                    if attempts > self._config.consistency_retry_limit:
                        logger.error(
                            "receipt_confirmation_escalated",
                            extra={"attempts": attempts, "error_code": exc.code},
                            exc_info=True,
                        )
                        raise
                    logger.warning(
                        "receipt_confirmation_retry",
                        extra={"attempt": attempts, "error_code": exc.code},
                    )
                except Exception:
                    logger.warning(
                        "receipt_confirmation_failed",
                        extra={"attempts": attempts},
                        exc_info=True,
                    )
                    raise

            logger.info(
                "receipt_confirmed",
                extra={
                    "receipt_number": result.receipt.receipt_number,
                    "order_status": result.order.status.value,
                    "total_quantity": str(result.receipt.total_quantity),
                    "attempts": attempts,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
        return result

    def _confirm_once(
        self, receipt_id: UUID, actor_id: UUID
    ) -> tuple[PurchaseOrder, PurchaseReceipt]:
        receipt = self._load_receipt(receipt_id)
        if receipt.status != ReceiptStatus.DRAFT.value:
            raise ReceiptNotEditableError(str(receipt_id), receipt.status, "confirm")

        order = self._ledger.load_order_for_update(receipt.order_id)
        draft = self._builder.validate(order.id, self._proposals(receipt), order=order)

        applied: list[ReceiptDraftLine] = []
        try:
            for line in draft.lines:
                self._ledger.apply_receipt(order, line.order_item_id, line.quantity, actor_id)
                applied.append(line)
        except ProcurementKernelError:
            self._compensate(order, applied, actor_id)
            raise

        self._write_draft(receipt, draft, actor_id)
        receipt.status = ReceiptStatus.CONFIRMED.value
        receipt.confirmed_at = self._clock.now()
        receipt.confirmed_by_id = actor_id
        receipt.updated_by_id = actor_id
        self._ledger.recompute_totals(order)
        self._ledger.resolve(order, actor_id)
        return order, receipt

    def _compensate(
        self,
        order: PurchaseOrder,
        applied: list[ReceiptDraftLine],
        actor_id: UUID,
    ) -> None:
        for line in reversed(applied):
            self._ledger.reverse_receipt(order, line.order_item_id, line.quantity, actor_id)
        if applied:
            logger.warning(
                "receipt_confirmation_compensated",
                extra={"reversed_lines": len(applied)},
            )

    # ------------------------------------------------------------------
    # Draft receipt editing
    # ------------------------------------------------------------------

    def add_receipt_item(
        self,
        receipt_id: UUID,
        item: ProposedReceiptItem,
        *,
        actor_id: UUID,
    ) -> ReceiptSnapshot:
        """Add a line to a DRAFT receipt; a repeated order item is merged."""
        return self._edit_draft(
            receipt_id,
            actor_id,
            "add item to",
            lambda receipt, proposals: [*proposals, item],
        )

    def update_receipt_item(
        self,
        receipt_id: UUID,
        receipt_item_id: UUID,
        *,
        actor_id: UUID,
        quantity=None,
        unit_price=None,
    ) -> ReceiptSnapshot:
        def edit(receipt, proposals):
            target = self._find_receipt_item(receipt, receipt_item_id)
            return [
                ProposedReceiptItem(
                    order_item_id=p.order_item_id,
                    quantity=p.quantity if quantity is None else quantity,
                    unit_price=p.unit_price if unit_price is None else unit_price,
                )
                if p.order_item_id == target.order_item_id
                else p
                for p in proposals
            ]

        return self._edit_draft(receipt_id, actor_id, "update item on", edit)

    def remove_receipt_item(
        self,
        receipt_id: UUID,
        receipt_item_id: UUID,
        *,
        actor_id: UUID,
    ) -> ReceiptSnapshot:
        """Remove a line.  Removing the last line is rejected as an empty receipt."""

        def edit(receipt, proposals):
            target = self._find_receipt_item(receipt, receipt_item_id)
            return [p for p in proposals if p.order_item_id != target.order_item_id]

        return self._edit_draft(receipt_id, actor_id, "remove item from", edit)

    def delete_receipt(self, receipt_id: UUID, *, actor_id: UUID) -> None:
        """Delete a DRAFT receipt.  Confirmed receipts are never deleted."""
        order_id = self._order_id_for(receipt_id)
        with LogContext.bind(order_id=order_id, receipt_id=receipt_id, actor_id=actor_id):
            with self._locks.transaction(
                self.session,
                order_id,
                self._config.lock_timeout_seconds,
                self._auto_commit,
            ):
                receipt = self._load_receipt(receipt_id)
                if receipt.status != ReceiptStatus.DRAFT.value:
                    raise ReceiptNotEditableError(str(receipt_id), receipt.status, "delete")
                self.session.delete(receipt)
                self.session.flush()
            logger.info("receipt_deleted")

    def _edit_draft(
        self,
        receipt_id: UUID,
        actor_id: UUID,
        operation: str,
        edit: Callable[[PurchaseReceipt, list[ProposedReceiptItem]], list[ProposedReceiptItem]],
    ) -> ReceiptSnapshot:
        order_id = self._order_id_for(receipt_id)
        with LogContext.bind(order_id=order_id, receipt_id=receipt_id, actor_id=actor_id):
            with self._locks.transaction(
                self.session,
                order_id,
                self._config.lock_timeout_seconds,
                self._auto_commit,
            ):
                receipt = self._load_receipt(receipt_id)
                if receipt.status != ReceiptStatus.DRAFT.value:
                    raise ReceiptNotEditableError(str(receipt_id), receipt.status, operation)
                order = self._ledger.load_order_for_update(order_id)
                proposals = edit(receipt, self._proposals(receipt))
                draft = self._builder.validate(order_id, proposals, order=order)
                self._write_draft(receipt, draft, actor_id)
                receipt.updated_by_id = actor_id
                self.session.flush()
                snapshot = receipt.to_dto()

            logger.info(
                "receipt_edited",
                extra={
                    "operation": operation,
                    "line_count": len(snapshot.items),
                    "total_quantity": str(snapshot.total_quantity),
                },
            )
        return snapshot

    # ------------------------------------------------------------------
    # Order lifecycle
    # ------------------------------------------------------------------

    def confirm_order(self, order_id: UUID, *, actor_id: UUID) -> OrderSnapshot:
        """DRAFT -> CONFIRMED.  Requires a line with ordered quantity > 0."""
        return self._order_action(order_id, "confirm", actor_id)

    def cancel_order(self, order_id: UUID, *, actor_id: UUID) -> OrderSnapshot:
        """DRAFT or CONFIRMED -> CANCELLED, only while nothing was received."""
        return self._order_action(order_id, "cancel", actor_id)

    def _order_action(self, order_id: UUID, action: str, actor_id: UUID) -> OrderSnapshot:
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with self._locks.transaction(
                    self.session,
                    order_id,
                    self._config.lock_timeout_seconds,
                    self._auto_commit,
                ):
                    order = self._ledger.load_order_for_update(order_id)
                    previous = order.status
                    request_transition(
                        order.status_flags(), order.ledger_lines(), action, str(order_id)
                    )
                    if action == "confirm":
                        order.confirmed_at = self._clock.now()
                    else:
                        order.cancelled_at = self._clock.now()
                    order.updated_by_id = actor_id
                    self._ledger.recompute_totals(order)
                    self._ledger.resolve(order, actor_id)
                    snapshot = order.to_dto()
            except ProcurementKernelError as exc:
                logger.warning(
                    "order_action_rejected",
                    extra={"action": action, "error_code": exc.code},
                )
                raise

            logger.info(
                "order_action_applied",
                extra={
                    "action": action,
                    "from_status": previous,
                    "to_status": snapshot.status.value,
                },
            )
        return snapshot

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def pending_items_for_order(self, order_id: UUID) -> list[PendingItem]:
        """Lines with pending quantity > 0, from the last committed state."""
        return OrderSelector(self.session).pending_items_for_order(order_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _order_id_for(self, receipt_id: UUID) -> UUID:
        try:
            return self._get_receipt(receipt_id).order_id
        finally:
            if self._auto_commit:
                # No transaction may stay open while waiting on the order lock
                self.session.commit()

    def _get_receipt(self, receipt_id: UUID) -> PurchaseReceipt:
        receipt = self.session.get(PurchaseReceipt, receipt_id)
        if receipt is None:
            raise ReceiptNotFoundError(str(receipt_id))
        return receipt

    def _load_receipt(self, receipt_id: UUID) -> PurchaseReceipt:
        receipt = self.session.execute(
            select(PurchaseReceipt)
            .options(selectinload(PurchaseReceipt.items))
            .where(PurchaseReceipt.id == receipt_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if receipt is None:
            raise ReceiptNotFoundError(str(receipt_id))
        return receipt

    @staticmethod
    def _find_receipt_item(receipt: PurchaseReceipt, receipt_item_id: UUID) -> ReceiptItem:
        for row in receipt.items:
            if row.id == receipt_item_id:
                return row
        raise ReceiptItemNotFoundError(str(receipt_item_id))

    @staticmethod
    def _proposals(receipt: PurchaseReceipt) -> list[ProposedReceiptItem]:
        return [
            ProposedReceiptItem(
                order_item_id=row.order_item_id,
                quantity=row.quantity,
                unit_price=row.unit_price,
            )
            for row in receipt.items
        ]

    @staticmethod
    def _write_draft(receipt: PurchaseReceipt, draft: ReceiptDraft, actor_id: UUID) -> None:
        """
        Make the receipt's rows and totals match ``draft``.

        Rows are keyed by order item (the draft holds one line per order
        item), so existing rows keep their ids across edits.
        """
        rows = {row.order_item_id: row for row in receipt.items}
        keep = {line.order_item_id for line in draft.lines}
        for order_item_id, row in rows.items():
            if order_item_id not in keep:
                receipt.items.remove(row)

        for line in draft.lines:
            row = rows.get(line.order_item_id)
            if row is None:
                receipt.items.append(
                    ReceiptItem(
                        line_number=receipt.next_line_number(),
                        order_item_id=line.order_item_id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        amount=line.amount,
                        created_by_id=actor_id,
                    )
                )
            else:
                row.quantity = line.quantity
                row.unit_price = line.unit_price
                row.amount = line.amount

        receipt.total_quantity = draft.total_quantity
        receipt.total_amount = draft.total_amount
