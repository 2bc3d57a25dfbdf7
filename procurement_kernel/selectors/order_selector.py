"""
Module: procurement_kernel.selectors.order_selector
Responsibility: Read side for purchase orders: snapshots, pending lines,
    filtered lookups and order statistics.
Architecture position: Kernel > Selectors.  Reads are unlocked and see the
    last committed ledger state (plus the caller's own flushed changes).

Failure modes:
    - OrderNotFoundError from pending_items_for_order / receivable_summary
      for an unknown order id.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from procurement_kernel.domain.money import round_money
from procurement_kernel.domain.dtos import (
    MonthlyOrderTotal,
    OrderSnapshot,
    OrderStats,
    PendingItem,
    ReceivableSummary,
    SupplierOrderTotal,
)
from procurement_kernel.domain.ledger import ZERO
from procurement_kernel.domain.order_status import RECEIVABLE_STATUSES, OrderStatus
from procurement_kernel.exceptions import OrderNotFoundError
from procurement_kernel.models.purchase_order import PurchaseOrder
from procurement_kernel.selectors.base import BaseSelector


def _average(total: Decimal, count: int) -> Decimal:
    return round_money(total / count) if count else round_money(ZERO)


class OrderSelector(BaseSelector[PurchaseOrder]):
    """Read-only queries over purchase orders."""

    def _query(self):
        return (
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .execution_options(populate_existing=True)
        )

    def _load(self, order_id: UUID) -> PurchaseOrder:
        order = self.session.execute(
            self._query().where(PurchaseOrder.id == order_id)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def get_order(self, order_id: UUID) -> OrderSnapshot | None:
        order = self.session.execute(
            self._query().where(PurchaseOrder.id == order_id)
        ).scalar_one_or_none()
        return order.to_dto() if order else None

    def get_order_by_number(self, order_number: str) -> OrderSnapshot | None:
        order = self.session.execute(
            self._query().where(PurchaseOrder.order_number == order_number)
        ).scalar_one_or_none()
        return order.to_dto() if order else None

    def pending_items_for_order(self, order_id: UUID) -> list[PendingItem]:
        """Lines with pending quantity > 0, in line order."""
        order = self._load(order_id)
        return [
            PendingItem(
                order_item_id=item.id,
                product_id=item.product_id,
                pending_quantity=item.ledger_line().pending_quantity,
                unit_price=item.unit_price,
            )
            for item in order.items
            if item.ledger_line().pending_quantity > ZERO
        ]

    def receivable_summary(self, order_id: UUID) -> ReceivableSummary:
        """
        Pending lines plus whether a receipt would currently be accepted.

        ``can_receive`` is False for orders that are not CONFIRMED or
        PARTIAL even if lines are outstanding (e.g. a cancelled order).
        """
        order = self._load(order_id)
        status = OrderStatus(order.status)
        items = tuple(self.pending_items_for_order(order_id))
        return ReceivableSummary(
            order_id=order.id,
            order_number=order.order_number,
            status=status,
            items=items,
            can_receive=status in RECEIVABLE_STATUSES and bool(items),
        )

    def find_orders(
        self,
        *,
        status: OrderStatus | None = None,
        supplier_id: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[OrderSnapshot]:
        """Orders matching every given filter; dates are inclusive."""
        stmt = self._query()
        if status is not None:
            stmt = stmt.where(PurchaseOrder.status == OrderStatus(status).value)
        if supplier_id is not None:
            stmt = stmt.where(PurchaseOrder.supplier_id == supplier_id)
        if start is not None:
            stmt = stmt.where(PurchaseOrder.order_date >= start)
        if end is not None:
            stmt = stmt.where(PurchaseOrder.order_date <= end)
        stmt = stmt.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.order_number.desc())
        return [order.to_dto() for order in self.session.execute(stmt).scalars()]

    def search_orders(self, term: str) -> list[OrderSnapshot]:
        """Case-insensitive match on order number, supplier, creator or remark."""
        term = term.strip()
        if not term:
            return self.find_orders()
        pattern = f"%{term}%"
        stmt = (
            self._query()
            .where(
                or_(
                    PurchaseOrder.order_number.ilike(pattern),
                    PurchaseOrder.supplier_id.ilike(pattern),
                    PurchaseOrder.creator.ilike(pattern),
                    PurchaseOrder.remark.ilike(pattern),
                )
            )
            .order_by(PurchaseOrder.order_number)
        )
        return [order.to_dto() for order in self.session.execute(stmt).scalars()]

    def _header_rows(self):
        return self.session.execute(
            select(
                PurchaseOrder.supplier_id,
                PurchaseOrder.status,
                PurchaseOrder.order_date,
                PurchaseOrder.expected_date,
                PurchaseOrder.final_amount,
            )
        ).all()

    def order_stats(self, as_of: date) -> OrderStats:
        """
        Counts and values across all orders.

        An order is pending while CONFIRMED or PARTIAL, and overdue when
        pending with an expected date before ``as_of``.
        """
        by_status = {status.value: 0 for status in OrderStatus}
        total_value = ZERO
        pending = 0
        overdue = 0
        rows = self._header_rows()
        for row in rows:
            by_status[row.status] += 1
            total_value += row.final_amount
            if OrderStatus(row.status) in RECEIVABLE_STATUSES:
                pending += 1
                if row.expected_date is not None and row.expected_date < as_of:
                    overdue += 1
        return OrderStats(
            total_orders=len(rows),
            by_status=by_status,
            total_value=round_money(total_value),
            average_value=_average(total_value, len(rows)),
            pending_orders=pending,
            overdue_orders=overdue,
        )

    def orders_by_month(self, year: int) -> list[MonthlyOrderTotal]:
        """Twelve entries, January first; months without orders report zero."""
        counts = [0] * 12
        values = [ZERO] * 12
        for row in self._header_rows():
            if row.order_date.year == year:
                counts[row.order_date.month - 1] += 1
                values[row.order_date.month - 1] += row.final_amount
        return [
            MonthlyOrderTotal(month=m + 1, order_count=counts[m], total_value=round_money(values[m]))
            for m in range(12)
        ]

    def top_suppliers(self, limit: int = 10) -> list[SupplierOrderTotal]:
        """Suppliers ranked by total order value, highest first."""
        counts: dict[str, int] = defaultdict(int)
        values: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for row in self._header_rows():
            counts[row.supplier_id] += 1
            values[row.supplier_id] += row.final_amount
        ranked = sorted(values, key=lambda s: (-values[s], s))[:limit]
        return [
            SupplierOrderTotal(
                supplier_id=supplier_id,
                order_count=counts[supplier_id],
                total_value=round_money(values[supplier_id]),
                average_value=_average(values[supplier_id], counts[supplier_id]),
            )
            for supplier_id in ranked
        ]
