"""
Module: procurement_kernel.selectors.receipt_selector
Responsibility: Read side for purchase receipts: snapshots, lookups by
    order / warehouse / supplier / date and receipt statistics.
Architecture position: Kernel > Selectors.  Unlocked reads.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from procurement_kernel.domain.money import round_money
from procurement_kernel.domain.dtos import (
    MonthlyReceiptTotal,
    ReceiptSnapshot,
    ReceiptStats,
    ReceiptStatus,
)
from procurement_kernel.domain.ledger import ZERO
from procurement_kernel.models.purchase_receipt import PurchaseReceipt
from procurement_kernel.selectors.base import BaseSelector


class ReceiptSelector(BaseSelector[PurchaseReceipt]):
    """Read-only queries over purchase receipts."""

    def _query(self):
        return (
            select(PurchaseReceipt)
            .options(selectinload(PurchaseReceipt.items))
            .execution_options(populate_existing=True)
        )

    def _fetch(self, stmt) -> list[ReceiptSnapshot]:
        return [receipt.to_dto() for receipt in self.session.execute(stmt).scalars()]

    def get_receipt(self, receipt_id: UUID) -> ReceiptSnapshot | None:
        receipt = self.session.execute(
            self._query().where(PurchaseReceipt.id == receipt_id)
        ).scalar_one_or_none()
        return receipt.to_dto() if receipt else None

    def get_receipt_by_number(self, receipt_number: str) -> ReceiptSnapshot | None:
        receipt = self.session.execute(
            self._query().where(PurchaseReceipt.receipt_number == receipt_number)
        ).scalar_one_or_none()
        return receipt.to_dto() if receipt else None

    def receipts_for_order(
        self,
        order_id: UUID,
        status: ReceiptStatus | None = None,
    ) -> list[ReceiptSnapshot]:
        stmt = self._query().where(PurchaseReceipt.order_id == order_id)
        if status is not None:
            stmt = stmt.where(PurchaseReceipt.status == ReceiptStatus(status).value)
        return self._fetch(stmt.order_by(PurchaseReceipt.receipt_number))

    def find_receipts(
        self,
        *,
        status: ReceiptStatus | None = None,
        warehouse_id: str | None = None,
        supplier_id: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ReceiptSnapshot]:
        """Receipts matching every given filter; dates are inclusive."""
        stmt = self._query()
        if status is not None:
            stmt = stmt.where(PurchaseReceipt.status == ReceiptStatus(status).value)
        if warehouse_id is not None:
            stmt = stmt.where(PurchaseReceipt.warehouse_id == warehouse_id)
        if supplier_id is not None:
            stmt = stmt.where(PurchaseReceipt.supplier_id == supplier_id)
        if start is not None:
            stmt = stmt.where(PurchaseReceipt.receipt_date >= start)
        if end is not None:
            stmt = stmt.where(PurchaseReceipt.receipt_date <= end)
        return self._fetch(
            stmt.order_by(PurchaseReceipt.receipt_date.desc(), PurchaseReceipt.receipt_number.desc())
        )

    def search_receipts(self, term: str) -> list[ReceiptSnapshot]:
        """Case-insensitive match on receipt number, receiver, warehouse or remark."""
        term = term.strip()
        if not term:
            return self.find_receipts()
        pattern = f"%{term}%"
        return self._fetch(
            self._query()
            .where(
                or_(
                    PurchaseReceipt.receipt_number.ilike(pattern),
                    PurchaseReceipt.receiver.ilike(pattern),
                    PurchaseReceipt.warehouse_id.ilike(pattern),
                    PurchaseReceipt.remark.ilike(pattern),
                )
            )
            .order_by(PurchaseReceipt.receipt_number)
        )

    def _header_rows(self):
        return self.session.execute(
            select(
                PurchaseReceipt.status,
                PurchaseReceipt.receipt_date,
                PurchaseReceipt.total_quantity,
                PurchaseReceipt.total_amount,
            )
        ).all()

    def receipt_stats(self) -> ReceiptStats:
        by_status = {status.value: 0 for status in ReceiptStatus}
        total_quantity = ZERO
        total_value = ZERO
        rows = self._header_rows()
        for row in rows:
            by_status[row.status] += 1
            total_quantity += row.total_quantity
            total_value += row.total_amount
        return ReceiptStats(
            total_receipts=len(rows),
            by_status=by_status,
            total_quantity=total_quantity,
            total_value=round_money(total_value),
            average_value=round_money(total_value / len(rows)) if rows else round_money(ZERO),
        )

    def receipts_by_month(self, year: int) -> list[MonthlyReceiptTotal]:
        """Twelve entries, January first."""
        counts = [0] * 12
        quantities = [ZERO] * 12
        values = [ZERO] * 12
        for row in self._header_rows():
            if row.receipt_date.year == year:
                m = row.receipt_date.month - 1
                counts[m] += 1
                quantities[m] += row.total_quantity
                values[m] += row.total_amount
        return [
            MonthlyReceiptTotal(
                month=m + 1,
                receipt_count=counts[m],
                total_quantity=quantities[m],
                total_value=round_money(values[m]),
            )
            for m in range(12)
        ]
