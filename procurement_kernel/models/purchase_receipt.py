"""
Module: procurement_kernel.models.purchase_receipt
Responsibility: ORM persistence for warehouse receipts recorded against a
    purchase order.
Architecture position: Kernel > Models.  May import from db/.  Imports
    domain DTOs lazily inside ``to_dto()`` only.

Invariants enforced:
    - quantity > 0 and unit_price > 0 on every receipt item (CHECK).
    - A CONFIRMED receipt is append-only: services refuse to edit, delete
      or re-confirm it.

Failure modes:
    - IntegrityError on a duplicate receipt_number or a dangling
      order / order item reference.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import TrackedBase, UUIDString
from procurement_kernel.db.types import (
    DOCUMENT_NUMBER_LENGTH,
    REFERENCE_LENGTH,
    REMARK_LENGTH,
    decimal_column,
    decimal_literal,
    stored_decimal,
)


class PurchaseReceipt(TrackedBase):
    """
    Receipt header.

    Contract:
        Created DRAFT, confirmed at most once.  ``supplier_id`` is copied
        from the order at creation.

    Guarantees:
        - receipt_number is unique (uq_purchase_receipt_number).
        - total_quantity and total_amount are recomputed after every edit.
    """

    __tablename__ = "purchase_receipts"

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_purchase_receipt_number"),
        Index("idx_pr_order", "order_id"),
        Index("idx_pr_warehouse", "warehouse_id"),
        Index("idx_pr_supplier", "supplier_id"),
        Index("idx_pr_receipt_date", "receipt_date"),
    )

    receipt_number: Mapped[str] = mapped_column(String(DOCUMENT_NUMBER_LENGTH), nullable=False)

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id"),
        nullable=False,
    )

    supplier_id: Mapped[str] = mapped_column(String(REFERENCE_LENGTH), nullable=False)

    warehouse_id: Mapped[str] = mapped_column(String(REFERENCE_LENGTH), nullable=False)

    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)

    receiver: Mapped[str] = mapped_column(String(REFERENCE_LENGTH), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    total_quantity: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    total_amount: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    remark: Mapped[str | None] = mapped_column(String(REMARK_LENGTH), nullable=True)

    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    confirmed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    items: Mapped[list[ReceiptItem]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<PurchaseReceipt {self.receipt_number}: {self.status}>"

    def next_line_number(self) -> int:
        return max((item.line_number for item in self.items), default=0) + 1

    @property
    def is_draft(self) -> bool:
        return self.status == "draft"

    def to_dto(self):
        from procurement_kernel.domain.dtos import ReceiptSnapshot, ReceiptStatus

        return ReceiptSnapshot(
            id=self.id,
            receipt_number=self.receipt_number,
            order_id=self.order_id,
            supplier_id=self.supplier_id,
            warehouse_id=self.warehouse_id,
            receipt_date=self.receipt_date,
            receiver=self.receiver,
            status=ReceiptStatus(self.status),
            total_quantity=self.total_quantity,
            total_amount=self.total_amount,
            remark=self.remark,
            confirmed_at=self.confirmed_at,
            items=tuple(item.to_dto() for item in self.items),
        )


class ReceiptItem(TrackedBase):
    """
    One received line.  References exactly one order item.

    The unit price is captured at receipt time and defaults to the order
    line's price.
    """

    __tablename__ = "purchase_receipt_items"

    __table_args__ = (
        CheckConstraint(
            decimal_column("quantity") > decimal_literal(0),
            name="ck_pr_item_quantity_positive",
        ),
        CheckConstraint(
            decimal_column("unit_price") > decimal_literal(0),
            name="ck_pr_item_price_positive",
        ),
        Index("idx_pr_item_receipt", "receipt_id"),
        Index("idx_pr_item_order_item", "order_item_id"),
    )

    receipt_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_receipts.id", ondelete="CASCADE"),
        nullable=False,
    )

    order_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_order_items.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_id: Mapped[str] = mapped_column(String(REFERENCE_LENGTH), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(stored_decimal(), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(stored_decimal(), nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    receipt: Mapped[PurchaseReceipt] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<ReceiptItem {self.product_id}: {self.quantity}>"

    def to_dto(self):
        from procurement_kernel.domain.dtos import ReceiptItemSnapshot

        return ReceiptItemSnapshot(
            id=self.id,
            receipt_id=self.receipt_id,
            order_item_id=self.order_item_id,
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            amount=self.amount,
        )
