"""
Module: procurement_kernel.models.purchase_order
Responsibility: ORM persistence for purchase orders and their line items.
    The order row is the aggregate root and the unit of locking: every
    mutation of an order or its items goes through ``SELECT ... FOR UPDATE``
    on this row.
Architecture position: Kernel > Models.  May import from db/.  Imports
    domain DTOs lazily inside ``to_dto()`` only.

Invariants enforced:
    RECEIVED_WITHIN_ORDERED -- CHECK constraints keep
        0 <= received_quantity <= ordered_quantity as a database backstop.
    DERIVED_STATUS -- ``status`` is a cache of the resolver's output.  Only
        ``confirmed_at`` and ``cancelled_at`` are set by user actions.

Failure modes:
    - IntegrityError if a service bypasses the ledger and writes an
      out-of-range quantity.
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
    and_,
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


class PurchaseOrder(TrackedBase):
    """
    Purchase order header.

    Contract:
        Created DRAFT.  Editable while DRAFT or CONFIRMED; immutable once
        the resolver reports PARTIAL, COMPLETED or CANCELLED.

    Guarantees:
        - order_number is unique (uq_purchase_order_number).
        - discount_amount and tax_amount are never negative.
        - items are ordered by line_number.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_purchase_order_number"),
        CheckConstraint(
            decimal_column("discount_amount") >= decimal_literal(0),
            name="ck_po_discount_non_negative",
        ),
        CheckConstraint(
            decimal_column("tax_amount") >= decimal_literal(0),
            name="ck_po_tax_non_negative",
        ),
        Index("idx_po_supplier", "supplier_id"),
        Index("idx_po_status", "status"),
        Index("idx_po_order_date", "order_date"),
    )

    order_number: Mapped[str] = mapped_column(String(DOCUMENT_NUMBER_LENGTH), nullable=False)

    supplier_id: Mapped[str] = mapped_column(String(REFERENCE_LENGTH), nullable=False)

    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    expected_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Cache of resolve_status(); written only by the ledger service
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    subtotal: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    discount_amount: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    tax_amount: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    final_amount: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    remark: Mapped[str | None] = mapped_column(String(REMARK_LENGTH), nullable=True)

    creator: Mapped[str | None] = mapped_column(String(REFERENCE_LENGTH), nullable=True)

    # Explicit user flags
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.order_number}: {self.status}>"

    def status_flags(self):
        from procurement_kernel.domain.order_status import StatusFlags

        return StatusFlags(
            confirmed=self.confirmed_at is not None,
            cancelled=self.cancelled_at is not None,
        )

    def ledger_lines(self):
        return tuple(item.ledger_line() for item in self.items)

    def next_line_number(self) -> int:
        return max((item.line_number for item in self.items), default=0) + 1

    def to_dto(self):
        from procurement_kernel.domain.dtos import OrderSnapshot
        from procurement_kernel.domain.order_status import OrderStatus

        return OrderSnapshot(
            id=self.id,
            order_number=self.order_number,
            supplier_id=self.supplier_id,
            order_date=self.order_date,
            expected_date=self.expected_date,
            status=OrderStatus(self.status),
            currency=self.currency,
            subtotal=self.subtotal,
            discount_amount=self.discount_amount,
            tax_amount=self.tax_amount,
            final_amount=self.final_amount,
            creator=self.creator,
            remark=self.remark,
            confirmed_at=self.confirmed_at,
            cancelled_at=self.cancelled_at,
            items=tuple(item.to_dto() for item in self.items),
        )


class OrderItem(TrackedBase):
    """
    One line of a purchase order, carrying its own receipt ledger row.

    Guarantees:
        - ordered_quantity > 0 and unit_price > 0.
        - 0 <= discount_rate <= 1.
        - 0 <= received_quantity <= ordered_quantity.
        - (order_id, line_number) is unique.
    """

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_po_item_line"),
        CheckConstraint(
            decimal_column("ordered_quantity") > decimal_literal(0),
            name="ck_po_item_ordered_positive",
        ),
        CheckConstraint(
            decimal_column("unit_price") > decimal_literal(0),
            name="ck_po_item_price_positive",
        ),
        CheckConstraint(
            and_(
                decimal_column("discount_rate") >= decimal_literal(0),
                decimal_column("discount_rate") <= decimal_literal(1),
            ),
            name="ck_po_item_discount_rate_range",
        ),
        CheckConstraint(
            and_(
                decimal_column("received_quantity") >= decimal_literal(0),
                decimal_column("received_quantity") <= decimal_column("ordered_quantity"),
            ),
            name="ck_po_item_received_within_ordered",
        ),
        Index("idx_po_item_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_id: Mapped[str] = mapped_column(String(REFERENCE_LENGTH), nullable=False)

    ordered_quantity: Mapped[Decimal] = mapped_column(stored_decimal(), nullable=False)

    # Mutated only by LedgerService
    received_quantity: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    unit_price: Mapped[Decimal] = mapped_column(stored_decimal(), nullable=False)

    discount_rate: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    amount: Mapped[Decimal] = mapped_column(
        stored_decimal(), nullable=False, default=Decimal("0")
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    order: Mapped[PurchaseOrder] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<OrderItem {self.line_number} {self.product_id}: "
            f"{self.received_quantity}/{self.ordered_quantity}>"
        )

    def ledger_line(self):
        from procurement_kernel.domain.ledger import LedgerLine

        return LedgerLine(
            order_item_id=self.id,
            ordered_quantity=self.ordered_quantity,
            received_quantity=self.received_quantity,
        )

    def to_dto(self):
        from procurement_kernel.domain.dtos import OrderItemSnapshot
        from procurement_kernel.domain.ledger import OrderItemStatus

        return OrderItemSnapshot(
            id=self.id,
            order_id=self.order_id,
            line_number=self.line_number,
            product_id=self.product_id,
            ordered_quantity=self.ordered_quantity,
            received_quantity=self.received_quantity,
            unit_price=self.unit_price,
            discount_rate=self.discount_rate,
            amount=self.amount,
            status=OrderItemStatus(self.status),
        )
