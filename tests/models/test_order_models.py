"""
ORM model tests for purchase orders and receipts.

Tests: structural constraints enforced by the database itself, DTO
round-trips and cascade behaviour.  Service-layer behaviour is tested
elsewhere.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from procurement_kernel.domain.order_status import OrderStatus
from procurement_kernel.models.purchase_order import OrderItem, PurchaseOrder
from procurement_kernel.models.purchase_receipt import ReceiptItem
from tests.factories import receive


def _order(actor_id, number="PO-TEST-1", **overrides) -> PurchaseOrder:
    fields = dict(
        order_number=number,
        supplier_id="SUP-001",
        order_date=date(2024, 3, 15),
        status=OrderStatus.DRAFT.value,
        currency="USD",
        subtotal=Decimal("0"),
        discount_amount=Decimal("0"),
        tax_amount=Decimal("0"),
        final_amount=Decimal("0"),
        created_by_id=actor_id,
    )
    fields.update(overrides)
    return PurchaseOrder(**fields)


def _item(actor_id, line_number=1, **overrides) -> OrderItem:
    fields = dict(
        line_number=line_number,
        product_id="SKU-A",
        ordered_quantity=Decimal("10"),
        received_quantity=Decimal("0"),
        unit_price=Decimal("1"),
        discount_rate=Decimal("0"),
        amount=Decimal("10"),
        status="pending",
        created_by_id=actor_id,
    )
    fields.update(overrides)
    return OrderItem(**fields)


class TestOrderConstraints:
    def test_order_number_unique(self, session, test_actor_id):
        session.add(_order(test_actor_id))
        session.flush()
        session.add(_order(test_actor_id))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_received_cannot_exceed_ordered(self, session, test_actor_id):
        order = _order(test_actor_id)
        order.items.append(_item(test_actor_id, received_quantity=Decimal("11")))
        session.add(order)
        with pytest.raises(IntegrityError):
            session.flush()

    def test_received_cannot_be_negative(self, session, test_actor_id):
        order = _order(test_actor_id)
        order.items.append(_item(test_actor_id, received_quantity=Decimal("-1")))
        session.add(order)
        with pytest.raises(IntegrityError):
            session.flush()

    def test_line_numbers_unique_per_order(self, session, test_actor_id):
        order = _order(test_actor_id)
        order.items.extend([_item(test_actor_id, 1), _item(test_actor_id, 1)])
        session.add(order)
        with pytest.raises(IntegrityError):
            session.flush()

    def test_negative_discount_amount(self, session, test_actor_id):
        session.add(_order(test_actor_id, discount_amount=Decimal("-5")))
        with pytest.raises(IntegrityError):
            session.flush()


class TestOrderModel:
    def test_to_dto_round_trip(self, session, test_actor_id):
        order = _order(test_actor_id)
        order.items.append(_item(test_actor_id, received_quantity=Decimal("4")))
        session.add(order)
        session.flush()

        loaded = session.execute(
            select(PurchaseOrder).where(PurchaseOrder.id == order.id)
        ).scalar_one()
        dto = loaded.to_dto()

        assert dto.order_number == "PO-TEST-1"
        assert dto.status is OrderStatus.DRAFT
        assert dto.items[0].pending_quantity == Decimal("6")

    def test_ledger_lines_and_next_line_number(self, test_actor_id):
        order = _order(test_actor_id)
        order.items.extend([_item(test_actor_id, 1), _item(test_actor_id, 2)])
        assert order.next_line_number() == 3
        assert [line.ordered_quantity for line in order.ledger_lines()] == [
            Decimal("10"), Decimal("10"),
        ]

    def test_status_flags_follow_timestamps(self, test_actor_id, deterministic_clock):
        order = _order(test_actor_id)
        assert not order.status_flags().confirmed
        order.confirmed_at = deterministic_clock.now()
        assert order.status_flags().confirmed
        assert not order.status_flags().cancelled


class TestReceiptCascade:
    def test_deleting_receipt_deletes_items(
        self, session, confirmed_order, reconciliation, test_actor_id
    ):
        order = confirmed_order()
        receipt_id = reconciliation.create_receipt(
            order.id, "J. Doe", [receive(order.items[0].id, 1)],
            warehouse_id="WH-1", actor_id=test_actor_id,
        )
        reconciliation.delete_receipt(receipt_id, actor_id=test_actor_id)

        remaining = session.execute(
            select(ReceiptItem).where(ReceiptItem.receipt_id == receipt_id)
        ).scalars().all()
        assert remaining == []

    def test_unknown_order_reference_rejected(self, session, test_actor_id):
        session.add(
            ReceiptItem(
                receipt_id=uuid4(),
                line_number=1,
                order_item_id=uuid4(),
                product_id="SKU-A",
                quantity=Decimal("1"),
                unit_price=Decimal("1"),
                amount=Decimal("1"),
                created_by_id=test_actor_id,
            )
        )
        with pytest.raises(IntegrityError):
            session.flush()
