"""
ReceiptBuilder validation: check order, merging and draft totals.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from procurement_kernel.domain.amounts import AmountCalculator
from procurement_kernel.exceptions import (
    CrossOrderReferenceError,
    EmptyReceiptError,
    InvalidQuantityError,
    InvalidUnitPriceError,
    OrderNotFoundError,
    OrderNotReceivableError,
    OverReceiptError,
)
from procurement_kernel.services.receipt_builder import ReceiptBuilder
from tests.factories import item, receive


@pytest.fixture
def builder(session) -> ReceiptBuilder:
    return ReceiptBuilder(session)


class TestValidDrafts:
    def test_draft_lines_and_totals(self, builder, confirmed_order):
        order = confirmed_order([item("SKU-A", 10, "2.50"), item("SKU-B", 4, 3)])
        first, second = order.items

        draft = builder.validate(order.id, [receive(first.id, 4), receive(second.id, 1, "2.75")])

        assert draft.order_id == order.id
        assert draft.supplier_id == "SUP-001"
        assert [line.order_item_id for line in draft.lines] == [first.id, second.id]
        assert draft.lines[0].product_id == "SKU-A"
        assert draft.lines[0].amount == Decimal("10.00")
        assert draft.lines[1].amount == Decimal("2.75")
        assert draft.total_quantity == Decimal("5")
        assert draft.total_amount == Decimal("12.75")

    def test_exact_pending_is_accepted(self, builder, confirmed_order):
        order = confirmed_order([item("SKU-A", "7.5", 1)])
        draft = builder.validate(order.id, [receive(order.items[0].id, "7.5")])
        assert draft.total_quantity == Decimal("7.5")

    def test_duplicates_merged_first_price_wins(self, builder, confirmed_order):
        order = confirmed_order([item("SKU-A", 10, 5)])
        line = order.items[0]

        draft = builder.validate(order.id, [receive(line.id, 3, 4), receive(line.id, 2, 9)])

        assert len(draft.lines) == 1
        assert draft.lines[0].quantity == Decimal("5")
        assert draft.lines[0].unit_price == Decimal("4")
        assert draft.total_amount == Decimal("20.00")

    def test_custom_precision(self, session, confirmed_order):
        builder = ReceiptBuilder(session, AmountCalculator(decimal_places=0))
        order = confirmed_order([item("SKU-A", 10, "2.50")])
        draft = builder.validate(order.id, [receive(order.items[0].id, 3)])
        assert draft.total_amount == Decimal("8")

    def test_validation_does_not_touch_ledger(self, builder, confirmed_order, order_selector):
        order = confirmed_order()
        builder.validate(order.id, [receive(order.items[0].id, 50)])
        assert order_selector.get_order(order.id).items[0].received_quantity == 0


class TestRejections:
    def test_unknown_order(self, builder):
        with pytest.raises(OrderNotFoundError):
            builder.validate(uuid4(), [receive(uuid4(), 1)])

    def test_item_from_another_order(self, builder, confirmed_order):
        order = confirmed_order()
        other = confirmed_order()
        with pytest.raises(CrossOrderReferenceError) as exc_info:
            builder.validate(order.id, [receive(other.items[0].id, 1)])
        assert exc_info.value.order_item_id == str(other.items[0].id)

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_quantity(self, builder, confirmed_order, quantity):
        order = confirmed_order()
        with pytest.raises(InvalidQuantityError):
            builder.validate(order.id, [receive(order.items[0].id, quantity)])

    @pytest.mark.parametrize("price", ["0", "-0.01"])
    def test_non_positive_price(self, builder, confirmed_order, price):
        order = confirmed_order()
        with pytest.raises(InvalidUnitPriceError):
            builder.validate(order.id, [receive(order.items[0].id, 1, price)])

    def test_over_pending(self, builder, confirmed_order, captured_logs):
        order = confirmed_order([item("SKU-A", 10, 1)])
        line = order.items[0]

        with pytest.raises(OverReceiptError) as exc_info:
            builder.validate(order.id, [receive(line.id, "10.001")])

        assert exc_info.value.pending_quantity == Decimal("10")
        warnings = [r for r in captured_logs() if r["message"] == "receipt_over_receipt_rejected"]
        assert warnings[0]["order_item_id"] == str(line.id)

    def test_empty_proposal(self, builder, confirmed_order):
        order = confirmed_order()
        with pytest.raises(EmptyReceiptError):
            builder.validate(order.id, [])

    def test_draft_order(self, builder, create_order):
        order = create_order()
        with pytest.raises(OrderNotReceivableError) as exc_info:
            builder.validate(order.id, [receive(order.items[0].id, 1)])
        assert exc_info.value.status == "draft"


class TestCheckOrder:
    def test_cross_reference_reported_before_bad_quantity(self, builder, confirmed_order):
        order = confirmed_order()
        other = confirmed_order()
        with pytest.raises(CrossOrderReferenceError):
            builder.validate(
                order.id, [receive(order.items[0].id, 0), receive(other.items[0].id, 1)]
            )

    def test_cross_reference_on_last_line_reported_first(self, builder, confirmed_order):
        order = confirmed_order([item("SKU-A", 5, 1), item("SKU-B", 5, 1)])
        first, second = order.items
        other = confirmed_order()
        with pytest.raises(CrossOrderReferenceError) as exc_info:
            builder.validate(
                order.id,
                [
                    receive(first.id, 99),
                    receive(second.id, 1, unit_price=0),
                    receive(other.items[0].id, 1),
                ],
            )
        assert exc_info.value.order_item_id == str(other.items[0].id)

    def test_bad_quantity_reported_before_bad_price(self, builder, confirmed_order):
        order = confirmed_order([item("SKU-A", 5, 1), item("SKU-B", 5, 1)])
        first, second = order.items
        with pytest.raises(InvalidQuantityError):
            builder.validate(
                order.id, [receive(first.id, 1, unit_price=0), receive(second.id, -1)]
            )

    def test_bad_quantity_reported_before_over_receipt(self, builder, confirmed_order):
        order = confirmed_order([item("SKU-A", 5, 1), item("SKU-B", 5, 1)])
        first, second = order.items
        with pytest.raises(InvalidQuantityError):
            builder.validate(order.id, [receive(first.id, 99), receive(second.id, 0)])

    def test_over_receipt_reported_before_status(self, builder, create_order):
        order = create_order([item("SKU-A", 5, 1)])
        with pytest.raises(OverReceiptError):
            builder.validate(order.id, [receive(order.items[0].id, 6)])

    def test_empty_reported_before_status(self, builder, create_order):
        order = create_order()
        with pytest.raises(EmptyReceiptError):
            builder.validate(order.id, [])
