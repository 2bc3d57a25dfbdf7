"""ReceiptSelector: lookups, filters, search and statistics."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from procurement_kernel.domain.dtos import ReceiptStatus
from tests.factories import item, receive


@pytest.fixture
def order(confirmed_order):
    return confirmed_order([item("SKU-A", 100, 2)])


@pytest.fixture
def make_receipt(order, reconciliation, test_actor_id):
    def _make(quantity, *, confirm=False, **kwargs):
        kwargs.setdefault("warehouse_id", "WH-1")
        receiver = kwargs.pop("receiver", "J. Doe")
        receipt_id = reconciliation.create_receipt(
            order.id, receiver, [receive(order.items[0].id, quantity)],
            actor_id=test_actor_id, **kwargs,
        )
        if confirm:
            reconciliation.confirm_receipt(receipt_id, actor_id=test_actor_id)
        return receipt_id

    return _make


class TestLookups:
    def test_get_receipt(self, make_receipt, receipt_selector):
        receipt_id = make_receipt(5)
        receipt = receipt_selector.get_receipt(receipt_id)
        assert receipt.id == receipt_id
        assert receipt_selector.get_receipt(uuid4()) is None

    def test_get_by_number(self, make_receipt, receipt_selector):
        receipt_id = make_receipt(5)
        number = receipt_selector.get_receipt(receipt_id).receipt_number
        assert receipt_selector.get_receipt_by_number(number).id == receipt_id
        assert receipt_selector.get_receipt_by_number("PR-missing") is None

    def test_receipts_for_order(self, order, make_receipt, receipt_selector):
        draft = make_receipt(5)
        confirmed = make_receipt(10, confirm=True)

        all_receipts = receipt_selector.receipts_for_order(order.id)
        assert [r.id for r in all_receipts] == [draft, confirmed]

        only_confirmed = receipt_selector.receipts_for_order(order.id, ReceiptStatus.CONFIRMED)
        assert [r.id for r in only_confirmed] == [confirmed]


class TestFindAndSearch:
    def test_find_by_warehouse_and_status(self, make_receipt, receipt_selector):
        north = make_receipt(1, warehouse_id="NORTH", confirm=True)
        south = make_receipt(1, warehouse_id="SOUTH")

        assert [r.id for r in receipt_selector.find_receipts(warehouse_id="NORTH")] == [north]
        assert [r.id for r in receipt_selector.find_receipts(status=ReceiptStatus.DRAFT)] == [south]

    def test_find_by_date_range(self, make_receipt, receipt_selector):
        early = make_receipt(1, receipt_date=date(2024, 3, 1))
        make_receipt(1, receipt_date=date(2024, 3, 20))

        found = receipt_selector.find_receipts(start=date(2024, 2, 1), end=date(2024, 3, 1))
        assert [r.id for r in found] == [early]

    def test_find_by_supplier(self, make_receipt, receipt_selector):
        receipt_id = make_receipt(1)
        assert [r.id for r in receipt_selector.find_receipts(supplier_id="SUP-001")] == [receipt_id]
        assert receipt_selector.find_receipts(supplier_id="OTHER") == []

    def test_search(self, make_receipt, receipt_selector):
        by_receiver = make_receipt(1, receiver="Maria Lopez")
        by_remark = make_receipt(1, remark="pallet damaged")

        assert [r.id for r in receipt_selector.search_receipts("lopez")] == [by_receiver]
        assert [r.id for r in receipt_selector.search_receipts("DAMAGED")] == [by_remark]
        assert len(receipt_selector.search_receipts("")) == 2


class TestStatistics:
    def test_receipt_stats(self, make_receipt, receipt_selector):
        make_receipt(10, confirm=True)
        make_receipt(5, confirm=True)
        make_receipt(3)

        stats = receipt_selector.receipt_stats()

        assert stats.total_receipts == 3
        assert stats.by_status == {"draft": 1, "confirmed": 2}
        assert stats.total_quantity == Decimal("18")
        assert stats.total_value == Decimal("36.00")
        assert stats.average_value == Decimal("12.00")

    def test_receipts_by_month(self, make_receipt, receipt_selector):
        make_receipt(4, receipt_date=date(2024, 2, 1))
        make_receipt(6, receipt_date=date(2024, 2, 28))
        make_receipt(1, receipt_date=date(2025, 2, 1))

        months = receipt_selector.receipts_by_month(2024)

        assert len(months) == 12
        assert months[1].receipt_count == 2
        assert months[1].total_quantity == Decimal("10")
        assert months[1].total_value == Decimal("20.00")
        assert months[0].receipt_count == 0
