"""
Pure ledger rules: pending quantity, line status, apply / reverse deltas.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from procurement_kernel.domain.ledger import (
    LedgerLine,
    OrderItemStatus,
    item_status,
    pending_quantity,
    received_after_apply,
    received_after_reverse,
)
from procurement_kernel.exceptions import (
    InvalidQuantityError,
    InvariantViolation,
    OverReceiptError,
)


def _line(ordered="100", received="0") -> LedgerLine:
    return LedgerLine(uuid4(), Decimal(ordered), Decimal(received))


class TestPendingQuantity:
    def test_ordered_minus_received(self):
        assert pending_quantity(Decimal("100"), Decimal("40")) == Decimal("60")

    def test_fully_received(self):
        assert _line("5", "5").pending_quantity == Decimal("0")

    def test_over_received_row_is_corruption(self):
        line = _line("10", "11")
        with pytest.raises(InvariantViolation) as exc_info:
            line.pending_quantity
        assert exc_info.value.invariant == "received_within_ordered"
        assert exc_info.value.entity_id == str(line.order_item_id)

    def test_negative_received_is_corruption(self):
        with pytest.raises(InvariantViolation):
            pending_quantity(Decimal("10"), Decimal("-1"))


class TestItemStatus:
    @pytest.mark.parametrize(
        "ordered, received, expected",
        [
            ("10", "0", OrderItemStatus.PENDING),
            ("10", "0.5", OrderItemStatus.PARTIAL),
            ("10", "9.999", OrderItemStatus.PARTIAL),
            ("10", "10", OrderItemStatus.COMPLETED),
        ],
    )
    def test_status(self, ordered, received, expected):
        assert item_status(Decimal(ordered), Decimal(received)) is expected
        assert _line(ordered, received).status is expected


class TestApply:
    def test_apply_within_pending(self):
        assert received_after_apply(_line("100", "40"), Decimal("60")) == Decimal("100")

    def test_apply_fractional(self):
        assert received_after_apply(_line("2.5", "1.25"), Decimal("0.75")) == Decimal("2.00")

    def test_over_receipt(self):
        line = _line("100", "40")
        with pytest.raises(OverReceiptError) as exc_info:
            received_after_apply(line, Decimal("61"))
        err = exc_info.value
        assert err.order_item_id == str(line.order_item_id)
        assert err.requested_quantity == Decimal("61")
        assert err.pending_quantity == Decimal("60")
        assert "only 60 remaining" in str(err)

    def test_over_receipt_when_nothing_pending(self):
        with pytest.raises(OverReceiptError):
            received_after_apply(_line("100", "100"), Decimal("10"))

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_delta(self, quantity):
        with pytest.raises(InvalidQuantityError):
            received_after_apply(_line(), Decimal(quantity))


class TestReverse:
    def test_reverse(self):
        assert received_after_reverse(_line("100", "40"), Decimal("15")) == Decimal("25")

    def test_reverse_to_zero(self):
        assert received_after_reverse(_line("100", "40"), Decimal("40")) == Decimal("0")

    def test_reverse_below_zero_is_corruption(self):
        with pytest.raises(InvariantViolation) as exc_info:
            received_after_reverse(_line("100", "40"), Decimal("41"))
        assert "would go negative" in exc_info.value.detail

    def test_reverse_on_corrupt_row(self):
        with pytest.raises(InvariantViolation):
            received_after_reverse(_line("10", "12"), Decimal("1"))

    def test_non_positive_delta(self):
        with pytest.raises(InvalidQuantityError):
            received_after_reverse(_line("100", "40"), Decimal("0"))
