"""
Property-based tests for the ledger rules and the status resolver.

Random sequences of receipt deltas are driven through the pure domain
functions; after every step the ledger row must stay within
0 <= received <= ordered and the derived status must agree with the
pending quantities.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from procurement_kernel.domain.amounts import PricedLine, line_amount, order_subtotal
from procurement_kernel.domain.ledger import LedgerLine, received_after_apply
from procurement_kernel.domain.order_status import OrderStatus, StatusFlags, resolve_status
from procurement_kernel.exceptions import OverReceiptError

CONFIRMED = StatusFlags(confirmed=True)

quantities = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("10000"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)
prices = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=2)


@st.composite
def order_with_deltas(draw):
    """Ordered quantities plus a list of (line index, delta) attempts."""
    ordered = draw(st.lists(quantities, min_size=1, max_size=5))
    deltas = draw(
        st.lists(
            st.tuples(st.integers(min_value=0, max_value=len(ordered) - 1), quantities),
            max_size=25,
        )
    )
    return ordered, deltas


class TestLedgerProperties:
    @settings(max_examples=200)
    @given(order_with_deltas())
    def test_received_stays_within_ordered(self, case):
        ordered, deltas = case
        lines = [LedgerLine(uuid4(), qty, Decimal("0")) for qty in ordered]

        for index, delta in deltas:
            line = lines[index]
            before = line.received_quantity
            try:
                received = received_after_apply(line, delta)
            except OverReceiptError:
                # Rejection leaves the row untouched
                assert delta > line.ordered_quantity - before
                continue
            lines[index] = LedgerLine(line.order_item_id, line.ordered_quantity, received)

            for current in lines:
                assert Decimal("0") <= current.received_quantity <= current.ordered_quantity

            status = resolve_status(CONFIRMED, lines)
            pending = [current.pending_quantity for current in lines]
            if all(p == 0 for p in pending):
                assert status is OrderStatus.COMPLETED
            else:
                assert status is OrderStatus.PARTIAL

    @given(st.lists(quantities, min_size=1, max_size=8))
    def test_receiving_full_pending_completes_in_one_step(self, ordered):
        lines = [LedgerLine(uuid4(), qty, Decimal("0")) for qty in ordered]
        assert resolve_status(CONFIRMED, lines) is OrderStatus.CONFIRMED

        received = [
            LedgerLine(line.order_item_id, line.ordered_quantity,
                       received_after_apply(line, line.pending_quantity))
            for line in lines
        ]
        assert resolve_status(CONFIRMED, received) is OrderStatus.COMPLETED

    @given(quantities, quantities, quantities)
    def test_over_pending_always_rejected(self, ordered, received_part, extra):
        received = min(received_part, ordered)
        line = LedgerLine(uuid4(), ordered, received)
        request = line.pending_quantity + extra
        with pytest.raises(OverReceiptError) as exc_info:
            received_after_apply(line, request)
        assert exc_info.value.pending_quantity == line.pending_quantity

    @given(order_with_deltas(), st.booleans(), st.booleans())
    def test_resolution_is_idempotent(self, case, confirmed, cancelled):
        ordered, _ = case
        lines = [LedgerLine(uuid4(), qty, qty / 2) for qty in ordered]
        flags = StatusFlags(confirmed=confirmed, cancelled=cancelled)
        assert resolve_status(flags, lines) is resolve_status(flags, lines)


class TestAmountProperties:
    @given(st.lists(st.tuples(quantities, prices, rates), min_size=1, max_size=10))
    def test_subtotal_within_rounding_of_line_sum(self, raw):
        lines = [PricedLine(q, p, r) for q, p, r in raw]
        subtotal = order_subtotal(lines)
        per_line = sum(line_amount(l.quantity, l.unit_price, l.discount_rate) for l in lines)
        # Each rounded line is off by at most half a cent
        assert abs(subtotal - per_line) <= Decimal("0.005") * len(lines) + Decimal("0.005")

    @given(quantities, prices, rates)
    def test_discount_never_increases_amount(self, quantity, price, rate):
        assert line_amount(quantity, price, rate) <= line_amount(quantity, price)
