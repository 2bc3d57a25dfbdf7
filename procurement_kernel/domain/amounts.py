"""
Amount Calculator -- line, order and receipt totals.

Responsibility:
    Computes every derived monetary figure of the procurement domain:
    order line amounts, order subtotal and final amount, receipt line
    amounts and receipt totals.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Stateless; safe
    to share across threads.

Invariants enforced:
    DECIMAL_MONEY -- inputs are Decimal, products are computed at full
        precision and rounded exactly once through ``round_money``.

Failure modes:
    - InvalidDiscountRateError for a discount rate outside [0, 1].
    - NegativeAdjustmentError for a negative order discount or tax amount.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from procurement_kernel.domain.money import MONEY_DECIMAL_PLACES, round_money
from procurement_kernel.exceptions import (
    InvalidDiscountRateError,
    NegativeAdjustmentError,
)

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass(frozen=True)
class PricedLine:
    """An order line as the calculator sees it."""

    quantity: Decimal
    unit_price: Decimal
    discount_rate: Decimal = ZERO


@dataclass(frozen=True)
class ReceiptLine:
    """A receipt line as the calculator sees it."""

    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    final_amount: Decimal


@dataclass(frozen=True)
class ReceiptTotals:
    total_quantity: Decimal
    total_amount: Decimal


class AmountCalculator:
    """
    Stateless calculator for procurement amounts.

    Contract:
        Every public method is a pure function of its arguments.

    Guarantees:
        - Results are rounded to ``decimal_places`` with ROUND_HALF_UP.
        - ``order_subtotal`` equals the rounded sum of unrounded line
          amounts, so it does not drift with the number of lines.
    """

    def __init__(self, decimal_places: int = MONEY_DECIMAL_PLACES):
        self.decimal_places = decimal_places

    def _round(self, value: Decimal) -> Decimal:
        return round_money(value, self.decimal_places)

    @staticmethod
    def _check_discount_rate(discount_rate: Decimal) -> None:
        if discount_rate < ZERO or discount_rate > ONE:
            raise InvalidDiscountRateError(discount_rate)

    def _raw_line_amount(self, line: PricedLine) -> Decimal:
        self._check_discount_rate(line.discount_rate)
        return line.quantity * line.unit_price * (ONE - line.discount_rate)

    def line_amount(
        self,
        quantity: Decimal,
        unit_price: Decimal,
        discount_rate: Decimal = ZERO,
    ) -> Decimal:
        """quantity x unit_price x (1 - discount_rate), rounded."""
        return self._round(
            self._raw_line_amount(PricedLine(quantity, unit_price, discount_rate))
        )

    def order_subtotal(self, lines: Iterable[PricedLine]) -> Decimal:
        return self._round(sum((self._raw_line_amount(l) for l in lines), ZERO))

    def order_final_amount(
        self,
        subtotal: Decimal,
        discount_amount: Decimal,
        tax_amount: Decimal,
    ) -> Decimal:
        """
        subtotal - discount_amount + tax_amount, rounded.

        The result may be negative if the discount exceeds the subtotal;
        only the two adjustments themselves must be non-negative.
        """
        if discount_amount < ZERO:
            raise NegativeAdjustmentError("discount_amount", discount_amount)
        if tax_amount < ZERO:
            raise NegativeAdjustmentError("tax_amount", tax_amount)
        return self._round(subtotal - discount_amount + tax_amount)

    def order_totals(
        self,
        lines: Iterable[PricedLine],
        discount_amount: Decimal = ZERO,
        tax_amount: Decimal = ZERO,
    ) -> OrderTotals:
        subtotal = self.order_subtotal(lines)
        final = self.order_final_amount(subtotal, discount_amount, tax_amount)
        return OrderTotals(
            subtotal=subtotal,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            final_amount=final,
        )

    def receipt_line_amount(self, quantity: Decimal, unit_price: Decimal) -> Decimal:
        return self._round(quantity * unit_price)

    def receipt_totals(self, lines: Iterable[ReceiptLine]) -> ReceiptTotals:
        total_quantity = ZERO
        raw_amount = ZERO
        for line in lines:
            total_quantity += line.quantity
            raw_amount += line.quantity * line.unit_price
        return ReceiptTotals(
            total_quantity=total_quantity,
            total_amount=self._round(raw_amount),
        )


_default = AmountCalculator()

line_amount = _default.line_amount
order_subtotal = _default.order_subtotal
order_final_amount = _default.order_final_amount
order_totals = _default.order_totals
receipt_line_amount = _default.receipt_line_amount
receipt_totals = _default.receipt_totals
