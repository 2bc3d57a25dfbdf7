"""
Module: procurement_kernel.domain.money
Responsibility: Decimal coercion and the single sanctioned rounding function
    for quantities and monetary amounts.
Architecture position: Kernel > Domain.  Pure, stdlib only.  Imported by
    domain/, services/ and selectors/.

Invariants enforced:
    DECIMAL_MONEY -- No floats anywhere in the kernel.  to_decimal() refuses
        float input outright; round_money() is the ONLY sanctioned rounding
        function for currency values.

Failure modes:
    - TypeError when a float reaches to_decimal().
    - decimal.InvalidOperation on a non-numeric string.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a quantity or amount to Decimal.

    Preconditions: value is a Decimal, int or numeric string.
    Postconditions: Returns an unrounded Decimal.

    Raises:
        TypeError: If value is a float (or bool).
        decimal.InvalidOperation: If a string is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Quantities and amounts must not be {type(value).__name__}: {value!r}"
        )
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def money_from_str(value: str) -> Decimal:
    """
    Create a Money value from string.

    Callers apply rounding via round_money() when needed.
    """
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    Intermediate products are computed at full precision and rounded
    exactly once, here.

    Example:
        round_money(Decimal("10.555")) -> Decimal("10.56")
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)
