"""
Module: procurement_kernel.db.types
Responsibility: Storage types for quantity and money columns, and the
    column lengths shared by models and input checks.
Architecture position: Kernel > DB.  Imported by models/ and services/.
    MUST NOT import from models/, services/ or selectors/.

Invariants enforced:
    - Fixed-point storage: every quantity, price, rate and amount is stored
      exactly to DECIMAL_SCALE places on every backend.  PostgreSQL uses
      NUMERIC(38, 9).  SQLite has no exact decimal type (its NUMERIC
      affinity keeps only 15 significant digits), so values are stored
      there as fixed-width text whose string order equals numeric order.
    - CHECK constraints on decimal columns compare against decimal_literal()
      so their literals are rendered in the stored encoding.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext

from sqlalchemy import Numeric, String, column
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.elements import ColumnClause, ColumnElement
from sqlalchemy.types import TypeDecorator

# 38 digits total, 9 decimal places in storage.
# Currency rounding (2 places) is applied by round_money(), not by the column.
DECIMAL_PRECISION = 38
DECIMAL_SCALE = 9
INTEGER_DIGITS = DECIMAL_PRECISION - DECIMAL_SCALE

# SQLite text encoding: digits and the decimal point, plus "-" for negatives
DECIMAL_DIGITS_WIDTH = DECIMAL_PRECISION + 1
DECIMAL_TEXT_WIDTH = DECIMAL_DIGITS_WIDTH + 1

# Opaque references to collaborator-owned entities (product, supplier, warehouse)
REFERENCE_LENGTH = 100

# Document numbers (PO202401150001-style)
DOCUMENT_NUMBER_LENGTH = 50

REMARK_LENGTH = 200


class FixedDecimal(TypeDecorator):
    """
    Exact Decimal column: NUMERIC(38, 9) where the backend has it,
    order-preserving text on SQLite.

    Values are rounded half-up to DECIMAL_SCALE places on the way in and
    always come back as ``Decimal`` with exactly DECIMAL_SCALE places.

    SQLite encoding:
        0 <= x   zero-padded to INTEGER_DIGITS, e.g. ``000...0012.500000000``
        x < 0    ``-`` followed by the padded 10**INTEGER_DIGITS + x, so a
                 more negative value sorts lower and every negative sorts
                 below every non-negative
    """

    impl = String(DECIMAL_TEXT_WIDTH)
    cache_ok = True

    _quantum = Decimal(1).scaleb(-DECIMAL_SCALE)
    _limit = Decimal(10) ** INTEGER_DIGITS

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(DECIMAL_TEXT_WIDTH))
        return dialect.type_descriptor(Numeric(DECIMAL_PRECISION, DECIMAL_SCALE))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            value = Decimal(value)
        elif not isinstance(value, Decimal):
            raise TypeError(f"{type(value).__name__} is not a stored decimal; use Decimal")
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION + 1
            if abs(value) >= self._limit:
                raise ValueError(
                    f"{value} has more than {INTEGER_DIGITS} integer digits"
                )
            value = value.quantize(self._quantum, rounding=ROUND_HALF_UP)
            if dialect.name != "sqlite":
                return value
            if value < 0:
                return "-" + self._pad(self._limit + value)
            return self._pad(abs(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION + 1
            if dialect.name == "sqlite":
                if value.startswith("-"):
                    return Decimal(value[1:]) - self._limit
                return Decimal(value)
            return Decimal(value).quantize(self._quantum)

    @staticmethod
    def _pad(value: Decimal) -> str:
        return f"{value:0{DECIMAL_DIGITS_WIDTH}.{DECIMAL_SCALE}f}"


def stored_decimal() -> FixedDecimal:
    """Column type for every quantity, price, rate and amount."""
    return FixedDecimal()


def decimal_column(name: str) -> ColumnClause:
    """Typed column reference for CHECK constraints on a decimal column."""
    return column(name, stored_decimal())


class StoredDecimalLiteral(ColumnElement):
    """A decimal constant rendered in the stored encoding of the dialect."""

    inherit_cache = False

    def __init__(self, value: Decimal | int):
        self.value = Decimal(value)
        self.type = stored_decimal()


def decimal_literal(value: Decimal | int) -> StoredDecimalLiteral:
    return StoredDecimalLiteral(value)


@compiles(StoredDecimalLiteral)
def _render_decimal_literal(element, compiler, **kw):
    return str(element.type.process_bind_param(element.value, compiler.dialect))


@compiles(StoredDecimalLiteral, "sqlite")
def _render_sqlite_decimal_literal(element, compiler, **kw):
    return "'%s'" % element.type.process_bind_param(element.value, compiler.dialect)
