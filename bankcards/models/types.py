"""
Column types shared by the models.

Money:
  Amounts are exposed to Python as Decimal with exactly 2 fractional digits
  and stored as integer cents (BIGINT). Floating point never appears on the
  way in or out, on any backend; SQLite in particular has no exact decimal
  storage, so a plain Numeric column there would round-trip through float.
"""

from decimal import Decimal

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

CENT = Decimal("0.01")


class Money(TypeDecorator):
    """Decimal(…, 2) in Python, integer cents in the database."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if value != value.quantize(CENT):
            raise ValueError(f"Money values carry at most 2 decimal places, got {value}")
        return int(value.scaleb(2))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value).scaleb(-2)
