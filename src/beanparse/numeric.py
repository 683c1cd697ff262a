"""Number kinds the expression evaluator is generic over.

A number kind builds values from the digits of a literal and implements the
four arithmetic operations plus negation. The grammar never touches a
concrete numeric type; it hands digits and operators to whichever kind the
caller chose.

Example:
    >>> kind = DecimalNumber()
    >>> kind.add(kind.from_digits(False, "1", "5"), kind.from_digits(False, "2", ""))
    Decimal('3.5')
"""

from abc import ABC, abstractmethod
from decimal import Context, Decimal
from fractions import Fraction
from typing import Any


class NumberKind(ABC):
    """Arithmetic contract for amount values.

    Values must support ``==`` and ordering. ``div`` raises
    ``ZeroDivisionError`` when the divisor is zero.
    """

    name: str = ""

    @abstractmethod
    def from_digits(self, negative: bool, integer: str, fraction: str) -> Any:
        """Build a value from a sign and the literal's integer and fraction digits."""

    def add(self, left: Any, right: Any) -> Any:
        return left + right

    def sub(self, left: Any, right: Any) -> Any:
        return left - right

    def mul(self, left: Any, right: Any) -> Any:
        return left * right

    def div(self, left: Any, right: Any) -> Any:
        if right == 0:
            raise ZeroDivisionError("division by zero")
        return left / right

    def neg(self, value: Any) -> Any:
        return -value

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class DecimalNumber(NumberKind):
    """``decimal.Decimal`` values; arithmetic runs in a private context.

    Literals keep their written exponent, so ``1.50`` stays ``Decimal('1.50')``.
    """

    name = "decimal"

    def __init__(self, precision: int | None = None):
        self.precision = precision
        self.context = Context(prec=precision or 28)

    def from_digits(self, negative: bool, integer: str, fraction: str) -> Decimal:
        digits = tuple(int(d) for d in (integer + fraction) or "0")
        return Decimal((1 if negative else 0, digits, -len(fraction)))

    def add(self, left: Decimal, right: Decimal) -> Decimal:
        return self.context.add(left, right)

    def sub(self, left: Decimal, right: Decimal) -> Decimal:
        return self.context.subtract(left, right)

    def mul(self, left: Decimal, right: Decimal) -> Decimal:
        return self.context.multiply(left, right)

    def div(self, left: Decimal, right: Decimal) -> Decimal:
        if right == 0:
            raise ZeroDivisionError("division by zero")
        return self.context.divide(left, right)

    def neg(self, value: Decimal) -> Decimal:
        return self.context.minus(value)

    def __repr__(self) -> str:
        return f"DecimalNumber(precision={self.precision!r})"


class FloatNumber(NumberKind):
    """Binary floating point values."""

    name = "float"

    def from_digits(self, negative: bool, integer: str, fraction: str) -> float:
        value = float(f"{integer or '0'}.{fraction or '0'}")
        return -value if negative else value


class FractionNumber(NumberKind):
    """Exact rationals; division never rounds."""

    name = "fraction"

    def from_digits(self, negative: bool, integer: str, fraction: str) -> Fraction:
        value = Fraction(int(integer + fraction or "0"), 10 ** len(fraction))
        return -value if negative else value


NUMBER_KINDS: dict[str, type[NumberKind]] = {
    DecimalNumber.name: DecimalNumber,
    FloatNumber.name: FloatNumber,
    FractionNumber.name: FractionNumber,
}


def get_number_kind(name: str, precision: int | None = None) -> NumberKind:
    """Instantiate a number kind by its configuration name."""
    try:
        cls = NUMBER_KINDS[name]
    except KeyError:
        known = ", ".join(sorted(NUMBER_KINDS))
        raise ValueError(f"Unknown number kind {name!r} (expected one of: {known})") from None
    if cls is DecimalNumber:
        return DecimalNumber(precision)
    return cls()
