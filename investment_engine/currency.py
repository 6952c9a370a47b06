"""
Currency and Rounding Module

Currency codes with their display precision, Decimal coercion, and the
round-half-to-even policy applied to every monetary output. NEVER uses float
for monetary values.
"""

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation, getcontext
from enum import Enum
from typing import Union

# Set global decimal context for financial precision
getcontext().prec = 28

MONEY_PLACES = 2
HUNDRED = Decimal('100')
ZERO = Decimal('0')


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)
    EUR = ("EUR", 2)
    GBP = ("GBP", 2)

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Resolve a currency by its ISO code (case-insensitive)"""
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency: {code}")


def to_decimal(value: Union[Decimal, int, str, float]) -> Decimal:
    """
    Coerce a value to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1 instead of its binary expansion.
    NaN and infinities are rejected.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError):
            raise ValueError(f"Not a monetary value: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a monetary value: {value!r}")
    return result


def round_money(value: Decimal, places: int = MONEY_PLACES) -> Decimal:
    """Round a monetary output with banker's rounding (half to even)"""
    return to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Unrounded ``amount * percent / 100``"""
    return to_decimal(amount) * to_decimal(percent) / HUNDRED


def format_money(value: Decimal, currency: Currency = Currency.USD) -> str:
    """Format for display"""
    return f"{currency.code} {round_money(value, currency.precision):,.{currency.precision}f}"
