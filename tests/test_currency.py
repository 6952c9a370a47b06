"""
Test suite for currency and rounding helpers
"""

import pytest
from decimal import Decimal

from investment_engine.currency import (
    Currency, format_money, percent_of, round_money, to_decimal
)


class TestToDecimal:
    """Coercion of inputs to Decimal"""

    @pytest.mark.parametrize("value,expected", [
        ("100.50", Decimal("100.50")),
        (42, Decimal("42")),
        (0.1, Decimal("0.1")),
        (Decimal("7.25"), Decimal("7.25")),
    ])
    def test_valid_values(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", [
        "abc", None, True, [1], "NaN", "-Infinity", Decimal("NaN"), Decimal("sNaN"), float("inf"),
    ])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError, match="Not a monetary value"):
            to_decimal(value)


class TestRounding:
    """Half-to-even rounding of monetary outputs"""

    @pytest.mark.parametrize("value,expected", [
        ("0.125", "0.12"),
        ("0.135", "0.14"),
        ("2.675", "2.68"),
        ("2.665", "2.66"),
        ("10", "10.00"),
    ])
    def test_round_money(self, value, expected):
        assert round_money(Decimal(value)) == Decimal(expected)

    def test_percent_of_is_unrounded(self):
        assert percent_of(Decimal("1.25"), Decimal("0.5")) == Decimal("0.00625")


class TestCurrency:
    """Currency codes"""

    def test_from_code(self):
        assert Currency.from_code("usd") is Currency.USD
        assert Currency.EUR.precision == 2

    def test_unknown_code(self):
        with pytest.raises(ValueError, match="Unsupported currency"):
            Currency.from_code("XYZ")

    def test_format_money(self):
        assert format_money(Decimal("1234.5")) == "USD 1,234.50"
