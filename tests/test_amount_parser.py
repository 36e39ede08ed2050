"""Tests for amount parsing."""

from decimal import Decimal

import pytest

from payledger.utils.amount_parser import parse_amount


@pytest.mark.parametrize(
    "text, expected",
    [
        ("123.45", Decimal("123.45")),
        ("¥1,234.56", Decimal("1234.56")),
        ("￥88", Decimal("88")),
        ("-12.00", Decimal("-12.00")),
        ("(45.10)", Decimal("-45.10")),
        ("1，000.00", Decimal("1000.00")),
        ("  $7.5 ", Decimal("7.5")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "NaN", "Infinity", None])
def test_parse_amount_invalid(text):
    with pytest.raises(ValueError):
        parse_amount(text)
