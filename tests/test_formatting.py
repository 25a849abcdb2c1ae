from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cierre_caja.formatting import (
    MAX_AMOUNT,
    format_currency_display,
    format_grouped_amount,
    format_signed_difference,
    parse_closing_date,
    parse_localized_amount,
    strip_non_digits,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("50000", 50000),
        ("50.000", 50000),
        ("$1.234.567", 1234567),
        (" 12 500 ", 12500),
        ("-1.500", 1500),
        ("", 0),
        ("abc", 0),
        (None, 0),
        (3000, 3000),
    ],
)
def test_parse_localized_amount(raw, expected):
    assert parse_localized_amount(raw) == expected


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0, "$0"),
        (950, "$950"),
        (50000, "$50.000"),
        (1234567, "$1.234.567"),
        (-10000, "-$10.000"),
    ],
)
def test_format_currency_display(amount, expected):
    assert format_currency_display(amount) == expected


@given(st.integers(min_value=0, max_value=MAX_AMOUNT))
def test_parse_reverses_display_after_stripping(amount):
    assert parse_localized_amount(strip_non_digits(format_currency_display(amount))) == amount


def test_signed_difference_marks_surplus_and_shortfall():
    assert format_signed_difference(5000) == "+$5.000"
    assert format_signed_difference(-10000) == "-$10.000"
    assert format_signed_difference(0) == "$0"


def test_grouped_amount_echoes_input_with_separators():
    assert format_grouped_amount("50000") == "50.000"
    assert format_grouped_amount("5.0000") == "50.000"
    assert format_grouped_amount("x") == ""
    assert format_grouped_amount("") == ""


@pytest.mark.parametrize("raw", ["1" * 5000, "$" + "9" * 20, "9.999.999.999.999"])
def test_oversized_amounts_are_capped(raw):
    assert parse_localized_amount(raw) == MAX_AMOUNT
    assert parse_localized_amount(format_grouped_amount(raw)) == MAX_AMOUNT


def test_leading_zeros_do_not_count_towards_the_cap():
    assert parse_localized_amount("0" * 5000 + "1500") == 1500
    assert format_grouped_amount("0" * 5000) == "0"


@given(st.text(alphabet="0123456789.$- ", max_size=600))
def test_parse_never_fails_and_stays_in_range(raw):
    assert 0 <= parse_localized_amount(raw) <= MAX_AMOUNT


def test_parse_closing_date_formats():
    assert parse_closing_date("2026-10-09") == date(2026, 10, 9)
    assert parse_closing_date("19/10/2026") == date(2026, 10, 19)
    assert parse_closing_date("09-10-2026") == date(2026, 10, 9)
    assert parse_closing_date("", default=date(2026, 1, 2)) == date(2026, 1, 2)
    assert parse_closing_date(None, default=date(2026, 1, 2)) == date(2026, 1, 2)


def test_parse_closing_date_rejects_garbage():
    with pytest.raises(ValueError):
        parse_closing_date("not a date")
