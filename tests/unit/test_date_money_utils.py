"""Unit tests for date and money helpers"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from lamf_servicing.utils.date_utils import add_months, days_from_now, months_between, start_of_month
from lamf_servicing.utils.money import as_decimal, format_inr, to_money


def test_add_months_clamps_short_months():
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


def test_months_between_ignores_day_of_month():
    assert months_between(date(2024, 1, 31), date(2024, 2, 1)) == 1
    assert months_between(date(2024, 1, 15), date(2025, 2, 11)) == 13
    assert months_between(date(2024, 1, 15), date(2024, 1, 31)) == 0


def test_start_of_month():
    assert start_of_month(date(2024, 7, 19)) == date(2024, 7, 1)


def test_days_from_now():
    now = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    assert days_from_now(3, now=now) == now + timedelta(days=3)


def test_as_decimal_avoids_float_artefacts():
    assert as_decimal(0.1) == Decimal("0.1")
    assert as_decimal("12.50") == Decimal("12.50")
    assert as_decimal(7) == Decimal("7")


def test_to_money_rounds_half_up():
    assert to_money(Decimal("10.005")) == Decimal("10.01")
    assert to_money(Decimal("10.004")) == Decimal("10.00")


@pytest.mark.parametrize(
    "amount, expected",
    [
        (Decimal("0"), "₹0"),
        (Decimal("999"), "₹999"),
        (Decimal("1000"), "₹1,000"),
        (Decimal("123456"), "₹1,23,456"),
        (Decimal("1234567.8"), "₹12,34,568"),
        (Decimal("-50000"), "-₹50,000"),
    ],
)
def test_format_inr_indian_grouping(amount, expected):
    assert format_inr(amount) == expected
