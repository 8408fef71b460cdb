"""
Unit tests for the pricing calculator. No database involved.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from doujindesk.services.pricing import (
    DiscountFlags,
    DiscountPolicy,
    calculate_ticket_price,
    resolve_discount,
    is_early_bird,
)

TODAY = date(2026, 5, 1)


def ticket(**overrides):
    values = dict(
        price_idr=150000,
        price_usd=Decimal("10.00"),
        early_bird_price_idr=None,
        early_bird_price_usd=None,
        early_bird_end_date=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


VIP = ticket(price_idr=300000, price_usd=Decimal("20.00"))
EARLY = ticket(
    early_bird_price_idr=120000,
    early_bird_price_usd=Decimal("8.00"),
    early_bird_end_date=date(2026, 6, 1),
)


def test_no_discount_is_unit_price_times_quantity():
    quote = calculate_ticket_price(ticket(), 3, today=TODAY)
    assert quote.price_idr == 450000
    assert quote.price_usd == Decimal("30.00")
    assert quote.discount_applied is None


def test_early_bird_price_used_inside_window():
    quote = calculate_ticket_price(EARLY, 2, today=TODAY)
    assert quote.price_idr == 240000
    assert quote.price_usd == Decimal("16.00")


def test_early_bird_end_date_is_inclusive():
    assert is_early_bird(EARLY, date(2026, 6, 1))
    assert not is_early_bird(EARLY, date(2026, 6, 2))


def test_standard_price_after_early_bird():
    quote = calculate_ticket_price(EARLY, 1, today=date(2026, 7, 1))
    assert quote.price_idr == 150000


def test_early_bird_needs_both_prices():
    half = ticket(early_bird_price_idr=100000, early_bird_end_date=date(2026, 6, 1))
    assert calculate_ticket_price(half, 1, today=TODAY).price_idr == 150000


def test_vip_bulk_with_pwd_prefers_pwd():
    """5 VIP passes for a PWD attendee: 20% beats the 10% bulk discount."""
    quote = calculate_ticket_price(VIP, 5, DiscountFlags(is_pwd=True), today=TODAY)
    assert quote.price_idr == 1_200_000
    assert quote.price_usd == Decimal("80.00")
    assert quote.discount_applied.type == "pwd"
    assert quote.discount_applied.percentage == 20
    assert quote.discount_applied.amount == Decimal("300000")


def test_child_discount_requires_age_under_limit():
    flags = DiscountFlags(is_child=True, age=8)
    quote = calculate_ticket_price(ticket(), 1, flags, today=TODAY)
    assert quote.discount_applied.type == "child"
    assert quote.price_idr == 75000

    too_old = calculate_ticket_price(ticket(), 1, DiscountFlags(is_child=True, age=12), today=TODAY)
    assert too_old.discount_applied is None

    no_age = calculate_ticket_price(ticket(), 1, DiscountFlags(is_child=True), today=TODAY)
    assert no_age.discount_applied is None


def test_child_beats_pwd_and_bulk():
    flags = DiscountFlags(is_pwd=True, is_child=True, age=5)
    quote = calculate_ticket_price(ticket(), 6, flags, today=TODAY)
    assert quote.discount_applied.type == "child"
    assert quote.price_idr == 450000


def test_bulk_discount_from_five_tickets():
    assert calculate_ticket_price(ticket(), 4, today=TODAY).discount_applied is None
    quote = calculate_ticket_price(ticket(), 5, today=TODAY)
    assert quote.discount_applied.type == "bulk"
    assert quote.price_idr == 675000


def test_discount_amount_reported_in_display_currency():
    quote = calculate_ticket_price(VIP, 1, DiscountFlags(is_pwd=True), currency="USD", today=TODAY)
    assert quote.discount_applied.amount == Decimal("4.00")


def test_tie_prefers_pwd_over_bulk():
    policy = DiscountPolicy(pwd_percent=10, bulk_percent=10)
    assert resolve_discount(5, DiscountFlags(is_pwd=True), policy) == ("pwd", 10)


def test_rounding_half_up():
    odd = ticket(price_idr=12345, price_usd=Decimal("0.25"))
    quote = calculate_ticket_price(odd, 1, DiscountFlags(is_pwd=True), today=TODAY)
    # 12345 * 0.8 = 9876.0, 0.25 * 0.8 = 0.20
    assert quote.price_idr == 9876
    assert quote.price_usd == Decimal("0.20")

    child = calculate_ticket_price(ticket(price_idr=101, price_usd=Decimal("0.05")), 1,
                                   DiscountFlags(is_child=True, age=3), today=TODAY)
    # 50.5 -> 51, 0.025 -> 0.03
    assert child.price_idr == 51
    assert child.price_usd == Decimal("0.03")


def test_custom_policy_percentages():
    policy = DiscountPolicy(pwd_percent=30)
    quote = calculate_ticket_price(VIP, 1, DiscountFlags(is_pwd=True), policy=policy, today=TODAY)
    assert quote.price_idr == 210000


@pytest.mark.parametrize("quantity", [0, -1])
def test_rejects_non_positive_quantity(quantity):
    with pytest.raises(ValueError):
        calculate_ticket_price(ticket(), quantity, today=TODAY)


def test_rejects_unknown_currency():
    with pytest.raises(ValueError):
        calculate_ticket_price(ticket(), 1, currency="EUR", today=TODAY)
