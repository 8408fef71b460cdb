"""
Ticket pricing calculator.

PRICING RULES
=============

Base price:
  The early-bird price is used while today <= early_bird_end_date (the end
  date itself is still early bird) and both early-bird prices are set.
  Otherwise the standard price applies.

Subtotal:
  unit price x quantity, computed independently for IDR and USD.

Discounts (never stacked):
  - PWD (person with disability)       20%
  - child, flagged AND age below 12    50%
  - bulk, quantity >= 5                10%
  The single highest percentage wins. On a tie the earlier entry in the list
  above wins (PWD, then child, then bulk).

Rounding:
  IDR to the whole rupiah, USD to the cent, both half-up.

This module has no database or HTTP knowledge. It takes anything shaped like
a ticket type (the ORM model in production, plain objects in tests).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from doujindesk.core.config import Settings

IDR_STEP = Decimal("1")
USD_STEP = Decimal("0.01")
CURRENCIES = ("IDR", "USD")


@dataclass(frozen=True)
class DiscountFlags:
    is_pwd: bool = False
    is_child: bool = False
    age: Optional[int] = None


@dataclass(frozen=True)
class DiscountPolicy:
    pwd_percent: int = 20
    child_percent: int = 50
    child_age_limit: int = 12
    bulk_percent: int = 10
    bulk_min_quantity: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiscountPolicy":
        return cls(
            pwd_percent=settings.PWD_DISCOUNT_PERCENT,
            child_percent=settings.CHILD_DISCOUNT_PERCENT,
            child_age_limit=settings.CHILD_AGE_LIMIT,
            bulk_percent=settings.BULK_DISCOUNT_PERCENT,
            bulk_min_quantity=settings.BULK_MIN_QUANTITY,
        )


@dataclass(frozen=True)
class AppliedDiscount:
    type: str
    amount: Decimal
    percentage: int


@dataclass(frozen=True)
class PriceQuote:
    price_idr: int
    price_usd: Decimal
    discount_applied: Optional[AppliedDiscount] = None

    def total_in(self, currency: str) -> Decimal:
        return Decimal(self.price_idr) if currency == "IDR" else self.price_usd


def _round(amount: Decimal, currency: str) -> Decimal:
    step = IDR_STEP if currency == "IDR" else USD_STEP
    return amount.quantize(step, rounding=ROUND_HALF_UP)


def _to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def is_early_bird(ticket_type, today: date) -> bool:
    end = ticket_type.early_bird_end_date
    return (
        end is not None
        and today <= end
        and ticket_type.early_bird_price_idr is not None
        and ticket_type.early_bird_price_usd is not None
    )


def unit_prices(ticket_type, today: date) -> tuple[Decimal, Decimal]:
    """Return the (IDR, USD) per-ticket price in effect on `today`."""
    if is_early_bird(ticket_type, today):
        return (
            _to_decimal(ticket_type.early_bird_price_idr),
            _to_decimal(ticket_type.early_bird_price_usd),
        )
    return _to_decimal(ticket_type.price_idr), _to_decimal(ticket_type.price_usd)


def resolve_discount(
    quantity: int,
    flags: DiscountFlags,
    policy: DiscountPolicy,
) -> Optional[tuple[str, int]]:
    """Pick the single applicable discount with the highest percentage."""
    # Listed in tie-break order
    candidates: list[tuple[str, int]] = []
    if flags.is_pwd:
        candidates.append(("pwd", policy.pwd_percent))
    if flags.is_child and flags.age is not None and flags.age < policy.child_age_limit:
        candidates.append(("child", policy.child_percent))
    if quantity >= policy.bulk_min_quantity:
        candidates.append(("bulk", policy.bulk_percent))

    best: Optional[tuple[str, int]] = None
    for kind, percentage in candidates:
        if percentage > 0 and (best is None or percentage > best[1]):
            best = (kind, percentage)
    return best


def calculate_ticket_price(
    ticket_type,
    quantity: int,
    flags: Optional[DiscountFlags] = None,
    *,
    currency: str = "IDR",
    policy: Optional[DiscountPolicy] = None,
    today: Optional[date] = None,
) -> PriceQuote:
    """
    Quote `quantity` tickets of `ticket_type`.

    `currency` only selects which currency the discount amount is reported
    in; both totals are always returned.
    """
    if quantity < 1:
        raise ValueError("quantity must be a positive integer")
    if currency not in CURRENCIES:
        raise ValueError(f"unsupported currency: {currency}")

    flags = flags or DiscountFlags()
    policy = policy or DiscountPolicy()
    today = today or date.today()

    unit_idr, unit_usd = unit_prices(ticket_type, today)
    subtotal = {"IDR": unit_idr * quantity, "USD": unit_usd * quantity}

    discount = resolve_discount(quantity, flags, policy)
    applied = None
    if discount is not None:
        kind, percentage = discount
        amounts = {code: value * percentage / 100 for code, value in subtotal.items()}
        subtotal = {code: subtotal[code] - amounts[code] for code in subtotal}
        applied = AppliedDiscount(
            type=kind,
            amount=_round(amounts[currency], currency),
            percentage=percentage,
        )

    return PriceQuote(
        price_idr=int(_round(subtotal["IDR"], "IDR")),
        price_usd=_round(subtotal["USD"], "USD"),
        discount_applied=applied,
    )
