# Overview: Pricing strategies applied to order totals, keyed by customer classification.

"""
Order Pricing

WHY: Discounting differs by customer classification. Second-level agencies get
a percentage off the order total; retail and first-level agencies pay list
price. The rule lives in a strategy object so the order service never
hardcodes it, and so a caller can force a specific policy.

ROUNDING: discounted totals are rounded half-up to the nearest whole currency
unit (CURRENCY_UNIT_CENTS minor units).
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..models import Customer
from ..models.accounts import CUSTOMER_TYPE_AGENCY


@dataclass(frozen=True)
class PriceQuote:
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    policy: str


class PricingStrategy:
    """Turns an order subtotal into the amount the customer owes."""

    name = "base"

    def quote(self, subtotal_cents: int) -> PriceQuote:
        raise NotImplementedError


class FullPrice(PricingStrategy):
    name = "full_price"

    def quote(self, subtotal_cents: int) -> PriceQuote:
        return PriceQuote(subtotal_cents, 0, subtotal_cents, self.name)


def round_to_unit(amount_times_100: int, unit_cents: int) -> int:
    """
    Round (amount_times_100 / 100) half-up to a multiple of unit_cents.

    Integer-only so repeated discounts never accumulate float error.
    """
    denominator = 100 * unit_cents
    return ((amount_times_100 + denominator // 2) // denominator) * unit_cents


class PercentDiscount(PricingStrategy):
    def __init__(self, percent: int, unit_cents: int = 100):
        if not 0 <= percent <= 100:
            raise ValueError("percent must be between 0 and 100")
        if unit_cents <= 0:
            raise ValueError("unit_cents must be positive")
        self.percent = percent
        self.unit_cents = unit_cents
        self.name = f"discount_{percent}pct"

    def quote(self, subtotal_cents: int) -> PriceQuote:
        total = round_to_unit(subtotal_cents * (100 - self.percent), self.unit_cents)
        return PriceQuote(subtotal_cents, subtotal_cents - total, total, self.name)


def strategy_for_customer(customer: Customer) -> PricingStrategy:
    """
    Resolve the pricing strategy from the customer's classification.

    Agency levels listed in AGENCY_DISCOUNT_PERCENT get that percentage off;
    everyone else pays full price.
    """
    if customer.customer_type == CUSTOMER_TYPE_AGENCY and customer.agency_level is not None:
        discounts = current_app.config.get("AGENCY_DISCOUNT_PERCENT", {})
        percent = discounts.get(customer.agency_level)
        if percent:
            return PercentDiscount(
                percent,
                unit_cents=current_app.config.get("CURRENCY_UNIT_CENTS", 100),
            )
    return FullPrice()
