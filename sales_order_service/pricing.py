"""
pricing.py — Tier Price Resolution and Cart Totals

Pure functions, no I/O:
    • resolve_price(): effective unit price of a cart line from its quantity tiers
    • line_subtotal() / cart_total(): derived totals, recomputed on every call
    • format_amount(): Lempira display string ("L. 1,234.56")

Arithmetic keeps four fraction digits; rounding to two digits happens only
for display and on the wire.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from .config import BUSINESS_TIMEZONE
from .models import CartLineItem

D = Decimal

FOUR_PLACES = D("0.0001")
TWO_PLACES = D("0.01")
CURRENCY_PREFIX = "L."


def business_today(tz_name: str = BUSINESS_TIMEZONE) -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def resolve_price(item: CartLineItem, today: Optional[date] = None) -> D:
    """
    Returns the effective unit price of a cart line.

    The best qualifying tier wins: among active tiers with `minQty <= quantity`
    the one with the greatest `minQty` is chosen. Without a qualifying tier the
    base price applies.

    Args:
        item (CartLineItem): The cart line (base price, tiers and quantity).
        today (date | None): Evaluation date for tier expiry. Defaults to the
            current date in the business timezone.

    Returns:
        Decimal: Unit price with four fraction digits.
    """
    on = today or business_today()

    chosen = None
    for tier in item.tiers:
        if tier.minQty > item.quantity or not tier.is_active(on):
            continue
        if chosen is None or tier.minQty > chosen.minQty:
            chosen = tier
        elif tier.minQty == chosen.minQty and tier.price < chosen.price:
            chosen = tier

    price = chosen.price if chosen is not None else item.basePrice
    return D(price).quantize(FOUR_PLACES)


def line_subtotal(item: CartLineItem, today: Optional[date] = None) -> D:
    return (resolve_price(item, today) * item.quantity).quantize(FOUR_PLACES)


def cart_total(items: Iterable[CartLineItem], today: Optional[date] = None) -> D:
    on = today or business_today()
    return sum((line_subtotal(item, on) for item in items), D("0")).quantize(FOUR_PLACES)


def format_amount(value: D) -> str:
    """
    Formats an amount for display, e.g. `Decimal("1234.5")` -> `"L. 1,234.50"`.
    """
    rounded = D(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return f"{CURRENCY_PREFIX} {rounded:,.2f}"
