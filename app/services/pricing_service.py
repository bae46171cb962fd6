"""
Ticket tier availability and pricing.

Pure functions over tier lists; availability is recomputed on every read
and never cached.
"""
from typing import Optional, List, Iterable
from decimal import Decimal, ROUND_FLOOR
from datetime import datetime

from app.models.event import TicketTier, PriceRange
from app.models.promotion import PromoCode, DiscountType, OrderPricing


DEFAULT_CURRENCY_SYMBOL = "₹"
RANGE_SEPARATOR = " – "


def is_tier_available(tier: TicketTier, now: datetime) -> bool:
    """Active, inside its sale window and not sold out"""
    within_start = tier.sale_start is None or now >= tier.sale_start
    within_end = tier.sale_end is None or now <= tier.sale_end
    has_stock = tier.quantity is None or tier.sold_count < tier.quantity
    return tier.is_active and within_start and within_end and has_stock


def available_tiers(tiers: Iterable[TicketTier], now: datetime) -> List[TicketTier]:
    """Purchasable tiers, ascending by sort_order"""
    return sorted(
        (t for t in tiers if is_tier_available(t, now)),
        key=lambda t: t.sort_order
    )


def whole_units(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_FLOOR)


def format_amount(value: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Whole-unit display, e.g. 499.99 -> ₹499"""
    return f"{symbol}{whole_units(value)}"


def format_total(value: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    if value == 0:
        return "FREE"
    return format_amount(value, symbol)


def price_range(
    tiers: List[TicketTier],
    now: datetime,
    symbol: str = DEFAULT_CURRENCY_SYMBOL
) -> PriceRange:
    """
    Human-readable price range.

    Uses the purchasable tiers when there are any, otherwise every tier so
    sold-out events still show a price.
    """
    price_tiers = available_tiers(tiers, now) or list(tiers)
    prices = sorted(Decimal(t.price) for t in price_tiers if t.price >= 0)
    if not prices:
        return PriceRange(label="")

    min_p, max_p = prices[0], prices[-1]
    # branch on the floored amounts the label shows
    low, high = whole_units(min_p), whole_units(max_p)

    if low == 0 and high == 0:
        label = "Free"
    elif low == 0:
        label = f"Free{RANGE_SEPARATOR}{format_amount(high, symbol)}"
    elif low == high:
        label = format_amount(low, symbol)
    else:
        label = f"{format_amount(low, symbol)}{RANGE_SEPARATOR}{format_amount(high, symbol)}"

    return PriceRange(label=label, min=min_p, max=max_p)


def registered_count(tiers: Iterable[TicketTier]) -> int:
    return sum(t.sold_count for t in tiers)


def max_quantity(tier: TicketTier, per_order_cap: int) -> int:
    """Largest quantity a single order may hold for this tier"""
    cap = per_order_cap
    if tier.remaining is not None:
        cap = min(cap, tier.remaining)
    return max(cap, 1)


def clamp_quantity(requested: int, tier: TicketTier, per_order_cap: int) -> int:
    return max(1, min(requested, max_quantity(tier, per_order_cap)))


def calculate_discount(promo: Optional[PromoCode], subtotal: Decimal, quantity: int) -> Decimal:
    """Discount for a promo at the given subtotal/quantity, capped at the subtotal"""
    if promo is None:
        return Decimal("0")

    if promo.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * promo.discount_value / 100
    else:
        applicable_qty = min(quantity, promo.max_quantity) if promo.max_quantity else quantity
        discount = promo.discount_value * applicable_qty

    return min(discount, subtotal)


def calculate_order_pricing(
    tier: TicketTier,
    quantity: int,
    discount: Decimal = Decimal("0"),
    symbol: str = DEFAULT_CURRENCY_SYMBOL
) -> OrderPricing:
    """
    Subtotal and total for a selection.

    ``discount`` is whatever was computed when the promo was applied; it is
    not recomputed here, so a later quantity change leaves it as it was.
    """
    subtotal = Decimal(tier.price) * quantity
    discount = min(discount, subtotal)
    total = subtotal - discount
    return OrderPricing(
        unit_price=tier.price,
        quantity=quantity,
        subtotal=subtotal,
        discount=discount,
        total=total,
        currency=tier.currency,
        total_label=format_total(total, symbol)
    )
