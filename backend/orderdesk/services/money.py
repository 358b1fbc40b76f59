"""Invoice arithmetic in integer cents."""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def format_money(cents: int, currency: str = "USD") -> str:
    symbol = "$" if currency == "USD" else f"{currency} "
    amount = Decimal(cents or 0) / 100
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def compute_totals(
    items: list[dict],
    *,
    discount_cents: int = 0,
    tax_rate: Decimal | float | str = 0,
    shipping_cents: int = 0,
) -> dict[str, int]:
    """Subtotal, tax (rounded half-up on the subtotal), discount, shipping and total."""
    subtotal = sum(
        _to_int(item.get("quantity")) * _to_int(item.get("unit_price_cents"))
        for item in items
    )
    try:
        rate = Decimal(str(tax_rate or 0))
    except InvalidOperation:
        rate = Decimal(0)
    tax = int((Decimal(subtotal) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    discount = _to_int(discount_cents)
    shipping = _to_int(shipping_cents)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": tax,
        "shipping": shipping,
        "total": subtotal - discount + tax + shipping,
    }
