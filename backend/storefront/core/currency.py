from __future__ import annotations

import math
from typing import Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_price(price: Any, symbol: str = "Rs") -> str:
    """Render a price with thousands grouping and at most three decimals.

    Anything that is not a number renders as a zero price so templates never
    have to guard against half-loaded products.
    """
    if not _is_number(price):
        return f"{symbol} 0"
    rounded = round(float(price), 3)
    if rounded.is_integer():
        return f"{symbol} {int(rounded):,}"
    text = f"{rounded:,.3f}".rstrip("0").rstrip(".")
    return f"{symbol} {text}"


def calculate_discount(original_price: float, discounted_price: float) -> int:
    if original_price <= discounted_price:
        return 0
    return int(math.floor((original_price - discounted_price) / original_price * 100 + 0.5))


def calculate_savings(original_price: float | None, discounted_price: float | None) -> float:
    if not original_price or not discounted_price or original_price <= discounted_price:
        return 0
    return original_price - discounted_price


def calculate_bulk_discount(
    base_price: float | None, bulk_price_per_unit: float | None, quantity: int | None
) -> float:
    if not base_price or not bulk_price_per_unit or not quantity:
        return 0
    if base_price <= bulk_price_per_unit:
        return 0
    return (base_price - bulk_price_per_unit) * quantity
