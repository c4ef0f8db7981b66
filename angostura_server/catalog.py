"""Catalog filtering and display helpers."""

from datetime import datetime
from typing import Iterable, Optional

from .hours import as_local
from .models import Product


def is_orderable(product: Product) -> bool:
    """Active products with stock, or out of stock but open to backorder."""
    return product.active and (product.stock > 0 or product.allows_backorder)


def visible_products(
    products: Iterable[Product],
    search: str = "",
    category_id: Optional[str] = None,
) -> list[Product]:
    """
    Products shown in the storefront catalog.

    Args:
        products: Full product list from the API
        search: Case-insensitive match on name or brand
        category_id: Restrict to one category (None for all)
    """
    term = search.strip().lower()
    result = []
    for product in products:
        if not is_orderable(product):
            continue
        if term and term not in product.name.lower() and term not in (product.brand or "").lower():
            continue
        if category_id and product.category_id != category_id:
            continue
        result.append(product)
    return result


def time_remaining(fulfillment_at: datetime, now: datetime) -> str:
    """
    Countdown to a scheduled order, as shown in the orders table.

    An aware ``fulfillment_at`` (the API sends UTC) is compared as an instant.
    """
    seconds = (as_local(fulfillment_at, now) - now).total_seconds()
    if seconds < 0:
        return "¡Ya pasó!"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 24:
        return f"{hours // 24}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
