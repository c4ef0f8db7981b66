"""Persisted shopping cart."""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from .models import CartItem, Product
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

CART_KEY = "cart-storage"


def quantity_allowed(product: Product, quantity: int) -> bool:
    """
    Check a requested cart quantity against the product's stock.

    With stock on hand the quantity is capped at that stock. With no stock
    the product can only be ordered when it allows backorder.
    """
    if quantity <= 0:
        return False
    if product.stock > 0:
        return quantity <= product.stock
    return product.allows_backorder


class CartStore:
    """
    Holds the items a shopper intends to purchase.

    Every mutation writes the whole item list back to storage. Quantity bounds
    against stock are the caller's job (see ``quantity_allowed``).
    """

    def __init__(self, storage: KeyValueStorage, key: str = CART_KEY) -> None:
        self.storage = storage
        self.key = key
        self._items: list[CartItem] = self._load()

    def _load(self) -> list[CartItem]:
        data = self.storage.get(self.key)
        if not data:
            return []
        items = []
        for raw in data.get("items", []):
            try:
                items.append(CartItem.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable cart item: {e}")
        logger.info(f"Loaded cart with {len(items)} item(s)")
        return items

    def _persist(self) -> None:
        self.storage.set(
            self.key,
            {"items": [item.model_dump(mode="json", by_alias=True) for item in self._items]},
        )

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    def get(self, product_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.product.id == product_id:
                return item
        return None

    def add(self, product: Product, quantity: int) -> None:
        """
        Add ``quantity`` of a product, merging with an existing entry.

        Raises:
            ValueError: if ``quantity`` is not positive
        """
        if quantity <= 0:
            raise ValueError("La cantidad debe ser mayor a 0")
        existing = self.get(product.id)
        if existing:
            existing.quantity += quantity
        else:
            self._items.append(CartItem(product=product, quantity=quantity))
        self._persist()

    def remove(self, product_id: str) -> None:
        self._items = [item for item in self._items if item.product.id != product_id]
        self._persist()

    def set_quantity(self, product_id: str, quantity: int) -> None:
        """Overwrite an item's quantity; zero or less removes it."""
        if quantity <= 0:
            self.remove(product_id)
            return
        item = self.get(product_id)
        if item:
            item.quantity = quantity
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._persist()

    def total(self) -> Decimal:
        """Sum of unit sale price times quantity over all items."""
        return sum((item.subtotal for item in self._items), Decimal("0"))

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def has_backorder_items(self) -> bool:
        """True when any item is out of stock and ordered as backorder."""
        return any(item.product.needs_backorder for item in self._items)

    def is_empty(self) -> bool:
        return not self._items
