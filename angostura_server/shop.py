"""Application shell tying the API client, session and cart together."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .api_client import AngosturaClient
from .auth import AuthManager
from .cart import CartStore, quantity_allowed
from .catalog import visible_products
from .checkout import (
    CheckoutForm,
    OrderSummary,
    build_order_payload,
    find_location,
    order_summary,
    validate_checkout,
)
from .config import Settings
from .errors import ForbiddenError, NotFoundError, UnauthorizedError
from .hours import HoursWindow, evaluate_hours
from .models import (
    BusinessHours,
    Category,
    CodeRequestResult,
    Location,
    Order,
    OrderStatus,
    Product,
    ProductForm,
    Role,
    User,
    Weekday,
)
from .storage import JsonFileStorage, KeyValueStorage

logger = logging.getLogger(__name__)


class Storefront:
    """
    Owns all client-side state for one shopper or administrator.

    Cart and session are persisted through ``storage``; everything else is
    fetched from the API on demand.
    """

    def __init__(
        self,
        settings: Settings,
        storage: Optional[KeyValueStorage] = None,
        client: Optional[AngosturaClient] = None,
    ) -> None:
        self.settings = settings
        self.storage = storage if storage is not None else JsonFileStorage(settings.state_file)
        if client is None:
            client = AngosturaClient(
                AuthManager(self.storage), settings.api_url, timeout=settings.timeout
            )
        self.client = client
        self.auth = client.auth_manager
        self.cart = CartStore(self.storage)

    # Session

    @property
    def user(self) -> Optional[User]:
        return self.auth.user

    def request_code(self, phone: Optional[str] = None, name: Optional[str] = None) -> CodeRequestResult:
        phone = phone or self.settings.phone
        if not phone:
            raise ValueError("A phone number is required")
        return self.client.request_code(phone, name)

    def verify_code(self, code: str, phone: Optional[str] = None) -> User:
        phone = phone or self.settings.phone
        if not phone:
            raise ValueError("A phone number is required")
        return self.client.verify_code(phone, code)

    def logout(self) -> None:
        self.client.logout()

    def _require_login(self) -> User:
        if not self.auth.is_authenticated() or self.user is None:
            raise UnauthorizedError("Debes iniciar sesión")
        return self.user

    def _require_role(self, *roles: Role) -> User:
        user = self._require_login()
        if user.role not in roles:
            raise ForbiddenError()
        return user

    # Catalog

    def browse(self, search: str = "", category_id: Optional[str] = None) -> list[Product]:
        return visible_products(self.client.list_products(), search, category_id)

    # Cart

    def add_to_cart(self, product_id: str, quantity: int = 1) -> Product:
        """
        Fetch the product and add it to the cart.

        Raises:
            ValueError: if the quantity is not positive, or the merged
                quantity exceeds the stock (or the product is out of stock
                and does not allow backorder)
        """
        if quantity <= 0:
            raise ValueError("La cantidad debe ser mayor a 0")
        product = self.client.get_product(product_id)
        existing = self.cart.get(product_id)
        merged = quantity + (existing.quantity if existing else 0)
        if not quantity_allowed(product, merged):
            if product.stock > 0:
                raise ValueError(f"Solo hay {product.stock} unidades disponibles de {product.name}")
            raise ValueError(f"{product.name} no tiene existencia")
        self.cart.add(product, quantity)
        logger.info(f"Added {quantity} x {product.name} to cart")
        return product

    def update_cart_quantity(self, product_id: str, quantity: int) -> bool:
        """
        Change an item's quantity within the product's stock limits.

        Returns False, leaving the cart unchanged, when the product is not in
        the cart or the quantity exceeds what can be ordered.
        """
        item = self.cart.get(product_id)
        if item is None:
            return False
        if quantity <= 0:
            self.cart.remove(product_id)
            return True
        if not quantity_allowed(item.product, quantity):
            logger.info(f"Quantity {quantity} refused for {item.product.name} (stock {item.product.stock})")
            return False
        self.cart.set_quantity(product_id, quantity)
        return True

    def remove_from_cart(self, product_id: str) -> None:
        self.cart.remove(product_id)

    # Hours and checkout

    def hours_window(self, now: Optional[datetime] = None) -> HoursWindow:
        return evaluate_hours(self.client.list_hours(), now or datetime.now())

    def order_summary(self, location_name: Optional[str] = None) -> OrderSummary:
        location = None
        if location_name:
            location = find_location(self.client.list_locations(), location_name)
        return order_summary(self.cart.total(), location)

    def place_order(self, form: CheckoutForm, now: Optional[datetime] = None) -> Optional[Order]:
        """
        Validate the checkout form, submit the order and clear the cart.

        Raises:
            CheckoutValidationError: if a local rule rejects the form
            ApiError: if the API rejects the order; the cart is kept
        """
        self._require_login()
        now = now or datetime.now()
        items = self.cart.items
        validate_checkout(items, form, self.hours_window(now), now)

        location = find_location(self.client.list_locations(), form.location)
        shipping = location.cost if location else Decimal("0")
        order = self.client.create_order(build_order_payload(items, form, shipping))
        self.cart.clear()
        logger.info("Order placed successfully")
        return order

    def my_orders(self) -> list[Order]:
        self._require_login()
        return self.client.list_orders()

    # Back-office

    def admin_orders(self) -> list[Order]:
        self._require_role(Role.ADMIN)
        return self.client.list_orders()

    def update_order_status(
        self, order_id: str, status: OrderStatus, courier_id: Optional[str] = None
    ) -> None:
        self._require_role(Role.ADMIN)
        self.client.update_order_status(order_id, status, courier_id)

    def take_order(self, order_id: str) -> None:
        self._require_role(Role.ADMIN, Role.REPARTIDOR)
        self.client.take_order(order_id)

    def mark_order_on_the_way(self, order_id: str) -> None:
        self._require_role(Role.ADMIN, Role.REPARTIDOR)
        self.client.mark_order_on_the_way(order_id)

    def couriers(self) -> list[User]:
        self._require_role(Role.ADMIN)
        return self.client.list_users(Role.REPARTIDOR)

    def users(self, role: Optional[Role] = None) -> list[User]:
        self._require_role(Role.ADMIN)
        return self.client.list_users(role)

    def set_user_role(self, user_id: str, role: Role) -> User:
        self._require_role(Role.ADMIN)
        return self.client.set_user_role(user_id, role)

    def save_product(self, form: ProductForm, product_id: Optional[str] = None) -> Product:
        """Create a product, or edit ``product_id`` when given."""
        self._require_role(Role.ADMIN)
        if product_id:
            logger.info(f"Updating product {product_id}")
            return self.client.update_product(product_id, form.payload())
        logger.info(f"Creating product {form.name}")
        return self.client.create_product(form.payload())

    def quick_stock(self, barcode: str, quantity: Decimal) -> Product:
        """Find a product by barcode and apply a stock movement to it."""
        self._require_role(Role.ADMIN)
        product = self.client.get_product_by_barcode(barcode)
        return self.client.adjust_stock(product.id, quantity)

    def update_user(self, user_id: str, name: str, role: Optional[Role] = None) -> User:
        """Rename a user and, when ``role`` differs from the current one, change it."""
        self._require_role(Role.ADMIN)
        if not name.strip():
            raise ValueError("El nombre es obligatorio")
        user = self.client.update_user(user_id, {"nombre": name})
        if role is not None and role != user.role:
            user = self.client.set_user_role(user_id, role)
        return user

    def add_stock(self, product_id: str, quantity: Decimal) -> Product:
        self._require_role(Role.ADMIN)
        if quantity <= 0:
            raise ValueError("Quantity to add must be positive")
        return self.client.add_stock(product_id, quantity)

    def toggle_product(self, product_id: str) -> Product:
        self._require_role(Role.ADMIN)
        product = self.client.get_product(product_id)
        return self.client.set_product_active(product_id, not product.active)

    def lookup_barcode(self, barcode: str) -> Product:
        self._require_role(Role.ADMIN)
        return self.client.get_product_by_barcode(barcode)

    def toggle_category(self, category_id: str) -> Category:
        self._require_role(Role.ADMIN)
        category = next(
            (c for c in self.client.list_categories() if c.id == category_id), None
        )
        if category is None:
            raise NotFoundError("Categoría no encontrada")
        return self.client.set_category_active(category_id, not category.active)

    def save_category(
        self, name: str, description: Optional[str] = None, category_id: Optional[str] = None
    ) -> Category:
        self._require_role(Role.ADMIN)
        if category_id:
            data = {"nombre": name}
            if description is not None:
                data["descripcion"] = description
            return self.client.update_category(category_id, data)
        return self.client.create_category(name, description)

    def save_location(self, name: str, cost: Decimal, location_id: Optional[str] = None) -> Location:
        self._require_role(Role.ADMIN)
        if not name.strip():
            raise ValueError("El nombre es obligatorio")
        if cost < 0:
            raise ValueError("El costo debe ser un número válido mayor o igual a 0")
        if location_id:
            return self.client.update_location(location_id, name, cost)
        return self.client.create_location(name, cost)

    def delete_location(self, location_id: str) -> None:
        self._require_role(Role.ADMIN)
        self.client.delete_location(location_id)

    def save_hours(self, day: Weekday, opening: str, closing: str, closed: bool = False) -> BusinessHours:
        self._require_role(Role.ADMIN)
        return self.client.save_hours(day, opening, closing, closed)

    def initialize_hours(self) -> None:
        self._require_role(Role.ADMIN)
        self.client.initialize_hours()

    def close(self) -> None:
        self.client.close()
