"""Compras Angostura REST API client."""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from .auth import AuthManager
from .errors import ApiError, ApiUnavailableError, UnauthorizedError, error_for_response
from .models import (
    BusinessHours,
    Category,
    CodeRequestResult,
    Location,
    Order,
    OrderStatus,
    Product,
    Role,
    User,
    Weekday,
)

logger = logging.getLogger(__name__)


class AngosturaClient:
    """Client for the store's REST API."""

    IMAGE_PATH = "/uploads/productos"

    def __init__(
        self,
        auth_manager: AuthManager,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            auth_manager: Authentication manager holding the bearer token
            base_url: Root URL of the REST API
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.auth_manager = auth_manager
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        token = self.auth_manager.get_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ApiError: subclass matching the response status
            ApiUnavailableError: if the API cannot be reached
        """
        try:
            response = self.client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiUnavailableError(str(e)) from e

        if response.is_error:
            error = error_for_response(response)
            logger.error(f"API error: status={response.status_code} url={path} message={error.message}")
            if isinstance(error, UnauthorizedError):
                self.auth_manager.clear_session()
            raise error

        logger.debug(f"{method} {path}: status={response.status_code}")
        if not response.content:
            return None
        return response.json()

    # Auth

    def request_code(self, phone: str, name: Optional[str] = None) -> CodeRequestResult:
        """Ask the API to send a one-time login code to ``phone``."""
        payload = {"telefono": phone}
        if name:
            payload["nombre"] = name
        logger.info(f"Requesting login code for {phone}")
        data = self._request("POST", "/auth/solicitar-codigo", json=payload)
        return CodeRequestResult.model_validate(data or {})

    def verify_code(self, phone: str, code: str) -> User:
        """
        Exchange a one-time code for an access token and store the session.

        Raises:
            UnauthorizedError: if the API did not return a token
        """
        data = self._request(
            "POST", "/auth/verificar-codigo", json={"telefono": phone, "codigo": code}
        )
        token = (data or {}).get("accessToken")
        if not token:
            raise UnauthorizedError("No se recibió token del servidor")

        user_data = data.get("usuario")
        user = User.model_validate(user_data) if user_data else None
        self.auth_manager.save_session(token, user)
        if user is None:
            # Token alone is enough to fetch the profile
            user = self.get_profile()
            self.auth_manager.set_user(user)
        logger.info(f"Logged in as {user.name} ({user.role.value})")
        return user

    def get_profile(self) -> User:
        return User.model_validate(self._request("GET", "/auth/perfil"))

    def check_auth(self) -> Optional[User]:
        """Refresh the stored profile; drop the session if the profile call fails."""
        if not self.auth_manager.get_token():
            return None
        try:
            user = self.get_profile()
        except ApiError as e:
            logger.warning(f"Could not restore session: {e.message}")
            self.auth_manager.clear_session()
            return None
        self.auth_manager.set_user(user)
        return user

    def logout(self) -> None:
        self.auth_manager.clear_session()

    # Products

    def list_products(self, params: Optional[dict[str, Any]] = None) -> list[Product]:
        data = self._request("GET", "/productos", params=params)
        return [Product.model_validate(item) for item in data or []]

    def get_product(self, product_id: str) -> Product:
        return Product.model_validate(self._request("GET", f"/productos/{product_id}"))

    def get_product_by_barcode(self, barcode: str) -> Product:
        return Product.model_validate(self._request("GET", f"/productos/barcode/{barcode}"))

    def create_product(self, data: dict[str, Any]) -> Product:
        return Product.model_validate(self._request("POST", "/productos", json=data))

    def update_product(self, product_id: str, data: dict[str, Any]) -> Product:
        return Product.model_validate(self._request("PATCH", f"/productos/{product_id}", json=data))

    def set_product_active(self, product_id: str, active: bool) -> Product:
        return self.update_product(product_id, {"activo": active})

    def adjust_stock(self, product_id: str, quantity: Decimal) -> Product:
        """Apply a stock movement through the dedicated stock endpoint."""
        data = self._request(
            "PATCH", f"/productos/{product_id}/stock", json={"cantidad": float(quantity)}
        )
        return Product.model_validate(data)

    def add_stock(self, product_id: str, quantity: Decimal) -> Product:
        """Increase stock by ``quantity`` from the current value."""
        product = self.get_product(product_id)
        new_stock = product.stock + quantity
        logger.info(f"Stock for {product.name}: {product.stock} + {quantity} = {new_stock}")
        return self.update_product(product_id, {"stock": float(new_stock)})

    # Categories

    def list_categories(self) -> list[Category]:
        return [Category.model_validate(item) for item in self._request("GET", "/categorias") or []]

    def create_category(self, name: str, description: Optional[str] = None) -> Category:
        payload = {"nombre": name}
        if description:
            payload["descripcion"] = description
        return Category.model_validate(self._request("POST", "/categorias", json=payload))

    def update_category(self, category_id: str, data: dict[str, Any]) -> Category:
        return Category.model_validate(
            self._request("PATCH", f"/categorias/{category_id}", json=data)
        )

    def set_category_active(self, category_id: str, active: bool) -> Category:
        return self.update_category(category_id, {"activo": active})

    # Orders

    def list_orders(self) -> list[Order]:
        """Orders visible to the current user (all of them for admins)."""
        return [Order.model_validate(item) for item in self._request("GET", "/pedidos") or []]

    def create_order(self, payload: dict[str, Any]) -> Optional[Order]:
        data = self._request("POST", "/pedidos", json=payload)
        if isinstance(data, dict) and "estado" in data:
            return Order.model_validate(data)
        return None

    def update_order_status(
        self, order_id: str, status: OrderStatus, courier_id: Optional[str] = None
    ) -> None:
        payload: dict[str, Any] = {"estado": status.value}
        if courier_id:
            payload["repartidorId"] = courier_id
        self._request("PATCH", f"/pedidos/{order_id}/estado", json=payload)

    def take_order(self, order_id: str) -> None:
        self._request("PATCH", f"/pedidos/{order_id}/tomar")

    def mark_order_on_the_way(self, order_id: str) -> None:
        self._request("PATCH", f"/pedidos/{order_id}/en-camino")

    # Users

    def list_users(self, role: Optional[Role] = None) -> list[User]:
        params = {"rol": role.value} if role else None
        data = self._request("GET", "/usuarios", params=params)
        return [User.model_validate(item) for item in data or []]

    def update_user(self, user_id: str, data: dict[str, Any]) -> User:
        return User.model_validate(self._request("PATCH", f"/usuarios/{user_id}", json=data))

    def set_user_role(self, user_id: str, role: Role) -> User:
        return User.model_validate(
            self._request("PATCH", f"/usuarios/{user_id}/rol", json={"rol": role.value})
        )

    # Locations

    def list_locations(self) -> list[Location]:
        return [Location.model_validate(item) for item in self._request("GET", "/ubicaciones") or []]

    def create_location(self, name: str, cost: Decimal) -> Location:
        data = self._request("POST", "/ubicaciones", json={"nombre": name, "costo": float(cost)})
        return Location.model_validate(data)

    def update_location(self, location_id: str, name: str, cost: Decimal) -> Location:
        data = self._request(
            "PATCH", f"/ubicaciones/{location_id}", json={"nombre": name, "costo": float(cost)}
        )
        return Location.model_validate(data)

    def delete_location(self, location_id: str) -> None:
        self._request("DELETE", f"/ubicaciones/{location_id}")

    # Business hours

    def list_hours(self) -> list[BusinessHours]:
        return [BusinessHours.model_validate(item) for item in self._request("GET", "/horarios") or []]

    def create_hours(self, entry: BusinessHours) -> BusinessHours:
        payload = entry.model_dump(by_alias=True, mode="json", exclude={"id", "active"})
        return BusinessHours.model_validate(self._request("POST", "/horarios", json=payload))

    def update_hours(self, hours_id: str, opening: str, closing: str, closed: bool) -> BusinessHours:
        data = self._request(
            "PATCH",
            f"/horarios/{hours_id}",
            json={"horaApertura": opening, "horaCierre": closing, "cerrado": closed},
        )
        return BusinessHours.model_validate(data)

    def initialize_hours(self) -> None:
        """Have the API create the default entry for every weekday."""
        self._request("POST", "/horarios/initialize", json={})

    def save_hours(self, day: Weekday, opening: str, closing: str, closed: bool = False) -> BusinessHours:
        """Update the active entry for ``day`` or create one if there is none."""
        existing = next((h for h in self.list_hours() if h.day == day and h.active), None)
        if existing and existing.id:
            logger.info(f"Updating hours for {day.value}")
            return self.update_hours(existing.id, opening, closing, closed)
        logger.info(f"Creating hours for {day.value}")
        return self.create_hours(
            BusinessHours(day=day, opening=opening, closing=closing, closed=closed)
        )

    # Static files

    def image_url(self, filename: Optional[str]) -> Optional[str]:
        if not filename:
            return None
        return f"{self.base_url}{self.IMAGE_PATH}/{filename}"

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()
