"""Tests for the REST API client."""

from decimal import Decimal

import httpx
import pytest
from conftest import API_URL

from angostura_server.api_client import AngosturaClient
from angostura_server.errors import (
    ApiUnavailableError,
    ClientApiError,
    ForbiddenError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
)
from angostura_server.models import OrderStatus, Role, Weekday

PRODUCT = {
    "id": "p1",
    "nombre": "Leche",
    "precioVenta": "10.50",
    "precioCompra": "8.00",
    "stock": "4",
    "permiteEncargo": False,
    "activo": True,
    "categoriaId": "c1",
}

USER = {"id": "u1", "nombre": "Ana", "telefono": "70000000", "rol": "USUARIO"}


class TestAuthentication:
    """Phone + one-time code login flow."""

    def test_request_code_sends_phone_and_name(self, client, fake_api):
        fake_api.on("POST", "/auth/solicitar-codigo", {"esNuevoUsuario": True})

        result = client.request_code("70000000", "Ana")

        assert result.is_new_user
        assert fake_api.json_of("POST", "/auth/solicitar-codigo") == {
            "telefono": "70000000",
            "nombre": "Ana",
        }

    def test_verify_code_stores_token_and_user(self, client, fake_api, auth):
        fake_api.on("POST", "/auth/verificar-codigo", {"accessToken": "tok", "usuario": USER})

        user = client.verify_code("70000000", "1234")

        assert user.name == "Ana"
        assert auth.is_authenticated()
        assert auth.get_token() == "tok"
        assert auth.user.id == "u1"

    def test_verify_code_fetches_profile_when_missing(self, client, fake_api, auth):
        fake_api.on("POST", "/auth/verificar-codigo", {"accessToken": "tok"})
        fake_api.on("GET", "/auth/perfil", USER)

        user = client.verify_code("70000000", "1234")

        assert user.id == "u1"
        assert fake_api.last("GET", "/auth/perfil").headers["Authorization"] == "Bearer tok"

    def test_verify_code_without_token_fails(self, client, fake_api, auth):
        fake_api.on("POST", "/auth/verificar-codigo", {"usuario": USER})

        with pytest.raises(UnauthorizedError):
            client.verify_code("70000000", "1234")
        assert not auth.is_authenticated()

    def test_bearer_token_attached(self, client, fake_api, logged_in):
        fake_api.on("GET", "/productos", [PRODUCT])

        client.list_products()

        assert fake_api.last("GET", "/productos").headers["Authorization"] == "Bearer token-123"

    def test_no_token_no_header(self, client, fake_api):
        fake_api.on("GET", "/productos", [])

        client.list_products()

        assert "Authorization" not in fake_api.last("GET", "/productos").headers

    def test_check_auth_drops_rejected_token(self, client, fake_api, auth, logged_in):
        fake_api.on("GET", "/auth/perfil", {"message": "Token expirado"}, status=401)

        assert client.check_auth() is None
        assert not auth.is_authenticated()

    def test_check_auth_drops_token_on_server_error(self, client, fake_api, auth, logged_in):
        fake_api.on("GET", "/auth/perfil", {"message": "boom"}, status=500)

        assert client.check_auth() is None
        assert auth.get_token() is None

    def test_check_auth_drops_token_when_unreachable(self, auth, logged_in):
        def fail(request):
            raise httpx.ConnectError("refused", request=request)

        broken = AngosturaClient(auth, API_URL, transport=httpx.MockTransport(fail))

        assert broken.check_auth() is None
        assert not auth.is_authenticated()
        broken.close()

    def test_check_auth_refreshes_profile(self, client, fake_api, auth, logged_in):
        fake_api.on("GET", "/auth/perfil", {**USER, "nombre": "Ana María"})

        assert client.check_auth().name == "Ana María"
        assert auth.user.name == "Ana María"


class TestErrorMapping:
    """Response status to exception type."""

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (401, UnauthorizedError),
            (403, ForbiddenError),
            (404, NotFoundError),
            (500, ServerError),
            (502, ServerError),
            (400, ClientApiError),
            (409, ClientApiError),
        ],
    )
    def test_status_maps_to_error(self, client, fake_api, status, error_cls):
        fake_api.on("GET", "/categorias", {"message": "boom"}, status=status)

        with pytest.raises(error_cls) as exc_info:
            client.list_categories()

        assert exc_info.value.status_code == status
        assert exc_info.value.message == "boom"

    def test_unauthorized_clears_session(self, client, fake_api, auth, logged_in):
        fake_api.on("GET", "/pedidos", {"message": "Sesión expirada"}, status=401)

        with pytest.raises(UnauthorizedError) as exc_info:
            client.list_orders()

        assert not auth.is_authenticated()
        assert exc_info.value.notification == "No autorizado: Sesión expirada"

    def test_forbidden_keeps_session(self, client, fake_api, auth, logged_in):
        fake_api.on("GET", "/usuarios", {}, status=403)

        with pytest.raises(ForbiddenError) as exc_info:
            client.list_users()

        assert auth.is_authenticated()
        assert exc_info.value.notification == "Acceso denegado: No tienes permisos"

    def test_validation_message_list_is_joined(self, client, fake_api):
        fake_api.on("POST", "/categorias", {"message": ["nombre vacío", "muy corto"]}, status=400)

        with pytest.raises(ClientApiError) as exc_info:
            client.create_category("")

        assert exc_info.value.message == "nombre vacío; muy corto"

    def test_connection_error_is_unavailable(self, auth):
        def fail(request):
            raise httpx.ConnectError("refused", request=request)

        broken = AngosturaClient(auth, API_URL, transport=httpx.MockTransport(fail))
        with pytest.raises(ApiUnavailableError):
            broken.list_products()
        broken.close()


class TestResources:
    """CRUD calls hit the right paths with the right bodies."""

    def test_list_products_parses_decimals(self, client, fake_api):
        fake_api.on("GET", "/productos", [PRODUCT])

        products = client.list_products()

        assert products[0].sale_price == Decimal("10.50")
        assert products[0].stock == Decimal("4")

    def test_add_stock_patches_sum(self, client, fake_api):
        fake_api.on("GET", "/productos/p1", PRODUCT)
        fake_api.on("PATCH", "/productos/p1", {**PRODUCT, "stock": "10"})

        product = client.add_stock("p1", Decimal("6"))

        assert fake_api.json_of("PATCH", "/productos/p1") == {"stock": 10.0}
        assert product.stock == Decimal("10")

    def test_adjust_stock_uses_stock_endpoint(self, client, fake_api):
        fake_api.on("PATCH", "/productos/p1/stock", {**PRODUCT, "stock": "2"})

        product = client.adjust_stock("p1", Decimal("-2"))

        assert fake_api.json_of("PATCH", "/productos/p1/stock") == {"cantidad": -2.0}
        assert product.stock == Decimal("2")

    def test_update_user(self, client, fake_api):
        fake_api.on("PATCH", "/usuarios/u1", {**USER, "nombre": "Ana María"})

        user = client.update_user("u1", {"nombre": "Ana María"})

        assert user.name == "Ana María"
        assert fake_api.json_of("PATCH", "/usuarios/u1") == {"nombre": "Ana María"}

    def test_set_user_role(self, client, fake_api):
        fake_api.on("PATCH", "/usuarios/u1/rol", {**USER, "rol": "ADMIN"})

        user = client.set_user_role("u1", Role.ADMIN)

        assert user.is_admin
        assert fake_api.json_of("PATCH", "/usuarios/u1/rol") == {"rol": "ADMIN"}

    def test_update_order_status_with_courier(self, client, fake_api):
        fake_api.on("PATCH", "/pedidos/o1/estado", {})

        client.update_order_status("o1", OrderStatus.EN_CAMINO, "r1")

        assert fake_api.json_of("PATCH", "/pedidos/o1/estado") == {
            "estado": "EN_CAMINO",
            "repartidorId": "r1",
        }

    def test_list_users_filters_by_role(self, client, fake_api):
        fake_api.on("GET", "/usuarios", [{**USER, "rol": "REPARTIDOR"}])

        couriers = client.list_users(Role.REPARTIDOR)

        assert couriers[0].role == Role.REPARTIDOR
        assert fake_api.last("GET", "/usuarios").url.params["rol"] == "REPARTIDOR"

    def test_delete_location_accepts_empty_body(self, client, fake_api):
        fake_api.on("DELETE", "/ubicaciones/l1")

        client.delete_location("l1")

        assert fake_api.last("DELETE", "/ubicaciones/l1") is not None

    def test_save_hours_updates_existing_day(self, client, fake_api):
        existing = {"id": "h1", "dia": "LUNES", "horaApertura": "09:00", "horaCierre": "18:00", "cerrado": False, "activo": True}
        fake_api.on("GET", "/horarios", [existing])
        fake_api.on("PATCH", "/horarios/h1", {**existing, "horaCierre": "20:00"})

        entry = client.save_hours(Weekday.LUNES, "09:00", "20:00")

        assert entry.closing == "20:00"
        assert fake_api.json_of("PATCH", "/horarios/h1") == {
            "horaApertura": "09:00",
            "horaCierre": "20:00",
            "cerrado": False,
        }

    def test_save_hours_creates_missing_day(self, client, fake_api):
        fake_api.on("GET", "/horarios", [])
        fake_api.on(
            "POST",
            "/horarios",
            {"id": "h2", "dia": "MARTES", "horaApertura": "10:00", "horaCierre": "14:00", "cerrado": False, "activo": True},
        )

        client.save_hours(Weekday.MARTES, "10:00", "14:00")

        assert fake_api.json_of("POST", "/horarios") == {
            "dia": "MARTES",
            "horaApertura": "10:00",
            "horaCierre": "14:00",
            "cerrado": False,
        }

    def test_image_url(self, client):
        assert client.image_url("leche.jpg") == f"{API_URL}/uploads/productos/leche.jpg"
        assert client.image_url(None) is None
