"""Shared pytest fixtures for angostura_server tests."""

import json
from datetime import datetime
from decimal import Decimal

import httpx
import pytest

from angostura_server.api_client import AngosturaClient
from angostura_server.auth import AuthManager
from angostura_server.config import Settings
from angostura_server.models import BusinessHours, Product, User, Weekday
from angostura_server.shop import Storefront
from angostura_server.storage import MemoryStorage

API_URL = "http://api.test"

# 2026-10-14 is a Wednesday
WEDNESDAY_NOON = datetime(2026, 10, 14, 12, 0)


def make_product(
    product_id="p1",
    name="Leche",
    price="10.50",
    stock="5",
    allows_backorder=False,
    active=True,
    **extra,
):
    data = {
        "id": product_id,
        "nombre": name,
        "precioVenta": price,
        "precioCompra": "8.00",
        "stock": stock,
        "permiteEncargo": allows_backorder,
        "activo": active,
        "categoriaId": extra.pop("category_id", "c1"),
    }
    data.update(extra)
    return Product.model_validate(data)


def make_hours(day=Weekday.MIERCOLES, opening="09:00", closing="18:00", closed=False, active=True):
    return BusinessHours(
        id=f"h-{day.value}", day=day, opening=opening, closing=closing, closed=closed, active=active
    )


class FakeApi:
    """In-memory stand-in for the REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], object] = {}

    def on(self, method, path, body=None, status=200):
        self.routes[(method, path)] = (status, body)

    def last(self, method, path):
        for request in reversed(self.requests):
            if request.method == method and request.url.path == path:
                return request
        return None

    def json_of(self, method, path):
        request = self.last(method, path)
        return json.loads(request.content) if request and request.content else None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route {request.url.path}"})
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture
def product():
    return make_product()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def auth(storage):
    return AuthManager(storage)


@pytest.fixture
def client(auth, fake_api):
    api_client = AngosturaClient(auth, API_URL, transport=fake_api.transport)
    yield api_client
    api_client.close()


@pytest.fixture
def settings():
    return Settings(api_url=API_URL, phone="70000000")


@pytest.fixture
def shop(settings, storage, client):
    return Storefront(settings, storage=storage, client=client)


@pytest.fixture
def customer():
    return User.model_validate({"id": "u1", "nombre": "Ana", "telefono": "70000000", "rol": "USUARIO"})


@pytest.fixture
def admin():
    return User.model_validate({"id": "a1", "nombre": "Admin", "telefono": "71111111", "rol": "ADMIN"})


@pytest.fixture
def logged_in(auth, customer):
    auth.save_session("token-123", customer)
    return customer


@pytest.fixture
def logged_in_admin(auth, admin):
    auth.save_session("admin-token", admin)
    return admin
