"""HTTP server exposing the storefront and back-office over REST."""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .checkout import CheckoutForm
from .config import Settings
from .errors import ApiError, CheckoutValidationError
from .models import OrderStatus, ProductForm, Role, Weekday
from .shop import Storefront

logger = logging.getLogger("angostura-http-server")

# Global state
shop: Optional[Storefront] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global shop

    logger.info("Starting Angostura HTTP Server...")
    if shop is None:
        shop = Storefront(Settings.from_env())

    yield

    logger.info("Shutting down Angostura HTTP Server...")
    shop.close()


app = FastAPI(
    title="Angostura MCP Server",
    description="HTTP API for the Compras Angostura storefront and back-office",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.notification})


@app.exception_handler(CheckoutValidationError)
async def checkout_error_handler(request: Request, exc: CheckoutValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.message, "errors": exc.errors})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Request/Response Models
class CodeRequest(BaseModel):
    phone: Optional[str] = None
    name: Optional[str] = None


class VerifyRequest(BaseModel):
    code: str
    phone: Optional[str] = None


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    product_id: str
    quantity: int


class RemoveFromCartRequest(BaseModel):
    product_id: str


class OrderStatusRequest(BaseModel):
    status: OrderStatus
    courier_id: Optional[str] = None


class HoursRequest(BaseModel):
    opening: str
    closing: str
    closed: bool = False


class StockRequest(BaseModel):
    quantity: Decimal


class LocationRequest(BaseModel):
    name: str
    cost: Decimal


class UserUpdateRequest(BaseModel):
    name: str
    role: Optional[Role] = None


def _cart_payload() -> dict:
    return {
        "items": [item.model_dump(mode="json") for item in shop.cart.items],
        "item_count": shop.cart.item_count(),
        "total": str(shop.cart.total()),
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Angostura MCP Server",
        "version": __version__,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {"code": "POST /auth/code", "verify": "POST /auth/verify", "logout": "POST /auth/logout"},
            "catalog": {"products": "GET /products", "categories": "GET /categories"},
            "cart": {"get": "GET /cart", "add": "POST /cart/add", "update": "POST /cart/update", "remove": "POST /cart/remove"},
            "checkout": {"hours": "GET /hours", "locations": "GET /locations", "order": "POST /checkout"},
            "orders": {"list": "GET /orders"},
        },
        "authenticated": shop.auth.is_authenticated() if shop else False,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "authenticated": shop.auth.is_authenticated() if shop else False,
    }


# Authentication endpoints
@app.post("/auth/code")
async def request_code(request: CodeRequest):
    """Send a one-time login code."""
    result = shop.request_code(request.phone, request.name)
    return {"success": True, "is_new_user": result.is_new_user}


@app.post("/auth/verify")
async def verify_code(request: VerifyRequest):
    """Exchange a one-time code for a session."""
    user = shop.verify_code(request.code, request.phone)
    return {"success": True, "user": user.model_dump(mode="json")}


@app.post("/auth/logout")
async def logout():
    shop.logout()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/auth/status")
async def auth_status():
    user = shop.user
    return {
        "authenticated": shop.auth.is_authenticated(),
        "user": user.model_dump(mode="json") if user else None,
    }


# Catalog endpoints
@app.get("/products")
async def list_products(q: str = "", category_id: Optional[str] = None):
    products = shop.browse(q, category_id)
    return {
        "count": len(products),
        "products": [
            {**p.model_dump(mode="json"), "image_url": shop.client.image_url(p.image)}
            for p in products
        ],
    }


@app.get("/categories")
async def list_categories():
    return [c.model_dump(mode="json") for c in shop.client.list_categories()]


# Cart endpoints
@app.get("/cart")
async def get_cart(location: Optional[str] = None):
    summary = shop.order_summary(location)
    return {**_cart_payload(), "summary": summary.model_dump(mode="json")}


@app.post("/cart/add")
async def add_to_cart(request: AddToCartRequest):
    product = shop.add_to_cart(request.product_id, request.quantity)
    return {"success": True, "message": f"{product.name} agregado al carrito", "cart": _cart_payload()}


@app.post("/cart/update")
async def update_cart(request: UpdateQuantityRequest):
    success = shop.update_cart_quantity(request.product_id, request.quantity)
    return {"success": success, "cart": _cart_payload()}


@app.post("/cart/remove")
async def remove_from_cart(request: RemoveFromCartRequest):
    shop.remove_from_cart(request.product_id)
    return {"success": True, "message": "Producto eliminado del carrito", "cart": _cart_payload()}


@app.delete("/cart")
async def clear_cart():
    shop.cart.clear()
    return {"success": True}


# Checkout endpoints
@app.get("/hours")
async def hours():
    window = shop.hours_window()
    return {
        "status": window.status.value,
        "ordering_allowed": window.ordering_allowed,
        "today": window.today.model_dump(mode="json") if window.today else None,
        "message": window.describe(),
    }


@app.get("/locations")
async def locations():
    return [loc.model_dump(mode="json") for loc in shop.client.list_locations()]


@app.post("/checkout")
async def checkout(form: CheckoutForm):
    order = shop.place_order(form)
    return {
        "success": True,
        "message": "Pedido realizado exitosamente",
        "order": order.model_dump(mode="json") if order else None,
    }


@app.get("/orders")
async def orders():
    result = shop.my_orders()
    return {"count": len(result), "orders": [o.model_dump(mode="json") for o in result]}


# Back-office endpoints
@app.get("/admin/orders")
async def admin_orders():
    result = shop.admin_orders()
    return {"count": len(result), "orders": [o.model_dump(mode="json") for o in result]}


@app.get("/admin/couriers")
async def admin_couriers():
    return [u.model_dump(mode="json") for u in shop.couriers()]


@app.patch("/admin/orders/{order_id}/status")
async def admin_order_status(order_id: str, request: OrderStatusRequest):
    shop.update_order_status(order_id, request.status, request.courier_id)
    return {"success": True, "message": "Estado actualizado correctamente"}


@app.patch("/admin/orders/{order_id}/take")
async def admin_take_order(order_id: str):
    shop.take_order(order_id)
    return {"success": True}


@app.patch("/admin/orders/{order_id}/on-the-way")
async def admin_on_the_way(order_id: str):
    shop.mark_order_on_the_way(order_id)
    return {"success": True}


@app.post("/admin/products/{product_id}/stock")
async def admin_add_stock(product_id: str, request: StockRequest):
    product = shop.add_stock(product_id, request.quantity)
    return {"success": True, "stock": str(product.stock)}


@app.post("/admin/products")
async def admin_create_product(form: ProductForm):
    return shop.save_product(form).model_dump(mode="json")


@app.patch("/admin/products/{product_id}")
async def admin_update_product(product_id: str, form: ProductForm):
    return shop.save_product(form, product_id).model_dump(mode="json")


@app.post("/admin/products/barcode/{barcode}/stock")
async def admin_quick_stock(barcode: str, request: StockRequest):
    product = shop.quick_stock(barcode, request.quantity)
    return {"success": True, "message": "Stock actualizado correctamente", "stock": str(product.stock)}


@app.patch("/admin/users/{user_id}")
async def admin_update_user(user_id: str, request: UserUpdateRequest):
    user = shop.update_user(user_id, request.name, request.role)
    return user.model_dump(mode="json")


@app.put("/admin/hours/{day}")
async def admin_save_hours(day: Weekday, request: HoursRequest):
    entry = shop.save_hours(day, request.opening, request.closing, request.closed)
    return entry.model_dump(mode="json")


@app.post("/admin/hours/initialize")
async def admin_initialize_hours():
    shop.initialize_hours()
    return {"success": True, "message": "Horarios inicializados correctamente"}


@app.post("/admin/locations")
async def admin_create_location(request: LocationRequest):
    location = shop.save_location(request.name, request.cost)
    return location.model_dump(mode="json")


@app.delete("/admin/locations/{location_id}")
async def admin_delete_location(location_id: str):
    shop.delete_location(location_id)
    return {"success": True}


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the HTTP server."""
    import uvicorn

    logging.basicConfig(level=Settings.from_env().log_level)
    if reload:
        uvicorn.run("angostura_server.http_server:app", host=host, port=port, reload=True, log_level="info")
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
