"""MCP Server for the Compras Angostura store."""

import asyncio
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .catalog import time_remaining
from .checkout import CheckoutForm
from .config import Settings
from .errors import ApiError, CheckoutValidationError
from .hours import as_local
from .models import Order, OrderStatus, Product, ProductForm, Role, Unit, Weekday
from .shop import Storefront

logger = logging.getLogger("angostura-mcp-server")

# Initialize server
app = Server("angostura-mcp-server")

# Global state
shop: Storefront


def _schema(properties: Optional[dict[str, Any]] = None, required: Optional[list[str]] = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


_ID = {"type": "string"}

TOOLS = [
    Tool(
        name="angostura_request_code",
        description="Send a one-time login code to a phone number via WhatsApp. Include a name to register a new user.",
        inputSchema=_schema(
            {
                "phone": {"type": "string", "description": "Phone number (optional if ANGOSTURA_PHONE is configured)"},
                "name": {"type": "string", "description": "Full name, only when registering"},
            }
        ),
    ),
    Tool(
        name="angostura_verify_code",
        description="Complete login with the one-time code received on WhatsApp",
        inputSchema=_schema(
            {
                "code": {"type": "string", "description": "One-time code"},
                "phone": {"type": "string", "description": "Phone number the code was sent to"},
            },
            ["code"],
        ),
    ),
    Tool(
        name="angostura_logout",
        description="Logout and clear the stored session",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_search_products",
        description="List orderable products, optionally filtered by name/brand and category",
        inputSchema=_schema(
            {
                "query": {"type": "string", "description": "Search term matched against name or brand"},
                "category_id": {"type": "string", "description": "Category ID filter"},
            }
        ),
    ),
    Tool(
        name="angostura_list_categories",
        description="List product categories",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_add_to_cart",
        description="Add a product to the cart (merges with an existing entry)",
        inputSchema=_schema(
            {
                "product_id": {"type": "string", "description": "Product ID to add"},
                "quantity": {"type": "integer", "description": "Quantity to add (default: 1)", "default": 1, "minimum": 1},
            },
            ["product_id"],
        ),
    ),
    Tool(
        name="angostura_update_cart_quantity",
        description="Set the quantity of a cart item (0 removes it; limited by stock)",
        inputSchema=_schema(
            {
                "product_id": {"type": "string", "description": "Product ID to update"},
                "quantity": {"type": "integer", "description": "New quantity"},
            },
            ["product_id", "quantity"],
        ),
    ),
    Tool(
        name="angostura_remove_from_cart",
        description="Remove a product from the cart",
        inputSchema=_schema({"product_id": {"type": "string", "description": "Product ID to remove"}}, ["product_id"]),
    ),
    Tool(
        name="angostura_get_cart",
        description="Get cart contents, totals and today's opening status",
        inputSchema=_schema({"location": {"type": "string", "description": "Shipping location to price delivery"}}),
    ),
    Tool(
        name="angostura_clear_cart",
        description="Empty the cart",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_get_hours",
        description="Show whether the store is open now and the weekly schedule",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_list_locations",
        description="List shipping locations and their delivery cost",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_checkout",
        description="Place an order with the cart contents. A fulfillment time (at least 1 hour ahead) is required outside opening hours or for backorder products.",
        inputSchema=_schema(
            {
                "location": {"type": "string", "description": "Shipping location name"},
                "fulfillment_at": {"type": "string", "description": "ISO datetime for a scheduled order (YYYY-MM-DDTHH:MM)"},
                "notes": {"type": "string", "description": "Delivery notes"},
            },
            ["location"],
        ),
    ),
    Tool(
        name="angostura_get_orders",
        description="List orders (own orders, or all orders for admins)",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_update_order_status",
        description="Admin: change an order's status and optionally assign a courier",
        inputSchema=_schema(
            {
                "order_id": _ID,
                "status": {"type": "string", "enum": [s.value for s in OrderStatus]},
                "courier_id": _ID,
            },
            ["order_id", "status"],
        ),
    ),
    Tool(
        name="angostura_take_order",
        description="Courier/admin: take an order for delivery",
        inputSchema=_schema({"order_id": _ID}, ["order_id"]),
    ),
    Tool(
        name="angostura_mark_order_on_the_way",
        description="Courier/admin: mark an order as on the way (notifies the customer)",
        inputSchema=_schema({"order_id": _ID}, ["order_id"]),
    ),
    Tool(
        name="angostura_lookup_barcode",
        description="Admin: find a product by barcode",
        inputSchema=_schema({"barcode": {"type": "string"}}, ["barcode"]),
    ),
    Tool(
        name="angostura_add_stock",
        description="Admin: add units to a product's stock",
        inputSchema=_schema({"product_id": _ID, "quantity": {"type": "number"}}, ["product_id", "quantity"]),
    ),
    Tool(
        name="angostura_toggle_product",
        description="Admin: activate or deactivate a product",
        inputSchema=_schema({"product_id": _ID}, ["product_id"]),
    ),
    Tool(
        name="angostura_save_category",
        description="Admin: create a category, or rename it when category_id is given",
        inputSchema=_schema(
            {"name": {"type": "string"}, "description": {"type": "string"}, "category_id": _ID},
            ["name"],
        ),
    ),
    Tool(
        name="angostura_toggle_category",
        description="Admin: activate or deactivate a category",
        inputSchema=_schema({"category_id": _ID}, ["category_id"]),
    ),
    Tool(
        name="angostura_save_location",
        description="Admin: create a shipping location, or update it when location_id is given",
        inputSchema=_schema(
            {"name": {"type": "string"}, "cost": {"type": "number"}, "location_id": _ID},
            ["name", "cost"],
        ),
    ),
    Tool(
        name="angostura_delete_location",
        description="Admin: delete a shipping location",
        inputSchema=_schema({"location_id": _ID}, ["location_id"]),
    ),
    Tool(
        name="angostura_save_hours",
        description="Admin: set opening hours for a weekday",
        inputSchema=_schema(
            {
                "day": {"type": "string", "enum": [d.value for d in Weekday]},
                "opening": {"type": "string", "description": "HH:MM"},
                "closing": {"type": "string", "description": "HH:MM"},
                "closed": {"type": "boolean", "default": False},
            },
            ["day", "opening", "closing"],
        ),
    ),
    Tool(
        name="angostura_initialize_hours",
        description="Admin: create the default schedule for every weekday",
        inputSchema=_schema(),
    ),
    Tool(
        name="angostura_list_users",
        description="Admin: list users, optionally by role",
        inputSchema=_schema({"role": {"type": "string", "enum": [r.value for r in Role]}}),
    ),
    Tool(
        name="angostura_set_user_role",
        description="Admin: change a user's role",
        inputSchema=_schema(
            {"user_id": _ID, "role": {"type": "string", "enum": [r.value for r in Role]}},
            ["user_id", "role"],
        ),
    ),
    Tool(
        name="angostura_save_product",
        description="Admin: create a product, or edit it when product_id is given",
        inputSchema=_schema(
            {
                "product_id": _ID,
                "name": {"type": "string"},
                "purchase_price": {"type": "number", "minimum": 0},
                "sale_price": {"type": "number", "minimum": 0},
                "stock": {"type": "number", "minimum": 0},
                "category_id": _ID,
                "allows_backorder": {"type": "boolean", "description": "Orderable when stock is zero"},
                "barcode": {"type": "string"},
                "brand": {"type": "string"},
                "content": {"type": "string", "description": "Package content amount"},
                "unit": {"type": "string", "enum": [u.value for u in Unit]},
                "description": {"type": "string"},
            },
            ["name", "purchase_price", "sale_price", "stock", "category_id"],
        ),
    ),
    Tool(
        name="angostura_quick_stock",
        description="Admin: find a product by barcode and apply a stock movement (negative to subtract)",
        inputSchema=_schema(
            {"barcode": {"type": "string"}, "quantity": {"type": "number"}},
            ["barcode", "quantity"],
        ),
    ),
    Tool(
        name="angostura_update_user",
        description="Admin: rename a user and optionally change their role",
        inputSchema=_schema(
            {
                "user_id": _ID,
                "name": {"type": "string"},
                "role": {"type": "string", "enum": [r.value for r in Role]},
            },
            ["user_id", "name"],
        ),
    ),
]


def format_products(products: list[Product]) -> str:
    lines = [f"Found {len(products)} product(s):\n"]
    for i, product in enumerate(products, 1):
        lines.append(f"\n{i}. {product.name}")
        lines.append(f"   ID: {product.id}")
        if product.brand:
            lines.append(f"   Brand: {product.brand}")
        if product.content and product.unit:
            lines.append(f"   Content: {product.content} {product.unit.value}")
        lines.append(f"   Price: ${product.sale_price:.2f}")
        if product.needs_backorder:
            lines.append("   Stock: 0 (encargo)")
        else:
            lines.append(f"   Stock: {product.stock}")
        image = shop.client.image_url(product.image)
        if image:
            lines.append(f"   Image: {image}")
    return "\n".join(lines)


def format_cart(location: Optional[str] = None) -> str:
    cart = shop.cart
    if cart.is_empty():
        return "Your cart is empty"

    lines = [f"Shopping Cart ({cart.item_count()} items):\n"]
    for i, item in enumerate(cart.items, 1):
        lines.append(f"\n{i}. {item.product.name}")
        lines.append(f"   Product ID: {item.product.id}")
        lines.append(f"   Price: ${item.product.sale_price:.2f}")
        lines.append(f"   Quantity: {item.quantity}")
        lines.append(f"   Subtotal: ${item.subtotal:.2f}")
        if item.product.needs_backorder:
            lines.append("   Encargo: requires a fulfillment time")

    summary = shop.order_summary(location)
    lines.append(f"\n{'=' * 50}")
    lines.append(f"Subtotal: ${summary.subtotal:.2f}")
    lines.append(f"Shipping: ${summary.shipping_cost:.2f}")
    lines.append(f"Total: ${summary.total:.2f}")
    return "\n".join(lines)


def format_orders(orders: list[Order], now: Optional[datetime] = None) -> str:
    if not orders:
        return "No orders found"
    now = now or datetime.now()
    lines = [f"Found {len(orders)} order(s):\n"]
    for i, order in enumerate(orders, 1):
        lines.append(f"\n{i}. Order {order.id}")
        lines.append(f"   Status: {order.status.value}")
        lines.append(f"   Date: {as_local(order.created_at, now).strftime('%Y-%m-%d %H:%M')}")
        if order.user:
            lines.append(f"   Customer: {order.user.name} ({order.user.phone})")
        if order.courier:
            lines.append(f"   Courier: {order.courier.name}")
        lines.append(f"   Total: ${order.total:.2f} (shipping ${order.shipping_cost:.2f})")
        if order.fulfillment_at:
            remaining = time_remaining(order.fulfillment_at, now)
            lines.append(
                f"   Encargo: {as_local(order.fulfillment_at, now).strftime('%Y-%m-%d %H:%M')} ({remaining})"
            )
        if order.notes:
            lines.append(f"   Notes: {order.notes}")
        for detail in order.details:
            lines.append(f"     - {detail.product.name} x{detail.quantity} (${detail.subtotal:.2f})")
    return "\n".join(lines)


def format_hours() -> str:
    window = shop.hours_window()
    lines = [window.describe(), "\nWeekly schedule:"]
    schedule = {h.day: h for h in shop.client.list_hours() if h.active}
    for day in Weekday:
        entry = schedule.get(day)
        if entry is None:
            lines.append(f"  {day.value}: not configured")
        elif entry.closed:
            lines.append(f"  {day.value}: closed")
        else:
            lines.append(f"  {day.value}: {entry.opening} - {entry.closing}")
    return "\n".join(lines)


def handle_tool(name: str, arguments: dict[str, Any]) -> str:
    """Run a tool against the global storefront and return its text result."""
    if name == "angostura_request_code":
        result = shop.request_code(arguments.get("phone"), arguments.get("name"))
        suffix = " (new user)" if result.is_new_user else ""
        return f"Code sent to WhatsApp{suffix}. Use angostura_verify_code to finish logging in."

    elif name == "angostura_verify_code":
        user = shop.verify_code(arguments["code"], arguments.get("phone"))
        return f"Successfully logged in as {user.name} ({user.role.value})"

    elif name == "angostura_logout":
        shop.logout()
        return "Successfully logged out"

    elif name == "angostura_search_products":
        products = shop.browse(arguments.get("query") or "", arguments.get("category_id"))
        if not products:
            return f"No products found for: {arguments.get('query') or 'all'}"
        return format_products(products)

    elif name == "angostura_list_categories":
        categories = shop.client.list_categories()
        if not categories:
            return "No categories found"
        return "\n".join(
            f"- {c.name} (ID: {c.id}){'' if c.active else ' [inactive]'}" for c in categories
        )

    elif name == "angostura_add_to_cart":
        quantity = arguments.get("quantity", 1)
        product = shop.add_to_cart(arguments["product_id"], quantity)
        return f"Added {product.name} (quantity: {quantity}) to cart"

    elif name == "angostura_update_cart_quantity":
        product_id = arguments["product_id"]
        quantity = arguments["quantity"]
        if shop.update_cart_quantity(product_id, quantity):
            return f"Updated product {product_id} to quantity {quantity}"
        return f"Failed to update product {product_id}: not in cart or not enough stock"

    elif name == "angostura_remove_from_cart":
        shop.remove_from_cart(arguments["product_id"])
        return f"Removed product {arguments['product_id']} from cart"

    elif name == "angostura_get_cart":
        return format_cart(arguments.get("location"))

    elif name == "angostura_clear_cart":
        shop.cart.clear()
        return "Cart cleared"

    elif name == "angostura_get_hours":
        return format_hours()

    elif name == "angostura_list_locations":
        locations = shop.client.list_locations()
        if not locations:
            return "No shipping locations configured. Contact the administrator."
        return "\n".join(f"- {loc.name}: ${loc.cost:.2f} (ID: {loc.id})" for loc in locations)

    elif name == "angostura_checkout":
        raw_date = arguments.get("fulfillment_at")
        form = CheckoutForm(
            location=arguments.get("location"),
            fulfillment_at=datetime.fromisoformat(raw_date) if raw_date else None,
            notes=arguments.get("notes"),
        )
        order = shop.place_order(form)
        if order:
            return f"Order {order.id} placed successfully. Total: ${order.total:.2f}"
        return "Order placed successfully"

    elif name == "angostura_get_orders":
        return format_orders(shop.my_orders())

    elif name == "angostura_update_order_status":
        status = OrderStatus(arguments["status"])
        shop.update_order_status(arguments["order_id"], status, arguments.get("courier_id"))
        return f"Order {arguments['order_id']} set to {status.value}"

    elif name == "angostura_take_order":
        shop.take_order(arguments["order_id"])
        return f"Order {arguments['order_id']} taken"

    elif name == "angostura_mark_order_on_the_way":
        shop.mark_order_on_the_way(arguments["order_id"])
        return f"Order {arguments['order_id']} marked as on the way. Customer notified."

    elif name == "angostura_lookup_barcode":
        return format_products([shop.lookup_barcode(arguments["barcode"])])

    elif name == "angostura_add_stock":
        quantity = Decimal(str(arguments["quantity"]))
        product = shop.add_stock(arguments["product_id"], quantity)
        return f"Added {quantity} units. Total stock for {product.name}: {product.stock}"

    elif name == "angostura_toggle_product":
        product = shop.toggle_product(arguments["product_id"])
        return f"{product.name} is now {'active' if product.active else 'inactive'}"

    elif name == "angostura_save_category":
        category = shop.save_category(
            arguments["name"], arguments.get("description"), arguments.get("category_id")
        )
        return f"Category saved: {category.name} (ID: {category.id})"

    elif name == "angostura_toggle_category":
        category = shop.toggle_category(arguments["category_id"])
        return f"{category.name} is now {'active' if category.active else 'inactive'}"

    elif name == "angostura_save_location":
        location = shop.save_location(
            arguments["name"], Decimal(str(arguments["cost"])), arguments.get("location_id")
        )
        return f"Location saved: {location.name} (${location.cost:.2f})"

    elif name == "angostura_delete_location":
        shop.delete_location(arguments["location_id"])
        return f"Location {arguments['location_id']} deleted"

    elif name == "angostura_save_hours":
        entry = shop.save_hours(
            Weekday(arguments["day"]),
            arguments["opening"],
            arguments["closing"],
            arguments.get("closed", False),
        )
        return f"Hours saved for {entry.day.value}: {entry.opening} - {entry.closing}{' (closed)' if entry.closed else ''}"

    elif name == "angostura_initialize_hours":
        shop.initialize_hours()
        return "Schedule initialized"

    elif name == "angostura_list_users":
        role = arguments.get("role")
        users = shop.users(Role(role) if role else None)
        if not users:
            return "No users found"
        return "\n".join(f"- {u.name} ({u.phone}) {u.role.value} (ID: {u.id})" for u in users)

    elif name == "angostura_set_user_role":
        user = shop.set_user_role(arguments["user_id"], Role(arguments["role"]))
        return f"{user.name} is now {user.role.value}"

    elif name == "angostura_save_product":
        fields = {key: value for key, value in arguments.items() if key != "product_id"}
        product = shop.save_product(ProductForm(**fields), arguments.get("product_id"))
        return f"Product saved: {product.name} (ID: {product.id})"

    elif name == "angostura_quick_stock":
        quantity = Decimal(str(arguments["quantity"]))
        product = shop.quick_stock(arguments["barcode"], quantity)
        return f"Stock updated for {product.name}: {product.stock}"

    elif name == "angostura_update_user":
        role = arguments.get("role")
        user = shop.update_user(arguments["user_id"], arguments["name"], Role(role) if role else None)
        return f"User updated: {user.name} ({user.role.value})"

    return f"Unknown tool: {name}"


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=AnyUrl("angostura://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current shopping cart contents",
        ),
        Resource(
            uri=AnyUrl("angostura://hours"),
            name="Opening Hours",
            mimeType="application/json",
            description="Whether ordering is allowed right now",
        ),
    ]


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "angostura://cart":
        return json.dumps(
            {
                "items": [item.model_dump(mode="json") for item in shop.cart.items],
                "item_count": shop.cart.item_count(),
                "total": str(shop.cart.total()),
            },
            indent=2,
        )

    elif uri_str == "angostura://hours":
        window = shop.hours_window()
        return json.dumps(
            {
                "status": window.status.value,
                "ordering_allowed": window.ordering_allowed,
                "today": window.today.model_dump(mode="json") if window.today else None,
                "message": window.describe(),
            },
            indent=2,
        )

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return TOOLS


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    try:
        text = handle_tool(name, arguments or {})
    except CheckoutValidationError as e:
        details = "\n".join(f"- {field}: {message}" for field, message in e.errors.items())
        text = f"Error: {e.message}\n{details}"
    except ApiError as e:
        text = f"Error: {e.notification}"
    except ValueError as e:
        text = f"Error: {e}"
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        text = f"Error: {str(e)}"
    return [TextContent(type="text", text=text)]


async def main() -> None:
    """Main entry point for the MCP server."""
    global shop

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    shop = Storefront(settings)
    if shop.auth.is_authenticated():
        user = shop.client.check_auth()
        if user:
            logger.info(f"Session restored for: {user.name}")
        else:
            logger.warning("Stored session is no longer valid")
    else:
        logger.warning("No session found. Use angostura_request_code to login.")

    logger.info(f"Starting Angostura MCP Server against {settings.api_url}...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        shop.close()


if __name__ == "__main__":
    asyncio.run(main())
