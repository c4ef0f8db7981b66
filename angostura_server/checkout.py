"""Pre-submission checkout rules and order payload."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from .errors import CheckoutValidationError
from .hours import HoursWindow, as_local
from .models import CartItem, Location

MIN_ADVANCE_NOTICE = timedelta(hours=1)

EMPTY_CART = "El carrito está vacío"
LOCATION_REQUIRED = "Debes seleccionar una ubicación de envío"
OUTSIDE_HOURS = "Estamos fuera de horario. Selecciona una fecha de encargo."
BACKORDER_DATE_REQUIRED = "La fecha de encargo es obligatoria para productos sin existencia"
TOO_SOON = "La fecha de encargo debe ser al menos 1 hora después de la hora actual"


class CheckoutForm(BaseModel):
    """Fields the shopper fills in before confirming an order."""

    location: Optional[str] = Field(None, description="Name of the shipping location")
    fulfillment_at: Optional[datetime] = Field(None, description="Scheduled (encargo) time")
    notes: Optional[str] = None


class OrderSummary(BaseModel):
    """Totals shown next to the checkout form."""

    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal


def earliest_fulfillment(now: datetime) -> datetime:
    return now + MIN_ADVANCE_NOTICE


def validate_checkout(
    items: list[CartItem],
    form: CheckoutForm,
    window: HoursWindow,
    now: datetime,
) -> None:
    """
    Reject a checkout that the backend would refuse or that needs a date.

    Raises:
        CheckoutValidationError: with one message per failing field
    """
    errors: dict[str, str] = {}

    if not items:
        errors["cart"] = EMPTY_CART

    if not form.location or not form.location.strip():
        errors["location"] = LOCATION_REQUIRED

    if form.fulfillment_at is None:
        if not window.ordering_allowed:
            errors["fulfillment_at"] = OUTSIDE_HOURS
        elif any(item.product.needs_backorder for item in items):
            errors["fulfillment_at"] = BACKORDER_DATE_REQUIRED
    elif as_local(form.fulfillment_at, now) < earliest_fulfillment(now):
        errors["fulfillment_at"] = TOO_SOON

    if errors:
        raise CheckoutValidationError(errors)


def find_location(locations: Iterable[Location], name: Optional[str]) -> Optional[Location]:
    for location in locations:
        if location.name == name:
            return location
    return None


def order_summary(subtotal: Decimal, location: Optional[Location]) -> OrderSummary:
    shipping = location.cost if location else Decimal("0")
    return OrderSummary(subtotal=subtotal, shipping_cost=shipping, total=subtotal + shipping)


def build_order_payload(
    items: list[CartItem], form: CheckoutForm, shipping_cost: Decimal
) -> dict[str, Any]:
    """JSON body for POST /pedidos."""
    payload: dict[str, Any] = {
        "items": [
            {"productoId": item.product.id, "cantidad": item.quantity} for item in items
        ],
        "ubicacionEnvio": form.location,
        "costoEnvio": float(shipping_cost),
    }
    if form.fulfillment_at is not None:
        payload["fechaEncargo"] = form.fulfillment_at.isoformat()
    if form.notes:
        payload["notas"] = form.notes
    return payload
