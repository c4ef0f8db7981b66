"""Data models for Compras Angostura API entities."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """User roles known to the API."""

    ADMIN = "ADMIN"
    USUARIO = "USUARIO"
    REPARTIDOR = "REPARTIDOR"


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDIENTE = "PENDIENTE"
    CONFIRMADO = "CONFIRMADO"
    EN_PREPARACION = "EN_PREPARACION"
    EN_CAMINO = "EN_CAMINO"
    ENTREGADO = "ENTREGADO"
    CANCELADO = "CANCELADO"


class Unit(str, Enum):
    """Units of measure for product content."""

    L = "L"
    ML = "ML"
    KG = "KG"
    GR = "GR"
    PZ = "PZ"
    MTR = "MTR"


class Weekday(str, Enum):
    """Day-of-week labels used by the business hours schedule."""

    LUNES = "LUNES"
    MARTES = "MARTES"
    MIERCOLES = "MIERCOLES"
    JUEVES = "JUEVES"
    VIERNES = "VIERNES"
    SABADO = "SABADO"
    DOMINGO = "DOMINGO"

    @classmethod
    def from_date(cls, moment: datetime) -> "Weekday":
        """Label for the weekday of ``moment`` (Monday is index 0)."""
        return list(cls)[moment.weekday()]


class ApiModel(BaseModel):
    """Base for models parsed from the API's camelCase JSON."""

    model_config = ConfigDict(populate_by_name=True)


class User(ApiModel):
    """Represents a registered user."""

    id: str
    name: str = Field(alias="nombre")
    phone: str = Field(alias="telefono")
    role: Role = Field(default=Role.USUARIO, alias="rol")
    birth_date: Optional[str] = Field(None, alias="fechaNacimiento")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserSummary(ApiModel):
    """Short user reference embedded in orders."""

    id: str
    name: str = Field(alias="nombre")
    phone: str = Field(alias="telefono")


class Category(ApiModel):
    """Represents a product category."""

    id: str
    name: str = Field(alias="nombre")
    description: Optional[str] = Field(None, alias="descripcion")
    active: bool = Field(default=True, alias="activo")
    counts: Optional[dict[str, int]] = Field(None, alias="_count")

    @property
    def product_count(self) -> Optional[int]:
        if self.counts is None:
            return None
        return self.counts.get("productos")


class Product(ApiModel):
    """Represents a catalog product."""

    id: str = Field(description="Product ID")
    name: str = Field(alias="nombre", description="Product name")
    barcode: Optional[str] = Field(None, alias="codigoBarras", description="EAN/barcode")
    brand: Optional[str] = Field(None, alias="marca", description="Product brand")
    content: Optional[str] = Field(None, alias="contenido", description="Package content amount")
    unit: Optional[Unit] = Field(None, alias="medida", description="Unit for the content amount")
    description: Optional[str] = Field(None, alias="descripcion")
    purchase_price: Decimal = Field(default=Decimal("0"), alias="precioCompra")
    sale_price: Decimal = Field(alias="precioVenta", description="Unit sale price")
    stock: Decimal = Field(default=Decimal("0"), description="Available stock quantity")
    image: Optional[str] = Field(None, alias="imagen", description="Uploaded image filename")
    allows_backorder: bool = Field(
        default=False, alias="permiteEncargo", description="Orderable when stock is zero"
    )
    active: bool = Field(default=True, alias="activo")
    category_id: Optional[str] = Field(None, alias="categoriaId")
    category: Optional[Category] = Field(None, alias="categoria")

    @property
    def needs_backorder(self) -> bool:
        """True when the product is out of stock but may still be ordered."""
        return self.stock == 0 and self.allows_backorder


class ProductForm(ApiModel):
    """Fields an administrator submits to create or edit a product."""

    name: str = Field(alias="nombre", min_length=1)
    purchase_price: Decimal = Field(alias="precioCompra", ge=0)
    sale_price: Decimal = Field(alias="precioVenta", ge=0)
    stock: Decimal = Field(ge=0)
    category_id: str = Field(alias="categoriaId")
    allows_backorder: bool = Field(default=False, alias="permiteEncargo")
    barcode: Optional[str] = Field(None, alias="codigoBarras")
    brand: Optional[str] = Field(None, alias="marca")
    content: Optional[str] = Field(None, alias="contenido")
    unit: Optional[Unit] = Field(None, alias="medida")
    description: Optional[str] = Field(None, alias="descripcion")

    def payload(self) -> dict:
        """JSON body for POST/PATCH /productos; unset optional fields are left out."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Location(ApiModel):
    """Represents a shipping destination and its delivery cost."""

    id: str
    name: str = Field(alias="nombre")
    cost: Decimal = Field(default=Decimal("0"), alias="costo")
    active: bool = Field(default=True, alias="activo")


class BusinessHours(ApiModel):
    """One day of the weekly opening schedule."""

    id: Optional[str] = None
    day: Weekday = Field(alias="dia")
    opening: str = Field(alias="horaApertura", description="Opening time as HH:MM")
    closing: str = Field(alias="horaCierre", description="Closing time as HH:MM")
    closed: bool = Field(default=False, alias="cerrado")
    active: bool = Field(default=True, alias="activo")


class OrderDetail(ApiModel):
    """Represents a line in an order."""

    id: str
    quantity: Decimal = Field(alias="cantidad")
    unit_price: Decimal = Field(alias="precioUnitario")
    subtotal: Decimal
    product: Product = Field(alias="producto")


class Order(ApiModel):
    """Represents an order."""

    id: str = Field(description="Order ID")
    user_id: Optional[str] = Field(None, alias="usuarioId")
    user: Optional[UserSummary] = Field(None, alias="usuario")
    courier: Optional[UserSummary] = Field(None, alias="repartidor")
    status: OrderStatus = Field(alias="estado")
    subtotal: Decimal = Field(default=Decimal("0"))
    shipping_cost: Decimal = Field(default=Decimal("0"), alias="costoEnvio")
    total: Decimal = Field(default=Decimal("0"))
    fulfillment_at: Optional[datetime] = Field(
        None, alias="fechaEncargo", description="Scheduled preparation time"
    )
    notes: Optional[str] = Field(None, alias="notas")
    delivered_at: Optional[datetime] = Field(None, alias="fechaEntrega")
    created_at: datetime = Field(alias="createdAt")
    details: list[OrderDetail] = Field(default_factory=list, alias="detalles")


class CartItem(BaseModel):
    """Represents an item in the shopping cart."""

    model_config = ConfigDict(validate_assignment=True)

    product: Product
    quantity: int = Field(gt=0, description="Quantity of the product")

    @property
    def subtotal(self) -> Decimal:
        return self.product.sale_price * self.quantity


class CodeRequestResult(ApiModel):
    """Response to a one-time code request."""

    is_new_user: bool = Field(default=False, alias="esNuevoUsuario")


class SessionData(BaseModel):
    """Session data for the authenticated user."""

    token: Optional[str] = Field(None, description="Bearer access token")
    user: Optional[User] = Field(None, description="Profile of the logged-in user")
    is_authenticated: bool = Field(default=False, description="Authentication status")
