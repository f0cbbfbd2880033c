"""Data models for storefront commerce entities."""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

STORAGE_VERSION = 1


def _number_to_str(value: Any) -> Any:
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


class LineItem(BaseModel):
    """Represents an item in the shopping cart."""

    sku: str = Field(description="Stock keeping unit, unique within a cart")
    name: str = Field(default="", description="Product name")
    quantity: int = Field(default=1, ge=1, description="Quantity of the product")
    price: Decimal = Field(default=Decimal("0"), description="Unit price")
    currency: Optional[str] = Field(None, description="ISO currency code")
    image: Optional[str] = Field(None, description="Product image URL or path")
    url: Optional[str] = Field(None, description="Product page path")


class CartSnapshot(BaseModel):
    """Point-in-time view of the cart with derived totals."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[LineItem] = Field(default_factory=list, description="Cart items")
    item_count: int = Field(default=0, alias="itemCount", description="Sum of quantities")
    subtotal: Decimal = Field(default=Decimal("0"), description="Sum of quantity x price")
    shipping: Decimal = Field(default=Decimal("0"), description="Shipping cost")


class StoredCartEnvelope(BaseModel):
    """Versioned wrapper around persisted cart data."""

    version: int
    items: list[LineItem] = Field(default_factory=list)


class Customer(BaseModel):
    """Customer details submitted with an order."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    email: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    name: Optional[str] = None


class ShippingAddress(BaseModel):
    """Shipping address submitted with an order."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    email: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None


class OrderPrice(BaseModel):
    currency: str = "USD"
    final: str

    @field_validator("final", mode="before")
    @classmethod
    def _stringify_final(cls, value: Any) -> Any:
        # Echoed orders may carry the price as a number
        return _number_to_str(value)


class OrderCustom(BaseModel):
    image: str = ""
    url: str = ""


class OrderLineItem(BaseModel):
    """Line item in the backend order wire shape."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sku: str
    url_key: str = Field(default="", alias="urlKey")
    name: str = ""
    quantity: int
    price: OrderPrice
    custom: OrderCustom = Field(default_factory=OrderCustom)


class OrderRequest(BaseModel):
    """Body of an order submission."""

    model_config = ConfigDict(populate_by_name=True)

    customer: Customer
    shipping: ShippingAddress
    items: list[OrderLineItem]


class Order(BaseModel):
    """Represents an order as echoed by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(description="Order ID")
    customer: Optional[Customer] = None
    shipping: Optional[ShippingAddress] = None
    items: list[OrderLineItem] = Field(default_factory=list)
    state: Optional[str] = Field(None, description="Order state (pending, completed, ...)")
    created_at: Optional[str] = Field(None, alias="createdAt", description="Creation timestamp as sent by the backend")

    @field_validator("id", "created_at", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # Some backends hand out numeric order ids and epoch timestamps
        return _number_to_str(value)


class VerificationHandle(BaseModel):
    """Opaque one-time-code handle returned by a login request."""

    hash: str
    exp: int


class AuthUser(BaseModel):
    """Durable profile of the logged-in user, used for pre-filling forms."""

    email: str
    roles: list[str] = Field(default_factory=list)


class AuthResult(BaseModel):
    """Successful code verification."""

    token: str
    email: str
    roles: list[str] = Field(default_factory=list)
