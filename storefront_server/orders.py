"""Conversion between the internal cart shape and the backend order wire shape."""

from typing import Optional
from urllib.parse import urlsplit

from .models import (
    CartSnapshot,
    Customer,
    LineItem,
    OrderCustom,
    OrderLineItem,
    OrderPrice,
    OrderRequest,
    ShippingAddress,
)

DEFAULT_CURRENCY = "USD"


def url_key(url: Optional[str]) -> str:
    """Last path segment of a product URL."""
    return (url or "").split("/")[-1]


def image_path(image: Optional[str]) -> str:
    """Reduce an absolute image URL to its path; anything else is kept as-is."""
    if not image:
        return ""
    try:
        parts = urlsplit(image)
    except ValueError:
        return image
    if parts.scheme and parts.netloc:
        return parts.path
    return image


def to_order_line(item: LineItem) -> OrderLineItem:
    return OrderLineItem(
        sku=item.sku,
        url_key=url_key(item.url),
        name=item.name,
        quantity=item.quantity,
        price=OrderPrice(
            currency=item.currency or DEFAULT_CURRENCY,
            final=str(item.price),
        ),
        custom=OrderCustom(image=image_path(item.image), url=item.url or ""),
    )


def build_order_request(
    cart: CartSnapshot, customer: Customer, shipping: ShippingAddress
) -> OrderRequest:
    """
    Build the order submission body from the current cart.

    Args:
        cart: Snapshot of the cart being checked out
        customer: Customer name/email
        shipping: Shipping address

    Returns:
        Wire-shape order request
    """
    return OrderRequest(
        customer=customer,
        shipping=shipping,
        items=[to_order_line(item) for item in cart.items],
    )
