"""Storefront commerce core: cart, orders and auth behind interchangeable backend adapters."""

from .config import AdapterKind, Settings
from .errors import (
    BackendError,
    CommerceError,
    ItemNotInCartError,
    NotAuthenticatedError,
    SessionExpiredError,
    UnsupportedOperationError,
)
from .events import CommerceEvent, EventBus
from .facade import Commerce
from .models import CartSnapshot, Customer, LineItem, Order, ShippingAddress

__all__ = [
    "AdapterKind",
    "BackendError",
    "CartSnapshot",
    "Commerce",
    "CommerceError",
    "CommerceEvent",
    "Customer",
    "EventBus",
    "ItemNotInCartError",
    "LineItem",
    "NotAuthenticatedError",
    "Order",
    "SessionExpiredError",
    "Settings",
    "ShippingAddress",
    "UnsupportedOperationError",
]
