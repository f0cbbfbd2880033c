"""Capability set shared by every backend adapter."""

from typing import Optional

from .cart_store import CartStore
from .errors import UnsupportedOperationError
from .models import AuthResult, AuthUser, CartSnapshot, Customer, LineItem, Order, ShippingAddress, VerificationHandle


class CommerceAdapter:
    """
    Base adapter: cart operations go to the cart store, auth is absent.

    Subclasses implement orders and may override the auth capabilities.
    Auth queries on an adapter without authentication answer false/None
    instead of failing; auth commands raise UnsupportedOperationError.
    """

    name = "base"

    def __init__(self, cart: CartStore) -> None:
        self.cart = cart

    async def start(self) -> None:
        """Restore persisted state before first use."""
        self.cart.restore()

    # Cart

    async def add_to_cart(self, item: LineItem) -> CartSnapshot:
        return self.cart.add(item)

    async def get_cart(self) -> CartSnapshot:
        return self.cart.snapshot()

    async def update_item_quantity(self, sku: str, quantity: int) -> CartSnapshot:
        return self.cart.update_quantity(sku, quantity)

    async def remove_item(self, sku: str) -> CartSnapshot:
        return self.cart.remove(sku)

    async def clear_cart(self) -> CartSnapshot:
        return self.cart.clear()

    # Orders

    async def create_order(self, customer: Customer, shipping: ShippingAddress) -> Order:
        raise UnsupportedOperationError(self.name, "create_order")

    async def get_order(self, order_id: str, email: Optional[str] = None) -> Optional[Order]:
        raise UnsupportedOperationError(self.name, "get_order")

    # Auth

    async def login(self, email: str) -> VerificationHandle:
        raise UnsupportedOperationError(self.name, "login")

    async def verify_code(self, email: str, code: str, hash: str, exp: int) -> AuthResult:
        raise UnsupportedOperationError(self.name, "verify_code")

    async def logout(self) -> None:
        pass

    async def is_logged_in(self) -> bool:
        return False

    async def get_customer(self) -> Optional[AuthUser]:
        return None

    async def get_customer_profile(self) -> Optional[Customer]:
        return None

    async def get_orders(self) -> list[Order]:
        return []

    async def get_addresses(self) -> list[ShippingAddress]:
        return []

    async def aclose(self) -> None:
        """Release resources held by the adapter."""
