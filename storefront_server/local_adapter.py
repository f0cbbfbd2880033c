"""Local-only adapter: persisted cart, in-memory orders, no network calls."""

import logging
from datetime import datetime, timezone
from typing import Optional

from .adapter import CommerceAdapter
from .cart_store import ImmediateCartStore
from .models import CartSnapshot, Customer, LineItem, Order, ShippingAddress
from .orders import build_order_request
from .storage import MemoryStorage

logger = logging.getLogger(__name__)


class LocalAdapter(CommerceAdapter):
    """
    Adapter for development and tests without a backend.

    The cart is written through to storage on every change. Orders get
    locally incrementing ids and are kept in memory only, so they are lost
    when the process exits. There is no authentication.
    """

    name = "local"
    STORAGE_KEY = "mock-cart"

    def __init__(self, storage: MemoryStorage) -> None:
        super().__init__(ImmediateCartStore(storage, self.STORAGE_KEY))
        self._order_counter = 0
        self._orders: dict[str, Order] = {}

    async def add_to_cart(self, item: LineItem) -> CartSnapshot:
        logger.info(f"[local] add_to_cart {item.sku} x{item.quantity}")
        return await super().add_to_cart(item)

    async def update_item_quantity(self, sku: str, quantity: int) -> CartSnapshot:
        logger.info(f"[local] update_item_quantity {sku} -> {quantity}")
        return await super().update_item_quantity(sku, quantity)

    async def remove_item(self, sku: str) -> CartSnapshot:
        logger.info(f"[local] remove_item {sku}")
        return await super().remove_item(sku)

    async def clear_cart(self) -> CartSnapshot:
        logger.info("[local] clear_cart")
        return await super().clear_cart()

    async def create_order(self, customer: Customer, shipping: ShippingAddress) -> Order:
        request = build_order_request(self.cart.snapshot(), customer, shipping)
        self._order_counter += 1

        order = Order(
            id=f"mock-{self._order_counter}",
            customer=request.customer,
            shipping=request.shipping,
            items=request.items,
            state="completed",
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._orders[order.id] = order
        logger.info(f"[local] create_order {order.id} with {len(order.items)} line(s)")
        return order.model_copy(deep=True)

    async def get_order(self, order_id: str, email: Optional[str] = None) -> Optional[Order]:
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order else None
