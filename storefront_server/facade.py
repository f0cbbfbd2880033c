"""
Commerce facade: the single public interface for all commerce operations.

UI surfaces hold one ``Commerce`` object for the lifetime of the
application session. The active adapter is resolved on first use, exactly
once, and cart-mutating operations dispatch standardized events after the
adapter completes its work.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Union

import httpx

from .adapter import CommerceAdapter
from .auth import AuthManager
from .config import AdapterKind, Settings
from .events import CommerceEvent, EventBus, Listener
from .local_adapter import LocalAdapter
from .models import (
    AuthResult,
    AuthUser,
    CartSnapshot,
    Customer,
    LineItem,
    Order,
    ShippingAddress,
    VerificationHandle,
)
from .network_adapter import NetworkAdapter
from .storage import CookieJar, JsonFileStorage, MemoryStorage

logger = logging.getLogger(__name__)

ADAPTER_OVERRIDE_KEY = "commerce-adapter"


class ResolverState(str, Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    READY = "ready"


class Commerce:
    """Facade over the active commerce adapter."""

    EVENTS = CommerceEvent

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        events: Optional[EventBus] = None,
        storage: Optional[MemoryStorage] = None,
        session_storage: Optional[MemoryStorage] = None,
        cookies: Optional[CookieJar] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the facade. Nothing is loaded until the first operation.

        Args:
            settings: Commerce settings (default: from environment)
            events: Event bus shared with UI surfaces
            storage: Durable store (default: JSON file at settings.state_file)
            session_storage: Ephemeral store for the bearer token
            cookies: Cookie jar receiving the cart item count
            client: HTTP client handed to the network adapter
        """
        self.settings = settings or Settings.from_env()
        self.events = events if events is not None else EventBus()
        self.storage = storage if storage is not None else JsonFileStorage(self.settings.state_file)
        self.session_storage = session_storage if session_storage is not None else MemoryStorage()
        self.cookies = cookies if cookies is not None else CookieJar()
        self._client = client
        self._adapter: Optional[CommerceAdapter] = None
        self._state = ResolverState.NOT_STARTED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ResolverState:
        return self._state

    def adapter_kind(self) -> AdapterKind:
        """Persisted override if it names a known adapter, else the configured default."""
        override = self.storage.get(ADAPTER_OVERRIDE_KEY)
        if override:
            try:
                return AdapterKind(override)
            except ValueError:
                logger.warning(f"Ignoring unknown adapter override {override!r}")
        return self.settings.adapter

    def _build_adapter(self, kind: AdapterKind) -> CommerceAdapter:
        if kind is AdapterKind.LOCAL:
            return LocalAdapter(self.storage)
        return NetworkAdapter(
            self.settings,
            self.storage,
            AuthManager(self.session_storage, self.storage),
            self.events,
            self.cookies,
            client=self._client,
        )

    async def ensure_adapter(self) -> CommerceAdapter:
        """
        Resolve the active adapter.

        Concurrent callers share one resolution; the adapter is built and
        started at most once. A failed resolution can be retried.
        """
        if self._adapter is not None:
            return self._adapter

        async with self._lock:
            if self._adapter is None:
                self._state = ResolverState.IN_FLIGHT
                kind = self.adapter_kind()
                try:
                    adapter = self._build_adapter(kind)
                    await adapter.start()
                except Exception:
                    self._state = ResolverState.NOT_STARTED
                    raise
                self._adapter = adapter
                self._state = ResolverState.READY
                logger.info(f"Commerce adapter ready: {kind.value}")
        return self._adapter

    def on(self, name: Union[str, CommerceEvent], callback: Listener) -> Callable[[], None]:
        """Subscribe to a commerce event; returns the unsubscribe callback."""
        return self.events.listen(name, callback)

    # Cart

    async def add_to_cart(self, item: Union[LineItem, dict[str, Any]]) -> CartSnapshot:
        item = LineItem.model_validate(item) if isinstance(item, dict) else item
        adapter = await self.ensure_adapter()
        cart = await adapter.add_to_cart(item)
        self.events.dispatch(CommerceEvent.CART_UPDATED, {"cart": cart, "item": item, "action": "add"})
        return cart

    async def get_cart(self) -> CartSnapshot:
        adapter = await self.ensure_adapter()
        return await adapter.get_cart()

    async def update_item_quantity(self, sku: str, quantity: int) -> CartSnapshot:
        adapter = await self.ensure_adapter()
        cart = await adapter.update_item_quantity(sku, quantity)
        self.events.dispatch(
            CommerceEvent.CART_UPDATED,
            {"cart": cart, "sku": sku, "quantity": quantity, "action": "update"},
        )
        return cart

    async def remove_item(self, sku: str) -> CartSnapshot:
        adapter = await self.ensure_adapter()
        cart = await adapter.remove_item(sku)
        self.events.dispatch(CommerceEvent.CART_UPDATED, {"cart": cart, "sku": sku, "action": "remove"})
        return cart

    async def clear_cart(self) -> CartSnapshot:
        adapter = await self.ensure_adapter()
        cart = await adapter.clear_cart()
        self.events.dispatch(CommerceEvent.CART_UPDATED, {"cart": cart, "action": "clear"})
        return cart

    # Orders

    async def create_order(
        self,
        customer: Union[Customer, dict[str, Any]],
        shipping: Union[ShippingAddress, dict[str, Any]],
    ) -> Order:
        customer = Customer.model_validate(customer) if isinstance(customer, dict) else customer
        shipping = ShippingAddress.model_validate(shipping) if isinstance(shipping, dict) else shipping
        adapter = await self.ensure_adapter()
        order = await adapter.create_order(customer, shipping)
        self.events.dispatch(CommerceEvent.ORDER_CREATED, {"order": order})
        return order

    async def get_order(self, order_id: str, email: Optional[str] = None) -> Optional[Order]:
        adapter = await self.ensure_adapter()
        return await adapter.get_order(order_id, email)

    # Auth

    async def login(self, email: str) -> VerificationHandle:
        adapter = await self.ensure_adapter()
        return await adapter.login(email)

    async def verify_code(self, email: str, code: str, hash: str, exp: int) -> AuthResult:
        adapter = await self.ensure_adapter()
        result = await adapter.verify_code(email, code, hash, exp)
        self.events.dispatch(CommerceEvent.AUTH_STATE_CHANGED, {"loggedIn": True, "email": result.email})
        return result

    async def logout(self) -> None:
        adapter = await self.ensure_adapter()
        await adapter.logout()
        self.events.dispatch(CommerceEvent.AUTH_STATE_CHANGED, {"loggedIn": False, "email": None})

    async def is_logged_in(self) -> bool:
        adapter = await self.ensure_adapter()
        return await adapter.is_logged_in()

    async def get_customer(self) -> Optional[AuthUser]:
        adapter = await self.ensure_adapter()
        return await adapter.get_customer()

    async def get_customer_profile(self) -> Optional[Customer]:
        adapter = await self.ensure_adapter()
        return await adapter.get_customer_profile()

    async def get_orders(self) -> list[Order]:
        adapter = await self.ensure_adapter()
        return await adapter.get_orders()

    async def get_addresses(self) -> list[ShippingAddress]:
        adapter = await self.ensure_adapter()
        return await adapter.get_addresses()

    async def aclose(self) -> None:
        """Flush pending state and release the adapter's resources."""
        if self._adapter is not None:
            await self._adapter.aclose()
