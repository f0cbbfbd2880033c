"""Network-backed adapter: persisted cart, orders and auth via the commerce backend."""

import logging
from typing import Any, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .adapter import CommerceAdapter
from .auth import AuthManager
from .cart_store import DebouncedCartStore
from .config import Settings
from .errors import BackendError, NotAuthenticatedError, SessionExpiredError
from .events import CommerceEvent, EventBus
from .models import (
    AuthResult,
    AuthUser,
    Customer,
    Order,
    ShippingAddress,
    VerificationHandle,
)
from .orders import build_order_request
from .storage import CookieJar, MemoryStorage

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class NetworkAdapter(CommerceAdapter):
    """Client for the commerce backend's order and auth endpoints."""

    name = "network"
    STORAGE_KEY = "cart"

    def __init__(
        self,
        settings: Settings,
        storage: MemoryStorage,
        auth_manager: AuthManager,
        events: EventBus,
        cookies: CookieJar,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the network adapter.

        Args:
            settings: Commerce settings (backend origin, shipping, debounce)
            storage: Durable store for the cart envelope
            auth_manager: Authentication manager instance
            events: Bus used to announce involuntary logouts
            cookies: Cookie jar receiving the cart item count
            client: Preconfigured HTTP client (default: one for settings.api_origin)
        """
        super().__init__(
            DebouncedCartStore(
                storage,
                self.STORAGE_KEY,
                cookies,
                delay=settings.debounce_seconds,
                cookie_days=settings.cookie_days,
                free_shipping_threshold=settings.free_shipping_threshold,
                shipping_fee=settings.shipping_fee,
            )
        )
        self.settings = settings
        self.auth_manager = auth_manager
        self.events = events
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=settings.api_origin,
            timeout=settings.http_timeout,
            headers={"Accept": "application/json"},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        require_auth: bool = False,
        authenticate: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request to the backend.

        The bearer token is attached whenever one exists. Calls that need an
        identity fail before anything is sent when there is no token. A 401
        on a call that carried a token tears the session down.
        """
        token = self.auth_manager.get_token() if authenticate else None
        if require_auth and not token:
            raise NotAuthenticatedError(operation)

        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = await self.client.request(method, path, headers=headers, **kwargs)
        logger.info(f"{method} {path}: status={response.status_code}")

        if response.status_code == 401 and token:
            self._expire_session()
            raise SessionExpiredError(f"{operation} rejected")
        return response

    def _expect_ok(self, response: httpx.Response, message: str) -> dict[str, Any]:
        if not response.is_success:
            raise BackendError(response.status_code, message)
        return response.json()

    def _parse(self, model: type[ModelT], data: Any, response: httpx.Response, message: str) -> ModelT:
        """Validate a backend payload; a malformed one is a backend failure."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"{message}: {e.error_count()} validation error(s) in backend response")
            raise BackendError(response.status_code, message) from e

    def _expire_session(self) -> None:
        logger.warning("Backend rejected the bearer token, logging out")
        self.auth_manager.clear_session()
        self.events.dispatch(
            CommerceEvent.AUTH_STATE_CHANGED,
            {"loggedIn": False, "email": None, "reason": "token_expired"},
        )

    def _current_email(self, operation: str) -> str:
        user = self.auth_manager.get_user()
        if not self.auth_manager.is_authenticated() or user is None:
            raise NotAuthenticatedError(operation)
        return user.email

    # Orders

    async def create_order(self, customer: Customer, shipping: ShippingAddress) -> Order:
        """
        Submit the current cart as an order.

        Raises:
            BackendError: If the backend answers with a non-success status
        """
        cart = self.cart.snapshot()
        logger.info(f"=== CREATE ORDER: {len(cart.items)} line(s), subtotal={cart.subtotal} ===")
        body = build_order_request(cart, customer, shipping)

        response = await self._request(
            "POST",
            "/orders",
            operation="create an order",
            json=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        data = self._expect_ok(response, "Order creation failed")
        if not data.get("order"):
            raise BackendError(response.status_code, "Order creation returned no order")
        return self._parse(Order, data["order"], response, "Order creation returned a malformed order")

    async def get_order(self, order_id: str, email: Optional[str] = None) -> Optional[Order]:
        """
        Fetch a single order.

        Args:
            order_id: Order ID
            email: Customer email scoping the lookup (default: logged-in user's)
        """
        if email is None:
            user = self.auth_manager.get_user()
            email = user.email if user else None
        params = {"email": email} if email else None

        response = await self._request(
            "GET",
            f"/orders/{quote(order_id, safe='')}",
            operation="fetch an order",
            params=params,
        )
        data = self._expect_ok(response, "Order fetch failed")
        order = data.get("order")
        if not order:
            return None
        return self._parse(Order, order, response, "Order fetch returned a malformed order")

    # Auth

    async def login(self, email: str) -> VerificationHandle:
        """Request a one-time code for ``email``."""
        logger.info(f"=== LOGIN: email={email} ===")
        response = await self._request(
            "POST", "/auth/login", operation="log in", authenticate=False, json={"email": email}
        )
        data = self._expect_ok(response, "Login failed")
        handle = self._parse(VerificationHandle, data, response, "Login returned a malformed handle")
        self.auth_manager.mark_code_requested(email)
        return handle

    async def verify_code(self, email: str, code: str, hash: str, exp: int) -> AuthResult:
        """Exchange a one-time code for a bearer token."""
        logger.info(f"=== VERIFY CODE: email={email} ===")
        response = await self._request(
            "POST",
            "/auth/callback",
            operation="verify a code",
            authenticate=False,
            json={"email": email, "code": code, "hash": hash, "exp": exp},
        )
        data = self._expect_ok(response, "Verification failed")
        result = self._parse(AuthResult, data, response, "Verification returned a malformed session")
        self.auth_manager.save_session(result)
        return result

    async def logout(self) -> None:
        """Notify the backend if possible, then always clear the local session."""
        headers = self.auth_manager.auth_headers()
        try:
            response = await self.client.post("/auth/logout", headers=headers)
            if not response.is_success:
                logger.warning(f"Logout request returned {response.status_code}")
        except httpx.HTTPError as e:
            logger.warning(f"Logout request failed: {e}")
        self.auth_manager.clear_session()

    async def is_logged_in(self) -> bool:
        return self.auth_manager.is_authenticated()

    async def get_customer(self) -> Optional[AuthUser]:
        return self.auth_manager.get_user()

    async def get_customer_profile(self) -> Optional[Customer]:
        """Full customer record, or None if the backend has none yet."""
        email = self._current_email("view the customer profile")
        response = await self._request(
            "GET",
            f"/customers/{quote(email, safe='')}",
            operation="view the customer profile",
            require_auth=True,
        )
        if response.status_code == 404:
            return None
        data = self._expect_ok(response, "Customer fetch failed")
        customer = data.get("customer")
        if not customer:
            return None
        return self._parse(Customer, customer, response, "Customer fetch returned a malformed record")

    async def get_orders(self) -> list[Order]:
        email = self._current_email("view orders")
        response = await self._request(
            "GET",
            f"/customers/{quote(email, safe='')}/orders",
            operation="view orders",
            require_auth=True,
        )
        data = self._expect_ok(response, "Order history fetch failed")
        return [
            self._parse(Order, o, response, "Order history contained a malformed order")
            for o in data.get("orders") or []
        ]

    async def get_addresses(self) -> list[ShippingAddress]:
        email = self._current_email("view addresses")
        response = await self._request(
            "GET",
            f"/customers/{quote(email, safe='')}/addresses",
            operation="view addresses",
            require_auth=True,
        )
        data = self._expect_ok(response, "Address fetch failed")
        return [
            self._parse(ShippingAddress, a, response, "Address fetch returned a malformed address")
            for a in data.get("addresses") or []
        ]

    async def aclose(self) -> None:
        """Write any pending cart state and close the HTTP client if this adapter created it."""
        self.cart.flush()
        if self._owns_client:
            await self.client.aclose()
