"""Pytest configuration and fixtures"""
import json
from decimal import Decimal
from typing import Callable, Optional

import httpx
import pytest

from storefront_server.auth import AuthManager
from storefront_server.config import AdapterKind, Settings
from storefront_server.events import EventBus
from storefront_server.models import LineItem
from storefront_server.network_adapter import NetworkAdapter
from storefront_server.storage import CookieJar, MemoryStorage

API_ORIGIN = "https://backend.test"


class RecordingStorage(MemoryStorage):
    """Memory storage that remembers every write."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[tuple[str, str]] = []

    def set(self, key: str, value: str) -> None:
        self.writes.append((key, value))
        super().set(key, value)


def unexpected_request(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected request: {request.method} {request.url}")


def mock_client(handler: Callable[[httpx.Request], httpx.Response] = unexpected_request) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=API_ORIGIN, transport=httpx.MockTransport(handler))


def make_network_adapter(
    handler: Callable[[httpx.Request], httpx.Response] = unexpected_request,
    storage: Optional[MemoryStorage] = None,
    events: Optional[EventBus] = None,
    session_store: Optional[MemoryStorage] = None,
) -> NetworkAdapter:
    settings = Settings(adapter=AdapterKind.NETWORK, api_origin=API_ORIGIN, debounce_seconds=0.01)
    storage = storage if storage is not None else MemoryStorage()
    auth_manager = AuthManager(session_store if session_store is not None else MemoryStorage(), storage)
    return NetworkAdapter(
        settings,
        storage,
        auth_manager,
        events if events is not None else EventBus(),
        CookieJar(),
        client=mock_client(handler),
    )


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


@pytest.fixture
def network_settings():
    """Settings for a network-backed facade against the mock backend"""
    return Settings(adapter=AdapterKind.NETWORK, api_origin=API_ORIGIN, debounce_seconds=0.01)


@pytest.fixture
def local_settings():
    """Settings for a local-only facade"""
    return Settings(adapter=AdapterKind.LOCAL, api_origin=API_ORIGIN, debounce_seconds=0.01)


@pytest.fixture
def shirt():
    """Sample line item"""
    return LineItem(
        sku="SHIRT-1",
        name="Blue Shirt",
        quantity=1,
        price=Decimal("25.00"),
        currency="USD",
        image="https://cdn.example.com/media/shirt.jpg?width=750",
        url="/products/blue-shirt",
    )


@pytest.fixture
def mug():
    """Another sample line item"""
    return LineItem(sku="MUG-1", name="Mug", quantity=2, price=Decimal("8.50"), url="/products/mug")
