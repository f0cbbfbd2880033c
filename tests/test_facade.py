"""Tests for the commerce facade"""
import asyncio
from decimal import Decimal

import httpx
import pytest

from storefront_server.config import AdapterKind
from storefront_server.events import CommerceEvent
from storefront_server.facade import ADAPTER_OVERRIDE_KEY, Commerce, ResolverState
from storefront_server.local_adapter import LocalAdapter
from storefront_server.network_adapter import NetworkAdapter
from storefront_server.storage import MemoryStorage

from conftest import mock_client, request_json


def _commerce(settings, handler=None, storage=None) -> Commerce:
    return Commerce(
        settings,
        storage=storage if storage is not None else MemoryStorage(),
        client=mock_client(handler) if handler else mock_client(),
    )


class CountingCommerce(Commerce):
    """Facade that counts adapter builds and makes startup slow."""

    def __init__(self, *args, fail_first=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.builds = 0
        self.fail_first = fail_first

    def _build_adapter(self, kind):
        self.builds += 1
        adapter = super()._build_adapter(kind)
        original_start = adapter.start
        fail = self.fail_first and self.builds == 1

        async def slow_start():
            await asyncio.sleep(0.05)
            if fail:
                raise RuntimeError("storage unavailable")
            await original_start()

        adapter.start = slow_start
        return adapter


class TestCartFlow:
    """End-to-end cart behaviour through the facade."""

    @pytest.mark.asyncio
    async def test_add_merge_and_empty(self, network_settings):
        commerce = _commerce(network_settings)
        updates, empties = [], []
        commerce.on(CommerceEvent.CART_UPDATED, updates.append)
        commerce.on(CommerceEvent.CART_EMPTY, empties.append)

        cart = await commerce.add_to_cart({"sku": "A", "price": "10", "quantity": 2})
        assert cart.item_count == 2
        assert cart.subtotal == Decimal("20")
        assert cart.shipping == Decimal("10")

        cart = await commerce.add_to_cart({"sku": "A", "price": "10", "quantity": 1})
        assert cart.item_count == 3
        assert cart.subtotal == Decimal("30")

        cart = await commerce.update_item_quantity("A", 0)
        assert cart.items == []
        assert cart.item_count == 0

        assert [u["action"] for u in updates] == ["add", "add", "update"]
        assert len(empties) == 1
        assert empties[0]["cart"].item_count == 0
        await commerce.aclose()

    @pytest.mark.asyncio
    async def test_event_detail_carries_item_and_cart(self, local_settings, shirt):
        commerce = _commerce(local_settings)
        updates = []
        commerce.on(CommerceEvent.CART_UPDATED, updates.append)

        await commerce.add_to_cart(shirt)
        await commerce.remove_item("SHIRT-1")
        await commerce.clear_cart()

        add, remove, clear = updates
        assert add["item"] == shirt
        assert add["cart"].item_count == 1
        assert remove == {"cart": remove["cart"], "sku": "SHIRT-1", "action": "remove"}
        assert clear["action"] == "clear"

    @pytest.mark.asyncio
    async def test_clear_fires_cart_empty(self, local_settings, shirt):
        commerce = _commerce(local_settings)
        empties = []
        commerce.on(CommerceEvent.CART_EMPTY, empties.append)

        await commerce.add_to_cart(shirt)
        await commerce.clear_cart()

        assert len(empties) == 1

    @pytest.mark.asyncio
    async def test_get_cart_does_not_dispatch(self, local_settings):
        commerce = _commerce(local_settings)
        seen = []
        commerce.on(CommerceEvent.CART_UPDATED, seen.append)
        commerce.on(CommerceEvent.CART_EMPTY, seen.append)

        await commerce.get_cart()

        assert seen == []


class TestAdapterResolution:
    """Tests for adapter selection and single-flight startup."""

    @pytest.mark.asyncio
    async def test_default_from_settings(self, network_settings):
        commerce = _commerce(network_settings)

        assert isinstance(await commerce.ensure_adapter(), NetworkAdapter)
        await commerce.aclose()

    @pytest.mark.asyncio
    async def test_persisted_override_wins(self, network_settings):
        storage = MemoryStorage()
        storage.set(ADAPTER_OVERRIDE_KEY, "local")
        commerce = _commerce(network_settings, storage=storage)

        assert commerce.adapter_kind() is AdapterKind.LOCAL
        assert isinstance(await commerce.ensure_adapter(), LocalAdapter)

    @pytest.mark.asyncio
    async def test_unknown_override_falls_back(self, local_settings):
        storage = MemoryStorage()
        storage.set(ADAPTER_OVERRIDE_KEY, "carrier-pigeon")
        commerce = _commerce(local_settings, storage=storage)

        assert commerce.adapter_kind() is AdapterKind.LOCAL

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_resolution(self, local_settings):
        commerce = CountingCommerce(local_settings, storage=MemoryStorage())
        assert commerce.state is ResolverState.NOT_STARTED

        adapters = await asyncio.gather(*(commerce.ensure_adapter() for _ in range(5)))

        assert commerce.builds == 1
        assert all(adapter is adapters[0] for adapter in adapters)
        assert commerce.state is ResolverState.READY

    @pytest.mark.asyncio
    async def test_concurrent_operations_share_one_resolution(self, local_settings, shirt, mug):
        commerce = CountingCommerce(local_settings, storage=MemoryStorage())

        await asyncio.gather(commerce.add_to_cart(shirt), commerce.add_to_cart(mug), commerce.get_cart())

        assert commerce.builds == 1
        assert (await commerce.get_cart()).item_count == 3

    @pytest.mark.asyncio
    async def test_failed_resolution_can_be_retried(self, local_settings):
        commerce = CountingCommerce(local_settings, storage=MemoryStorage(), fail_first=True)

        with pytest.raises(RuntimeError):
            await commerce.ensure_adapter()
        assert commerce.state is ResolverState.NOT_STARTED

        adapter = await commerce.ensure_adapter()

        assert isinstance(adapter, LocalAdapter)
        assert commerce.builds == 2
        assert commerce.state is ResolverState.READY


class TestOrderAndAuthEvents:
    """Tests for the order and auth events dispatched by the facade."""

    @pytest.mark.asyncio
    async def test_order_created(self, local_settings, shirt):
        commerce = _commerce(local_settings)
        created = []
        commerce.on(CommerceEvent.ORDER_CREATED, created.append)
        await commerce.add_to_cart(shirt)

        order = await commerce.create_order({"email": "ada@example.com", "firstName": "Ada"}, {"city": "London"})

        assert created == [{"order": order}]
        assert order.customer.first_name == "Ada"
        assert order.shipping.city == "London"

    @pytest.mark.asyncio
    async def test_auth_state_changes(self, network_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/auth/login":
                return httpx.Response(200, json={"hash": "h", "exp": 99})
            if request.url.path == "/auth/callback":
                assert request_json(request)["code"] == "654321"
                return httpx.Response(200, json={"token": "t", "email": "ada@example.com", "roles": []})
            return httpx.Response(200)

        commerce = _commerce(network_settings, handler)
        changes = []
        commerce.on(CommerceEvent.AUTH_STATE_CHANGED, changes.append)

        handle = await commerce.login("ada@example.com")
        await commerce.verify_code("ada@example.com", "654321", handle.hash, handle.exp)
        assert await commerce.is_logged_in()
        assert (await commerce.get_customer()).email == "ada@example.com"

        await commerce.logout()

        assert changes == [
            {"loggedIn": True, "email": "ada@example.com"},
            {"loggedIn": False, "email": None},
        ]
        assert not await commerce.is_logged_in()
        await commerce.aclose()

    @pytest.mark.asyncio
    async def test_session_token_is_not_durable(self, network_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token": "t", "email": "ada@example.com", "roles": []})

        storage = MemoryStorage()
        commerce = _commerce(network_settings, handler, storage=storage)
        await commerce.verify_code("ada@example.com", "1", "h", 1)
        await commerce.aclose()

        restarted = _commerce(network_settings, storage=storage)

        assert not await restarted.is_logged_in()
        assert (await restarted.get_customer()).email == "ada@example.com"
        await restarted.aclose()
