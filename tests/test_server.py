"""Tests for the MCP tool handlers"""
from decimal import Decimal

import httpx
import pytest

from storefront_server import server
from storefront_server.facade import Commerce
from storefront_server.models import CartSnapshot, LineItem
from storefront_server.storage import MemoryStorage

from conftest import mock_client


@pytest.fixture
def use_commerce(monkeypatch):
    """Install a facade as the server's global commerce object"""
    server.pending_codes.clear()

    def install(settings, handler=None):
        commerce = Commerce(settings, storage=MemoryStorage(), client=mock_client(handler) if handler else mock_client())
        monkeypatch.setattr(server, "commerce", commerce, raising=False)
        return commerce

    yield install
    server.pending_codes.clear()


async def _call(name, arguments=None) -> str:
    result = await server.call_tool(name, arguments)
    return result[0].text


class TestFormatting:
    def test_empty_cart(self):
        assert server.format_cart(CartSnapshot()) == "Your cart is empty"

    def test_cart_totals(self):
        item = LineItem(sku="A", name="Lamp", price=Decimal("10"), quantity=2)
        cart = CartSnapshot(items=[item], item_count=2, subtotal=Decimal("20"), shipping=Decimal("10"))

        output = server.format_cart(cart)

        assert "Shopping Cart (2 items)" in output
        assert "Lamp" in output
        assert "Price: 10 USD" in output
        assert "Total: 30" in output


class TestTools:
    @pytest.mark.asyncio
    async def test_tool_list(self):
        tools = await server.list_tools()

        names = {tool.name for tool in tools}
        assert {"storefront_add_to_cart", "storefront_create_order", "storefront_verify_code"} <= names

    @pytest.mark.asyncio
    async def test_add_and_get_cart(self, use_commerce, local_settings):
        use_commerce(local_settings)

        added = await _call("storefront_add_to_cart", {"sku": "A", "name": "Lamp", "price": 10, "quantity": 2})
        assert added.startswith("Added A (quantity: 2) to cart")

        cart = await _call("storefront_get_cart", {})
        assert "Shopping Cart (2 items)" in cart
        assert "Subtotal: 20" in cart

    @pytest.mark.asyncio
    async def test_create_order_clears_cart(self, use_commerce, local_settings):
        use_commerce(local_settings)
        await _call("storefront_add_to_cart", {"sku": "A", "price": 10})

        placed = await _call(
            "storefront_create_order",
            {"customer": {"email": "ada@example.com"}, "shipping": {"city": "London"}},
        )

        assert "Order #mock-1" in placed
        assert await _call("storefront_get_cart") == "Your cart is empty"

    @pytest.mark.asyncio
    async def test_create_order_on_empty_cart(self, use_commerce, local_settings):
        use_commerce(local_settings)

        assert await _call("storefront_create_order", {"customer": {}, "shipping": {}}) == "Error: Cart is empty"

    @pytest.mark.asyncio
    async def test_errors_are_reported_as_text(self, use_commerce, network_settings):
        use_commerce(network_settings)

        output = await _call("storefront_remove_from_cart", {"sku": "GHOST"})

        assert output == "Error: Item GHOST not in cart"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, use_commerce, local_settings):
        use_commerce(local_settings)

        assert await _call("storefront_teleport", {}) == "Unknown tool: storefront_teleport"

    @pytest.mark.asyncio
    async def test_verify_without_login(self, use_commerce, network_settings):
        use_commerce(network_settings)

        output = await _call("storefront_verify_code", {"email": "ada@example.com", "code": "123456"})

        assert output.startswith("Error: No code was requested for ada@example.com")

    @pytest.mark.asyncio
    async def test_login_then_verify_uses_stored_handle(self, use_commerce, network_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/auth/login":
                return httpx.Response(200, json={"hash": "h-7", "exp": 7})
            assert request.url.path == "/auth/callback"
            assert request.content and b'"hash":"h-7"' in request.content.replace(b" ", b"")
            return httpx.Response(200, json={"token": "t", "email": "ada@example.com", "roles": []})

        commerce = use_commerce(network_settings, handler)

        await _call("storefront_login", {"email": "ada@example.com"})
        output = await _call("storefront_verify_code", {"email": "ada@example.com", "code": "123456"})

        assert output == "Successfully logged in as ada@example.com"
        assert "ada@example.com" not in server.pending_codes
        assert await commerce.is_logged_in()
        await commerce.aclose()

    @pytest.mark.asyncio
    async def test_account_requires_login(self, use_commerce, local_settings):
        use_commerce(local_settings)

        assert (await _call("storefront_get_account")).startswith("Error: Not authenticated")
