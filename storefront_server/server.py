"""MCP Server exposing the storefront commerce core as tools."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .config import Settings
from .events import CommerceEvent
from .facade import Commerce
from .models import CartSnapshot, LineItem, Order, VerificationHandle

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-mcp-server")

# Initialize server
app = Server("storefront-mcp-server")

# Global state
commerce: Commerce
pending_codes: dict[str, VerificationHandle] = {}


def format_cart(cart: CartSnapshot) -> str:
    """Render a cart as readable text."""
    if not cart.items:
        return "Your cart is empty"

    result_lines = [f"Shopping Cart ({cart.item_count} items):\n"]
    for i, item in enumerate(cart.items, 1):
        currency = item.currency or "USD"
        result_lines.append(f"\n{i}. {item.name or item.sku}")
        result_lines.append(f"   SKU: {item.sku}")
        result_lines.append(f"   Price: {item.price} {currency}")
        result_lines.append(f"   Quantity: {item.quantity}")

    result_lines.append(f"\n{'='*50}")
    result_lines.append(f"Subtotal: {cart.subtotal}")
    result_lines.append(f"Shipping: {cart.shipping}")
    result_lines.append(f"Total: {cart.subtotal + cart.shipping}")
    return "\n".join(result_lines)


def format_order(order: Order) -> str:
    """Render an order as readable text."""
    result_lines = [f"Order #{order.id}"]
    result_lines.append(f"Status: {order.state or 'unknown'}")
    if order.created_at:
        result_lines.append(f"Date: {order.created_at}")
    if order.items:
        result_lines.append(f"Items ({len(order.items)}):")
        for item in order.items:
            result_lines.append(
                f"  - {item.name or item.sku} x{item.quantity} ({item.price.final} {item.price.currency})"
            )
    return "\n".join(result_lines)


def text(message: str) -> list[TextContent]:
    return [TextContent(type="text", text=message)]


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = [
        Resource(
            uri=AnyUrl("storefront://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current shopping cart contents",
        )
    ]

    # Order history needs a logged-in customer
    if await commerce.is_logged_in():
        resources.append(
            Resource(
                uri=AnyUrl("storefront://orders"),
                name="Orders",
                mimeType="application/json",
                description="Customer's order history",
            )
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "storefront://cart":
        cart = await commerce.get_cart()
        return cart.model_dump_json(indent=2, by_alias=True)

    elif uri_str == "storefront://orders":
        if not await commerce.is_logged_in():
            return "Error: Not authenticated. Please login first."

        orders = await commerce.get_orders()
        result = [order.model_dump(mode="json", by_alias=True) for order in orders]
        return json.dumps(result, indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="storefront_add_to_cart",
            description="Add a product to the shopping cart. Adding a sku already in the cart increases its quantity.",
            inputSchema={
                "type": "object",
                "properties": {
                    "sku": {"type": "string", "description": "Product SKU"},
                    "name": {"type": "string", "description": "Product name"},
                    "price": {"type": "number", "description": "Unit price"},
                    "quantity": {
                        "type": "integer",
                        "description": "Quantity to add (default: 1)",
                        "default": 1,
                    },
                    "currency": {"type": "string", "description": "Currency code (default: USD)"},
                    "image": {"type": "string", "description": "Product image URL"},
                    "url": {"type": "string", "description": "Product page path"},
                },
                "required": ["sku", "price"],
            },
        ),
        Tool(
            name="storefront_get_cart",
            description="Get current shopping cart contents with subtotal and shipping",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_update_cart_quantity",
            description="Set the quantity of a cart line. A quantity of 0 or less removes it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "sku": {"type": "string", "description": "SKU to update"},
                    "quantity": {"type": "integer", "description": "New quantity"},
                },
                "required": ["sku", "quantity"],
            },
        ),
        Tool(
            name="storefront_remove_from_cart",
            description="Remove a product from the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {"sku": {"type": "string", "description": "SKU to remove"}},
                "required": ["sku"],
            },
        ),
        Tool(
            name="storefront_clear_cart",
            description="Remove every item from the shopping cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_create_order",
            description="Place an order for the current cart contents",
            inputSchema={
                "type": "object",
                "properties": {
                    "customer": {
                        "type": "object",
                        "description": "Customer details (email, firstName, lastName)",
                    },
                    "shipping": {
                        "type": "object",
                        "description": "Shipping address (name, address1, address2, city, state, zip, country)",
                    },
                    "clear_cart": {
                        "type": "boolean",
                        "description": "Empty the cart once the order is placed (default: true)",
                        "default": True,
                    },
                },
                "required": ["customer", "shipping"],
            },
        ),
        Tool(
            name="storefront_get_order",
            description="Get a single order by ID",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID"},
                    "email": {"type": "string", "description": "Customer email (optional when logged in)"},
                },
                "required": ["order_id"],
            },
        ),
        Tool(
            name="storefront_login",
            description="Request a one-time sign-in code by email",
            inputSchema={
                "type": "object",
                "properties": {"email": {"type": "string", "description": "User email address"}},
                "required": ["email"],
            },
        ),
        Tool(
            name="storefront_verify_code",
            description="Complete sign-in with the one-time code sent by email",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string", "description": "User email address"},
                    "code": {"type": "string", "description": "6-digit code"},
                },
                "required": ["email", "code"],
            },
        ),
        Tool(
            name="storefront_logout",
            description="Sign out and clear the session",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_get_account",
            description="Get the signed-in customer's profile and order history",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "storefront_add_to_cart":
            item = LineItem.model_validate(arguments)
            cart = await commerce.add_to_cart(item)
            return text(f"Added {item.sku} (quantity: {item.quantity}) to cart\n\n{format_cart(cart)}")

        elif name == "storefront_get_cart":
            return text(format_cart(await commerce.get_cart()))

        elif name == "storefront_update_cart_quantity":
            sku = arguments["sku"]
            quantity = int(arguments["quantity"])
            cart = await commerce.update_item_quantity(sku, quantity)
            return text(f"Updated {sku} to quantity {quantity}\n\n{format_cart(cart)}")

        elif name == "storefront_remove_from_cart":
            sku = arguments["sku"]
            cart = await commerce.remove_item(sku)
            return text(f"Removed {sku} from cart\n\n{format_cart(cart)}")

        elif name == "storefront_clear_cart":
            await commerce.clear_cart()
            return text("Cart cleared")

        elif name == "storefront_create_order":
            cart = await commerce.get_cart()
            if not cart.items:
                return text("Error: Cart is empty")

            order = await commerce.create_order(arguments["customer"], arguments["shipping"])
            if arguments.get("clear_cart", True):
                await commerce.clear_cart()
            return text(f"Order placed\n\n{format_order(order)}")

        elif name == "storefront_get_order":
            order_id = arguments["order_id"]
            order = await commerce.get_order(order_id, arguments.get("email"))
            if not order:
                return text(f"Order {order_id} not found")
            return text(format_order(order))

        elif name == "storefront_login":
            email = arguments["email"]
            pending_codes[email] = await commerce.login(email)
            return text(f"A sign-in code was sent to {email}. Call storefront_verify_code with it.")

        elif name == "storefront_verify_code":
            email = arguments["email"]
            handle = pending_codes.get(email)
            if handle is None:
                return text(f"Error: No code was requested for {email}. Call storefront_login first.")

            result = await commerce.verify_code(email, arguments["code"], handle.hash, handle.exp)
            pending_codes.pop(email, None)
            return text(f"Successfully logged in as {result.email}")

        elif name == "storefront_logout":
            await commerce.logout()
            return text("Successfully logged out")

        elif name == "storefront_get_account":
            if not await commerce.is_logged_in():
                return text("Error: Not authenticated. Please login first.")

            profile = await commerce.get_customer_profile()
            user = await commerce.get_customer()
            email = (profile.email if profile else None) or (user.email if user else "")

            result_lines = [f"Account: {email}"]
            if profile and (profile.first_name or profile.last_name):
                full_name = " ".join(filter(None, [profile.first_name, profile.last_name]))
                result_lines.append(f"Name: {full_name}")

            orders = await commerce.get_orders()
            if not orders:
                result_lines.append("\nNo orders yet.")
            else:
                result_lines.append(f"\nFound {len(orders)} order(s):")
                for order in orders:
                    result_lines.append("")
                    result_lines.append(format_order(order))
            return text("\n".join(result_lines))

        else:
            return text(f"Unknown tool: {name}")

    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return text(f"Error: {str(e)}")


def _log_event(name: str):
    def listener(detail: dict[str, Any]) -> None:
        logger.info(f"{name}: {', '.join(sorted(detail))}")

    return listener


async def main(settings: Optional[Settings] = None) -> None:
    """Main entry point for the MCP server."""
    global commerce

    commerce = Commerce(settings or Settings.from_env())
    for event in CommerceEvent:
        commerce.on(event, _log_event(event.value))

    logger.info(f"Starting Storefront MCP Server ({commerce.adapter_kind().value} adapter)...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await commerce.aclose()


if __name__ == "__main__":
    asyncio.run(main())
