"""HTTP server for the storefront commerce core with an SSE event stream."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .config import Settings
from .errors import (
    BackendError,
    CommerceError,
    ItemNotInCartError,
    NotAuthenticatedError,
    SessionExpiredError,
    UnsupportedOperationError,
)
from .events import CommerceEvent
from .facade import Commerce
from .models import Customer, LineItem, ShippingAddress

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-http-server")

KEEPALIVE_SECONDS = 30
EVENT_QUEUE_SIZE = 100


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    # Startup
    logger.info("Starting Storefront HTTP Server...")
    if getattr(app.state, "commerce", None) is None:
        app.state.commerce = Commerce(Settings.from_env())

    yield

    # Shutdown
    logger.info("Shutting down Storefront HTTP Server...")
    await app.state.commerce.aclose()


app = FastAPI(
    title="Storefront Commerce Server",
    description="HTTP API for cart, order and account operations",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class UpdateQuantityRequest(BaseModel):
    quantity: int


class CreateOrderRequest(BaseModel):
    customer: Customer
    shipping: ShippingAddress
    clear_cart: bool = True


class LoginRequest(BaseModel):
    email: str


class VerifyRequest(BaseModel):
    email: str
    code: str
    hash: str
    exp: int


def get_commerce(request: Request) -> Commerce:
    return request.app.state.commerce


def dump(model: Optional[BaseModel]) -> Any:
    return model.model_dump(mode="json", by_alias=True) if model is not None else None


def dump_detail(detail: dict[str, Any]) -> dict[str, Any]:
    """Make an event detail JSON-serializable."""
    return {
        key: dump(value) if isinstance(value, BaseModel) else value
        for key, value in detail.items()
    }


def enqueue_event(queue: asyncio.Queue, name: str, detail: dict[str, Any]) -> None:
    """Queue an event for an SSE client, dropping it if the client has fallen behind."""
    try:
        queue.put_nowait((name, dump_detail(detail)))
    except asyncio.QueueFull:
        logger.warning(f"SSE client is not keeping up, dropping {name}")


STATUS_BY_ERROR = [
    (ItemNotInCartError, 404),
    (NotAuthenticatedError, 401),
    (SessionExpiredError, 401),
    (BackendError, 502),
    (UnsupportedOperationError, 501),
]


@app.exception_handler(CommerceError)
async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    status_code = next((code for error, code in STATUS_BY_ERROR if isinstance(exc, error)), 500)
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    content: dict[str, Any] = {"detail": str(exc)}
    if isinstance(exc, BackendError):
        content["upstream_status"] = exc.status
    return JSONResponse(status_code=status_code, content=content)


@app.middleware("http")
async def mirror_cookies(request: Request, call_next):
    """Attach the cookies the commerce core mirrors (cart item count) to every response."""
    response = await call_next(request)
    commerce = getattr(request.app.state, "commerce", None)
    if commerce is not None:
        for value in commerce.cookies.header_values():
            response.headers.append("set-cookie", value)
    return response


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    commerce = get_commerce(request)
    return {
        "status": "healthy",
        "adapter": commerce.adapter_kind().value,
        "resolver": commerce.state.value,
    }


# Cart endpoints
@app.get("/cart")
async def get_cart(request: Request):
    """Get current shopping cart."""
    return dump(await get_commerce(request).get_cart())


@app.post("/cart/items")
async def add_to_cart(item: LineItem, request: Request):
    """Add a product to the cart."""
    return dump(await get_commerce(request).add_to_cart(item))


@app.patch("/cart/items/{sku}")
async def update_cart_item(sku: str, body: UpdateQuantityRequest, request: Request):
    """Set the quantity of a cart line; zero or below removes it."""
    return dump(await get_commerce(request).update_item_quantity(sku, body.quantity))


@app.delete("/cart/items/{sku}")
async def remove_cart_item(sku: str, request: Request):
    """Remove a product from the cart."""
    return dump(await get_commerce(request).remove_item(sku))


@app.delete("/cart")
async def clear_cart(request: Request):
    """Empty the cart."""
    return dump(await get_commerce(request).clear_cart())


# Order endpoints
@app.post("/orders")
async def create_order(body: CreateOrderRequest, request: Request):
    """Place an order for the current cart, then empty the cart unless clear_cart is false."""
    commerce = get_commerce(request)
    cart = await commerce.get_cart()
    if not cart.items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    order = await commerce.create_order(body.customer, body.shipping)
    if body.clear_cart:
        await commerce.clear_cart()
    return {"order": dump(order)}


@app.get("/orders/{order_id}")
async def get_order(order_id: str, request: Request, email: Optional[str] = None):
    """Get a single order."""
    order = await get_commerce(request).get_order(order_id, email)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return {"order": dump(order)}


# Authentication endpoints
@app.post("/auth/login")
async def login(body: LoginRequest, request: Request):
    """Request a one-time code."""
    handle = await get_commerce(request).login(body.email)
    return dump(handle)


@app.post("/auth/verify")
async def verify(body: VerifyRequest, request: Request):
    """Exchange a one-time code for a session."""
    result = await get_commerce(request).verify_code(body.email, body.code, body.hash, body.exp)
    return {"success": True, "email": result.email, "roles": result.roles}


@app.post("/auth/logout")
async def logout(request: Request):
    """Sign out."""
    await get_commerce(request).logout()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/auth/status")
async def auth_status(request: Request):
    """Get authentication status."""
    commerce = get_commerce(request)
    logged_in = await commerce.is_logged_in()
    user = await commerce.get_customer()
    return {
        "authenticated": logged_in,
        "email": user.email if logged_in and user else None,
    }


# Account endpoints
@app.get("/account/profile")
async def account_profile(request: Request):
    commerce = get_commerce(request)
    profile = await commerce.get_customer_profile()
    if profile is None:
        user = await commerce.get_customer()
        return {"customer": {"email": user.email if user else None}}
    return {"customer": dump(profile)}


@app.get("/account/orders")
async def account_orders(request: Request):
    orders = await get_commerce(request).get_orders()
    return {"count": len(orders), "orders": [dump(order) for order in orders]}


@app.get("/account/addresses")
async def account_addresses(request: Request):
    addresses = await get_commerce(request).get_addresses()
    return {"addresses": [dump(address) for address in addresses]}


# Event stream
@app.get("/events")
async def events_stream(request: Request):
    """
    Server-Sent Events stream of commerce events.

    Every cart, order and auth event is forwarded as an SSE message whose
    event name is the commerce event name and whose data is the JSON detail.
    """
    commerce = get_commerce(request)

    async def event_stream():
        """Forward queued events, pinging while idle."""
        queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
        unsubscribers = [
            commerce.on(event, lambda detail, name=event.value: enqueue_event(queue, name, detail))
            for event in CommerceEvent
        ]
        try:
            logger.info("SSE client connected")
            while True:
                if await request.is_disconnected():
                    logger.info("SSE client disconnected")
                    break
                try:
                    name, detail = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": ping\n\n"
                    continue
                yield f"event: {name}\ndata: {json.dumps(detail)}\n\n"
        except asyncio.CancelledError:
            logger.info("SSE stream cancelled")
            raise
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


def run_http_server(
    host: str = "0.0.0.0",
    port: int = 8000,
    reload: bool = False,
    settings: Optional[Settings] = None,
):
    """Run the HTTP server."""
    import uvicorn

    if reload:
        # The reloader imports the app afresh, so settings come from the environment
        uvicorn.run("storefront_server.http_server:app", host=host, port=port, reload=True, log_level="info")
    else:
        if settings is not None:
            app.state.commerce = Commerce(settings)
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
