"""Commerce event names and the in-process event bus."""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], None]
Policy = Callable[[str, dict[str, Any]], Iterable[tuple[str, dict[str, Any]]]]


class CommerceEvent(str, Enum):
    """Standard commerce event names."""

    CART_UPDATED = "commerce:cart-updated"
    CART_EMPTY = "commerce:cart-empty"
    ORDER_CREATED = "commerce:order-created"
    AUTH_STATE_CHANGED = "commerce:auth-state-changed"


def derive_events(name: str, detail: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    """
    Secondary events implied by a primary one.

    A cart update whose cart holds no items also counts as the cart becoming
    empty; the derived event carries the very same detail. The cart may be a
    snapshot model or its serialized dict form.
    """
    if name == CommerceEvent.CART_UPDATED.value and _item_count(detail.get("cart")) == 0:
        return [(CommerceEvent.CART_EMPTY.value, detail)]
    return []


def _item_count(cart: Any) -> Optional[int]:
    if isinstance(cart, dict):
        return cart.get("itemCount", cart.get("item_count"))
    return getattr(cart, "item_count", None)


class EventBus:
    """Synchronous publish/subscribe for commerce events."""

    def __init__(self, policy: Policy = derive_events) -> None:
        self._listeners: defaultdict[str, list[Listener]] = defaultdict(list)
        self._policy = policy

    def listen(self, name: str, callback: Listener) -> Callable[[], None]:
        """
        Register a listener for a commerce event.

        Returns:
            A callback that removes the listener again
        """
        key = _event_name(name)
        self._listeners[key].append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners[key]:
                self._listeners[key].remove(callback)

        return unsubscribe

    def dispatch(self, name: str, detail: dict[str, Any]) -> None:
        """Notify all current listeners of ``name``, then fire any derived events."""
        key = _event_name(name)
        self._notify(key, detail)
        for derived_name, derived_detail in self._policy(key, detail):
            self._notify(derived_name, derived_detail)

    def _notify(self, name: str, detail: dict[str, Any]) -> None:
        for callback in list(self._listeners.get(name, [])):
            try:
                callback(detail)
            except Exception:
                logger.exception(f"Listener for {name} failed")


def _event_name(name: Any) -> str:
    return name.value if isinstance(name, CommerceEvent) else str(name)
