"""Persisted cart state with derived totals."""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from .errors import ItemNotInCartError
from .models import STORAGE_VERSION, CartSnapshot, LineItem, StoredCartEnvelope
from .storage import CookieJar, MemoryStorage

logger = logging.getLogger(__name__)

ITEM_COUNT_COOKIE = "cart_items_count"


class CartStore:
    """
    Line items keyed by sku, persisted as a versioned envelope.

    The persisted value is read lazily on first use. Anything unreadable or
    written under another schema version is deleted and the cart starts
    empty. Reads always return fresh snapshots so callers never hold the
    internal item objects.
    """

    def __init__(
        self,
        storage: MemoryStorage,
        key: str,
        free_shipping_threshold: Optional[Decimal] = None,
        shipping_fee: Decimal = Decimal("0"),
    ) -> None:
        """
        Initialize the cart store.

        Args:
            storage: Store holding the persisted envelope
            key: Storage key of the envelope
            free_shipping_threshold: Subtotal from which shipping is free (None: always free)
            shipping_fee: Flat fee charged below the threshold
        """
        self.storage = storage
        self.key = key
        self.free_shipping_threshold = free_shipping_threshold
        self.shipping_fee = shipping_fee
        self._items: dict[str, LineItem] = {}
        self._restored = False

    def restore(self) -> None:
        """Load the persisted envelope once."""
        if self._restored:
            return
        self._restored = True

        raw = self.storage.get(self.key)
        if not raw:
            return
        try:
            envelope = StoredCartEnvelope.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cart under {self.key!r}: {e.error_count()} error(s)")
            self.storage.remove(self.key)
            return
        if envelope.version != STORAGE_VERSION:
            logger.warning(
                f"Discarding cart under {self.key!r}: version {envelope.version} != {STORAGE_VERSION}"
            )
            self.storage.remove(self.key)
            return

        self._items = {item.sku: item for item in envelope.items}
        logger.info(f"Restored cart with {len(self._items)} line(s) from {self.key!r}")

    def add(self, item: LineItem) -> CartSnapshot:
        """Add an item, merging quantities when the sku is already present."""
        self.restore()
        existing = self._items.get(item.sku)
        if existing:
            existing.quantity += item.quantity
        else:
            self._items[item.sku] = item.model_copy()
        self._changed()
        return self.snapshot()

    def update_quantity(self, sku: str, quantity: int) -> CartSnapshot:
        """Set a line's quantity; zero or below removes the line."""
        self.restore()
        if sku not in self._items:
            self._missing(sku)
        elif quantity <= 0:
            del self._items[sku]
        else:
            self._items[sku].quantity = quantity
        self._changed()
        return self.snapshot()

    def remove(self, sku: str) -> CartSnapshot:
        self.restore()
        if sku in self._items:
            del self._items[sku]
        else:
            self._missing(sku)
        self._changed()
        return self.snapshot()

    def clear(self) -> CartSnapshot:
        self.restore()
        self._items = {}
        self._write()
        return self.snapshot()

    def snapshot(self) -> CartSnapshot:
        """Compute the current cart; totals are never cached."""
        self.restore()
        items = [item.model_copy() for item in self._items.values()]
        item_count = sum(item.quantity for item in items)
        subtotal = sum((item.price * item.quantity for item in items), Decimal("0"))
        return CartSnapshot(
            items=items,
            item_count=item_count,
            subtotal=subtotal,
            shipping=self.shipping_for(subtotal),
        )

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        if self.free_shipping_threshold is None:
            return Decimal("0")
        if subtotal >= self.free_shipping_threshold:
            return Decimal("0")
        return self.shipping_fee

    def _missing(self, sku: str) -> None:
        """Hook for mutations that target an absent sku."""

    def _changed(self) -> None:
        raise NotImplementedError

    def _write(self) -> None:
        envelope = StoredCartEnvelope(version=STORAGE_VERSION, items=list(self._items.values()))
        self.storage.set(self.key, envelope.model_dump_json())


class ImmediateCartStore(CartStore):
    """
    Writes through on every mutation.

    Mutating an absent sku is tolerated: the update is a no-op and nothing
    is inserted.
    """

    def _missing(self, sku: str) -> None:
        logger.debug(f"Ignoring mutation of absent sku {sku}")

    def _changed(self) -> None:
        self._write()


class DebouncedCartStore(CartStore):
    """
    Coalesces rapid mutations into a single deferred write.

    Each mutation cancels and restarts the one pending timer, so only the
    state after the quiet period is written. Clearing always writes
    immediately. Every write also mirrors the item count into a cookie.
    Mutating an absent sku raises ItemNotInCartError.
    """

    def __init__(
        self,
        storage: MemoryStorage,
        key: str,
        cookies: CookieJar,
        delay: float = 0.3,
        cookie_days: int = 30,
        free_shipping_threshold: Optional[Decimal] = None,
        shipping_fee: Decimal = Decimal("0"),
    ) -> None:
        super().__init__(storage, key, free_shipping_threshold, shipping_fee)
        self.cookies = cookies
        self.delay = delay
        self.cookie_days = cookie_days
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        """Whether a deferred write is scheduled."""
        return self._timer is not None

    def flush(self) -> None:
        """Write any pending state now."""
        if self._timer is not None:
            self._cancel_timer()
            self._write()

    def clear(self) -> CartSnapshot:
        self._cancel_timer()
        return super().clear()

    def _missing(self, sku: str) -> None:
        raise ItemNotInCartError(sku)

    def _changed(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._write()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _write(self) -> None:
        count = sum(item.quantity for item in self._items.values())
        self.cookies.set(ITEM_COUNT_COOKIE, str(count), days=self.cookie_days)
        super()._write()
