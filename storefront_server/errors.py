"""Commerce failure types."""

from typing import Optional


class CommerceError(Exception):
    """Base class for every failure raised by the commerce core."""


class ItemNotInCartError(CommerceError):
    """Raised when a cart operation targets a sku the cart does not hold."""

    def __init__(self, sku: str) -> None:
        super().__init__(f"Item {sku} not in cart")
        self.sku = sku


class BackendError(CommerceError):
    """Non-success response from the commerce backend."""

    def __init__(self, status: int, message: Optional[str] = None) -> None:
        super().__init__(f"{message or 'Backend request failed'}: {status}")
        self.status = status


class SessionExpiredError(BackendError):
    """An authenticated call was rejected; the local session has been torn down."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(401, message or "Session expired")


class NotAuthenticatedError(CommerceError):
    """An identity-scoped call was attempted without a bearer token."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Must be authenticated to {operation}")
        self.operation = operation


class UnsupportedOperationError(CommerceError):
    """The active adapter does not implement the requested capability."""

    def __init__(self, adapter: str, operation: str) -> None:
        super().__init__(f"{adapter} adapter does not support {operation}")
        self.adapter = adapter
        self.operation = operation
