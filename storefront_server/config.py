"""Runtime settings."""

import os
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

DEFAULT_API_ORIGIN = "https://aem-productbus-demo-worker.adobeaem.workers.dev"

ENV_VARS = {
    "adapter": "STOREFRONT_ADAPTER",
    "api_origin": "STOREFRONT_API_ORIGIN",
    "state_file": "STOREFRONT_STATE_FILE",
    "debounce_seconds": "STOREFRONT_DEBOUNCE_SECONDS",
    "free_shipping_threshold": "STOREFRONT_FREE_SHIPPING_THRESHOLD",
    "shipping_fee": "STOREFRONT_SHIPPING_FEE",
    "http_timeout": "STOREFRONT_HTTP_TIMEOUT",
}


class AdapterKind(str, Enum):
    """Backend adapters the facade can front."""

    LOCAL = "local"
    NETWORK = "network"


class Settings(BaseModel):
    """Commerce core configuration."""

    adapter: AdapterKind = Field(default=AdapterKind.NETWORK, description="Default adapter")
    api_origin: str = Field(default=DEFAULT_API_ORIGIN, description="Commerce backend origin")
    state_file: Optional[str] = Field(None, description="Durable state file (default: ~/.storefront_state.json)")
    debounce_seconds: float = Field(default=0.3, ge=0, description="Quiet period before a cart write")
    free_shipping_threshold: Decimal = Field(default=Decimal("150"), description="Subtotal for free shipping")
    shipping_fee: Decimal = Field(default=Decimal("10"), description="Flat shipping fee")
    cookie_days: int = Field(default=30, description="Lifetime of the item count cookie")
    http_timeout: float = Field(default=30.0, description="Backend request timeout in seconds")

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """
        Build settings from STOREFRONT_* environment variables.

        Keyword overrides that are not None win over the environment.
        """
        values: dict[str, Any] = {}
        for field, env_var in ENV_VARS.items():
            value = os.environ.get(env_var)
            if value:
                values[field] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
