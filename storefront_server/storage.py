"""Key/value stores backing the cart, the session and the cookie mirror."""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from http.cookies import SimpleCookie
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Process-scoped store. Contents vanish with the process, like a browser tab's session storage."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(MemoryStorage):
    """Durable store persisted as a single JSON object of string values."""

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize the store.

        Args:
            path: Path to the state file (default: ~/.storefront_state.json)
        """
        super().__init__()
        if path is None:
            path = str(Path.home() / ".storefront_state.json")
        self.path = path
        self._load()

    def _load(self) -> None:
        """Load saved values from file."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load state from {self.path}: {e}")
            return
        if isinstance(data, dict):
            self._data = {k: v for k, v in data.items() if isinstance(v, str)}
        else:
            logger.warning(f"Ignoring malformed state file {self.path}")

    def _save(self) -> None:
        """Write all values to file."""
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
        os.chmod(self.path, 0o600)

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._save()

    def remove(self, key: str) -> None:
        if key in self._data:
            super().remove(key)
            self._save()


class CookieJar:
    """Cookies the commerce core wants mirrored to the client (e.g. the cart badge count)."""

    def __init__(self) -> None:
        self._cookies = SimpleCookie()

    def set(self, name: str, value: str, days: int, path: str = "/") -> None:
        self._cookies[name] = value
        morsel = self._cookies[name]
        morsel["path"] = path
        expires = datetime.now(timezone.utc) + timedelta(days=days)
        morsel["expires"] = format_datetime(expires, usegmt=True)

    def get(self, name: str) -> Optional[str]:
        morsel = self._cookies.get(name)
        return morsel.value if morsel is not None else None

    def header_values(self) -> list[str]:
        """Render every cookie as a Set-Cookie header value."""
        return [morsel.OutputString() for morsel in self._cookies.values()]
