"""Authentication and session management."""

import logging
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from .models import AuthResult, AuthUser
from .storage import MemoryStorage

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"


class AuthState(str, Enum):
    LOGGED_OUT = "logged_out"
    CODE_REQUESTED = "code_requested"
    LOGGED_IN = "logged_in"


class AuthManager:
    """
    Manages the bearer token and the logged-in user's profile.

    The token lives in the ephemeral session store and dies with the
    process. The {email, roles} profile is kept in the durable store so
    forms can be pre-filled after a restart; it is never treated as proof
    of identity.
    """

    def __init__(self, session_store: MemoryStorage, user_store: MemoryStorage) -> None:
        """
        Initialize auth manager.

        Args:
            session_store: Ephemeral store for the bearer token
            user_store: Durable store for the user profile
        """
        self.session_store = session_store
        self.user_store = user_store
        self.pending_email: Optional[str] = None

    @property
    def state(self) -> AuthState:
        if self.is_authenticated():
            return AuthState.LOGGED_IN
        if self.pending_email:
            return AuthState.CODE_REQUESTED
        return AuthState.LOGGED_OUT

    def mark_code_requested(self, email: str) -> None:
        self.pending_email = email

    def save_session(self, result: AuthResult) -> None:
        """Store a freshly issued token and the user it belongs to."""
        self.session_store.set(TOKEN_KEY, result.token)
        user = AuthUser(email=result.email, roles=result.roles)
        self.user_store.set(USER_KEY, user.model_dump_json())
        self.pending_email = None
        logger.info(f"Session saved for {result.email}")

    def clear_session(self) -> None:
        """Forget the token and the stored profile."""
        self.session_store.remove(TOKEN_KEY)
        self.user_store.remove(USER_KEY)
        self.pending_email = None
        logger.info("Session cleared")

    def get_token(self) -> Optional[str]:
        return self.session_store.get(TOKEN_KEY)

    def get_user(self) -> Optional[AuthUser]:
        """Get the stored user profile, if any."""
        raw = self.user_store.get(USER_KEY)
        if not raw:
            return None
        try:
            return AuthUser.model_validate_json(raw)
        except ValidationError:
            logger.warning("Could not parse stored user profile")
            return None

    def is_authenticated(self) -> bool:
        """Check if there's a bearer token for this session."""
        return bool(self.get_token())

    def auth_headers(self) -> dict[str, str]:
        token = self.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}
