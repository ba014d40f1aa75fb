"""Cookie-based session authentication."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from tenantgate.auth.identity import RequestCredentials
    from tenantgate.storage.repositories.users import InMemoryUserRepository

logger = structlog.get_logger(__name__)

SESSION_COOKIE = "session"


class SessionAuth:
    """Signed session tokens mapped to user ids, kept in process memory."""

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._secret = secret_key.encode()
        self._max_age = max_age
        self._sessions: dict[str, dict[str, Any]] = {}

    def create_session(self, user_id: str) -> str:
        """Create a new session and return the token."""
        self._sweep_expired()
        token = secrets.token_urlsafe(32)
        signature = self._sign(token)
        signed_token = f"{token}.{signature}"

        self._sessions[signed_token] = {
            "user_id": user_id,
            "created_at": time.time(),
        }
        logger.info("session_created", user_id=user_id)
        return signed_token

    def validate_session(self, token: str | None) -> dict[str, Any] | None:
        """Validate a session token and return the session data."""
        if not token or "." not in token:
            return None

        raw_token, signature = token.rsplit(".", 1)
        expected_sig = self._sign(raw_token)

        if not hmac.compare_digest(signature, expected_sig):
            return None

        session = self._sessions.get(token)
        if not session:
            return None

        if time.time() - session["created_at"] > self._max_age:
            self.destroy_session(token)
            return None

        return session

    def destroy_session(self, token: str) -> None:
        """Remove a session."""
        self._sessions.pop(token, None)
        logger.info("session_destroyed")

    def _sweep_expired(self) -> None:
        cutoff = time.time() - self._max_age
        expired = [t for t, s in self._sessions.items() if s["created_at"] < cutoff]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug("sessions_expired", count=len(expired))

    def _sign(self, data: str) -> str:
        """Create HMAC signature for a token."""
        return hmac.new(self._secret, data.encode(), hashlib.sha256).hexdigest()[:32]


class SessionIdentityProvider:
    """Upstream identity from a session cookie plus the user store."""

    def __init__(self, auth: SessionAuth, users: InMemoryUserRepository | Any) -> None:
        self._auth = auth
        self._users = users

    async def get_upstream_user_record(self, credentials: RequestCredentials) -> Any | None:
        session = self._auth.validate_session(credentials.session_token)
        if not session:
            return None
        return await self._users.get_upstream_user_record(session["user_id"])
