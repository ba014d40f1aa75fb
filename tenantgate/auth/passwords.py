"""Argon2id password hashing for session (password) logins."""

from __future__ import annotations

import structlog
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

logger = structlog.get_logger(__name__)

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    if not password:
        msg = "password must be a non-empty string"
        raise ValueError(msg)
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """True iff ``password`` matches ``password_hash``. A missing hash never matches."""
    if not password or not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except VerificationError:
        return False
    except InvalidHashError:
        logger.warning("password_hash_invalid")
        return False
