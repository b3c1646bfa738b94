"""Password hashing and opaque bearer-token sessions.

Passwords are stored as PBKDF2-HMAC-SHA256 digests. Tokens are random
strings handed to the client once; only their SHA-256 is persisted, so a
leaked database does not leak usable tokens.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from timeblocker.core.errors import AuthError
from timeblocker.core.instants import utc_now

if TYPE_CHECKING:
    from timeblocker.data.db import UserDB
    from timeblocker.data.models import User

logger = logging.getLogger(__name__)

_ALGORITHM = "pbkdf2_sha256"
_ITERATIONS = 260_000


def hash_password(password: str, iterations: int = _ITERATIONS) -> str:
    """Return "pbkdf2_sha256$<iterations>$<salt>$<hex digest>"."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations,
    )
    return f"{_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
        rounds = int(iterations)
    except ValueError:
        logger.warning("Malformed password hash")
        return False
    if algorithm != _ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds,
    )
    return hmac.compare_digest(digest.hex(), expected)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token(user_db: UserDB, user_id: str, ttl_days: int) -> str:
    """Create a session for user_id and return the raw bearer token."""
    token = secrets.token_urlsafe(32)
    user_db.create_session(hash_token(token), user_id, utc_now() + timedelta(days=ttl_days))
    logger.info("Session issued for user %s (valid %d days)", user_id, ttl_days)
    return token


def authenticate_token(user_db: UserDB, token: str | None) -> User:
    """Resolve a bearer token to its user. Raises AuthError."""
    if not token:
        raise AuthError("Please authenticate")

    token_hash = hash_token(token)
    session = user_db.get_session(token_hash)
    if session is None:
        raise AuthError("Please authenticate")

    user_id, expires_at = session
    if expires_at <= utc_now():
        user_db.delete_session(token_hash)
        raise AuthError("Session expired")

    user = user_db.get_user(user_id)
    if user is None:
        raise AuthError("Please authenticate")
    return user


def login(user_db: UserDB, email: str, password: str) -> User:
    """Check credentials. Raises AuthError with a uniform message."""
    user = user_db.get_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")
    return user
