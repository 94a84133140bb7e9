"""
Password hashing and JWT token utilities.

Passwords are pre-hashed with SHA-256 (base64 encoded, so no NUL bytes)
before bcrypt, which lifts bcrypt's 72-byte input limit.  Tokens carry
the user id in ``sub`` and are checked against a caller-supplied "now"
so expiry is testable without touching the wall clock.
"""
import base64
import hashlib
from datetime import datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from conduit.config import settings
from conduit.errors import CredentialError, InvalidTokenError, TokenExpiredError

_AUTH_SCHEMES = ("token", "bearer")


def _pre_hash_password(password: str) -> bytes:
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str) -> str:
    """Return a salted bcrypt hash suitable for storage."""
    try:
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(_pre_hash_password(password), salt)
    except (ValueError, OSError) as exc:
        raise CredentialError(f"failed to hash password: {exc}") from exc
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check *plain_password* against a stored hash.

    Returns False on mismatch; raises ``CredentialError`` only when the
    stored hash cannot be parsed.
    """
    try:
        return bcrypt.checkpw(
            _pre_hash_password(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError as exc:
        raise CredentialError("stored password hash is malformed") from exc


def issue_token(user_id: int, issued_at: datetime, ttl: timedelta) -> str:
    """Sign a JWT binding *user_id* to an expiry of ``issued_at + ttl``."""
    claims = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ttl).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def validate_token(token: str, now: datetime) -> int:
    """
    Return the user id carried by *token*.

    Any decode, signature or claim problem raises ``InvalidTokenError``;
    a well-formed token past its ``exp`` raises ``TokenExpiredError``.
    """
    try:
        claims = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as exc:
        raise InvalidTokenError("invalid token") from exc

    exp = claims.get("exp")
    subject = claims.get("sub")
    if not isinstance(exp, int) or not isinstance(subject, str):
        raise InvalidTokenError("invalid token")
    try:
        user_id = int(subject)
    except ValueError as exc:
        raise InvalidTokenError("invalid token") from exc

    if exp <= int(now.timestamp()):
        raise TokenExpiredError("token expired")
    return user_id


def parse_authorization(header: str | None) -> str | None:
    """
    Extract the raw token from an ``Authorization`` header value.

    Accepts ``Token <jwt>`` (the RealWorld scheme) and ``Bearer <jwt>``.
    Returns None when the header is absent.
    """
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() not in _AUTH_SCHEMES or not token:
        raise InvalidTokenError("unsupported authorization header")
    return token
