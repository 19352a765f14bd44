"""
Security Service

Password hashing and bearer token handling.

Security Features:
==================
1. Password hashing with bcrypt (passlib)
2. JWT issue/verify with a signing key taken from configuration
3. Tokens carry {id, username} and expire after one hour by default

Usage:
    from bookcrossing.services.security import hash_password, verify_password

    hashed = hash_password("securepassword123")
    verify_password("securepassword123", hashed)  # True
"""

import logging
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------
# Password Hashing Configuration
# -------------------------------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

BEARER_PREFIX = "bearer "


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Example:
        >>> hash_password("securepassword123").startswith("$2b$")
        True
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash (constant time)."""
    return pwd_context.verify(plain_password, hashed_password)


# -------------------------------------------------------------------------
# JWT Tokens
# -------------------------------------------------------------------------
def strip_bearer(token: str | None) -> str | None:
    """
    Accept either "Bearer <token>" or a raw token and return the raw token.

    Example:
        >>> strip_bearer("Bearer abc.def.ghi")
        'abc.def.ghi'
        >>> strip_bearer("abc.def.ghi")
        'abc.def.ghi'
    """
    if token is None:
        return None
    token = token.strip()
    if token.lower().startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):].strip()
    return token or None


def create_access_token(
    data: dict,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """
    Create a signed JWT.

    Args:
        data: Claims to encode (id and username for access tokens)
        secret_key: Signing key shared by every verifying service
        algorithm: JWT algorithm
        expires_delta: Validity window from now

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update({"iat": now, "exp": now + expires_delta})

    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_token(token: str, secret_key: str, algorithm: str = "HS256") -> dict | None:
    """
    Decode and validate a JWT.

    Checks the signature and expiry.

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None
