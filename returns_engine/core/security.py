"""Security utilities for JWT bearer credentials and guest access tokens"""

from datetime import datetime, timedelta
from jose import jwt, JWTError
from returns_engine.config import settings
import hmac
import secrets


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """
    Create a JWT access token

    Args:
        data: Dictionary containing the payload data (should include 'sub' for user ID)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode.update({"exp": expire, "iat": datetime.utcnow()})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm
    )

    return encoded_jwt


def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token

    Args:
        token: JWT token string

    Returns:
        Decoded payload dictionary or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm]
        )
        return payload
    except JWTError:
        return None


def extract_bearer(authorization: str) -> str:
    """Return the raw token of an ``Authorization: Bearer`` header, or None"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.replace("Bearer ", "", 1).strip() or None


def generate_guest_token() -> str:
    """
    Generate an opaque token for pickup or tracking access

    Returns:
        URL-safe random token string
    """
    return secrets.token_urlsafe(32)


def tokens_match(presented: str, stored: str) -> bool:
    """Constant-time comparison of a presented token against the stored one"""
    if not presented or not stored:
        return False
    return hmac.compare_digest(presented.encode(), stored.encode())
