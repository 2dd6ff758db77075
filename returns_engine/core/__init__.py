"""Core utilities for the application"""

from returns_engine.core.exceptions import (
    ReturnEngineError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    StateError,
)
from returns_engine.core.security import create_access_token, verify_token

__all__ = [
    "ReturnEngineError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StateError",
    "create_access_token",
    "verify_token",
]
