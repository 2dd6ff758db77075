"""Typed errors raised by the returns engine"""

from typing import List, Optional


class ReturnEngineError(Exception):
    """Base class for all returns engine errors"""

    kind = "Error"
    status_code = 400

    def __init__(self, detail: str, errors: Optional[List[str]] = None):
        super().__init__(detail)
        self.detail = detail
        self.errors = list(errors or [])


class ValidationError(ReturnEngineError):
    """Bad item selection, quantity, reason or evidence. Fixable by the caller."""

    kind = "Validation Error"
    status_code = 422


class AuthorizationError(ReturnEngineError):
    """Identity could not be resolved or does not cover the target"""

    kind = "Access Denied"
    status_code = 403

    def __init__(self, detail: str = "Access denied"):
        super().__init__(detail)


class NotFoundError(ReturnEngineError):
    """Target does not exist or is outside the caller's scope"""

    kind = "Not Found"
    status_code = 404


class ConflictError(ReturnEngineError):
    """Duplicate open return, duplicate appeal or a lost decision race"""

    kind = "Conflict"
    status_code = 409


class StateError(ReturnEngineError):
    """Transition not allowed from the current status"""

    kind = "Invalid State"
    status_code = 409
