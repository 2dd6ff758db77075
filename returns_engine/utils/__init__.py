"""Utility functions"""

from returns_engine.utils.validators import validate_object_id

__all__ = ["validate_object_id"]
