"""Common response schemas"""

from pydantic import BaseModel
from typing import Optional, Any, List


class SuccessResponse(BaseModel):
    """Standard success response"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Standard error response; ``errors`` lists per-item or per-file problems"""
    success: bool = False
    error: str
    detail: Optional[str] = None
    errors: List[str] = []
