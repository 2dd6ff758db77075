"""Appeal model for reconsidering a denied return"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from enum import Enum

from returns_engine.models.return_model import MediaAttachment


class AppealStatus(str, Enum):
    """Appeal status enumeration"""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class Appeal(BaseModel):
    """Appeal model. At most one per return request."""
    id: Optional[str] = Field(None, alias="_id")
    return_id: str
    reason: str
    description: str = ""
    media: List[MediaAttachment]
    status: AppealStatus = AppealStatus.PENDING
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    decision_at: Optional[datetime] = None
    decision_notes: Optional[str] = None
    decided_by: Optional[str] = None
    rejected_files: List[str] = Field(default=[], exclude=True)

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
