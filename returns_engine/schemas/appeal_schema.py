"""Appeal schemas for requests and responses"""

from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from returns_engine.models.appeal import AppealStatus
from returns_engine.models.return_model import DecisionOutcome
from returns_engine.schemas.return_schema import MediaAttachmentResponse


class AppealResponse(BaseModel):
    """Response schema for appeal"""
    id: str
    return_id: str
    reason: str
    description: str
    status: AppealStatus
    media: List[MediaAttachmentResponse]
    submitted_at: datetime
    decision_at: Optional[datetime] = None
    decision_notes: Optional[str] = None
    rejected_files: List[str] = []


class AppealDecisionRequest(BaseModel):
    """Schema for an operator decision on a pending appeal"""
    outcome: DecisionOutcome
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "outcome": "approved",
                "notes": "Video shows the defect clearly"
            }
        }
