"""Return schemas for requests and responses"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from returns_engine.models.return_model import (
    DecisionOutcome,
    ExpectedRefund,
    MediaType,
    ReturnStatus,
)
from returns_engine.models.appeal import AppealStatus


class ReturnItemInput(BaseModel):
    """Input schema for return item"""
    order_item_id: str
    return_quantity: int = Field(ge=1)
    reason: str = ""


class ReturnItemsUpdate(BaseModel):
    """Schema for changing the item selection of a pending return"""
    items: List[ReturnItemInput]

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {
                        "order_item_id": "item-1",
                        "return_quantity": 1,
                        "reason": "Cracked casing"
                    }
                ]
            }
        }


class ItemEligibilityResponse(BaseModel):
    """Derived return eligibility of one order item"""
    order_item_id: str
    product_id: str
    name: str
    quantity: int
    unit_price: float
    subtotal: float
    shop_order_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    max_return_days: int
    return_eligible: bool
    days_remaining_for_return: Optional[int] = None


class OrderEligibilityResponse(BaseModel):
    """Eligibility of every item on an order"""
    order_id: str
    order_number: str
    items: List[ItemEligibilityResponse]


class ReturnItemResponse(BaseModel):
    """Response schema for return item"""
    order_item_id: str
    product_id: str
    name: str
    return_quantity: int
    unit_price: float
    line_total: float
    reason: str


class MediaAttachmentResponse(BaseModel):
    """Response schema for an evidence file"""
    id: str
    url: str
    media_type: MediaType
    mime_type: str
    size: int
    duration: Optional[float] = None
    filename: str
    uploaded_at: datetime


class RealizedRefundResponse(BaseModel):
    amount: float
    points: int
    method: str
    processed_at: datetime
    transaction_id: Optional[str] = None
    proof_url: Optional[str] = None


class AppealSummaryResponse(BaseModel):
    id: str
    status: AppealStatus
    submitted_at: datetime
    decision_at: Optional[datetime] = None


class ReturnResponse(BaseModel):
    """Response schema for return"""
    id: str
    return_number: str
    order_id: str
    order_number: str
    shop_order_id: Optional[str] = None
    customer_id: Optional[str] = None
    reason: str
    status: ReturnStatus
    items: List[ReturnItemResponse]
    media: List[MediaAttachmentResponse] = []
    submitted_at: datetime
    decision_at: Optional[datetime] = None
    decision_notes: Optional[str] = None
    expected_refund: Optional[ExpectedRefund] = None
    refund: Optional[RealizedRefundResponse] = None
    appeal: Optional[AppealSummaryResponse] = None
    can_be_appealed: bool = False
    appeal_days_remaining: Optional[int] = None
    updated_at: datetime
    rejected_files: List[str] = []


class ReturnDecisionRequest(BaseModel):
    """Schema for an operator decision on a pending return"""
    outcome: DecisionOutcome
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "outcome": "denied",
                "notes": "Product shows signs of use, not eligible for return"
            }
        }


class RealizedRefundInput(BaseModel):
    """Refund actually processed, reported when completing a return"""
    amount: float = Field(ge=0)
    points: int = Field(default=0, ge=0)
    method: str
    processed_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    proof_url: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 24.99,
                "method": "original",
                "transaction_id": "re_3Nf0aZ2eZvKYlo2C0x1y2z3a"
            }
        }


class ReturnAdvanceRequest(BaseModel):
    """Schema for moving an approved return forward"""
    status: ReturnStatus
    refund: Optional[RealizedRefundInput] = None


class MediaReclaimResponse(BaseModel):
    success: bool = True
    reclaimed: int
