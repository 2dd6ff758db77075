"""Return models for product returns and refunds"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from enum import Enum


class ReturnStatus(str, Enum):
    """Return status enumeration"""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that still hold their items' open-return markers
OPEN_RETURN_STATUSES = (ReturnStatus.PENDING, ReturnStatus.APPROVED, ReturnStatus.PROCESSING)

TERMINAL_RETURN_STATUSES = (ReturnStatus.DENIED, ReturnStatus.COMPLETED, ReturnStatus.CANCELLED)


class DecisionOutcome(str, Enum):
    """Operator decision on a pending return or appeal"""
    APPROVED = "approved"
    DENIED = "denied"


class MediaType(str, Enum):
    """Media category of an evidence file"""
    IMAGE = "image"
    VIDEO = "video"


class MediaAttachment(BaseModel):
    """Evidence file attached to a return request or appeal"""
    id: str
    url: str
    media_type: MediaType
    mime_type: str
    size: int = Field(ge=0)
    duration: Optional[float] = None
    filename: str
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True
        validate_default = True


class ReturnItem(BaseModel):
    """Return item model"""
    order_item_id: str
    product_id: str
    name: str
    return_quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    line_total: float = Field(ge=0)
    reason: str = ""


class ExpectedRefund(BaseModel):
    """Computed refund projection. Frozen when the return is approved."""
    payment_method: str
    items_refund: float = 0.0
    shipping_refund: float = 0.0
    monetary_refund: float = 0.0
    points_refund: int = 0
    points_refund_value: float = 0.0
    point_value: float = 0.0
    total_refund_value: float = 0.0
    is_full_return: bool = False
    refund_description: str = ""
    computed_at: datetime = Field(default_factory=datetime.utcnow)
    frozen: bool = False


class RealizedRefund(BaseModel):
    """Refund actually processed by the payment/refund processor"""
    amount: float = Field(ge=0)
    points: int = Field(default=0, ge=0)
    method: str
    processed_at: datetime
    transaction_id: Optional[str] = None
    proof_url: Optional[str] = None


class ReturnRequest(BaseModel):
    """Return request model"""
    id: Optional[str] = Field(None, alias="_id")
    return_number: str
    order_id: str
    order_number: str
    shop_order_id: Optional[str] = None
    customer_id: Optional[str] = None
    reason: str
    items: List[ReturnItem]
    media: List[MediaAttachment] = []
    status: ReturnStatus = ReturnStatus.PENDING
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    decision_at: Optional[datetime] = None
    decision_notes: Optional[str] = None
    decided_by: Optional[str] = None
    expected_refund: Optional[ExpectedRefund] = None
    refund: Optional[RealizedRefund] = None
    appeal_id: Optional[str] = None
    processing_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    version: int = 0
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    # Evidence errors from the submitting request; not persisted
    rejected_files: List[str] = Field(default=[], exclude=True)

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
        json_schema_extra = {
            "example": {
                "return_number": "RET-20240501-9F2C11AA",
                "order_id": "507f1f77bcf86cd799439011",
                "order_number": "ORD-100",
                "customer_id": "507f191e810c19729de860ea",
                "reason": "Item arrived broken",
                "items": [
                    {
                        "order_item_id": "item-1",
                        "product_id": "507f191e810c19729de860eb",
                        "name": "Premium Widget",
                        "return_quantity": 1,
                        "unit_price": 24.99,
                        "line_total": 24.99,
                        "reason": "Cracked casing"
                    }
                ],
                "status": "pending"
            }
        }

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_RETURN_STATUSES
