"""Order models as read from the order service collection"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from enum import Enum


class PaymentMethod(str, Enum):
    """How the order was paid for"""
    CARD = "card"
    POINTS = "points"
    HYBRID = "hybrid"


class OrderItem(BaseModel):
    """Order item model"""
    id: str
    product_id: str
    variant_id: Optional[str] = None
    shop_order_id: Optional[str] = None
    name: str
    product_image: Optional[str] = None
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    subtotal: float = Field(ge=0)
    delivered_at: Optional[datetime] = None
    max_return_days: int = Field(default=0, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "item-1",
                "product_id": "507f1f77bcf86cd799439011",
                "name": "Premium Widget",
                "quantity": 2,
                "unit_price": 24.99,
                "subtotal": 49.98,
                "delivered_at": "2024-05-01T10:00:00",
                "max_return_days": 14
            }
        }


class Order(BaseModel):
    """
    Order model.

    Orders are owned by the order service; the returns engine only reads
    them. ``points_value`` is the cash value the points covered at checkout.
    """
    id: Optional[str] = Field(None, alias="_id")
    order_number: str
    user_id: Optional[str] = None
    items: List[OrderItem]
    subtotal: float = Field(default=0, ge=0)
    shipping: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    total: float = Field(ge=0)
    points_used: int = Field(default=0, ge=0)
    points_value: float = Field(default=0, ge=0)
    payment_intent_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    pickup_token: Optional[str] = None
    pickup_token_expires_at: Optional[datetime] = None
    pickup_token_revoked: bool = False
    tracking_token: Optional[str] = None
    tracking_token_expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True

    def get_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None
