"""Resolved caller identities"""

from pydantic import BaseModel
from typing import Literal, Union


class CustomerIdentity(BaseModel):
    """Signed-in customer, proven by a bearer credential"""
    kind: Literal["customer"] = "customer"
    customer_id: str

    class Config:
        frozen = True


class PickupGuestIdentity(BaseModel):
    """Guest holding the pickup token issued with one order"""
    kind: Literal["pickup_guest"] = "pickup_guest"
    token: str
    order_id: str

    class Config:
        frozen = True


class TrackingGuestIdentity(BaseModel):
    """Guest holding a tracking token presented together with its order number"""
    kind: Literal["tracking_guest"] = "tracking_guest"
    token: str
    order_number: str
    order_id: str

    class Config:
        frozen = True


class OperatorIdentity(BaseModel):
    """Back-office user allowed to decide returns and appeals"""
    kind: Literal["operator"] = "operator"
    user_id: str
    role: str

    class Config:
        frozen = True


Identity = Union[CustomerIdentity, PickupGuestIdentity, TrackingGuestIdentity]
