"""MongoDB models using Pydantic"""

from returns_engine.models.order import Order, OrderItem, PaymentMethod
from returns_engine.models.return_model import (
    ReturnRequest,
    ReturnItem,
    ReturnStatus,
    DecisionOutcome,
    ExpectedRefund,
    RealizedRefund,
    MediaAttachment,
    MediaType,
)
from returns_engine.models.appeal import Appeal, AppealStatus
from returns_engine.models.identity import (
    Identity,
    CustomerIdentity,
    PickupGuestIdentity,
    TrackingGuestIdentity,
    OperatorIdentity,
)

__all__ = [
    "Order",
    "OrderItem",
    "PaymentMethod",
    "ReturnRequest",
    "ReturnItem",
    "ReturnStatus",
    "DecisionOutcome",
    "ExpectedRefund",
    "RealizedRefund",
    "MediaAttachment",
    "MediaType",
    "Appeal",
    "AppealStatus",
    "Identity",
    "CustomerIdentity",
    "PickupGuestIdentity",
    "TrackingGuestIdentity",
    "OperatorIdentity",
]
