"""Pydantic schemas for request/response validation"""

from returns_engine.schemas.common import SuccessResponse, ErrorResponse
from returns_engine.schemas.return_schema import (
    ReturnItemInput,
    ReturnItemsUpdate,
    ItemEligibilityResponse,
    OrderEligibilityResponse,
    ReturnResponse,
    ReturnDecisionRequest,
    RealizedRefundInput,
    ReturnAdvanceRequest,
    MediaReclaimResponse,
)
from returns_engine.schemas.appeal_schema import AppealResponse, AppealDecisionRequest

__all__ = [
    "SuccessResponse",
    "ErrorResponse",
    "ReturnItemInput",
    "ReturnItemsUpdate",
    "ItemEligibilityResponse",
    "OrderEligibilityResponse",
    "ReturnResponse",
    "ReturnDecisionRequest",
    "RealizedRefundInput",
    "ReturnAdvanceRequest",
    "MediaReclaimResponse",
    "AppealResponse",
    "AppealDecisionRequest",
]
