"""Helpers shared by the returns and appeals routers"""

import json
from datetime import datetime
from typing import List, Optional

from fastapi import UploadFile
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from returns_engine.core.exceptions import ValidationError
from returns_engine.models.appeal import Appeal
from returns_engine.models.return_model import ReturnRequest
from returns_engine.schemas.appeal_schema import AppealResponse
from returns_engine.schemas.return_schema import (
    AppealSummaryResponse,
    MediaAttachmentResponse,
    RealizedRefundResponse,
    ReturnItemInput,
    ReturnItemResponse,
    ReturnResponse,
)
from returns_engine.services.appeals import AppealWorkflow, appeal_window
from returns_engine.services.media import EvidenceFile

_items_adapter = TypeAdapter(List[ReturnItemInput])


def parse_items_field(raw: str) -> List[ReturnItemInput]:
    """Parse the JSON ``items`` form field of a multipart submission"""
    try:
        return _items_adapter.validate_json(raw or "[]")
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Invalid return items", errors)
    except json.JSONDecodeError:
        raise ValidationError("Invalid return items", ["items must be a JSON list"])


async def read_evidence(files: Optional[List[UploadFile]]) -> List[EvidenceFile]:
    """Read uploaded files into memory for validation"""
    evidence = []
    for upload in files or []:
        if not upload or not upload.filename:
            continue
        data = await upload.read()
        evidence.append(EvidenceFile(
            filename=upload.filename,
            content_type=upload.content_type or "",
            data=data,
        ))
    return evidence


def return_to_response(
    ret: ReturnRequest,
    appeal: Optional[Appeal] = None,
    now: Optional[datetime] = None,
) -> ReturnResponse:
    can_be_appealed, days_left = appeal_window(ret, now)
    return ReturnResponse(
        id=ret.id,
        return_number=ret.return_number,
        order_id=ret.order_id,
        order_number=ret.order_number,
        shop_order_id=ret.shop_order_id,
        customer_id=ret.customer_id,
        reason=ret.reason,
        status=ret.status,
        items=[ReturnItemResponse(**item.model_dump()) for item in ret.items],
        media=[MediaAttachmentResponse(**m.model_dump()) for m in ret.media],
        submitted_at=ret.submitted_at,
        decision_at=ret.decision_at,
        decision_notes=ret.decision_notes,
        expected_refund=ret.expected_refund,
        refund=RealizedRefundResponse(**ret.refund.model_dump()) if ret.refund else None,
        appeal=AppealSummaryResponse(
            id=appeal.id,
            status=appeal.status,
            submitted_at=appeal.submitted_at,
            decision_at=appeal.decision_at,
        ) if appeal else None,
        can_be_appealed=can_be_appealed,
        appeal_days_remaining=days_left,
        updated_at=ret.updated_at,
        rejected_files=ret.rejected_files,
    )


def appeal_to_response(appeal: Appeal) -> AppealResponse:
    return AppealResponse(
        id=appeal.id,
        return_id=appeal.return_id,
        reason=appeal.reason,
        description=appeal.description,
        status=appeal.status,
        media=[MediaAttachmentResponse(**m.model_dump()) for m in appeal.media],
        submitted_at=appeal.submitted_at,
        decision_at=appeal.decision_at,
        decision_notes=appeal.decision_notes,
        rejected_files=appeal.rejected_files,
    )


async def render_return(appeals: AppealWorkflow, ret: ReturnRequest) -> ReturnResponse:
    """Build the response for a return, including its appeal summary if any"""
    appeal = await appeals.find_for_return(ret.id) if ret.appeal_id else None
    return return_to_response(ret, appeal)
