"""Appeal endpoints for denied return requests"""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from typing import List

from returns_engine.api.deps import get_identity, get_workflow
from returns_engine.api.v1.common import appeal_to_response, read_evidence
from returns_engine.models.identity import Identity
from returns_engine.schemas.appeal_schema import AppealResponse
from returns_engine.services.appeals import AppealWorkflow

router = APIRouter()


@router.post("", response_model=AppealResponse, status_code=status.HTTP_201_CREATED)
async def create_appeal(
    return_id: str = Form(...),
    reason: str = Form(...),
    description: str = Form(""),
    files: List[UploadFile] = File(default=[]),
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Appeal a denied return request.

    Only one appeal is allowed per return, within the appeal window, and at
    least one image or video (5 files max) must be attached.
    """
    appeal = await workflow.submit_appeal(
        return_id,
        reason,
        description,
        await read_evidence(files),
        identity,
    )
    return appeal_to_response(appeal)


@router.get("/return/{return_id}", response_model=AppealResponse)
async def get_return_appeal(
    return_id: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Get the appeal submitted for a return request.
    """
    appeal = await workflow.get_for_return(return_id, identity)
    return appeal_to_response(appeal)
