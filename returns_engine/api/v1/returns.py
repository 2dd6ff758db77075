"""Return request endpoints for customers and guests"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from datetime import datetime
from typing import List, Optional

from returns_engine.api.deps import get_identity, get_workflow
from returns_engine.api.v1.common import (
    parse_items_field,
    read_evidence,
    render_return,
)
from returns_engine.models.identity import Identity
from returns_engine.schemas.return_schema import (
    ItemEligibilityResponse,
    OrderEligibilityResponse,
    ReturnItemsUpdate,
    ReturnResponse,
)
from returns_engine.services.access import ensure_order_scope
from returns_engine.services.appeals import AppealWorkflow
from returns_engine.services.eligibility import annotate_items

router = APIRouter()


@router.get("/orders/{order_ref}/eligibility", response_model=OrderEligibilityResponse)
async def get_order_eligibility(
    order_ref: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Get the order's items with their return eligibility.

    ``order_ref`` may be the order id or the order number.
    """
    order = ensure_order_scope(identity, await workflow.returns.orders.find_by_reference(order_ref))

    return OrderEligibilityResponse(
        order_id=order.id,
        order_number=order.order_number,
        items=[ItemEligibilityResponse(**item) for item in annotate_items(order, datetime.utcnow())],
    )


@router.post("", response_model=ReturnResponse, status_code=status.HTTP_201_CREATED)
async def create_return(
    order_ref: str = Form(...),
    items: str = Form(..., description="JSON list of {order_item_id, return_quantity, reason}"),
    reason: str = Form(...),
    shop_order_id: Optional[str] = Form(None),
    files: List[UploadFile] = File(default=[]),
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Submit a return request with photo/video evidence.

    At least one image or video must be accepted. Up to 5 images and 1 video
    (15 seconds, 50MB) are accepted; files that fail validation are listed
    in ``rejected_files`` of the created return.
    """
    order = ensure_order_scope(identity, await workflow.returns.orders.find_by_reference(order_ref))

    ret = await workflow.returns.submit(
        order,
        parse_items_field(items),
        reason,
        await read_evidence(files),
        identity,
        shop_order_id=shop_order_id,
    )
    return await render_return(workflow, ret)


@router.get("/order-number/{number}", response_model=ReturnResponse)
async def get_return_by_order_number(
    number: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Get the most recent return request for an order number.
    """
    ret = await workflow.returns.get_by_order_number(number, identity)
    return await render_return(workflow, ret)


@router.get("/orders/{order_ref}", response_model=List[ReturnResponse])
async def list_order_returns(
    order_ref: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    List return requests for an order, newest first.
    """
    returns = await workflow.returns.list_for_order(order_ref, identity)
    return [await render_return(workflow, ret) for ret in returns]


@router.get("/shop-orders/{shop_order_id}", response_model=List[ReturnResponse])
async def list_shop_order_returns(
    shop_order_id: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    List return requests for one shop's part of an order.
    """
    returns = await workflow.returns.list_for_shop_order(shop_order_id, identity)
    return [await render_return(workflow, ret) for ret in returns]


@router.get("/my-returns", response_model=List[ReturnResponse])
async def list_my_returns(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    List the signed-in customer's return requests, newest first.

    Guests are refused; they can list the returns of their order instead.
    """
    returns = await workflow.returns.list_for_customer(identity, page, limit)
    return [await render_return(workflow, ret) for ret in returns]


@router.get("/{return_id}", response_model=ReturnResponse)
async def get_return(
    return_id: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Get return request details.
    """
    ret = await workflow.returns.get(return_id, identity)
    return await render_return(workflow, ret)


@router.patch("/{return_id}/items", response_model=ReturnResponse)
async def update_return_items(
    return_id: str,
    data: ReturnItemsUpdate,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Change the items of a pending return request.
    """
    ret = await workflow.returns.amend_items(return_id, data.items, identity)
    return await render_return(workflow, ret)


@router.post("/{return_id}/cancel", response_model=ReturnResponse)
async def cancel_return(
    return_id: str,
    identity: Identity = Depends(get_identity),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Cancel a pending return request.
    """
    ret = await workflow.returns.cancel(return_id, identity)
    return await render_return(workflow, ret)
