"""Operator endpoints - return decisions, refunds, appeals and media housekeeping"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_EVEN
from typing import List, Optional
import logging
import stripe

from returns_engine.config import settings
from returns_engine.database import get_database
from returns_engine.api.deps import get_workflow, require_operator
from returns_engine.api.v1.common import appeal_to_response, render_return
from returns_engine.core.email import send_appeal_status_email, send_return_status_email
from returns_engine.core.exceptions import ValidationError
from returns_engine.core.storage import BlobStorage, get_storage, reclaim_orphaned_media
from returns_engine.core.stripe_client import REFUND_SUCCEEDED, create_refund
from returns_engine.models.identity import OperatorIdentity
from returns_engine.models.return_model import RealizedRefund, ReturnRequest, ReturnStatus
from returns_engine.schemas.appeal_schema import AppealDecisionRequest, AppealResponse
from returns_engine.schemas.common import SuccessResponse
from returns_engine.schemas.return_schema import (
    MediaReclaimResponse,
    RealizedRefundInput,
    ReturnAdvanceRequest,
    ReturnDecisionRequest,
    ReturnResponse,
)
from returns_engine.services.appeals import AppealWorkflow, appeal_window

logger = logging.getLogger(__name__)

router = APIRouter()


def to_realized_refund(data: RealizedRefundInput) -> RealizedRefund:
    return RealizedRefund(
        amount=data.amount,
        points=data.points,
        method=data.method,
        processed_at=data.processed_at or datetime.utcnow(),
        transaction_id=data.transaction_id,
        proof_url=data.proof_url,
    )


def to_cents(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))


async def notify_return_status(
    background_tasks: BackgroundTasks,
    workflow: AppealWorkflow,
    ret: ReturnRequest,
):
    """Queue the status email for the return's customer, if notifications are on"""
    if not settings.email_notifications_enabled:
        return
    order = await workflow.returns.orders.find_by_id(ret.order_id)
    if not order or not order.customer_email:
        return
    can_appeal, _ = appeal_window(ret)
    background_tasks.add_task(
        send_return_status_email,
        order.customer_email,
        ret.return_number,
        ret.order_number,
        ret.status,
        ret.decision_notes,
        can_appeal,
    )


# Return management endpoints

@router.get("/returns", response_model=List[ReturnResponse])
async def list_returns(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[ReturnStatus] = None,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    List all returns (Admin only).
    """
    returns = await workflow.returns.list_all(status, page, limit)
    return [await render_return(workflow, ret) for ret in returns]


@router.get("/returns/{return_id}", response_model=ReturnResponse)
async def get_return(
    return_id: str,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Get return details (Admin only).
    """
    ret = await workflow.returns.load(return_id)
    return await render_return(workflow, ret)


@router.patch("/returns/{return_id}/decision", response_model=ReturnResponse)
async def decide_return(
    return_id: str,
    decision: ReturnDecisionRequest,
    background_tasks: BackgroundTasks,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Approve or deny a pending return (Admin only).
    """
    ret = await workflow.returns.decide(return_id, decision.outcome, decision.notes, operator)
    await notify_return_status(background_tasks, workflow, ret)
    return await render_return(workflow, ret)


@router.post("/returns/{return_id}/advance", response_model=ReturnResponse)
async def advance_return(
    return_id: str,
    data: ReturnAdvanceRequest,
    background_tasks: BackgroundTasks,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Move an approved return to processing, or a processing return to completed (Admin only).

    Completing requires the refund that was actually processed.
    """
    realized = to_realized_refund(data.refund) if data.refund else None
    ret = await workflow.returns.advance(return_id, data.status, realized)
    await notify_return_status(background_tasks, workflow, ret)
    return await render_return(workflow, ret)


@router.post("/returns/{return_id}/refund", response_model=SuccessResponse)
async def process_return_refund(
    return_id: str,
    background_tasks: BackgroundTasks,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """
    Process the refund for an approved return (Admin only).

    The monetary part is refunded through Stripe against the order's payment
    intent; the return completes when Stripe confirms it. Returns with no
    monetary part complete immediately.
    """
    ret = await workflow.returns.load(return_id)
    order = await workflow.returns.load_order(ret.order_id)
    expected = ret.expected_refund
    if expected is None:
        raise ValidationError("Return has no expected refund", ["Return has no expected refund"])

    amount_cents = to_cents(expected.monetary_refund)
    if amount_cents > 0 and not order.payment_intent_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Order has no payment to refund"
        )

    # A processing return can be retried after a failed Stripe call
    if ret.status != ReturnStatus.PROCESSING:
        ret = await workflow.returns.advance(ret.id, ReturnStatus.PROCESSING)

    if amount_cents == 0:
        ret = await workflow.returns.complete(ret.id, RealizedRefund(
            amount=0.0,
            points=expected.points_refund,
            method="points",
            processed_at=datetime.utcnow(),
        ))
        await notify_return_status(background_tasks, workflow, ret)
        return {
            "success": True,
            "message": "Points refund recorded",
            "data": {
                "amount": 0.0,
                "points": expected.points_refund,
                "status": ret.status,
            }
        }

    try:
        refund = await create_refund(
            order.payment_intent_id,
            amount_cents,
            metadata={
                "return_id": ret.id,
                "return_number": ret.return_number,
                "points": str(expected.points_refund),
            },
        )
    except stripe.error.StripeError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to process refund: {str(e)}"
        )

    await db.refund_events.insert_one({
        "return_id": ret.id,
        "refund_id": refund.id,
        "amount": expected.monetary_refund,
        "status": refund.status,
        "created_by": operator.user_id,
        "created_at": datetime.utcnow(),
    })

    if refund.status == REFUND_SUCCEEDED:
        ret = await workflow.returns.complete(ret.id, RealizedRefund(
            amount=expected.monetary_refund,
            points=expected.points_refund,
            method="original",
            processed_at=datetime.utcnow(),
            transaction_id=refund.id,
        ))
        await notify_return_status(background_tasks, workflow, ret)

    return {
        "success": True,
        "message": "Refund processed successfully",
        "data": {
            "refund_id": refund.id,
            "amount": expected.monetary_refund,
            "points": expected.points_refund,
            "refund_status": refund.status,
            "status": ret.status,
        }
    }


# Appeal endpoints

@router.get("/appeals/{appeal_id}", response_model=AppealResponse)
async def get_appeal(
    appeal_id: str,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Get appeal details (Admin only).
    """
    return appeal_to_response(await workflow.get_for_operator(appeal_id))


@router.patch("/appeals/{appeal_id}/decision", response_model=AppealResponse)
async def decide_appeal(
    appeal_id: str,
    decision: AppealDecisionRequest,
    background_tasks: BackgroundTasks,
    operator: OperatorIdentity = Depends(require_operator),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Approve or deny a pending appeal (Admin only).

    The decision is recorded on the appeal; the return keeps its status.
    """
    appeal = await workflow.decide_appeal(appeal_id, decision.outcome, decision.notes, operator)

    if settings.email_notifications_enabled:
        ret = await workflow.returns.load(appeal.return_id)
        order = await workflow.returns.orders.find_by_id(ret.order_id)
        if order and order.customer_email:
            background_tasks.add_task(
                send_appeal_status_email,
                order.customer_email,
                ret.return_number,
                appeal.status,
                appeal.decision_notes,
            )

    return appeal_to_response(appeal)


# Media housekeeping

@router.post("/media/reclaim", response_model=MediaReclaimResponse)
async def reclaim_media(
    older_than_minutes: Optional[int] = Query(None, ge=0),
    operator: OperatorIdentity = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_database),
    storage: BlobStorage = Depends(get_storage),
):
    """
    Delete uploads that were never attached to a return or appeal (Admin only).
    """
    minutes = settings.orphan_media_ttl_minutes if older_than_minutes is None else older_than_minutes
    cutoff = datetime.utcnow() - timedelta(minutes=minutes)
    reclaimed = await reclaim_orphaned_media(db, storage, cutoff)
    return MediaReclaimResponse(reclaimed=reclaimed)
