"""Refund processor callbacks"""

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import Optional
import logging
import stripe

from returns_engine.config import settings
from returns_engine.database import get_database
from returns_engine.api.deps import get_workflow
from returns_engine.api.v1.admin import to_realized_refund
from returns_engine.api.v1.common import render_return
from returns_engine.core.exceptions import NotFoundError, StateError
from returns_engine.core.security import tokens_match
from returns_engine.core.stripe_client import REFUND_SUCCEEDED, verify_webhook_signature
from returns_engine.models.return_model import RealizedRefund
from returns_engine.schemas.return_schema import RealizedRefundInput, ReturnResponse
from returns_engine.services.appeals import AppealWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()

REFUND_EVENTS = ["refund.created", "refund.updated", "charge.refund.updated"]


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    workflow: AppealWorkflow = Depends(get_workflow),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """
    Receive Stripe events and complete returns whose refund succeeded.
    """
    payload = await request.body()
    try:
        event = await verify_webhook_signature(payload, stripe_signature or "")
    except (ValueError, stripe.error.SignatureVerificationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature"
        )

    event_log = {
        "event_type": event["type"],
        "event_id": event["id"],
        "processed": False,
        "error": None,
        "created_at": datetime.utcnow(),
    }

    if event["type"] in REFUND_EVENTS:
        refund = event["data"]["object"]
        return_id = (refund.get("metadata") or {}).get("return_id")

        if return_id and refund.get("status") == REFUND_SUCCEEDED:
            metadata = refund.get("metadata") or {}
            try:
                await workflow.returns.complete(return_id, RealizedRefund(
                    amount=refund["amount"] / 100,
                    points=int(metadata.get("points", 0)),
                    method="original",
                    processed_at=datetime.utcnow(),
                    transaction_id=refund["id"],
                ))
                event_log["processed"] = True
            except (StateError, NotFoundError) as e:
                # Already completed or unknown return; logged and acknowledged
                logger.info(f"Ignoring refund event {event['id']} for return {return_id}: {e.detail}")
                event_log["error"] = e.detail

            await db.refund_events.update_one(
                {"refund_id": refund["id"]},
                {"$set": {"status": refund["status"], "updated_at": datetime.utcnow()}},
            )

    await db.webhook_events.insert_one(event_log)
    return {"received": True}


@router.post("/refunds/{return_id}", response_model=ReturnResponse)
async def refund_callback(
    return_id: str,
    data: RealizedRefundInput,
    x_refund_callback_secret: Optional[str] = Header(None),
    workflow: AppealWorkflow = Depends(get_workflow),
):
    """
    Record a refund processed outside Stripe and complete the return.

    Callers authenticate with the shared ``X-Refund-Callback-Secret`` header.
    """
    if not settings.refund_callback_secret or not tokens_match(
        x_refund_callback_secret, settings.refund_callback_secret
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid callback secret"
        )

    ret = await workflow.returns.complete(return_id, to_realized_refund(data))
    return await render_return(workflow, ret)
