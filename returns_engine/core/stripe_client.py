"""Stripe integration for return refunds"""

import stripe
from returns_engine.config import settings
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

# Initialize Stripe
stripe.api_key = settings.stripe_secret_key

# Refund states reported by Stripe that mean the money has been returned
REFUND_SUCCEEDED = "succeeded"


async def create_refund(
    payment_intent_id: str,
    amount: int,
    metadata: Optional[Dict] = None,
    reason: str = "requested_by_customer",
) -> stripe.Refund:
    """
    Create a Stripe Refund against the order's payment intent

    Args:
        payment_intent_id: Payment intent the order was charged through
        amount: Amount in cents (e.g., 1000 for $10.00)
        metadata: Optional metadata; the return id travels here so the
            webhook can match the refund back to its return
        reason: Stripe refund reason

    Returns:
        Stripe Refund object
    """
    try:
        refund = stripe.Refund.create(
            payment_intent=payment_intent_id,
            amount=amount,
            reason=reason,
            metadata=metadata or {},
        )
        logger.info(f"Created refund {refund.id} for payment intent {payment_intent_id}")
        return refund
    except stripe.error.StripeError as e:
        logger.error(f"Stripe error creating refund: {str(e)}")
        raise


async def verify_webhook_signature(payload: bytes, signature: str) -> Dict:
    """
    Verify Stripe webhook signature

    Args:
        payload: Raw request body
        signature: Stripe signature header

    Returns:
        Verified event dictionary
    """
    try:
        event = stripe.Webhook.construct_event(
            payload, signature, settings.stripe_webhook_secret
        )
        return event
    except stripe.error.SignatureVerificationError as e:
        logger.error(f"Stripe signature verification failed: {str(e)}")
        raise
