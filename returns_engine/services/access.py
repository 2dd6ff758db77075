"""
Access resolution for customers and guests.

A request is served under exactly one identity:

1. a valid bearer credential resolves to the signed-in customer, and any
   guest tokens on the same request are ignored;
2. otherwise a tracking token together with an order number resolves to a
   tracking guest, validated as a pair;
3. otherwise a pickup token alone resolves to a pickup guest;
4. anything else is refused. There is no anonymous path.

Resolution only establishes who is calling. Every operation still checks
that the resolved identity covers the order it targets.
"""

import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from returns_engine.core.exceptions import AuthorizationError, NotFoundError
from returns_engine.core.security import extract_bearer, verify_token
from returns_engine.models.identity import (
    CustomerIdentity,
    Identity,
    PickupGuestIdentity,
    TrackingGuestIdentity,
)
from returns_engine.models.order import Order
from returns_engine.services.orders import OrderLookup

logger = logging.getLogger(__name__)


def _expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is not None and expires_at <= now


async def resolve_identity(
    db: AsyncIOMotorDatabase,
    authorization: Optional[str] = None,
    order_number: Optional[str] = None,
    tracking_token: Optional[str] = None,
    pickup_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Identity:
    """Resolve the caller's identity or raise AuthorizationError"""
    now = now or datetime.utcnow()

    bearer = extract_bearer(authorization)
    if bearer:
        payload = verify_token(bearer)
        if payload and payload.get("sub"):
            return CustomerIdentity(customer_id=str(payload["sub"]))
        logger.info("Ignoring invalid bearer credential, trying guest tokens")

    orders = OrderLookup(db)

    if tracking_token and order_number:
        order = await orders.find_by_tracking_token(order_number, tracking_token)
        if order is None or _expired(order.tracking_token_expires_at, now):
            logger.warning(f"Rejected tracking token for order number {order_number}")
            raise AuthorizationError()
        return TrackingGuestIdentity(
            token=tracking_token,
            order_number=order.order_number,
            order_id=order.id,
        )

    if pickup_token:
        order = await orders.find_by_pickup_token(pickup_token)
        if order is None or order.pickup_token_revoked or _expired(order.pickup_token_expires_at, now):
            logger.warning("Rejected pickup token")
            raise AuthorizationError()
        return PickupGuestIdentity(token=pickup_token, order_id=order.id)

    raise AuthorizationError()


def covers_order(identity: Identity, order: Order) -> bool:
    """Whether the identity is allowed to act on the order"""
    if isinstance(identity, CustomerIdentity):
        return order.user_id is not None and order.user_id == identity.customer_id
    if isinstance(identity, PickupGuestIdentity):
        return order.id == identity.order_id
    if isinstance(identity, TrackingGuestIdentity):
        return order.id == identity.order_id and order.order_number == identity.order_number
    return False


def ensure_order_scope(identity: Identity, order: Optional[Order], missing: str = "Order not found") -> Order:
    """
    Return the order if the identity covers it, else raise NotFoundError.

    Out-of-scope orders are reported exactly like missing ones, so a guest
    holding one valid token cannot tell which other orders exist.
    """
    if order is None:
        raise NotFoundError(missing)
    if not covers_order(identity, order):
        logger.warning(f"{identity.kind} identity denied access to order {order.order_number}")
        raise NotFoundError(missing)
    return order


def customer_id_of(identity: Identity) -> Optional[str]:
    """Customer reference recorded on requests; None for guests"""
    if isinstance(identity, CustomerIdentity):
        return identity.customer_id
    return None
