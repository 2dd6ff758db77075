"""FastAPI dependencies for caller identity and database access"""

from fastapi import Depends, HTTPException, status, Header, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from returns_engine.database import get_database
from returns_engine.core.security import extract_bearer, verify_token
from returns_engine.models.common import object_id_or_none
from returns_engine.models.identity import Identity, OperatorIdentity
from returns_engine.core.storage import BlobStorage, get_storage
from returns_engine.services.access import resolve_identity
from returns_engine.services.appeals import AppealWorkflow
from typing import Optional

OPERATOR_ROLES = ["admin", "support"]


async def get_identity(
    authorization: Optional[str] = Header(None),
    x_tracking_token: Optional[str] = Header(None),
    x_pickup_token: Optional[str] = Header(None),
    order_number: Optional[str] = Query(None),
    token: Optional[str] = Query(None, description="Tracking token, used with order_number"),
    pickup_token: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> Identity:
    """
    Dependency resolving the caller as a customer, tracking guest or pickup guest

    Tokens may be sent as headers or query parameters; headers win.

    Raises:
        AuthorizationError: If no identity can be resolved
    """
    return await resolve_identity(
        db,
        authorization=authorization,
        order_number=order_number,
        tracking_token=x_tracking_token or token,
        pickup_token=x_pickup_token or pickup_token,
    )


async def require_operator(
    authorization: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> OperatorIdentity:
    """
    Dependency to require an admin or support user

    Args:
        authorization: Authorization header with Bearer token
        db: Database instance

    Returns:
        Operator identity

    Raises:
        HTTPException: If authentication fails or the role is not allowed
    """
    token = extract_bearer(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = object_id_or_none(payload["sub"])
    user = await db.users.find_one({"_id": user_id}) if user_id else None

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.get("active", True) or user.get("role") not in OPERATOR_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions. Admin role required.",
        )

    return OperatorIdentity(user_id=str(user["_id"]), role=user["role"])


def get_workflow(
    db: AsyncIOMotorDatabase = Depends(get_database),
    storage: BlobStorage = Depends(get_storage),
) -> AppealWorkflow:
    """Dependency to get the return/appeal workflow bound to the request's database"""
    return AppealWorkflow(db, storage)
