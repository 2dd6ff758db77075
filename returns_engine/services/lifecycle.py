"""
Return request lifecycle.

    pending ──> approved ──> processing ──> completed
       │
       ├──> denied      (may receive one appeal)
       └──> cancelled

Every transition is a single ``find_one_and_update`` guarded on the current
status, so of two concurrent callers exactly one wins and the other gets a
StateError. Items with an open return are claimed through
``return_item_locks`` documents keyed by ``<order_id>:<order_item_id>``;
the duplicate-key failure of a second claim is what rejects overlapping
submissions. Claims are released when the return reaches a terminal status.
"""

import logging
import secrets
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from returns_engine.config import settings
from returns_engine.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from returns_engine.core.storage import (
    BlobStorage,
    attach_media,
    discard_media,
    stage_evidence,
)
from returns_engine.models.common import document_id, object_id_or_none
from returns_engine.models.identity import CustomerIdentity, Identity, OperatorIdentity
from returns_engine.models.order import Order
from returns_engine.models.return_model import (
    DecisionOutcome,
    RealizedRefund,
    ReturnItem,
    ReturnRequest,
    ReturnStatus,
)
from returns_engine.schemas.return_schema import ReturnItemInput
from returns_engine.services.access import customer_id_of, ensure_order_scope
from returns_engine.services.eligibility import item_eligibility
from returns_engine.services.media import (
    EvidenceFile,
    MediaContext,
    MediaValidationResult,
    validate_evidence,
)
from returns_engine.services.orders import OrderLookup
from returns_engine.services.points import PointsLedger
from returns_engine.services.refund import compute_refund

logger = logging.getLogger(__name__)


def generate_return_number() -> str:
    """Generate unique return number"""
    timestamp = datetime.utcnow().strftime("%Y%m%d")
    random_suffix = secrets.token_hex(4).upper()
    return f"RET-{timestamp}-{random_suffix}"


def lock_id(order_id: str, order_item_id: str) -> str:
    return f"{order_id}:{order_item_id}"


def require_evidence(files: List[EvidenceFile], context: MediaContext) -> MediaValidationResult:
    """
    Validate evidence for a submission.

    Rejected files are reported back alongside the accepted ones; the
    submission itself only fails when nothing was accepted.
    """
    result = validate_evidence(files, context)
    if not result.accepted:
        message = "At least one image or video is required"
        raise ValidationError(message, result.errors + [message])
    if result.errors:
        logger.info(f"Partially accepted evidence ({result.summary})")
    return result


class ReturnLifecycle:
    """State machine for return requests, persisted in the ``returns`` collection"""

    def __init__(self, db: AsyncIOMotorDatabase, storage: Optional[BlobStorage] = None):
        self.db = db
        self.storage = storage or BlobStorage()
        self.orders = OrderLookup(db)
        self.points = PointsLedger(db)

    # Loading

    @staticmethod
    def _parse(doc: dict) -> ReturnRequest:
        return ReturnRequest(**document_id(doc))

    async def load(self, return_id: str) -> ReturnRequest:
        oid = object_id_or_none(return_id)
        doc = await self.db.returns.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFoundError("Return request not found")
        return self._parse(doc)

    async def load_order(self, order_id: str) -> Order:
        order = await self.orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def load_in_scope(self, return_id: str, identity: Identity) -> Tuple[ReturnRequest, Order]:
        """Load a return and its order; returns outside the identity's scope look missing"""
        ret = await self.load(return_id)
        order = ensure_order_scope(
            identity,
            await self.orders.find_by_id(ret.order_id),
            missing="Return request not found",
        )
        return ret, order

    async def _raise_transition_error(self, oid: ObjectId, action: str):
        doc = await self.db.returns.find_one({"_id": oid}, {"status": 1})
        if not doc:
            raise NotFoundError("Return request not found")
        raise StateError(f"Cannot {action} return with status '{doc.get('status')}'")

    async def _transition(
        self,
        return_id: str,
        expected: ReturnStatus,
        changes: dict,
        action: str,
        version: Optional[int] = None,
    ) -> ReturnRequest:
        oid = object_id_or_none(return_id)
        if oid is None:
            raise NotFoundError("Return request not found")

        query = {"_id": oid, "status": expected.value}
        if version is not None:
            query["version"] = version
        changes.setdefault("updated_at", datetime.utcnow())

        doc = await self.db.returns.find_one_and_update(
            query,
            {"$set": changes, "$inc": {"version": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            await self._raise_transition_error(oid, action)
        ret = self._parse(doc)
        logger.info(f"Return {ret.return_number} {expected.value} -> {ret.status}")
        return ret

    # Item claims

    async def _claim_items(self, order_id: str, item_ids: List[str], return_id: str, now: datetime):
        claimed = []
        for item_id in item_ids:
            try:
                await self.db.return_item_locks.insert_one({
                    "_id": lock_id(order_id, item_id),
                    "order_id": order_id,
                    "order_item_id": item_id,
                    "return_id": return_id,
                    "created_at": now,
                })
            except DuplicateKeyError:
                if claimed:
                    await self.db.return_item_locks.delete_many({"_id": {"$in": claimed}})
                logger.info(f"Open return already exists for item {item_id} on order {order_id}")
                raise ConflictError(f"An open return already exists for item {item_id}")
            claimed.append(lock_id(order_id, item_id))
        return claimed

    async def _release_items(self, return_id: str, item_ids: Optional[List[str]] = None):
        query = {"return_id": return_id}
        if item_ids is not None:
            query["order_item_id"] = {"$in": item_ids}
        await self.db.return_item_locks.delete_many(query)

    # Validation

    async def _completed_quantities(self, order_id: str) -> Dict[str, int]:
        """Quantities per order item already refunded by completed returns"""
        quantities: Dict[str, int] = {}
        cursor = self.db.returns.find(
            {"order_id": order_id, "status": ReturnStatus.COMPLETED.value},
            {"items": 1},
        )
        async for doc in cursor:
            for item in doc.get("items", []):
                key = item["order_item_id"]
                quantities[key] = quantities.get(key, 0) + item["return_quantity"]
        return quantities

    async def _build_items(
        self,
        order: Order,
        requested: List[ReturnItemInput],
        now: datetime,
        shop_order_id: Optional[str] = None,
    ) -> List[ReturnItem]:
        if not requested:
            raise ValidationError(
                "At least one item must be selected for return",
                ["At least one item must be selected for return"],
            )

        already_returned = await self._completed_quantities(order.id)
        errors = []
        items = []
        seen = set()

        for entry in requested:
            if entry.order_item_id in seen:
                errors.append(f"Item {entry.order_item_id} is listed more than once")
                continue
            seen.add(entry.order_item_id)

            item = order.get_item(entry.order_item_id)
            if item is None:
                errors.append(f"Item {entry.order_item_id} is not part of order {order.order_number}")
                continue
            if shop_order_id and item.shop_order_id != shop_order_id:
                errors.append(f"'{item.name}' is not part of shop order {shop_order_id}")
                continue

            eligibility = item_eligibility(item, now)
            if not eligibility.eligible:
                if eligibility.days_remaining is None:
                    errors.append(f"'{item.name}' has not been delivered yet")
                else:
                    errors.append(f"Return period for '{item.name}' has expired ({item.max_return_days} days)")
                continue

            max_quantity = item.quantity - already_returned.get(item.id, 0)
            if not 1 <= entry.return_quantity <= max_quantity:
                errors.append(
                    f"Return quantity for '{item.name}' must be between 1 and {max(max_quantity, 0)}"
                )
                continue

            item_reason = (entry.reason or "").strip()
            if not item_reason:
                errors.append(f"Please give a reason for returning '{item.name}'")
                continue
            if len(item_reason) > settings.max_item_reason_length:
                errors.append(
                    f"Reason for '{item.name}' exceeds {settings.max_item_reason_length} characters"
                )
                continue

            line_total = round(item.subtotal * entry.return_quantity / item.quantity, 2)
            items.append(ReturnItem(
                order_item_id=item.id,
                product_id=item.product_id,
                name=item.name,
                return_quantity=entry.return_quantity,
                unit_price=item.unit_price,
                line_total=line_total,
                reason=item_reason,
            ))

        if errors:
            raise ValidationError("Invalid return items", errors)
        return items

    @staticmethod
    def _check_reason(reason: str) -> str:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason for the return is required", ["A reason for the return is required"])
        if len(reason) > settings.max_return_reason_length:
            message = f"Reason exceeds {settings.max_return_reason_length} characters"
            raise ValidationError(message, [message])
        return reason

    # Operations

    async def submit(
        self,
        order: Order,
        items: List[ReturnItemInput],
        reason: str,
        evidence: List[EvidenceFile],
        identity: Identity,
        shop_order_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReturnRequest:
        """
        Create a pending return request.

        Raises:
            NotFoundError: identity does not cover the order
            ValidationError: bad items, reason or evidence
            ConflictError: an item already has an open return
        """
        now = now or datetime.utcnow()
        ensure_order_scope(identity, order)

        reason = self._check_reason(reason)
        return_items = await self._build_items(order, items, now, shop_order_id)
        evidence_result = require_evidence(evidence, MediaContext.RETURN)

        point_value = await self.points.current_point_value(order)
        expected_refund = compute_refund(
            order,
            return_items,
            point_value,
            now=now,
            refund_shipping_on_full_return=settings.refund_shipping_on_full_return,
        )

        oid = ObjectId()
        return_id = str(oid)
        await self._claim_items(order.id, [item.order_item_id for item in return_items], return_id, now)

        attachments = []
        try:
            attachments = await stage_evidence(
                self.db, self.storage, evidence_result.accepted, f"returns/{return_id}"
            )
            ret = ReturnRequest(
                return_number=generate_return_number(),
                order_id=order.id,
                order_number=order.order_number,
                shop_order_id=shop_order_id,
                customer_id=customer_id_of(identity),
                reason=reason,
                items=return_items,
                media=attachments,
                status=ReturnStatus.PENDING,
                submitted_at=now,
                expected_refund=expected_refund,
                updated_at=now,
            )
            doc = ret.model_dump(exclude={"id"})
            doc["_id"] = oid
            await self.db.returns.insert_one(doc)
        except Exception:
            logger.error(f"Failed to create return for order {order.order_number}, rolling back")
            await discard_media(self.db, self.storage, attachments)
            await self._release_items(return_id)
            raise

        await attach_media(self.db, attachments, return_id)
        ret.id = return_id
        ret.rejected_files = evidence_result.errors
        logger.info(
            f"Return {ret.return_number} submitted for order {order.order_number} "
            f"by {identity.kind} ({len(return_items)} item(s))"
        )
        return ret

    async def amend_items(
        self,
        return_id: str,
        items: List[ReturnItemInput],
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> ReturnRequest:
        """Replace the item selection of a pending return and recompute its expected refund"""
        now = now or datetime.utcnow()
        ret, order = await self.load_in_scope(return_id, identity)
        if ret.status != ReturnStatus.PENDING:
            raise StateError(f"Cannot change items of return with status '{ret.status}'")

        return_items = await self._build_items(order, items, now, ret.shop_order_id)
        old_ids = {item.order_item_id for item in ret.items}
        new_ids = [item.order_item_id for item in return_items]
        added = [item_id for item_id in new_ids if item_id not in old_ids]
        removed = [item_id for item_id in old_ids if item_id not in new_ids]

        point_value = await self.points.current_point_value(order)
        expected_refund = compute_refund(
            order,
            return_items,
            point_value,
            now=now,
            refund_shipping_on_full_return=settings.refund_shipping_on_full_return,
        )

        await self._claim_items(order.id, added, ret.id, now)
        try:
            updated = await self._transition(
                ret.id,
                ReturnStatus.PENDING,
                {
                    "items": [item.model_dump() for item in return_items],
                    "expected_refund": expected_refund.model_dump(),
                    "updated_at": now,
                },
                "change items of",
                version=ret.version,
            )
        except Exception:
            await self._release_items(ret.id, added)
            raise

        if removed:
            await self._release_items(ret.id, removed)
        return updated

    async def decide(
        self,
        return_id: str,
        outcome: DecisionOutcome,
        notes: Optional[str],
        operator: OperatorIdentity,
        now: Optional[datetime] = None,
    ) -> ReturnRequest:
        """Approve or deny a pending return. Approval freezes the expected refund."""
        now = now or datetime.utcnow()
        outcome = DecisionOutcome(outcome)
        changes = {
            "status": outcome.value,
            "decision_at": now,
            "decision_notes": notes,
            "decided_by": operator.user_id,
            "updated_at": now,
        }
        if outcome == DecisionOutcome.APPROVED:
            changes["expected_refund.frozen"] = True

        ret = await self._transition(return_id, ReturnStatus.PENDING, changes, "decide")
        if outcome == DecisionOutcome.DENIED:
            await self._release_items(ret.id)
        return ret

    async def advance(
        self,
        return_id: str,
        target: ReturnStatus,
        realized_refund: Optional[RealizedRefund] = None,
        now: Optional[datetime] = None,
    ) -> ReturnRequest:
        """
        Move an approved return to processing, or a processing return to completed.

        Completion records the realized refund in the same update.
        """
        now = now or datetime.utcnow()
        target = ReturnStatus(target)

        if target == ReturnStatus.PROCESSING:
            return await self._transition(
                return_id,
                ReturnStatus.APPROVED,
                {"status": target.value, "processing_at": now, "updated_at": now},
                "start processing",
            )

        if target == ReturnStatus.COMPLETED:
            if realized_refund is None:
                raise ValidationError(
                    "A realized refund is required to complete a return",
                    ["A realized refund is required to complete a return"],
                )
            ret = await self._transition(
                return_id,
                ReturnStatus.PROCESSING,
                {
                    "status": target.value,
                    "refund": realized_refund.model_dump(),
                    "completed_at": now,
                    "updated_at": now,
                },
                "complete",
            )
            await self._release_items(ret.id)
            return ret

        raise StateError(f"Cannot advance a return to '{target.value}'")

    async def complete(self, return_id: str, realized_refund: RealizedRefund) -> ReturnRequest:
        """Record a processed refund reported by the refund processor"""
        return await self.advance(return_id, ReturnStatus.COMPLETED, realized_refund)

    async def cancel(self, return_id: str, identity: Identity, now: Optional[datetime] = None) -> ReturnRequest:
        """Cancel a pending return on behalf of its customer or guest"""
        now = now or datetime.utcnow()
        ret, _ = await self.load_in_scope(return_id, identity)

        ret = await self._transition(
            ret.id,
            ReturnStatus.PENDING,
            {"status": ReturnStatus.CANCELLED.value, "cancelled_at": now, "updated_at": now},
            "cancel",
        )
        await self._release_items(ret.id)
        return ret

    # Reads

    async def get(self, return_id: str, identity: Identity) -> ReturnRequest:
        ret, _ = await self.load_in_scope(return_id, identity)
        return ret

    async def get_by_order_number(self, order_number: str, identity: Identity) -> ReturnRequest:
        """Most recent return request for an order number"""
        order = ensure_order_scope(identity, await self.orders.find_by_number(order_number))
        doc = await self.db.returns.find_one(
            {"order_id": order.id},
            sort=[("submitted_at", -1)],
        )
        if not doc:
            raise NotFoundError("Return request not found")
        return self._parse(doc)

    async def list_for_order(self, order_ref: str, identity: Identity) -> List[ReturnRequest]:
        order = ensure_order_scope(identity, await self.orders.find_by_reference(order_ref))
        cursor = self.db.returns.find({"order_id": order.id}).sort("submitted_at", -1)
        return [self._parse(doc) for doc in await cursor.to_list(length=None)]

    async def list_for_shop_order(self, shop_order_id: str, identity: Identity) -> List[ReturnRequest]:
        order = ensure_order_scope(identity, await self.orders.find_by_shop_order(shop_order_id))
        cursor = self.db.returns.find(
            {"order_id": order.id, "shop_order_id": shop_order_id}
        ).sort("submitted_at", -1)
        return [self._parse(doc) for doc in await cursor.to_list(length=None)]

    async def list_for_customer(
        self,
        identity: Identity,
        page: int = 1,
        limit: int = 20,
    ) -> List[ReturnRequest]:
        """
        The signed-in customer's returns across all of their orders, newest first.

        Includes returns a guest filed on one of the customer's orders. Guests
        have no account to list by and are refused.
        """
        if not isinstance(identity, CustomerIdentity):
            raise AuthorizationError()

        order_ids = [
            str(doc["_id"])
            async for doc in self.db.orders.find({"user_id": identity.customer_id}, {"_id": 1})
        ]
        query = {"$or": [
            {"customer_id": identity.customer_id},
            {"order_id": {"$in": order_ids}},
        ]}

        skip = (page - 1) * limit
        cursor = self.db.returns.find(query).sort("submitted_at", -1).skip(skip).limit(limit)
        return [self._parse(doc) for doc in await cursor.to_list(length=limit)]

    async def list_all(
        self,
        status: Optional[ReturnStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> List[ReturnRequest]:
        """All returns, newest first (operators)"""
        query = {}
        if status:
            query["status"] = ReturnStatus(status).value

        skip = (page - 1) * limit
        cursor = self.db.returns.find(query).sort("submitted_at", -1).skip(skip).limit(limit)
        return [self._parse(doc) for doc in await cursor.to_list(length=limit)]
