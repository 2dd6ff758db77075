"""
Appeals against denied returns.

A denied return can be appealed once, within ``settings.appeal_window_days``
of the denial, and only with at least one evidence file. The single appeal
is reserved by setting ``appeal_id`` on the return with a filter that
requires it to still be empty, so concurrent submissions cannot both win.
Deciding an appeal does not change the status of the return.
"""

import logging
from datetime import datetime, timedelta
from math import ceil
from typing import List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from returns_engine.config import settings
from returns_engine.core.exceptions import (
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
from returns_engine.models.appeal import Appeal, AppealStatus
from returns_engine.models.common import document_id, object_id_or_none
from returns_engine.models.identity import Identity, OperatorIdentity
from returns_engine.models.return_model import DecisionOutcome, ReturnRequest, ReturnStatus
from returns_engine.services.lifecycle import ReturnLifecycle, require_evidence
from returns_engine.services.media import EvidenceFile, MediaContext

logger = logging.getLogger(__name__)


def appeal_deadline(ret: ReturnRequest) -> Optional[datetime]:
    if ret.status != ReturnStatus.DENIED or ret.decision_at is None:
        return None
    return ret.decision_at + timedelta(days=settings.appeal_window_days)


def appeal_window(ret: ReturnRequest, now: Optional[datetime] = None) -> Tuple[bool, Optional[int]]:
    """Whether the return can still be appealed, and how many days are left to do so"""
    deadline = appeal_deadline(ret)
    if deadline is None or ret.appeal_id:
        return False, None
    now = now or datetime.utcnow()
    remaining = (deadline - now).total_seconds()
    if remaining <= 0:
        return False, 0
    return True, ceil(remaining / 86400)


class AppealWorkflow:
    """Single-shot appeal process, persisted in the ``appeals`` collection"""

    def __init__(self, db: AsyncIOMotorDatabase, storage: Optional[BlobStorage] = None):
        self.db = db
        self.storage = storage or BlobStorage()
        self.returns = ReturnLifecycle(db, self.storage)

    @staticmethod
    def _parse(doc: dict) -> Appeal:
        return Appeal(**document_id(doc))

    async def submit_appeal(
        self,
        return_id: str,
        reason: str,
        description: str,
        evidence: List[EvidenceFile],
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> Appeal:
        """
        Appeal a denied return.

        Raises:
            NotFoundError: return missing or outside the identity's scope
            StateError: return not denied, or the appeal window has closed
            ConflictError: the return already has an appeal
            ValidationError: missing reason or evidence
        """
        now = now or datetime.utcnow()
        ret, _ = await self.returns.load_in_scope(return_id, identity)

        if ret.status != ReturnStatus.DENIED:
            raise StateError(f"Only denied returns can be appealed (status is '{ret.status}')")
        if ret.appeal_id:
            raise ConflictError("An appeal has already been submitted for this return request")
        deadline = appeal_deadline(ret)
        if deadline is None or now >= deadline:
            raise StateError("Appeal period has expired")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Please provide a reason for your appeal", ["Please provide a reason for your appeal"])
        evidence_result = require_evidence(evidence, MediaContext.APPEAL)

        appeal_oid = ObjectId()
        appeal_id = str(appeal_oid)
        reserved = await self.db.returns.find_one_and_update(
            {"_id": ObjectId(ret.id), "status": ReturnStatus.DENIED.value, "appeal_id": None},
            {"$set": {"appeal_id": appeal_id, "updated_at": now}, "$inc": {"version": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if reserved is None:
            logger.info(f"Lost appeal race on return {ret.return_number}")
            raise ConflictError("An appeal has already been submitted for this return request")

        attachments = []
        try:
            attachments = await stage_evidence(
                self.db, self.storage, evidence_result.accepted, f"appeals/{appeal_id}"
            )
            appeal = Appeal(
                return_id=ret.id,
                reason=reason,
                description=(description or "").strip(),
                media=attachments,
                status=AppealStatus.PENDING,
                submitted_at=now,
            )
            doc = appeal.model_dump(exclude={"id"})
            doc["_id"] = appeal_oid
            await self.db.appeals.insert_one(doc)
        except Exception as e:
            logger.error(f"Failed to create appeal for return {ret.return_number}: {str(e)}")
            await discard_media(self.db, self.storage, attachments)
            await self.db.returns.update_one(
                {"_id": ObjectId(ret.id), "appeal_id": appeal_id},
                {"$set": {"appeal_id": None}},
            )
            if isinstance(e, DuplicateKeyError):
                raise ConflictError("An appeal has already been submitted for this return request")
            raise

        await attach_media(self.db, attachments, appeal_id)
        appeal.id = appeal_id
        appeal.rejected_files = evidence_result.errors
        logger.info(f"Appeal {appeal_id} submitted for return {ret.return_number} by {identity.kind}")
        return appeal

    async def decide_appeal(
        self,
        appeal_id: str,
        outcome: DecisionOutcome,
        notes: Optional[str],
        operator: OperatorIdentity,
        now: Optional[datetime] = None,
    ) -> Appeal:
        """Approve or deny a pending appeal"""
        now = now or datetime.utcnow()
        outcome = DecisionOutcome(outcome)
        oid = object_id_or_none(appeal_id)
        if oid is None:
            raise NotFoundError("Appeal not found")

        doc = await self.db.appeals.find_one_and_update(
            {"_id": oid, "status": AppealStatus.PENDING.value},
            {"$set": {
                "status": outcome.value,
                "decision_at": now,
                "decision_notes": notes,
                "decided_by": operator.user_id,
            }},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            existing = await self.db.appeals.find_one({"_id": oid}, {"status": 1})
            if not existing:
                raise NotFoundError("Appeal not found")
            raise StateError(f"Cannot decide appeal with status '{existing.get('status')}'")

        appeal = self._parse(doc)
        logger.info(f"Appeal {appeal.id} {outcome.value}")
        return appeal

    async def find_for_return(self, return_id: str) -> Optional[Appeal]:
        doc = await self.db.appeals.find_one({"return_id": return_id})
        return self._parse(doc) if doc else None

    async def get_for_return(self, return_id: str, identity: Identity) -> Appeal:
        ret = await self.returns.get(return_id, identity)
        appeal = await self.find_for_return(ret.id)
        if appeal is None:
            raise NotFoundError("No appeal found for this return")
        return appeal

    async def get_for_operator(self, appeal_id: str) -> Appeal:
        oid = object_id_or_none(appeal_id)
        doc = await self.db.appeals.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFoundError("Appeal not found")
        return self._parse(doc)
