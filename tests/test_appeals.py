"""Tests for appeals against denied returns"""

import asyncio
from datetime import timedelta

import pytest

from returns_engine.core.exceptions import (
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from returns_engine.models.appeal import AppealStatus
from returns_engine.models.identity import CustomerIdentity
from returns_engine.models.return_model import ReturnStatus
from returns_engine.schemas.return_schema import ReturnItemInput
from returns_engine.services.appeals import AppealWorkflow, appeal_window
from returns_engine.services.media import EvidenceFile
from tests.helpers import image, video


@pytest.fixture
def workflow(db, storage):
    return AppealWorkflow(db, storage)


@pytest.fixture
async def denied(workflow, order, customer, operator):
    ret = await workflow.returns.submit(
        order,
        [ReturnItemInput(order_item_id="I1", return_quantity=1, reason="Handle snapped")],
        "Handle snapped off",
        [image()],
        customer,
    )
    return await workflow.returns.decide(ret.id, "denied", "Damage looks intentional", operator)


async def appeal(workflow, ret, identity, evidence=None, now=None):
    return await workflow.submit_appeal(
        ret.id,
        "The handle was broken in the box",
        "Unboxing video attached",
        evidence if evidence is not None else [image("box.jpg"), video("unboxing.mp4")],
        identity,
        now=now,
    )


async def test_appeal_denied_return(workflow, denied, customer):
    created = await appeal(workflow, denied, customer)

    assert created.status == AppealStatus.PENDING
    assert created.return_id == denied.id
    assert len(created.media) == 2

    ret = await workflow.returns.load(denied.id)
    assert ret.appeal_id == created.id
    assert ret.status == ReturnStatus.DENIED


async def test_second_appeal_conflicts(workflow, denied, customer):
    await appeal(workflow, denied, customer)

    with pytest.raises(ConflictError):
        await appeal(workflow, denied, customer)


async def test_concurrent_appeals_only_one_wins(workflow, denied, customer):
    results = await asyncio.gather(
        appeal(workflow, denied, customer),
        appeal(workflow, denied, customer),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(conflicts) == 1
    assert await workflow.db.appeals.count_documents({"return_id": denied.id}) == 1


async def test_pending_return_cannot_be_appealed(workflow, order, customer):
    ret = await workflow.returns.submit(
        order,
        [ReturnItemInput(order_item_id="I2", return_quantity=1, reason="Wrong colour")],
        "Wrong colour",
        [image()],
        customer,
    )
    with pytest.raises(StateError):
        await appeal(workflow, ret, customer)


async def test_appeal_after_window_fails(workflow, denied, customer):
    with pytest.raises(StateError, match="Appeal period has expired"):
        await appeal(workflow, denied, customer, now=denied.decision_at + timedelta(days=7))


async def test_appeal_requires_evidence(workflow, denied, customer):
    with pytest.raises(ValidationError):
        await appeal(workflow, denied, customer, evidence=[])

    ret = await workflow.returns.load(denied.id)
    assert ret.appeal_id is None


async def test_appeal_keeps_accepted_files_and_reports_the_rest(workflow, denied, customer, db):
    notes = EvidenceFile("notes.txt", "text/plain", data=b"see photo")

    created = await appeal(workflow, denied, customer, evidence=[image("box.jpg"), notes])

    assert [m.filename for m in created.media] == ["box.jpg"]
    assert created.rejected_files == ['"notes.txt" is not a valid image or video file']
    assert await db.appeals.count_documents({"return_id": denied.id}) == 1


async def test_appeal_with_only_rejected_files_fails(workflow, denied, customer):
    notes = EvidenceFile("notes.txt", "text/plain", data=b"see photo")

    with pytest.raises(ValidationError) as exc:
        await appeal(workflow, denied, customer, evidence=[notes])
    assert "At least one image or video is required" in exc.value.errors

    ret = await workflow.returns.load(denied.id)
    assert ret.appeal_id is None


async def test_appeal_out_of_scope_looks_missing(workflow, denied):
    with pytest.raises(NotFoundError, match="Return request not found"):
        await appeal(workflow, denied, CustomerIdentity(customer_id="intruder"))


async def test_decide_appeal_keeps_return_status(workflow, denied, customer, operator):
    created = await appeal(workflow, denied, customer)
    decided = await workflow.decide_appeal(created.id, "approved", "Video confirms it", operator)

    assert decided.status == AppealStatus.APPROVED
    assert decided.decided_by == operator.user_id
    ret = await workflow.returns.load(denied.id)
    assert ret.status == ReturnStatus.DENIED

    with pytest.raises(StateError):
        await workflow.decide_appeal(created.id, "denied", None, operator)


async def test_get_for_return(workflow, denied, customer):
    with pytest.raises(NotFoundError):
        await workflow.get_for_return(denied.id, customer)

    created = await appeal(workflow, denied, customer)
    found = await workflow.get_for_return(denied.id, customer)
    assert found.id == created.id


async def test_appeal_window_counts_down(denied):
    assert appeal_window(denied, denied.decision_at + timedelta(hours=1)) == (True, 7)
    assert appeal_window(denied, denied.decision_at + timedelta(days=6, hours=1)) == (True, 1)
    assert appeal_window(denied, denied.decision_at + timedelta(days=7)) == (False, 0)


async def test_appealed_return_has_no_window(workflow, denied, customer):
    await appeal(workflow, denied, customer)
    ret = await workflow.returns.load(denied.id)
    assert appeal_window(ret) == (False, None)
