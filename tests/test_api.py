"""End-to-end tests through the HTTP API"""

import json
from types import SimpleNamespace

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

from returns_engine.api.v1 import admin as admin_router
from returns_engine.api.v1 import webhooks as webhooks_router
from returns_engine.core.security import create_access_token
from returns_engine.core.storage import get_storage
from returns_engine.database import get_database
from returns_engine.main import app
from tests.helpers import CUSTOMER_ID, TRACKING_TOKEN, order_document

GUEST_HEADERS = {"X-Tracking-Token": TRACKING_TOKEN}
GUEST_PARAMS = {"order_number": "ORD-100"}
PHOTO = ("files", ("photo.jpg", b"\xff\xd8\xff" + b"\x00" * 512, "image/jpeg"))
NOTES = ("files", ("notes.txt", b"hello", "text/plain"))


@pytest.fixture
async def client(db, storage, order):
    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def operator_headers(db):
    user_id = ObjectId()
    await db.users.insert_one({"_id": user_id, "email": "ops@example.com", "role": "support", "active": True})
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


async def create_guest_return(client, item_id="I1", quantity=1, files=None):
    return await client.post(
        "/api/returns",
        headers=GUEST_HEADERS,
        params=GUEST_PARAMS,
        data={
            "order_ref": "ORD-100",
            "items": json.dumps([{"order_item_id": item_id, "return_quantity": quantity, "reason": "Cracked"}]),
            "reason": "Arrived broken",
        },
        files=files if files is not None else [PHOTO],
    )


async def test_guest_return_deny_and_single_appeal(client, operator_headers):
    eligibility = await client.get("/api/returns/orders/ORD-100/eligibility", headers=GUEST_HEADERS, params=GUEST_PARAMS)
    assert eligibility.status_code == 200
    items = {item["order_item_id"]: item for item in eligibility.json()["items"]}
    assert items["I1"]["return_eligible"] is True
    assert items["I1"]["days_remaining_for_return"] == 4

    created = await create_guest_return(client)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["expected_refund"]["monetary_refund"] == 25.0
    return_id = body["id"]

    denied = await client.patch(
        f"/api/admin/returns/{return_id}/decision",
        headers=operator_headers,
        json={"outcome": "denied", "notes": "No damage visible"},
    )
    assert denied.status_code == 200
    assert denied.json()["status"] == "denied"
    assert denied.json()["can_be_appealed"] is True
    assert denied.json()["appeal_days_remaining"] == 7

    appeal_form = {"return_id": return_id, "reason": "The photo shows the crack", "description": "See close-up"}
    first = await client.post(
        "/api/appeals",
        headers=GUEST_HEADERS,
        params=GUEST_PARAMS,
        data=appeal_form,
        files=[("files", ("closeup.jpg", b"\xff\xd8\xff" + b"\x01" * 256, "image/jpeg"))],
    )
    assert first.status_code == 201
    assert first.json()["status"] == "pending"

    second = await client.post(
        "/api/appeals",
        headers=GUEST_HEADERS,
        params=GUEST_PARAMS,
        data=appeal_form,
        files=[("files", ("again.jpg", b"\xff\xd8\xff", "image/jpeg"))],
    )
    assert second.status_code == 409
    assert second.json()["error"] == "Conflict"

    detail = await client.get(f"/api/returns/{return_id}", headers=GUEST_HEADERS, params=GUEST_PARAMS)
    assert detail.json()["appeal"]["id"] == first.json()["id"]
    assert detail.json()["can_be_appealed"] is False


async def test_requests_without_identity_are_refused(client):
    response = await client.get("/api/returns/orders/ORD-100/eligibility")
    assert response.status_code == 403
    assert response.json()["success"] is False


async def test_other_customer_sees_not_found(client):
    headers = {"Authorization": f"Bearer {create_access_token({'sub': 'someone-else'})}"}
    response = await client.get("/api/returns/orders/ORD-100/eligibility", headers=headers)
    assert response.status_code == 404


async def test_customer_lists_own_returns(client):
    await create_guest_return(client)
    headers = {"Authorization": f"Bearer {create_access_token({'sub': CUSTOMER_ID})}"}

    response = await client.get("/api/returns/orders/ORD-100", headers=headers)
    assert response.status_code == 200
    assert len(response.json()) == 1


async def test_rejected_file_is_reported_with_the_created_return(client):
    response = await create_guest_return(client, files=[PHOTO, NOTES])

    assert response.status_code == 201
    body = response.json()
    assert [m["filename"] for m in body["media"]] == ["photo.jpg"]
    assert body["rejected_files"] == ['"notes.txt" is not a valid image or video file']


async def test_no_accepted_file_lists_errors(client):
    response = await create_guest_return(client, files=[NOTES])

    assert response.status_code == 422
    assert response.json()["errors"] == [
        '"notes.txt" is not a valid image or video file',
        "At least one image or video is required",
    ]


async def test_overlapping_return_conflicts(client):
    assert (await create_guest_return(client)).status_code == 201
    response = await create_guest_return(client)
    assert response.status_code == 409


async def test_malformed_items_field(client):
    response = await client.post(
        "/api/returns",
        headers=GUEST_HEADERS,
        params=GUEST_PARAMS,
        data={"order_ref": "ORD-100", "items": "not json", "reason": "Broken"},
        files=[PHOTO],
    )
    assert response.status_code == 422


async def test_cancel_by_guest(client):
    return_id = (await create_guest_return(client)).json()["id"]

    response = await client.post(f"/api/returns/{return_id}/cancel", headers=GUEST_HEADERS, params=GUEST_PARAMS)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


async def test_operator_refund_completes_return(client, operator_headers, monkeypatch):
    calls = []

    async def fake_create_refund(payment_intent_id, amount, metadata=None, reason="requested_by_customer"):
        calls.append((payment_intent_id, amount, metadata))
        return SimpleNamespace(id="re_test_1", status="succeeded")

    monkeypatch.setattr(admin_router, "create_refund", fake_create_refund)

    return_id = (await create_guest_return(client)).json()["id"]
    await client.patch(
        f"/api/admin/returns/{return_id}/decision",
        headers=operator_headers,
        json={"outcome": "approved"},
    )

    response = await client.post(f"/api/admin/returns/{return_id}/refund", headers=operator_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "completed"
    payment_intent_id, amount_cents, metadata = calls[0]
    assert payment_intent_id == "pi_test_123"
    assert amount_cents == 2500
    assert metadata["return_id"] == return_id

    detail = await client.get(f"/api/admin/returns/{return_id}", headers=operator_headers)
    assert detail.json()["refund"]["transaction_id"] == "re_test_1"


async def test_refund_before_approval_is_refused(client, operator_headers):
    return_id = (await create_guest_return(client)).json()["id"]

    response = await client.post(f"/api/admin/returns/{return_id}/refund", headers=operator_headers)
    assert response.status_code == 409


async def test_refund_callback_completes_processing_return(client, operator_headers):
    return_id = (await create_guest_return(client)).json()["id"]
    await client.patch(f"/api/admin/returns/{return_id}/decision", headers=operator_headers, json={"outcome": "approved"})
    await client.post(f"/api/admin/returns/{return_id}/advance", headers=operator_headers, json={"status": "processing"})

    refused = await client.post(
        f"/api/webhooks/refunds/{return_id}",
        headers={"X-Refund-Callback-Secret": "wrong"},
        json={"amount": 25.0, "method": "bank_transfer"},
    )
    assert refused.status_code == 403

    response = await client.post(
        f"/api/webhooks/refunds/{return_id}",
        headers={"X-Refund-Callback-Secret": "callback-secret"},
        json={"amount": 25.0, "method": "bank_transfer", "transaction_id": "bt-77"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["refund"]["method"] == "bank_transfer"


async def test_stripe_webhook_rejects_bad_signature(client):
    response = await client.post(
        "/api/webhooks/stripe",
        content=b'{"type": "refund.updated"}',
        headers={"Stripe-Signature": "t=1,v1=bad"},
    )
    assert response.status_code == 400


async def test_customer_token_is_not_an_operator(client):
    headers = {"Authorization": f"Bearer {create_access_token({'sub': CUSTOMER_ID})}"}
    response = await client.get("/api/admin/returns", headers=headers)
    assert response.status_code == 401


async def test_media_reclaim(client, operator_headers, db):
    response = await client.post("/api/admin/media/reclaim", headers=operator_headers, params={"older_than_minutes": 0})
    assert response.status_code == 200
    assert response.json() == {"success": True, "reclaimed": 0}


async def test_latest_return_by_order_number(client):
    created = (await create_guest_return(client)).json()

    response = await client.get("/api/returns/order-number/ORD-100", headers=GUEST_HEADERS, params=GUEST_PARAMS)
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


async def test_foreign_and_missing_orders_look_alike(client, db):
    await db.orders.insert_one(order_document(
        _id=ObjectId(),
        order_number="ORD-101",
        user_id="someone-else",
        tracking_token="other-token",
        pickup_token="other-pickup",
    ))

    responses = []
    for order_ref in ("ORD-101", "ORD-999"):
        responses.append(await client.post(
            "/api/returns",
            headers=GUEST_HEADERS,
            params=GUEST_PARAMS,
            data={
                "order_ref": order_ref,
                "items": json.dumps([{"order_item_id": "I1", "return_quantity": 1, "reason": "Cracked"}]),
                "reason": "Arrived broken",
            },
            files=[PHOTO],
        ))

    foreign, missing = responses
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()


async def test_cancel_foreign_return_looks_missing(client):
    return_id = (await create_guest_return(client)).json()["id"]
    headers = {"Authorization": f"Bearer {create_access_token({'sub': 'someone-else'})}"}

    response = await client.post(f"/api/returns/{return_id}/cancel", headers=headers)
    assert response.status_code == 404


async def test_my_returns_for_signed_in_customer(client):
    created = (await create_guest_return(client)).json()
    headers = {"Authorization": f"Bearer {create_access_token({'sub': CUSTOMER_ID})}"}

    response = await client.get("/api/returns/my-returns", headers=headers, params={"page": 1, "limit": 5})
    assert response.status_code == 200
    assert [ret["id"] for ret in response.json()] == [created["id"]]


async def test_my_returns_refuses_guests(client):
    response = await client.get("/api/returns/my-returns", headers=GUEST_HEADERS, params=GUEST_PARAMS)
    assert response.status_code == 403


async def test_stripe_event_for_unknown_return_is_acknowledged(client, db, monkeypatch):
    async def fake_verify(payload, signature):
        return {
            "id": "evt_unknown",
            "type": "refund.updated",
            "data": {"object": {
                "id": "re_unknown",
                "status": "succeeded",
                "amount": 2500,
                "metadata": {"return_id": "not-a-return"},
            }},
        }

    monkeypatch.setattr(webhooks_router, "verify_webhook_signature", fake_verify)

    response = await client.post("/api/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=ok"})
    assert response.status_code == 200
    logged = await db.webhook_events.find_one({"event_id": "evt_unknown"})
    assert logged["processed"] is False
    assert logged["error"] == "Return request not found"
