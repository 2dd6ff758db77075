"""Shared fixtures: an in-memory database, local media storage and a sample order"""

import os
import tempfile

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")
os.environ.setdefault("REFUND_CALLBACK_SECRET", "callback-secret")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="returns-media-"))

import pytest
from mongomock_motor import AsyncMongoMockClient

from returns_engine.core.storage import BlobStorage
from returns_engine.database import ensure_indexes
from returns_engine.models.identity import (
    CustomerIdentity,
    OperatorIdentity,
    TrackingGuestIdentity,
)
from returns_engine.models.order import Order
from tests.helpers import CUSTOMER_ID, TRACKING_TOKEN, order_document


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["returns_engine_test"]
    await ensure_indexes(database)
    yield database


@pytest.fixture
def storage(tmp_path):
    return BlobStorage(root=str(tmp_path / "media"), base_url="/media")


@pytest.fixture
async def order(db) -> Order:
    doc = order_document()
    await db.orders.insert_one(doc)
    return Order(**{**doc, "_id": str(doc["_id"])})


@pytest.fixture
def customer() -> CustomerIdentity:
    return CustomerIdentity(customer_id=CUSTOMER_ID)


@pytest.fixture
def tracking_guest(order) -> TrackingGuestIdentity:
    return TrackingGuestIdentity(token=TRACKING_TOKEN, order_number=order.order_number, order_id=order.id)


@pytest.fixture
def operator() -> OperatorIdentity:
    return OperatorIdentity(user_id="operator-1", role="admin")
