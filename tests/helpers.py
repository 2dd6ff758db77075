"""Builders for orders and evidence files used across the tests"""

from datetime import datetime, timedelta

from bson import ObjectId

from returns_engine.services.media import EvidenceFile

MB = 1024 * 1024

CUSTOMER_ID = "customer-1"
TRACKING_TOKEN = "track-abc-123"
PICKUP_TOKEN = "pickup-xyz-789"


def order_document(**overrides) -> dict:
    """ORD-100: two units of I1 delivered 10 days ago (14 day window), one I2 delivered 3 days ago"""
    now = datetime.utcnow()
    doc = dict(
        _id=ObjectId(),
        order_number="ORD-100",
        user_id=CUSTOMER_ID,
        items=[
            {
                "id": "I1",
                "product_id": "P1",
                "shop_order_id": "SHOP-1",
                "name": "Ceramic Mug",
                "quantity": 2,
                "unit_price": 25.0,
                "subtotal": 50.0,
                "delivered_at": now - timedelta(days=10),
                "max_return_days": 14,
            },
            {
                "id": "I2",
                "product_id": "P2",
                "shop_order_id": "SHOP-2",
                "name": "Linen Apron",
                "quantity": 1,
                "unit_price": 50.0,
                "subtotal": 50.0,
                "delivered_at": now - timedelta(days=3),
                "max_return_days": 30,
            },
        ],
        subtotal=100.0,
        shipping=0.0,
        total=100.0,
        points_used=0,
        points_value=0.0,
        payment_intent_id="pi_test_123",
        customer_email="buyer@example.com",
        tracking_token=TRACKING_TOKEN,
        tracking_token_expires_at=now + timedelta(days=30),
        pickup_token=PICKUP_TOKEN,
        pickup_token_expires_at=now + timedelta(days=30),
    )
    doc.update(overrides)
    return doc


def image(name: str = "photo.jpg", size: int = 2048) -> EvidenceFile:
    return EvidenceFile(filename=name, content_type="image/jpeg", data=b"\xff" * size)


def video(name: str = "clip.mp4", size: int = 4096, duration: float = 8.0) -> EvidenceFile:
    return EvidenceFile(filename=name, content_type="video/mp4", data=b"\x00" * size, duration=duration)
