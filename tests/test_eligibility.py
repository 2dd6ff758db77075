"""Tests for return window eligibility"""

from datetime import datetime, timedelta

from returns_engine.models.order import Order
from returns_engine.services.eligibility import annotate_items, compute_eligibility
from tests.helpers import order_document

NOW = datetime(2024, 6, 15, 12, 0, 0)


class TestComputeEligibility:
    def test_within_window(self):
        result = compute_eligibility(NOW - timedelta(days=10), 14, NOW)
        assert result.eligible is True
        assert result.days_remaining == 4

    def test_last_day_is_still_eligible(self):
        result = compute_eligibility(NOW - timedelta(days=13, hours=23), 14, NOW)
        assert result.eligible is True
        assert result.days_remaining == 1

    def test_exactly_at_window_is_not_eligible(self):
        result = compute_eligibility(NOW - timedelta(days=14), 14, NOW)
        assert result.eligible is False
        assert result.days_remaining == 0

    def test_past_window_goes_negative(self):
        result = compute_eligibility(NOW - timedelta(days=20), 14, NOW)
        assert result.eligible is False
        assert result.days_remaining == -6

    def test_not_delivered(self):
        result = compute_eligibility(None, 14, NOW)
        assert result.eligible is False
        assert result.days_remaining is None

    def test_zero_day_window_never_eligible(self):
        result = compute_eligibility(NOW - timedelta(hours=1), 0, NOW)
        assert result.eligible is False


def test_annotate_items_derives_flags_per_item():
    doc = order_document()
    doc["items"][0]["delivered_at"] = NOW - timedelta(days=10)
    doc["items"][1]["delivered_at"] = None
    order = Order(**{**doc, "_id": str(doc["_id"])})

    annotated = {item["order_item_id"]: item for item in annotate_items(order, NOW)}

    assert annotated["I1"]["return_eligible"] is True
    assert annotated["I1"]["days_remaining_for_return"] == 4
    assert annotated["I2"]["return_eligible"] is False
    assert annotated["I2"]["days_remaining_for_return"] is None
