"""
Return window eligibility.

Pure rules with no database access. Eligibility is always derived from
``(delivered_at, max_return_days, now)`` and never stored.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from math import floor
from typing import List, Optional

from returns_engine.models.order import Order, OrderItem

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    days_remaining: Optional[int]


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def days_between(start: datetime, end: datetime) -> float:
    """Elapsed days from ``start`` to ``end`` as a fraction"""
    delta = _as_naive_utc(end) - _as_naive_utc(start)
    return delta.total_seconds() / SECONDS_PER_DAY


def compute_eligibility(
    delivered_at: Optional[datetime],
    max_return_days: int,
    now: datetime,
) -> Eligibility:
    """
    Decide whether an item can currently be returned.

    An item that has not been delivered is never eligible and has no
    remaining days. Otherwise the remaining days are the window minus the
    whole days elapsed since delivery, and the item is eligible only while
    that number is strictly positive. An item delivered exactly
    ``max_return_days`` ago is therefore not eligible.
    """
    if delivered_at is None:
        return Eligibility(eligible=False, days_remaining=None)

    days_remaining = max_return_days - floor(days_between(delivered_at, now))
    return Eligibility(eligible=days_remaining > 0, days_remaining=days_remaining)


def item_eligibility(item: OrderItem, now: datetime) -> Eligibility:
    return compute_eligibility(item.delivered_at, item.max_return_days, now)


def annotate_items(order: Order, now: datetime) -> List[dict]:
    """Order items with their derived ``return_eligible``/``days_remaining_for_return``"""
    annotated = []
    for item in order.items:
        result = item_eligibility(item, now)
        annotated.append({
            "order_item_id": item.id,
            "product_id": item.product_id,
            "name": item.name,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "subtotal": item.subtotal,
            "shop_order_id": item.shop_order_id,
            "delivered_at": item.delivered_at,
            "max_return_days": item.max_return_days,
            "return_eligible": result.eligible,
            "days_remaining_for_return": result.days_remaining,
        })
    return annotated
