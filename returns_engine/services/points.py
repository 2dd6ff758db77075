"""Read-only access to the loyalty points ledger"""

import logging
from decimal import Decimal
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from returns_engine.models.order import Order

logger = logging.getLogger(__name__)


class PointsLedger:
    """
    Point-to-cash rate lookups.

    Points are earned elsewhere; the returns engine only needs the value of
    a point at the moment a refund is computed.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def active_point_value(self) -> Optional[float]:
        reward_system = await self.db.reward_system.find_one(
            {"is_active": True},
            sort=[("updated_at", -1)],
        )
        if not reward_system or reward_system.get("point_value") is None:
            return None
        return float(reward_system["point_value"])

    async def current_point_value(self, order: Order) -> float:
        """
        Current value of one point in cash.

        Falls back to the rate the order was paid at when no reward system
        is active, since there is then no newer rate to apply.
        """
        value = await self.active_point_value()
        if value is not None:
            return value

        if order.points_used > 0:
            fallback = Decimal(str(order.points_value)) / Decimal(order.points_used)
            logger.info(
                f"No active reward system; using order {order.order_number} rate {fallback}"
            )
            return float(fallback)
        return 0.0
