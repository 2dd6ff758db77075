"""Lookups against the order service collection"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from returns_engine.core.security import tokens_match
from returns_engine.models.common import document_id, object_id_or_none
from returns_engine.models.order import Order


class OrderLookup:
    """Finds orders by id, number or guest token"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @staticmethod
    def _parse(doc: Optional[dict]) -> Optional[Order]:
        if not doc:
            return None
        return Order(**document_id(doc))

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        oid = object_id_or_none(order_id)
        if oid is None:
            return None
        return self._parse(await self.db.orders.find_one({"_id": oid}))

    async def find_by_number(self, order_number: str) -> Optional[Order]:
        if not order_number:
            return None
        return self._parse(await self.db.orders.find_one({"order_number": order_number}))

    async def find_by_reference(self, order_ref: str) -> Optional[Order]:
        """Resolve either an order id or an order number"""
        order = await self.find_by_id(order_ref)
        if order is None:
            order = await self.find_by_number(order_ref)
        return order

    async def find_by_pickup_token(self, token: str) -> Optional[Order]:
        if not token:
            return None
        return self._parse(await self.db.orders.find_one({"pickup_token": token}))

    async def find_by_shop_order(self, shop_order_id: str) -> Optional[Order]:
        if not shop_order_id:
            return None
        return self._parse(
            await self.db.orders.find_one({"items.shop_order_id": shop_order_id})
        )

    async def find_by_tracking_token(self, order_number: str, token: str) -> Optional[Order]:
        """Order whose number and tracking token both match, otherwise None"""
        order = await self.find_by_number(order_number)
        if order is None or not tokens_match(token, order.tracking_token):
            return None
        return order
