"""MongoDB database connection using Motor (async driver)"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from returns_engine.config import settings

logger = logging.getLogger(__name__)


class Database:
    """Database connection manager"""
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None


database = Database()


async def connect_to_mongo():
    """Connect to MongoDB on application startup"""
    database.client = AsyncIOMotorClient(settings.mongodb_url)
    database.db = database.client[settings.mongodb_db_name]
    await ensure_indexes(database.db)
    logger.info(f"Connected to MongoDB: {settings.mongodb_db_name}")


async def close_mongo_connection():
    """Close MongoDB connection on application shutdown"""
    if database.client:
        database.client.close()
        logger.info("Closed MongoDB connection")


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """
    Create the secondary indexes used by the returns engine.

    Per-item open-return markers use their ``_id`` as the uniqueness guard,
    so they need no extra index.
    """
    await db.orders.create_index("order_number", unique=True)
    await db.orders.create_index("pickup_token", sparse=True)
    await db.returns.create_index([("order_id", ASCENDING), ("submitted_at", DESCENDING)])
    await db.returns.create_index("order_number")
    await db.returns.create_index("shop_order_id", sparse=True)
    await db.returns.create_index("status")
    await db.appeals.create_index("return_id", unique=True)
    await db.return_item_locks.create_index("return_id")
    await db.media_uploads.create_index([("state", ASCENDING), ("created_at", ASCENDING)])


def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance"""
    return database.db
