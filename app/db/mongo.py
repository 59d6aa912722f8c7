import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.core.config import settings

logger = logging.getLogger(__name__)

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

USERS = "users"
ACTIVITIES = "activities"

async def connect_to_mongo():
    global client, db
    client = AsyncIOMotorClient(settings.MONGO_URI, tz_aware=True)
    db = client[settings.MONGO_DB_NAME]
    await ensure_indexes(db)
    logger.info("MongoDB connected (%s)", settings.MONGO_DB_NAME)

async def ensure_indexes(database: AsyncIOMotorDatabase):
    await database[USERS].create_index("email", unique=True)

    activities = database[ACTIVITIES]
    for field in ("pathname", "ip", "timestamp", "sessionId", "userId"):
        await activities.create_index(field)
    # compound indexes for the common listing and analytics queries
    await activities.create_index([("timestamp", DESCENDING), ("pathname", ASCENDING)])
    await activities.create_index([("ip", ASCENDING), ("timestamp", DESCENDING)])
    await activities.create_index([("method", ASCENDING), ("timestamp", DESCENDING)])
    await activities.create_index([("deviceType", ASCENDING), ("timestamp", DESCENDING)])

async def close_mongo_connection():
    global client, db
    if client:
        client.close()
        client = None
        db = None
        logger.info("MongoDB connection closed")

def get_database() -> AsyncIOMotorDatabase:
    if db is None:
        raise RuntimeError("MongoDB not connected")
    return db

async def ping(database: AsyncIOMotorDatabase) -> bool:
    await database.command("ping")
    return True

def get_optional_database():
    try:
        return get_database()
    except RuntimeError:
        return None
