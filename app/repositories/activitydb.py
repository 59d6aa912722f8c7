from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Any, Optional

from app.db.mongo import ACTIVITIES


async def insert_activity(db: AsyncIOMotorDatabase, document: dict) -> Any:
    result = await db[ACTIVITIES].insert_one(document)
    return result.inserted_id


async def insert_activities(db: AsyncIOMotorDatabase, documents: list[dict]) -> list[Any]:
    result = await db[ACTIVITIES].insert_many(documents)
    return list(result.inserted_ids)


async def find_activities(db: AsyncIOMotorDatabase, filter: dict, sort: list[tuple[str, int]],
                          skip: int, limit: int) -> list[dict]:
    cursor = db[ACTIVITIES].find(filter).sort(sort).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)


async def count_activities(db: AsyncIOMotorDatabase, filter: Optional[dict] = None) -> int:
    return await db[ACTIVITIES].count_documents(filter or {})


async def distinct_values(db: AsyncIOMotorDatabase, field: str, filter: Optional[dict] = None) -> list:
    return await db[ACTIVITIES].distinct(field, filter or {})


async def aggregate(db: AsyncIOMotorDatabase, pipeline: list[dict]) -> list[dict]:
    cursor = db[ACTIVITIES].aggregate(pipeline)
    return await cursor.to_list(length=None)


async def delete_activities(db: AsyncIOMotorDatabase, filter: dict) -> int:
    result = await db[ACTIVITIES].delete_many(filter)
    return result.deleted_count
