from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId
from pymongo import ReturnDocument
from datetime import datetime, timezone
from typing import Optional

from app.db.mongo import USERS

# 응답에 비밀번호 해시가 섞이지 않도록
PUBLIC_PROJECTION = {"password": 0}


def _object_id(user_id) -> Optional[ObjectId]:
    if isinstance(user_id, ObjectId):
        return user_id
    if not ObjectId.is_valid(str(user_id)):
        return None
    return ObjectId(str(user_id))


async def get_user(db: AsyncIOMotorDatabase, user_id, include_password: bool = False) -> Optional[dict]:
    oid = _object_id(user_id)
    if oid is None:
        return None
    projection = None if include_password else PUBLIC_PROJECTION
    return await db[USERS].find_one({"_id": oid}, projection)


async def get_user_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[dict]:
    return await db[USERS].find_one({"email": email})


async def get_users(db: AsyncIOMotorDatabase) -> list[dict]:
    cursor = db[USERS].find({}, PUBLIC_PROJECTION)
    return await cursor.to_list(length=None)


async def create_user(db: AsyncIOMotorDatabase, name: str, email: str, hashed_password: str,
                      age: Optional[int] = None, description: Optional[str] = None,
                      role: str = "user", permissions: Optional[list[str]] = None) -> dict:
    now = datetime.now(timezone.utc)
    document = {
        "name": name,
        "email": email,
        "password": hashed_password,
        "age": age,
        "description": description,
        "role": role,
        "permissions": permissions or [],
        "createdAt": now,
        "updatedAt": now,
    }
    result = await db[USERS].insert_one(document)
    document["_id"] = result.inserted_id
    return document


async def update_password(db: AsyncIOMotorDatabase, user_id, hashed_password: str) -> bool:
    result = await db[USERS].update_one(
        {"_id": _object_id(user_id)},
        {"$set": {"password": hashed_password, "updatedAt": datetime.now(timezone.utc)}},
    )
    return result.matched_count == 1


async def update_access(db: AsyncIOMotorDatabase, user_id, role: Optional[str] = None,
                        permissions: Optional[list[str]] = None) -> Optional[dict]:
    oid = _object_id(user_id)
    if oid is None:
        return None
    changes = {"updatedAt": datetime.now(timezone.utc)}
    if role is not None:
        changes["role"] = role
    if permissions is not None:
        changes["permissions"] = permissions
    return await db[USERS].find_one_and_update(
        {"_id": oid},
        {"$set": changes},
        projection=PUBLIC_PROJECTION,
        return_document=ReturnDocument.AFTER,
    )
