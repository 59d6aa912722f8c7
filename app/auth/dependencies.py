from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.security import decode_access_token
from app.db.mongo import get_database
from app.repositories import userdb

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_id_from_token(token: str) -> Optional[str]:
    """토큰에서 사용자 id 추출 (유효하지 않으면 None)"""
    try:
        payload = decode_access_token(token)
    except ValueError:
        return None
    user_id = payload.get("id")
    return str(user_id) if user_id else None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access token required")

    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Invalid or expired token")

    user = await userdb.get_user(db, user_id)
    if not user:
        raise _unauthorized("User not found")
    return user


def require_role(*roles: str):
    async def checker(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role", "user") not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user
    return checker


def require_permission(permission: str):
    async def checker(user: dict = Depends(get_current_user)) -> dict:
        if permission not in (user.get("permissions") or []):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return user
    return checker
