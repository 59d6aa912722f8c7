import logging

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.function.common import server_error, success
from app.auth.dependencies import require_permission, require_role
from app.db.mongo import get_database
from app.schemas.user_schema import UserAccessUpdate, UserCreateRequest
from app.services.user_service import UserService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/admin/dashboard")
async def admin_dashboard(user: dict = Depends(require_role("admin"))):
    return success(message="Welcome Admin!")

@router.get("")
@router.get("/", include_in_schema=False)
async def get_users(
    user: dict = Depends(require_permission("users:read")),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """비밀번호를 제외한 전체 사용자 목록"""
    try:
        users = await UserService.get_all_users(db)
        return success({"users": users}, message="Users fetched successfully")
    except Exception as e:
        logger.exception("Error fetching users")
        raise server_error("Server error", e)

@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def create_user(
    payload: UserCreateRequest,
    admin: dict = Depends(require_role("admin")),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """관리자용 사용자 생성 - 초기 비밀번호는 응답에서 한 번만 확인 가능"""
    try:
        result = await UserService.create_user(db, payload)
        return success(result, message="User created successfully")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error creating user")
        raise server_error("Server error", e)

@router.patch("/{user_id}/access")
async def update_access(
    user_id: str,
    payload: UserAccessUpdate,
    admin: dict = Depends(require_role("admin")),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        user = await UserService.update_user_access(db, user_id, payload)
        logger.info("Admin %s updated access for user %s", admin["_id"], user_id)
        return success(user, message="User access updated")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error updating user access")
        raise server_error("Server error", e)
