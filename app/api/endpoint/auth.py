import logging

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.function.common import server_error, success
from app.auth.dependencies import get_current_user
from app.db.mongo import get_database
from app.schemas.user_schema import LoginRequest, PasswordChangeRequest, RegisterRequest, UserSchema
from app.services.user_service import UserService

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_database)):
    try:
        result = await UserService.register_user(db, payload)
        return success(result, message="Registration successful")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Register error")
        raise server_error("Server error", e)

@router.post("/login")
async def login(payload: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_database)):
    try:
        result = await UserService.authenticate_user(db, payload)
        return success(result, message="Login successful")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Login error")
        raise server_error("Server error", e)

@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    return success(UserSchema.model_validate(user))

@router.put("/password")
async def change_password(
    payload: PasswordChangeRequest,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        await UserService.change_password(db, user, payload.current_password, payload.new_password)
        return success(message="Password updated")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Password change error")
        raise server_error("Server error", e)
