import logging

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.core.security import create_access_token, generate_initial_password, hash_password, verify_password
from app.repositories import userdb
from app.schemas.user_schema import (
  LoginRequest,
  RegisterRequest,
  UserAccessUpdate,
  UserCreateRequest,
  UserRef,
  UserSchema,
)

logger = logging.getLogger(__name__)


class UserService:
  @staticmethod
  async def register_user(db: AsyncIOMotorDatabase, payload: RegisterRequest) -> dict:
    # 1. 이메일 중복 확인
    if await userdb.get_user_by_email(db, payload.email):
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered.")

    # 2. 비밀번호 해시 후 생성
    try:
      user = await userdb.create_user(
        db,
        name=payload.name,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        age=payload.age,
      )
    except DuplicateKeyError:
      # 동시에 같은 이메일로 가입한 경우 unique index에서 걸림
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered.")

    logger.info("Registered user %s", user["_id"])
    return UserService._token_response(user)

  @staticmethod
  async def authenticate_user(db: AsyncIOMotorDatabase, payload: LoginRequest) -> dict:
    user = await userdb.get_user_by_email(db, payload.email)
    if not user:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Email")

    if not verify_password(payload.password, user.get("password") or ""):
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Password")

    return UserService._token_response(user)

  @staticmethod
  async def change_password(db: AsyncIOMotorDatabase, user: dict, current_password: str, new_password: str) -> None:
    stored = await userdb.get_user(db, user["_id"], include_password=True)
    if not stored or not verify_password(current_password, stored.get("password") or ""):
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    # 변경 시 항상 새로 해시
    await userdb.update_password(db, user["_id"], hash_password(new_password))
    logger.info("Password changed for user %s", user["_id"])

  @staticmethod
  async def create_user(db: AsyncIOMotorDatabase, payload: UserCreateRequest) -> dict:
    if await userdb.get_user_by_email(db, payload.email):
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    initial_password = generate_initial_password()
    try:
      user = await userdb.create_user(
        db,
        name=payload.name,
        email=payload.email,
        hashed_password=hash_password(initial_password),
        age=payload.age,
        description=payload.description,
      )
    except DuplicateKeyError:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    return {
      "user": UserSchema.model_validate(user),
      "initialPassword": initial_password,
    }

  @staticmethod
  async def get_all_users(db: AsyncIOMotorDatabase) -> list[UserSchema]:
    users = await userdb.get_users(db)
    return [UserSchema.model_validate(user) for user in users]

  @staticmethod
  async def update_user_access(db: AsyncIOMotorDatabase, user_id: str, payload: UserAccessUpdate) -> UserSchema:
    user = await userdb.update_access(
      db,
      user_id,
      role=payload.role.value if payload.role else None,
      permissions=payload.permissions,
    )
    if not user:
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserSchema.model_validate(user)

  @staticmethod
  def _token_response(user: dict) -> dict:
    return {
      "token": create_access_token(str(user["_id"])),
      "user": UserRef.model_validate(user),
    }
