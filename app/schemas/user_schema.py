from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from bson import ObjectId


def _stringify_object_id(value):
  return str(value) if isinstance(value, ObjectId) else value


# Mongo ObjectId -> str on the way out
PyObjectId = Annotated[str, BeforeValidator(_stringify_object_id)]


class Role(str, Enum):
  user = "user"
  admin = "admin"
  moderator = "moderator"


# 회원가입
class RegisterRequest(BaseModel):
  name: str = Field(min_length=1)
  email: EmailStr
  password: str = Field(min_length=6)
  age: int = Field(ge=18)  # 정수 나이만 허용 ("27"은 변환, 18.5는 거부)


class LoginRequest(BaseModel):
  email: EmailStr
  password: str = Field(min_length=1)


class PasswordChangeRequest(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

  current_password: str = Field(min_length=1)
  new_password: str = Field(min_length=6)


# 관리자용 사용자 생성 (비밀번호는 서버에서 발급)
class UserCreateRequest(BaseModel):
  name: str = Field(min_length=1)
  email: EmailStr
  age: Optional[int] = Field(default=None, ge=0)
  description: Optional[str] = None


class UserAccessUpdate(BaseModel):
  role: Optional[Role] = None
  permissions: Optional[list[str]] = None


# 토큰 응답에 포함되는 요약 정보
class UserRef(BaseModel):
  id: PyObjectId = Field(validation_alias="_id")
  name: Optional[str] = None
  email: str


class UserSchema(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

  id: PyObjectId = Field(validation_alias="_id")
  name: Optional[str] = None
  email: str
  age: Optional[int] = None
  description: Optional[str] = None
  role: Role = Role.user
  permissions: list[str] = []
  created_at: Optional[datetime] = None
  updated_at: Optional[datetime] = None
