from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId

from app.schemas.user_schema import PyObjectId

HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]
DEVICE_TYPES = ["mobile", "desktop", "tablet", "unknown"]
SORTABLE_FIELDS = ["timestamp", "pathname", "method", "ip", "statusCode", "responseTime", "createdAt"]
MAX_BATCH_SIZE = 100


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActivityHeaders(CamelModel):
    accept: str = ""
    accept_language: str = ""


class ActivityCreate(CamelModel):
    url: str = Field(min_length=1)
    pathname: str = Field(min_length=1)
    method: str
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    ip: Optional[str] = None
    timestamp: Optional[datetime] = None
    search_params: Optional[Dict[str, Any]] = None
    headers: Optional[ActivityHeaders] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    response_time: Optional[float] = Field(default=None, ge=0)
    status_code: Optional[int] = Field(default=None, ge=100, le=599)

    @field_validator("url", "pathname")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("method")
    @classmethod
    def normalize_method(cls, value: str) -> str:
        value = value.upper()
        if value not in HTTP_METHODS:
            raise ValueError(f"Invalid HTTP method, expected one of {', '.join(HTTP_METHODS)}")
        return value

    @field_validator("user_id")
    @classmethod
    def check_user_id(cls, value: Optional[str]) -> Optional[str]:
        if value and not ObjectId.is_valid(value):
            raise ValueError("userId must be a valid ObjectId")
        return value or None


class ActivityBatchCreate(BaseModel):
    activities: List[ActivityCreate] = Field(min_length=1, max_length=MAX_BATCH_SIZE)


class ActivitySchema(CamelModel):
    id: PyObjectId = Field(validation_alias="_id")
    url: str
    pathname: str
    method: str
    user_agent: str = "Unknown"
    referer: str = ""
    ip: str = "unknown"
    timestamp: datetime
    search_params: Dict[str, Any] = {}
    headers: ActivityHeaders = ActivityHeaders()
    session_id: Optional[str] = None
    user_id: Optional[PyObjectId] = None
    device_type: str = "unknown"
    browser: str = "unknown"
    os: str = "unknown"
    country: str = "unknown"
    city: str = "unknown"
    response_time: Optional[float] = None
    status_code: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def is_mobile(self) -> bool:
        return self.device_type == "mobile" or "mobile" in self.user_agent.lower()


class ActivityQuery(BaseModel):
    limit: int = 50
    offset: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    method: Optional[str] = None
    pathname: Optional[str] = None
    ip: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    sort_by: str = "timestamp"
    sort_order: Literal["asc", "desc"] = "desc"
