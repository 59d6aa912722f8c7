from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import HTTPException

from app.core.config import settings


def success(data: Any = None, message: Optional[str] = None, **extra) -> dict:
  """
  표준 응답 envelope 생성
  Args:
    data: 응답 본문
    message: 사용자에게 보여줄 메시지
    extra: envelope 최상위에 추가할 필드 (예: dryRun, cutoffDate)
  Returns:
    {"success": True, "message": ..., "data": ...}
  """
  body = {"success": True}
  if message is not None:
    body["message"] = message
  if data is not None:
    body["data"] = data
  body.update(extra)
  return body


def error_body(error: str, details: Any = None, **extra) -> dict:
  body = {"success": False, "error": error}
  if details is not None:
    body["details"] = details
  body.update(extra)
  return body


def debug_details(exc: Exception) -> Optional[str]:
  # 개발 환경에서만 예외 메시지를 노출
  return str(exc) if settings.is_development else None


def server_error(message: str, exc: Exception, status_code: int = 500) -> HTTPException:
  return HTTPException(status_code=status_code, detail={"error": message, "details": debug_details(exc)})


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
  """timezone 정보가 없는 값은 UTC로 간주"""
  if value is None:
    return None
  if value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  return value.astimezone(timezone.utc)


def resolve_period(start: Optional[datetime], end: Optional[datetime], default_window: timedelta,
                   now: Optional[datetime] = None) -> tuple[datetime, datetime]:
  now = now or datetime.now(timezone.utc)
  return to_utc(start) or now - default_window, to_utc(end) or now
