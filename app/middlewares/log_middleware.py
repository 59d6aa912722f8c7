import time

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
from starlette.background import BackgroundTasks

from app.auth.dependencies import user_id_from_token
from app.core.config import settings
from app.db import mongo
from app.schemas.activity_log_schema import HTTP_METHODS
from app.services.activity_log_service import record_request



def _bearer_token(request: Request):
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def search_params(request: Request) -> dict:
    """반복된 쿼리 키는 리스트로 보존 (?tag=a&tag=b -> {"tag": ["a", "b"]})"""
    grouped = {}
    for key, value in request.query_params.multi_items():
        grouped.setdefault(key, []).append(value)
    return {key: values if len(values) > 1 else values[0] for key, values in grouped.items()}


def should_log(request: Request) -> bool:
    if not settings.ACTIVITY_AUTO_LOG:
        return False
    if request.method.upper() not in HTTP_METHODS:
        return False
    path = request.url.path
    return not any(path.startswith(prefix) for prefix in settings.ACTIVITY_AUTO_LOG_EXCLUDE)


class ActivityLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        if not should_log(request) or mongo.db is None:
            return response

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        token = _bearer_token(request)
        user_id = user_id_from_token(token) if token else None

        # 응답 이후 비동기로 저장
        background = BackgroundTasks()
        if response.background is not None:
            # 기존 background 작업 보존
            background.tasks.append(response.background)
        background.add_task(
            record_request,
            mongo.db,
            url=str(request.url),
            pathname=request.url.path,
            method=request.method,
            user_agent=request.headers.get("user-agent"),
            referer=request.headers.get("referer"),
            ip=request.client.host if request.client else None,
            search_params=search_params(request),
            accept=request.headers.get("accept", ""),
            accept_language=request.headers.get("accept-language", ""),
            session_id=request.cookies.get("session_id") or request.headers.get("x-session-id"),
            user_id=user_id,
            response_time=elapsed_ms,
            status_code=response.status_code,
        )

        response.background = background
        return response
