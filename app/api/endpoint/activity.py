import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.function.common import server_error, success
from app.auth.dependencies import get_current_user, require_permission
from app.core.config import APP_VERSION
from app.db.mongo import get_database, get_optional_database, ping
from app.schemas.activity_log_schema import ActivityBatchCreate, ActivityCreate, ActivityQuery
from app.services import activity_log_service

# /health 외의 모든 라우트는 인증 필요
router = APIRouter(dependencies=[Depends(get_current_user)])
public_router = APIRouter()
logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def log_activity(payload: ActivityCreate, request: Request, db: AsyncIOMotorDatabase = Depends(get_database)):
    try:
        data = await activity_log_service.log_activity(db, payload, _client_ip(request))
        return success(data, message="Activity logged successfully")
    except Exception as e:
        logger.exception("Error logging activity")
        raise server_error("Failed to log activity", e)


@router.post("/batch", status_code=status.HTTP_201_CREATED)
async def log_batch(payload: ActivityBatchCreate, request: Request, db: AsyncIOMotorDatabase = Depends(get_database)):
    try:
        ids = await activity_log_service.log_activities(db, payload.activities, _client_ip(request))
        return success(
            {"count": len(ids), "ids": ids},
            message=f"{len(ids)} activities logged successfully",
        )
    except Exception as e:
        logger.exception("Error logging batch activities")
        raise server_error("Failed to log batch activities", e)


@router.get("")
@router.get("/", include_in_schema=False)
async def list_activities(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    method: Optional[str] = None,
    pathname: Optional[str] = None,
    ip: Optional[str] = None,
    user_id: Optional[str] = Query(None, alias="userId"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    sort_by: str = Query("timestamp", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    query = ActivityQuery(
        limit=limit,
        offset=offset,
        start_date=start_date,
        end_date=end_date,
        method=method,
        pathname=pathname,
        ip=ip,
        user_id=user_id,
        session_id=session_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        return success(await activity_log_service.list_activities(db, query))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error fetching activities")
        raise server_error("Failed to fetch activities", e)


@router.get("/stats")
async def get_stats(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    group_by: Literal["hour", "day", "month"] = Query("day", alias="groupBy"),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        return success(await activity_log_service.get_activity_stats(db, start_date, end_date, group_by))
    except Exception as e:
        logger.exception("Error fetching activity stats")
        raise server_error("Failed to fetch activity statistics", e)


@router.get("/summary")
async def get_summary(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        return success(await activity_log_service.get_activity_summary(db, start_date, end_date))
    except Exception as e:
        logger.exception("Error fetching activity summary")
        raise server_error("Failed to fetch activity summary", e)


@router.get("/hourly")
async def get_hourly(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        return success(await activity_log_service.get_hourly_activity(db, start_date, end_date))
    except Exception as e:
        logger.exception("Error fetching hourly activity")
        raise server_error("Failed to fetch hourly activity", e)


@router.get("/popular-pages")
async def get_popular_pages(
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        return success(await activity_log_service.get_popular_pages(db, limit, start_date, end_date))
    except Exception as e:
        logger.exception("Error fetching popular pages")
        raise server_error("Failed to fetch popular pages", e)


@router.get("/user/{user_id}")
async def get_user_activities(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        return success(await activity_log_service.get_user_activities(db, user_id, limit, offset))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error fetching user activities")
        raise server_error("Failed to fetch user activities", e)


@router.delete("/cleanup", dependencies=[Depends(require_permission("activity:cleanup"))])
async def cleanup(
    days: int = Query(30, ge=1),
    dry_run: bool = Query(False, alias="dryRun"),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    try:
        result = await activity_log_service.cleanup_activities(db, days, dry_run)
        return success(**result)
    except Exception as e:
        logger.exception("Error cleaning up activities")
        raise server_error("Failed to cleanup activities", e)


@public_router.get("/health")
async def health(db: Optional[AsyncIOMotorDatabase] = Depends(get_optional_database)):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        if db is None:
            raise RuntimeError("MongoDB not connected")
        await ping(db)
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "status": "unhealthy",
                "timestamp": timestamp,
                "database": "disconnected",
                "error": str(e),
            },
        )
    return {
        "success": True,
        "status": "healthy",
        "timestamp": timestamp,
        "database": "connected",
        "version": APP_VERSION,
    }
