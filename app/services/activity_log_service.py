"""Activity logging and analytics.

Documents are stored with camelCase keys so the stored shape and the JSON
shape match. All grouping and counting is done by MongoDB aggregation
pipelines; this module only builds them and shapes the results.
"""
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.api.function.common import resolve_period, to_utc
from app.repositories import activitydb
from app.schemas.activity_log_schema import (
    SORTABLE_FIELDS,
    ActivityCreate,
    ActivityQuery,
    ActivitySchema,
)

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
WEEK = timedelta(days=7)

TIME_GROUPINGS = {
    "hour": {"$hour": "$timestamp"},
    "day": {"$dayOfYear": "$timestamp"},
    "month": {"$month": "$timestamp"},
}


def parse_user_agent(user_agent: Optional[str]) -> tuple[str, str, str]:
    """Derive coarse (deviceType, browser, os) labels from a user-agent string.

    Plain substring checks in a fixed order; the first hit wins. Chromium
    based Edge therefore reports as Chrome.
    """
    ua = (user_agent or "").lower()

    if "mobile" in ua or "android" in ua or "iphone" in ua:
        device_type = "mobile"
    elif "tablet" in ua or "ipad" in ua:
        device_type = "tablet"
    else:
        device_type = "desktop"

    if "chrome" in ua:
        browser = "Chrome"
    elif "firefox" in ua:
        browser = "Firefox"
    elif "safari" in ua:
        browser = "Safari"
    elif "edge" in ua:
        browser = "Edge"
    else:
        browser = "Other"

    if "windows" in ua:
        os_name = "Windows"
    elif "mac" in ua:
        os_name = "macOS"
    elif "linux" in ua:
        os_name = "Linux"
    elif "android" in ua:
        os_name = "Android"
    elif "ios" in ua:
        os_name = "iOS"
    else:
        os_name = "Other"

    return device_type, browser, os_name


def build_activity_document(payload: ActivityCreate, client_ip: Optional[str] = None,
                            now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    user_agent = payload.user_agent or "Unknown"
    device_type, browser, os_name = parse_user_agent(user_agent)
    headers = payload.headers

    return {
        "url": payload.url,
        "pathname": payload.pathname,
        "method": payload.method,
        "userAgent": user_agent,
        "referer": payload.referer or "",
        "ip": payload.ip or client_ip or "unknown",
        "timestamp": to_utc(payload.timestamp) or now,
        "searchParams": payload.search_params or {},
        "headers": {
            "accept": headers.accept if headers else "",
            "acceptLanguage": headers.accept_language if headers else "",
        },
        "sessionId": payload.session_id or None,
        "userId": ObjectId(payload.user_id) if payload.user_id else None,
        "deviceType": device_type,
        "browser": browser,
        "os": os_name,
        "country": "unknown",
        "city": "unknown",
        "responseTime": payload.response_time,
        "statusCode": payload.status_code or 200,
        "createdAt": now,
        "updatedAt": now,
    }


async def log_activity(db: AsyncIOMotorDatabase, payload: ActivityCreate, client_ip: Optional[str] = None) -> dict:
    document = build_activity_document(payload, client_ip)
    document["_id"] = await activitydb.insert_activity(db, document)
    return {
        "id": str(document["_id"]),
        "timestamp": document["timestamp"],
        "pathname": document["pathname"],
        "method": document["method"],
    }


async def log_activities(db: AsyncIOMotorDatabase, payloads: list[ActivityCreate],
                         client_ip: Optional[str] = None) -> list[str]:
    documents = [build_activity_document(payload, client_ip) for payload in payloads]
    inserted_ids = await activitydb.insert_activities(db, documents)
    return [str(inserted_id) for inserted_id in inserted_ids]


def _object_id_or_400(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid userId")
    return ObjectId(value)


def _time_range(start: Optional[datetime], end: Optional[datetime]) -> dict:
    return {"timestamp": {"$gte": start, "$lte": end}}


def build_activity_filter(query: ActivityQuery) -> dict:
    filter = {}

    if query.start_date or query.end_date:
        filter["timestamp"] = {}
        if query.start_date:
            filter["timestamp"]["$gte"] = to_utc(query.start_date)
        if query.end_date:
            filter["timestamp"]["$lte"] = to_utc(query.end_date)

    if query.method:
        filter["method"] = query.method.upper()
    if query.pathname:
        # case-insensitive partial match on the literal text
        filter["pathname"] = {"$regex": re.escape(query.pathname), "$options": "i"}
    if query.ip:
        filter["ip"] = query.ip
    if query.user_id:
        filter["userId"] = _object_id_or_400(query.user_id)
    if query.session_id:
        filter["sessionId"] = query.session_id

    return filter


def _describe_filter(filter: dict) -> dict:
    described = {}
    for key, value in filter.items():
        if isinstance(value, ObjectId):
            value = str(value)
        described[key] = value
    return described


async def list_activities(db: AsyncIOMotorDatabase, query: ActivityQuery) -> dict:
    if query.sort_by not in SORTABLE_FIELDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid sortBy, expected one of {', '.join(SORTABLE_FIELDS)}",
        )

    filter = build_activity_filter(query)
    sort = [(query.sort_by, ASCENDING if query.sort_order == "asc" else DESCENDING)]

    activities = await activitydb.find_activities(db, filter, sort, query.offset, query.limit)
    total = await activitydb.count_activities(db, filter)

    return {
        "activities": [ActivitySchema.model_validate(activity) for activity in activities],
        "pagination": {
            "total": total,
            "limit": query.limit,
            "offset": query.offset,
            "pages": math.ceil(total / query.limit),
            "currentPage": query.offset // query.limit + 1,
        },
        "filters": _describe_filter(filter),
    }


def distribution_pipeline(match: dict, field: str, label: str) -> list[dict]:
    return [
        {"$match": match},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
        {"$project": {"_id": 0, label: "$_id", "count": 1}},
    ]


def time_distribution_pipeline(match: dict, group_by: str) -> list[dict]:
    return [
        {"$match": match},
        {"$group": {"_id": TIME_GROUPINGS[group_by], "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
        {"$project": {"_id": 0, group_by: "$_id", "count": 1}},
    ]


async def get_activity_stats(db: AsyncIOMotorDatabase, start: Optional[datetime] = None,
                             end: Optional[datetime] = None, group_by: str = "day") -> dict:
    start, end = resolve_period(start, end, WEEK)
    match = _time_range(start, end)

    total = await activitydb.count_activities(db, match)
    unique_ips = await activitydb.distinct_values(db, "ip", match)
    unique_pages = await activitydb.distinct_values(db, "pathname", match)

    method_stats = await activitydb.aggregate(db, distribution_pipeline(match, "method", "method"))
    device_stats = await activitydb.aggregate(db, distribution_pipeline(match, "deviceType", "deviceType"))
    time_stats = await activitydb.aggregate(db, time_distribution_pipeline(match, group_by))

    return {
        "summary": {
            "totalActivities": total,
            "uniqueIPs": len(unique_ips),
            "uniquePages": len(unique_pages),
            "period": {"start": start, "end": end},
        },
        "methodDistribution": method_stats,
        "deviceDistribution": device_stats,
        "timeDistribution": time_stats,
    }


def summary_pipeline(match: dict) -> list[dict]:
    def counts(field):
        return [{"$group": {"_id": f"${field}", "count": {"$sum": 1}}}]

    return [
        {"$match": match},
        {
            "$facet": {
                "totals": [
                    {
                        "$group": {
                            "_id": None,
                            "totalActivities": {"$sum": 1},
                            "uniqueIPs": {"$addToSet": "$ip"},
                            "uniquePages": {"$addToSet": "$pathname"},
                        }
                    },
                    {
                        "$project": {
                            "_id": 0,
                            "totalActivities": 1,
                            "uniqueIPCount": {"$size": "$uniqueIPs"},
                            "uniquePageCount": {"$size": "$uniquePages"},
                        }
                    },
                ],
                "methods": counts("method"),
                "devices": counts("deviceType"),
            }
        },
    ]


async def get_activity_summary(db: AsyncIOMotorDatabase, start: Optional[datetime] = None,
                               end: Optional[datetime] = None) -> dict:
    start, end = resolve_period(start, end, DAY)
    result = await activitydb.aggregate(db, summary_pipeline(_time_range(start, end)))

    summary = {
        "totalActivities": 0,
        "uniqueIPCount": 0,
        "uniquePageCount": 0,
        "methodDistribution": {},
        "deviceDistribution": {},
    }
    if not result:
        return summary

    facets = result[0]
    if facets.get("totals"):
        summary.update(facets["totals"][0])
    summary["methodDistribution"] = {row["_id"]: row["count"] for row in facets.get("methods", [])}
    summary["deviceDistribution"] = {row["_id"]: row["count"] for row in facets.get("devices", [])}
    return summary


async def get_hourly_activity(db: AsyncIOMotorDatabase, start: Optional[datetime] = None,
                              end: Optional[datetime] = None) -> list[dict]:
    start, end = resolve_period(start, end, DAY)
    pipeline = [
        {"$match": _time_range(start, end)},
        {"$group": {"_id": {"$hour": "$timestamp"}, "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
        {"$project": {"_id": 0, "hour": {"$concat": [{"$toString": "$_id"}, ":00"]}, "count": 1}},
    ]
    return await activitydb.aggregate(db, pipeline)


async def get_popular_pages(db: AsyncIOMotorDatabase, limit: int = 10, start: Optional[datetime] = None,
                            end: Optional[datetime] = None) -> list[dict]:
    start, end = resolve_period(start, end, WEEK)
    pipeline = [
        {"$match": _time_range(start, end)},
        {
            "$group": {
                "_id": "$pathname",
                "visits": {"$sum": 1},
                "uniqueVisitors": {"$addToSet": "$ip"},
                "lastVisit": {"$max": "$timestamp"},
            }
        },
        {
            "$project": {
                "_id": 0,
                "pathname": "$_id",
                "visits": 1,
                "uniqueVisitors": {"$size": "$uniqueVisitors"},
                "lastVisit": 1,
            }
        },
        {"$sort": {"visits": -1}},
        {"$limit": limit},
    ]
    return await activitydb.aggregate(db, pipeline)


async def get_user_activities(db: AsyncIOMotorDatabase, user_id: str, limit: int = 50, offset: int = 0) -> dict:
    filter = {"userId": _object_id_or_400(user_id)}
    activities = await activitydb.find_activities(db, filter, [("timestamp", DESCENDING)], offset, limit)
    total = await activitydb.count_activities(db, filter)
    return {
        "userId": user_id,
        "activities": [ActivitySchema.model_validate(activity) for activity in activities],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


async def cleanup_activities(db: AsyncIOMotorDatabase, days: int = 30, dry_run: bool = False,
                             now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)
    filter = {"timestamp": {"$lt": cutoff}}

    if dry_run:
        count = await activitydb.count_activities(db, filter)
        return {
            "message": f"Would delete {count} activities older than {days} days",
            "dryRun": True,
            "count": count,
            "cutoffDate": cutoff,
        }

    deleted = await activitydb.delete_activities(db, filter)
    logger.info("Deleted %d activities older than %s", deleted, cutoff.isoformat())
    return {
        "message": f"Deleted {deleted} activities older than {days} days",
        "deletedCount": deleted,
        "cutoffDate": cutoff,
    }


async def record_request(db: AsyncIOMotorDatabase, *, url: str, pathname: str, method: str,
                         user_agent: Optional[str], referer: Optional[str], ip: Optional[str],
                         search_params: dict, accept: str, accept_language: str,
                         session_id: Optional[str], user_id: Optional[str],
                         response_time: float, status_code: int) -> None:
    """Store one served request. Called from a background task; never raises."""
    try:
        payload = ActivityCreate(
            url=url,
            pathname=pathname,
            method=method,
            user_agent=user_agent,
            referer=referer,
            ip=ip,
            search_params=search_params,
            headers={"accept": accept, "accept_language": accept_language},
            session_id=session_id,
            user_id=user_id,
            response_time=response_time,
            status_code=status_code,
        )
        await activitydb.insert_activity(db, build_activity_document(payload))
    except Exception:
        logger.exception("Failed to record request %s %s", method, pathname)
