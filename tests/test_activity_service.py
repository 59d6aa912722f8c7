from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
import re

import pytest
from bson import ObjectId
from fastapi import HTTPException

from app.schemas.activity_log_schema import ActivityCreate, ActivityQuery
from app.services import activity_log_service as service
from tests.fakes import make_cursor

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _activity(**overrides):
    payload = {"url": "https://shop.test/cart?x=1", "pathname": "/cart", "method": "get"}
    payload.update(overrides)
    return ActivityCreate(**payload)


class TestBuildActivityDocument:
    def test_applies_defaults_and_derived_fields(self):
        document = service.build_activity_document(_activity(), client_ip="10.0.0.7", now=NOW)

        assert document["method"] == "GET"
        assert document["userAgent"] == "Unknown"
        assert document["referer"] == ""
        assert document["ip"] == "10.0.0.7"
        assert document["timestamp"] == NOW
        assert document["searchParams"] == {}
        assert document["headers"] == {"accept": "", "acceptLanguage": ""}
        assert document["sessionId"] is None
        assert document["userId"] is None
        assert document["statusCode"] == 200
        assert (document["deviceType"], document["browser"], document["os"]) == ("desktop", "Other", "Other")
        assert document["country"] == "unknown"
        assert document["createdAt"] == document["updatedAt"] == NOW

    def test_falls_back_to_unknown_ip(self):
        document = service.build_activity_document(_activity(), now=NOW)
        assert document["ip"] == "unknown"

    def test_keeps_explicit_values(self):
        user_id = str(ObjectId())
        payload = _activity(
            userAgent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile Safari/604.1",
            referer="https://google.com",
            ip="192.168.1.20",
            timestamp="2024-04-30T08:15:00",
            searchParams={"q": "shoes"},
            headers={"accept": "text/html", "acceptLanguage": "en-US"},
            sessionId="sess-1",
            userId=user_id,
            responseTime=12.5,
            statusCode=404,
        )
        document = service.build_activity_document(payload, client_ip="10.0.0.7", now=NOW)

        assert document["ip"] == "192.168.1.20"
        # naive timestamps are treated as UTC
        assert document["timestamp"] == datetime(2024, 4, 30, 8, 15, tzinfo=timezone.utc)
        assert document["headers"] == {"accept": "text/html", "acceptLanguage": "en-US"}
        assert document["userId"] == ObjectId(user_id)
        assert document["deviceType"] == "mobile"
        assert document["browser"] == "Safari"
        assert document["responseTime"] == 12.5
        assert document["statusCode"] == 404

    def test_rejects_unknown_method(self):
        with pytest.raises(ValueError):
            _activity(method="TRACE")

    def test_rejects_malformed_user_id(self):
        with pytest.raises(ValueError):
            _activity(userId="not-an-object-id")


class TestBuildActivityFilter:
    def test_empty_query_matches_everything(self):
        assert service.build_activity_filter(ActivityQuery()) == {}

    def test_translates_all_filters(self):
        user_id = str(ObjectId())
        query = ActivityQuery(
            start_date=datetime(2024, 4, 1),
            end_date=datetime(2024, 4, 30, tzinfo=timezone.utc),
            method="post",
            pathname="/api/v1.0",
            ip="1.2.3.4",
            user_id=user_id,
            session_id="abc",
        )
        filter = service.build_activity_filter(query)

        assert filter["timestamp"] == {
            "$gte": datetime(2024, 4, 1, tzinfo=timezone.utc),
            "$lte": datetime(2024, 4, 30, tzinfo=timezone.utc),
        }
        assert filter["method"] == "POST"
        assert filter["pathname"] == {"$regex": re.escape("/api/v1.0"), "$options": "i"}
        assert filter["ip"] == "1.2.3.4"
        assert filter["userId"] == ObjectId(user_id)
        assert filter["sessionId"] == "abc"

    def test_only_start_date(self):
        filter = service.build_activity_filter(ActivityQuery(start_date=NOW))
        assert filter == {"timestamp": {"$gte": NOW}}

    def test_invalid_user_id_is_a_client_error(self):
        with pytest.raises(HTTPException) as excinfo:
            service.build_activity_filter(ActivityQuery(user_id="nope"))
        assert excinfo.value.status_code == 400


class TestListActivities:
    @pytest.mark.asyncio
    async def test_pagination_block(self, fake_db):
        stored = {
            "_id": ObjectId(),
            "url": "https://shop.test/",
            "pathname": "/",
            "method": "GET",
            "userAgent": "Mobile Safari",
            "ip": "1.1.1.1",
            "timestamp": NOW,
            "deviceType": "desktop",
        }
        activities = fake_db["activities"]
        activities.find = MagicMock(return_value=make_cursor([stored]))
        activities.count_documents.return_value = 101

        result = await service.list_activities(fake_db, ActivityQuery(limit=50, offset=50, sort_order="asc"))

        assert result["pagination"] == {"total": 101, "limit": 50, "offset": 50, "pages": 3, "currentPage": 2}
        cursor = activities.find.return_value
        cursor.sort.assert_called_once_with([("timestamp", 1)])
        cursor.skip.assert_called_once_with(50)
        cursor.limit.assert_called_once_with(50)

        activity = result["activities"][0]
        assert activity.id == str(stored["_id"])
        # the user agent says mobile even though the stored device type does not
        assert activity.is_mobile is True

    @pytest.mark.asyncio
    async def test_rejects_unknown_sort_field(self, fake_db):
        with pytest.raises(HTTPException) as excinfo:
            await service.list_activities(fake_db, ActivityQuery(sort_by="password"))
        assert excinfo.value.status_code == 400
        fake_db["activities"].find.assert_not_called()


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_stats_defaults_to_last_week(self, fake_db):
        activities = fake_db["activities"]
        activities.count_documents.return_value = 3
        activities.distinct.side_effect = [["1.1.1.1", "2.2.2.2"], ["/", "/cart", "/login"]]

        result = await service.get_activity_stats(fake_db, group_by="hour")

        summary = result["summary"]
        assert summary["totalActivities"] == 3
        assert summary["uniqueIPs"] == 2
        assert summary["uniquePages"] == 3
        period = summary["period"]
        assert period["end"] - period["start"] == timedelta(days=7)

        pipelines = [call.args[0] for call in activities.aggregate.call_args_list]
        assert pipelines[0][1] == {"$group": {"_id": "$method", "count": {"$sum": 1}}}
        assert pipelines[1][1] == {"$group": {"_id": "$deviceType", "count": {"$sum": 1}}}
        assert pipelines[2][1] == {"$group": {"_id": {"$hour": "$timestamp"}, "count": {"$sum": 1}}}
        for pipeline in pipelines:
            assert pipeline[0] == {"$match": {"timestamp": {"$gte": period["start"], "$lte": period["end"]}}}

    @pytest.mark.asyncio
    async def test_summary_without_matches(self, fake_db):
        fake_db["activities"].aggregate = MagicMock(return_value=make_cursor([{"totals": [], "methods": [], "devices": []}]))

        result = await service.get_activity_summary(fake_db)

        assert result == {
            "totalActivities": 0,
            "uniqueIPCount": 0,
            "uniquePageCount": 0,
            "methodDistribution": {},
            "deviceDistribution": {},
        }

    @pytest.mark.asyncio
    async def test_summary_reshapes_facets(self, fake_db):
        facets = {
            "totals": [{"totalActivities": 5, "uniqueIPCount": 2, "uniquePageCount": 3}],
            "methods": [{"_id": "GET", "count": 4}, {"_id": "POST", "count": 1}],
            "devices": [{"_id": "desktop", "count": 5}],
        }
        fake_db["activities"].aggregate = MagicMock(return_value=make_cursor([facets]))

        result = await service.get_activity_summary(fake_db, NOW - timedelta(hours=2), NOW)

        assert result["totalActivities"] == 5
        assert result["methodDistribution"] == {"GET": 4, "POST": 1}
        assert result["deviceDistribution"] == {"desktop": 5}

    @pytest.mark.asyncio
    async def test_popular_pages_pipeline(self, fake_db):
        await service.get_popular_pages(fake_db, limit=5, start=NOW - timedelta(days=1), end=NOW)

        pipeline = fake_db["activities"].aggregate.call_args.args[0]
        assert pipeline[0] == {"$match": {"timestamp": {"$gte": NOW - timedelta(days=1), "$lte": NOW}}}
        assert pipeline[-2] == {"$sort": {"visits": -1}}
        assert pipeline[-1] == {"$limit": 5}

    @pytest.mark.asyncio
    async def test_hourly_activity_labels(self, fake_db):
        fake_db["activities"].aggregate = MagicMock(return_value=make_cursor([{"hour": "9:00", "count": 2}]))

        result = await service.get_hourly_activity(fake_db)

        assert result == [{"hour": "9:00", "count": 2}]
        pipeline = fake_db["activities"].aggregate.call_args.args[0]
        assert pipeline[2] == {"$sort": {"_id": 1}}


def _older_than(document, filter):
    """Evaluate the {"timestamp": {"$lt": cutoff}} filter the way MongoDB does."""
    return document["timestamp"] < filter["timestamp"]["$lt"]


class TestCleanup:
    @pytest.mark.asyncio
    async def test_deletes_only_records_older_than_cutoff(self, fake_db):
        fake_db["activities"].delete_many.return_value = MagicMock(deleted_count=2)

        result = await service.cleanup_activities(fake_db, days=30, now=NOW)

        cutoff = NOW - timedelta(days=30)
        filter = fake_db["activities"].delete_many.call_args.args[0]
        assert filter == {"timestamp": {"$lt": cutoff}}
        assert result["deletedCount"] == 2
        assert result["cutoffDate"] == cutoff

        documents = [
            {"timestamp": cutoff - timedelta(days=1)},
            {"timestamp": cutoff - timedelta(seconds=1)},
            {"timestamp": cutoff},
            {"timestamp": NOW},
        ]
        assert [_older_than(document, filter) for document in documents] == [True, True, False, False]

    @pytest.mark.asyncio
    async def test_dry_run_only_counts(self, fake_db):
        fake_db["activities"].count_documents.return_value = 7

        result = await service.cleanup_activities(fake_db, days=10, dry_run=True, now=NOW)

        assert result["dryRun"] is True
        assert result["count"] == 7
        assert result["message"] == "Would delete 7 activities older than 10 days"
        fake_db["activities"].count_documents.assert_awaited_once_with({"timestamp": {"$lt": NOW - timedelta(days=10)}})
        fake_db["activities"].delete_many.assert_not_called()


class TestRecordRequest:
    @pytest.mark.asyncio
    async def test_stores_served_request(self, fake_db):
        user_id = str(ObjectId())
        await service.record_request(
            fake_db,
            url="http://test/api/users",
            pathname="/api/users",
            method="get",
            user_agent="Mozilla/5.0 (X11; Linux x86_64) Firefox/121.0",
            referer=None,
            ip="127.0.0.1",
            search_params={"page": "2"},
            accept="application/json",
            accept_language="",
            session_id=None,
            user_id=user_id,
            response_time=3.2,
            status_code=403,
        )

        document = fake_db["activities"].insert_one.call_args.args[0]
        assert document["method"] == "GET"
        assert document["statusCode"] == 403
        assert document["responseTime"] == 3.2
        assert document["userId"] == ObjectId(user_id)
        assert document["searchParams"] == {"page": "2"}
        assert document["browser"] == "Firefox"

    @pytest.mark.asyncio
    async def test_swallows_storage_failures(self, fake_db):
        fake_db["activities"].insert_one.side_effect = RuntimeError("connection reset")

        await service.record_request(
            fake_db,
            url="http://test/",
            pathname="/",
            method="GET",
            user_agent=None,
            referer=None,
            ip=None,
            search_params={},
            accept="",
            accept_language="",
            session_id=None,
            user_id=None,
            response_time=1.0,
            status_code=200,
        )
