"""Tests for windowed analytics queries."""

import asyncio
from datetime import datetime, timedelta

import pytest

from insightify.core.exceptions import QueryTimeoutError, ValidationError
from insightify.domain.models.tracking import EventRecord, PageViewRecord
from insightify.domain.services.aggregation_service import (
    AggregationService,
    bucket_start,
    next_bucket,
)
from insightify.domain.services.event_store import EventStore

PROJECT = "proj-1"
DAY_START = datetime(2026, 3, 10)
DAY_END = datetime(2026, 3, 10, 23, 59, 59)


def at(hour: int, minute: int = 0) -> datetime:
    return DAY_START.replace(hour=hour, minute=minute)


@pytest.fixture
async def seeded(db_session):
    """Three sessions from two visitors plus a few events."""
    store = EventStore(db_session)
    google = "https://www.google.com/search?q=insightify"
    await store.append_page_views(
        PROJECT,
        [
            PageViewRecord(session_id="s1", visitor_id="v1", page_url="/", referrer=google,
                           device_type="desktop", timestamp=at(10)),
            PageViewRecord(session_id="s1", visitor_id="v1", page_url="/pricing", referrer=google,
                           device_type="desktop", timestamp=at(10, 2)),
            PageViewRecord(session_id="s2", visitor_id="v1", page_url="/",
                           referrer="https://facebook.com/", device_type="mobile", timestamp=at(11)),
            PageViewRecord(session_id="s3", page_url="/", referrer="direct",
                           device_type="desktop", timestamp=at(12)),
        ],
    )
    await store.append_events(
        PROJECT,
        [
            EventRecord(session_id="s1", event_type="click", timestamp=at(10, 1)),
            EventRecord(session_id="s2", event_type="click", timestamp=at(11, 1)),
            EventRecord(session_id="s1", event_type="signup", event_data={"plan": "pro"},
                        timestamp=at(10, 1)),
        ],
    )
    return AggregationService(db_session)


def test_bucket_helpers():
    wednesday = datetime(2026, 3, 11, 15, 30)

    assert bucket_start(wednesday, "week") == datetime(2026, 3, 9)
    assert bucket_start(wednesday, "month") == datetime(2026, 3, 1)
    assert next_bucket(datetime(2026, 12, 1), "month") == datetime(2027, 1, 1)


@pytest.mark.asyncio
class TestSummary:
    async def test_summary_figures(self, seeded):
        summary = await seeded.get_summary(PROJECT, DAY_START, DAY_END)

        assert summary.total_page_views == 4
        assert summary.unique_sessions == 3
        # v1 across two sessions, s3 counted by its session id
        assert summary.unique_visitors == 2
        assert summary.bounce_rate == 66.67
        assert summary.average_page_views_per_session == 1.33

    async def test_duration_only_counts_ended_sessions(self, seeded):
        summary = await seeded.get_summary(PROJECT, DAY_START, DAY_END)

        # s1 runs 10:00 to 10:02 including its events; s2 ends at its click
        assert summary.average_session_duration == round((120 + 60) / 2)

    async def test_bounce_rate_bounded(self, seeded):
        summary = await seeded.get_summary(PROJECT, DAY_START, DAY_END)

        assert 0 <= summary.bounce_rate <= 100

    async def test_all_single_page_sessions_bounce(self, db_session):
        await EventStore(db_session).append_page_views(
            PROJECT,
            [PageViewRecord(session_id=f"s{i}", page_url="/", timestamp=at(9 + i)) for i in range(3)],
        )

        summary = await AggregationService(db_session).get_summary(PROJECT, DAY_START, DAY_END)

        assert summary.bounce_rate == 100

    async def test_no_single_page_sessions_means_no_bounces(self, db_session):
        await EventStore(db_session).append_page_views(
            PROJECT,
            [
                PageViewRecord(session_id=session_id, page_url=url, timestamp=at(hour, minute))
                for session_id, hour in (("s1", 9), ("s2", 14))
                for url, minute in (("/", 0), ("/docs", 5))
            ],
        )

        summary = await AggregationService(db_session).get_summary(PROJECT, DAY_START, DAY_END)

        assert summary.bounce_rate == 0
        assert summary.unique_sessions == 2

    async def test_empty_window_returns_zeros(self, seeded):
        empty_start = datetime(2025, 1, 1)

        summary = await seeded.get_summary(PROJECT, empty_start, empty_start + timedelta(days=1))

        assert summary.total_page_views == 0
        assert summary.unique_sessions == 0
        assert summary.bounce_rate == 0
        assert summary.average_session_duration == 0
        assert summary.average_page_views_per_session == 0
        assert await seeded.get_top_pages(PROJECT, empty_start, empty_start) == []

    async def test_other_projects_are_not_counted(self, seeded):
        summary = await seeded.get_summary("another", DAY_START, DAY_END)

        assert summary.total_page_views == 0

    async def test_start_after_end_rejected(self, seeded):
        with pytest.raises(ValidationError):
            await seeded.get_summary(PROJECT, DAY_END, DAY_START)


@pytest.mark.asyncio
class TestBreakdowns:
    async def test_top_pages_ordering(self, seeded):
        pages = await seeded.get_top_pages(PROJECT, DAY_START, DAY_END)

        assert [(p.url, p.views, p.sessions) for p in pages] == [("/", 3, 3), ("/pricing", 1, 1)]

    async def test_top_pages_capped_at_ten(self, db_session):
        store = EventStore(db_session)
        await store.append_page_views(
            PROJECT,
            [
                PageViewRecord(session_id=f"s{i}", page_url=f"/page-{i:02d}", timestamp=at(9))
                for i in range(12)
            ],
        )

        pages = await AggregationService(db_session).get_top_pages(PROJECT, DAY_START, DAY_END)

        assert len(pages) == 10
        assert pages[0].url == "/page-00"

    async def test_traffic_sources(self, seeded):
        sources = await seeded.get_traffic_sources(PROJECT, DAY_START, DAY_END)

        assert [(s.source, s.visitors) for s in sources] == [
            ("Direct", 1),
            ("Facebook", 1),
            ("Google", 1),
        ]

    async def test_device_breakdown(self, seeded):
        devices = await seeded.get_device_breakdown(PROJECT, DAY_START, DAY_END)

        assert [(d.device, d.sessions, d.percentage) for d in devices] == [
            ("desktop", 2, 67),
            ("mobile", 1, 33),
        ]

    async def test_event_types_and_custom_events(self, seeded):
        summary = await seeded.get_event_types_summary(PROJECT, DAY_START, DAY_END)
        custom = await seeded.get_custom_events(PROJECT, DAY_START, DAY_END)

        assert [(e.event_type, e.count, e.unique_sessions) for e in summary] == [
            ("click", 2, 2),
            ("signup", 1, 1),
        ]
        assert [e["event_type"] for e in custom] == ["signup"]
        assert custom[0]["event_data"] == {"plan": "pro"}


@pytest.mark.asyncio
class TestTimeSeries:
    async def test_hourly_buckets(self, seeded):
        series = await seeded.get_time_series_data(PROJECT, at(10), at(12, 30), granularity="hour")

        assert [(p.period.hour, p.page_views, p.sessions, p.unique_visitors) for p in series] == [
            (10, 2, 1, 1),
            (11, 1, 1, 1),
            (12, 1, 1, 1),
        ]

    async def test_daily_buckets_zero_filled(self, seeded):
        series = await seeded.get_time_series_data(
            PROJECT, datetime(2026, 3, 8), DAY_END, granularity="day"
        )

        assert [p.period.day for p in series] == [8, 9, 10]
        assert [p.page_views for p in series] == [0, 0, 4]
        assert series[2].unique_visitors == 2

    async def test_unknown_granularity_rejected(self, seeded):
        with pytest.raises(ValidationError):
            await seeded.get_time_series_data(PROJECT, DAY_START, DAY_END, granularity="minute")


@pytest.mark.asyncio
class TestRecentAndExport:
    async def test_recent_page_views_strictly_after_since(self, seeded):
        recent = await seeded.get_recent_page_views(PROJECT, since=at(11))

        assert [pv["session_id"] for pv in recent] == ["s3"]

    async def test_recent_events_newest_first(self, seeded):
        recent = await seeded.get_recent_events(PROJECT, since=at(9), limit=2)

        assert len(recent) == 2
        assert recent[0]["session_id"] == "s2"

    async def test_export_sessions(self, seeded):
        rows = await seeded.get_export_data(PROJECT, "sessions", DAY_START, DAY_END)

        assert len(rows) == 3
        assert set(rows[0]) == {
            "start_time", "end_time", "page_views", "events",
            "device_type", "browser", "os", "visitor_id",
        }

    async def test_export_page_views_newest_first(self, seeded):
        rows = await seeded.get_export_data(PROJECT, "pageviews", DAY_START, DAY_END)

        assert [r["page_url"] for r in rows] == ["/", "/", "/pricing", "/"]
        assert rows[0]["timestamp"] == at(12)

    async def test_export_unknown_type_rejected(self, seeded):
        with pytest.raises(ValidationError):
            await seeded.get_export_data(PROJECT, "heatmaps", DAY_START, DAY_END)


@pytest.mark.asyncio
class TestTimeoutsAndRealtime:
    async def test_query_timeout_raises(self, db_session):
        service = AggregationService(db_session)

        async def slow_query(*args, **kwargs):
            await asyncio.sleep(1)
            return []

        service.page_view_repo.get_top_pages = slow_query

        with pytest.raises(QueryTimeoutError):
            await service.get_top_pages(PROJECT, DAY_START, DAY_END, timeout=0.01)

    async def test_realtime_stats_cover_last_hour(self, db_session):
        store = EventStore(db_session)
        await store.append_page_views(
            PROJECT,
            [
                PageViewRecord(session_id="live", page_url="/"),
                PageViewRecord(session_id="old", page_url="/", timestamp=datetime(2020, 1, 1)),
            ],
        )
        await store.append_events(PROJECT, [EventRecord(session_id="live", event_type="click")])

        stats = await AggregationService(db_session).get_realtime_stats(PROJECT)

        assert stats.active_sessions == 1
        assert stats.page_views_last_hour == 1
        assert stats.events_last_hour == 1
