"""Aggregation engine: windowed statistics over the tracking tables.

All windows are inclusive ``[start, end]``. Windows without data produce
zero-valued results. Each query can be bounded by a timeout; on expiry a
QueryTimeoutError is raised instead of returning partial figures.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Awaitable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from insightify.core.clock import to_naive_utc, utcnow
from insightify.core.exceptions import QueryTimeoutError, ValidationError
from insightify.domain.models.analytics import (
    AnalyticsSummary,
    DeviceShare,
    EventTypeSummary,
    RealtimeStats,
    TimeSeriesPoint,
    TopPage,
    TrafficSource,
)
from insightify.persistence.errors import storage_errors
from insightify.persistence.models.event import Event
from insightify.persistence.models.page_view import PageView
from insightify.persistence.repositories.event_repository import EventRepository
from insightify.persistence.repositories.page_view_repository import PageViewRepository
from insightify.persistence.repositories.session_repository import SessionRepository
from insightify.settings import settings
from insightify.utils.traffic_sources import classify_referrer

logger = logging.getLogger(__name__)

T = TypeVar("T")

GRANULARITIES = ("hour", "day", "week", "month")
EXPORT_TYPES = ("pageviews", "events", "sessions")
TOP_PAGES_LIMIT = 10

_PAGE_VIEW_EXPORT_COLUMNS = (
    "timestamp", "page_url", "referrer", "user_agent", "device_type", "browser", "os", "session_id",
)
_EVENT_EXPORT_COLUMNS = ("timestamp", "event_type", "event_data", "page_url", "session_id")
_SESSION_EXPORT_COLUMNS = (
    "start_time", "end_time", "page_views", "events", "device_type", "browser", "os", "visitor_id",
)


def page_view_to_dict(page_view: PageView) -> dict[str, Any]:
    """Serialize a page view for real-time feeds."""
    return {
        "id": page_view.id,
        "session_id": page_view.session_id,
        "page_url": page_view.page_url,
        "page_title": page_view.page_title,
        "referrer": page_view.referrer,
        "user_agent": page_view.user_agent,
        "device_type": page_view.device_type,
        "browser": page_view.browser,
        "os": page_view.os,
        "timestamp": page_view.timestamp,
    }


def event_to_dict(event: Event) -> dict[str, Any]:
    """Serialize an event for real-time feeds."""
    return {
        "id": event.id,
        "session_id": event.session_id,
        "event_type": event.event_type,
        "event_data": event.event_data,
        "page_url": event.page_url,
        "timestamp": event.timestamp,
    }


def _columns(instance: Any, columns: tuple[str, ...]) -> dict[str, Any]:
    return {column: getattr(instance, column) for column in columns}


def bucket_start(value: datetime, granularity: str) -> datetime:
    """Floor a timestamp to the start of its period."""
    if granularity == "hour":
        return value.replace(minute=0, second=0, microsecond=0)
    day = value.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == "day":
        return day
    if granularity == "week":
        return day - timedelta(days=day.weekday())
    if granularity == "month":
        return day.replace(day=1)
    raise ValidationError(f"Unknown granularity '{granularity}'")


def next_bucket(value: datetime, granularity: str) -> datetime:
    """Return the start of the period after ``value``'s period."""
    if granularity == "hour":
        return value + timedelta(hours=1)
    if granularity == "day":
        return value + timedelta(days=1)
    if granularity == "week":
        return value + timedelta(weeks=1)
    if value.month == 12:
        return value.replace(year=value.year + 1, month=1)
    return value.replace(month=value.month + 1)


class AggregationService:
    """Read-only statistics over page views, events and session rollups."""

    def __init__(self, session: AsyncSession, default_timeout: float | None = None) -> None:
        """Initialize aggregation service.

        Args:
            session: Database session
            default_timeout: Timeout in seconds applied when a query passes
                none; defaults to the configured query timeout
        """
        self.session = session
        self.default_timeout = (
            settings.query_timeout_seconds if default_timeout is None else default_timeout
        )
        self.page_view_repo = PageViewRepository(session)
        self.event_repo = EventRepository(session)
        self.session_repo = SessionRepository(session)

    async def _run(
        self, operation: str, coro: Awaitable[T], timeout: float | None
    ) -> T:
        """Run a query under a deadline and storage error translation."""
        limit = self.default_timeout if timeout is None else timeout
        async with storage_errors(operation):
            try:
                if limit and limit > 0:
                    return await asyncio.wait_for(coro, timeout=limit)
                return await coro
            except asyncio.TimeoutError:
                logger.warning(f"{operation} timed out after {limit}s")
                raise QueryTimeoutError(operation, limit) from None

    @staticmethod
    def _window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
        start, end = to_naive_utc(start), to_naive_utc(end)
        if start > end:
            raise ValidationError("start must not be after end")
        return start, end

    async def get_summary(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        timeout: float | None = None,
    ) -> AnalyticsSummary:
        """Compute headline statistics for a window.

        Bounce rate counts sessions (by start time) that have exactly one page
        view, over sessions with at least one. Session duration averages only
        sessions that have an end time.
        """
        start, end = self._window(start, end)

        async def _query() -> AnalyticsSummary:
            page_views, sessions, visitors = await self.page_view_repo.get_window_totals(
                project_id, start, end
            )
            rollup_sessions, bounced = await self.session_repo.get_bounce_counts(
                project_id, start, end
            )
            spans = await self.session_repo.get_closed_spans(project_id, start, end)

            bounce_rate = (bounced / rollup_sessions * 100) if rollup_sessions else 0.0
            durations = [(e - s).total_seconds() for s, e in spans]
            avg_duration = round(sum(durations) / len(durations)) if durations else 0
            per_session = (page_views / sessions) if sessions else 0.0

            return AnalyticsSummary(
                total_page_views=page_views,
                unique_sessions=sessions,
                unique_visitors=visitors,
                bounce_rate=round(bounce_rate, 2),
                average_session_duration=avg_duration,
                average_page_views_per_session=round(per_session, 2),
            )

        return await self._run("get_summary", _query(), timeout)

    async def get_top_pages(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        timeout: float | None = None,
    ) -> list[TopPage]:
        """Get the ten most viewed pages, views descending then URL."""
        start, end = self._window(start, end)
        rows = await self._run(
            "get_top_pages",
            self.page_view_repo.get_top_pages(project_id, start, end, TOP_PAGES_LIMIT),
            timeout,
        )
        return [TopPage(url=url, views=views, sessions=sessions) for url, views, sessions in rows]

    async def get_traffic_sources(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        timeout: float | None = None,
    ) -> list[TrafficSource]:
        """Count distinct sessions per classified referrer source."""
        start, end = self._window(start, end)
        pairs = await self._run(
            "get_traffic_sources",
            self.page_view_repo.get_referrer_sessions(project_id, start, end),
            timeout,
        )

        sessions_by_source: dict[str, set[str]] = defaultdict(set)
        for referrer, session_id in pairs:
            sessions_by_source[classify_referrer(referrer)].add(session_id)

        sources = [
            TrafficSource(source=source, visitors=len(session_ids))
            for source, session_ids in sessions_by_source.items()
        ]
        sources.sort(key=lambda s: (-s.visitors, s.source))
        return sources

    async def get_device_breakdown(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        timeout: float | None = None,
    ) -> list[DeviceShare]:
        """Count sessions per device type with rounded percentages."""
        start, end = self._window(start, end)
        rows = await self._run(
            "get_device_breakdown",
            self.page_view_repo.get_device_sessions(project_id, start, end),
            timeout,
        )
        total = sum(count for _, count in rows)
        return [
            DeviceShare(
                device=device,
                sessions=count,
                percentage=round(count / total * 100) if total else 0,
            )
            for device, count in rows
        ]

    async def get_time_series_data(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        granularity: str = "day",
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        """Bucket page views, sessions and visitors per period.

        Every period between start and end is present, zero-filled when empty.
        """
        if granularity not in GRANULARITIES:
            raise ValidationError(
                f"Unknown granularity '{granularity}', expected one of {', '.join(GRANULARITIES)}"
            )
        start, end = self._window(start, end)
        rows = await self._run(
            "get_time_series_data",
            self.page_view_repo.get_activity_rows(project_id, start, end),
            timeout,
        )

        page_views: dict[datetime, int] = defaultdict(int)
        sessions: dict[datetime, set[str]] = defaultdict(set)
        visitors: dict[datetime, set[str]] = defaultdict(set)
        for timestamp, session_id, visitor_key in rows:
            period = bucket_start(timestamp, granularity)
            page_views[period] += 1
            sessions[period].add(session_id)
            visitors[period].add(visitor_key)

        series = []
        period = bucket_start(start, granularity)
        last = bucket_start(end, granularity)
        while period <= last:
            series.append(
                TimeSeriesPoint(
                    period=period,
                    page_views=page_views.get(period, 0),
                    sessions=len(sessions.get(period, ())),
                    unique_visitors=len(visitors.get(period, ())),
                )
            )
            period = next_bucket(period, granularity)
        return series

    async def get_recent_page_views(
        self,
        project_id: str,
        since: datetime,
        limit: int = 50,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Get page views recorded after ``since``, newest first."""
        rows = await self._run(
            "get_recent_page_views",
            self.page_view_repo.get_recent(project_id, to_naive_utc(since), limit),
            timeout,
        )
        return [page_view_to_dict(pv) for pv in rows]

    async def get_recent_events(
        self,
        project_id: str,
        since: datetime,
        limit: int = 50,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Get events recorded after ``since``, newest first."""
        rows = await self._run(
            "get_recent_events",
            self.event_repo.get_recent(project_id, to_naive_utc(since), limit),
            timeout,
        )
        return [event_to_dict(e) for e in rows]

    async def get_event_types_summary(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        timeout: float | None = None,
    ) -> list[EventTypeSummary]:
        """Count events and distinct sessions per event type."""
        start, end = self._window(start, end)
        rows = await self._run(
            "get_event_types_summary",
            self.event_repo.get_type_summary(project_id, start, end),
            timeout,
        )
        return [
            EventTypeSummary(event_type=event_type, count=count, unique_sessions=sessions)
            for event_type, count, sessions in rows
        ]

    async def get_custom_events(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        limit: int = 100,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Get events other than pageview/click/scroll/move, newest first."""
        start, end = self._window(start, end)
        rows = await self._run(
            "get_custom_events",
            self.event_repo.get_custom(project_id, start, end, limit),
            timeout,
        )
        return [event_to_dict(e) for e in rows]

    async def get_realtime_stats(
        self, project_id: str, timeout: float | None = None
    ) -> RealtimeStats:
        """Count sessions, page views and events over the last hour."""
        since = utcnow() - timedelta(hours=1)

        async def _query() -> RealtimeStats:
            page_views, sessions = await self.page_view_repo.count_since(project_id, since)
            events = await self.event_repo.count_since(project_id, since)
            return RealtimeStats(
                active_sessions=sessions,
                page_views_last_hour=page_views,
                events_last_hour=events,
            )

        return await self._run("get_realtime_stats", _query(), timeout)

    async def get_export_data(
        self,
        project_id: str,
        record_type: str,
        start: datetime,
        end: datetime,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Get raw rows for export, newest first.

        Args:
            record_type: One of "pageviews", "events", "sessions"

        Raises:
            ValidationError: If the record type is unknown
        """
        if record_type == "pageviews":
            repo, columns = self.page_view_repo, _PAGE_VIEW_EXPORT_COLUMNS
        elif record_type == "events":
            repo, columns = self.event_repo, _EVENT_EXPORT_COLUMNS
        elif record_type == "sessions":
            repo, columns = self.session_repo, _SESSION_EXPORT_COLUMNS
        else:
            raise ValidationError(
                f"Invalid export type '{record_type}', expected one of {', '.join(EXPORT_TYPES)}"
            )

        start, end = self._window(start, end)
        rows = await self._run(
            "get_export_data",
            repo.list_in_window(project_id, start, end),
            timeout,
        )
        return [_columns(row, columns) for row in rows]

