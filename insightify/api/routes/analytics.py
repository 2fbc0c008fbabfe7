"""Dashboard analytics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from insightify.api.deps import AggregationDep, DateRangeDep
from insightify.api.schemas.analytics import (
    EventTypesResponse,
    ExportResponse,
    TimeSeriesResponse,
)
from insightify.domain.models.analytics import (
    AnalyticsSummary,
    DeviceShare,
    TopPage,
    TrafficSource,
)

router = APIRouter()


@router.get("/{project_id}/summary", response_model=AnalyticsSummary)
async def get_summary(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
) -> AnalyticsSummary:
    """Headline totals, bounce rate and session averages for the window."""
    return await analytics.get_summary(project_id, window.start, window.end)


@router.get("/{project_id}/top-pages", response_model=list[TopPage])
async def get_top_pages(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
) -> list[TopPage]:
    return await analytics.get_top_pages(project_id, window.start, window.end)


@router.get("/{project_id}/traffic-sources", response_model=list[TrafficSource])
async def get_traffic_sources(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
) -> list[TrafficSource]:
    return await analytics.get_traffic_sources(project_id, window.start, window.end)


@router.get("/{project_id}/devices", response_model=list[DeviceShare])
async def get_device_breakdown(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
) -> list[DeviceShare]:
    return await analytics.get_device_breakdown(project_id, window.start, window.end)


@router.get("/{project_id}/timeseries", response_model=TimeSeriesResponse)
async def get_time_series(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
    granularity: Annotated[str, Query(description="hour, day, week or month")] = "day",
) -> TimeSeriesResponse:
    """Zero-filled page view, session and visitor counts per period."""
    points = await analytics.get_time_series_data(
        project_id, window.start, window.end, granularity=granularity
    )
    return TimeSeriesResponse(
        granularity=granularity, start=window.start, end=window.end, points=points
    )


@router.get("/{project_id}/event-types", response_model=EventTypesResponse)
async def get_event_types(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
) -> EventTypesResponse:
    event_types = await analytics.get_event_types_summary(project_id, window.start, window.end)
    return EventTypesResponse(event_types=event_types)


@router.get("/{project_id}/custom-events")
async def get_custom_events(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[dict]:
    """Events other than the built-in pageview, click, scroll and move types."""
    return await analytics.get_custom_events(project_id, window.start, window.end, limit=limit)


@router.get("/{project_id}/export", response_model=ExportResponse)
async def export_data(
    project_id: str,
    window: DateRangeDep,
    analytics: AggregationDep,
    record_type: Annotated[str, Query(alias="type", description="pageviews, events or sessions")] = "pageviews",
) -> ExportResponse:
    """Raw rows of one record type for the window, newest first."""
    rows = await analytics.get_export_data(project_id, record_type, window.start, window.end)
    return ExportResponse(record_type=record_type, start=window.start, end=window.end, rows=rows)
